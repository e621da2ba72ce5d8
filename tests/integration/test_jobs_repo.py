from __future__ import annotations

import pytest
from sqlalchemy import select

from seowriter.jobs.models import InvalidJobUpdateError, JobInput, JobResult, JobStatus, JobUpdate, PageRef
from seowriter.schema.jobs import Job
from seowriter.storage.jobs_repo import JobNotFoundError
from seowriter.storage.postgres_jobs_repo import PostgresJobsRepository

MINUTE_MS = 60_000

JOB_INPUT = JobInput(url="https://acme.test", topic="Managed IT", keywords=["it support", "msp"], target_length=900, notes="Keep it friendly.")
RESULT = JobResult(
  meta_title="Managed IT Services",
  meta_description="Description",
  content_markdown="# Managed IT",
  faq_raw="Q: a\nA: b",
  schema_json_string="{}",
  pages=[PageRef(title="Acme", url="https://acme.test")],
)


@pytest.mark.anyio
async def test_create_and_get_round_trip(jobs_repo: PostgresJobsRepository, clock) -> None:
  job_id = await jobs_repo.create_job(JOB_INPUT)
  job = await jobs_repo.get_job(job_id)

  assert job_id.startswith("job_")
  assert job is not None
  assert job.status == JobStatus.PENDING
  assert job.progress == 0
  assert job.attempts == 0
  assert job.message == "Job created, waiting to start..."
  assert job.created_at == job.updated_at == clock.now
  assert job.input == JOB_INPUT
  assert job.result is None and job.error is None
  assert await jobs_repo.get_job("job_missing") is None


@pytest.mark.anyio
async def test_partial_update_only_touches_named_fields(jobs_repo: PostgresJobsRepository, clock) -> None:
  job_id = await jobs_repo.create_job(JOB_INPUT)
  clock.advance(5)
  await jobs_repo.update_job(job_id, JobUpdate(progress=30, message="Crawled 1 pages"))

  job = await jobs_repo.get_job(job_id)
  assert job.progress == 30
  assert job.message == "Crawled 1 pages"
  assert job.status == JobStatus.PENDING
  assert job.updated_at == clock.now
  assert job.input == JOB_INPUT


@pytest.mark.anyio
async def test_repeated_update_is_idempotent(jobs_repo: PostgresJobsRepository) -> None:
  job_id = await jobs_repo.create_job(JOB_INPUT)
  changes = JobUpdate(status=JobStatus.COMPLETED, progress=100, message="done", result=RESULT)
  await jobs_repo.update_job(job_id, changes)
  first = await jobs_repo.get_job(job_id)
  await jobs_repo.update_job(job_id, changes)
  second = await jobs_repo.get_job(job_id)

  assert first == second
  assert second.result == RESULT


@pytest.mark.anyio
async def test_status_change_clears_result_and_error(jobs_repo: PostgresJobsRepository) -> None:
  job_id = await jobs_repo.create_job(JOB_INPUT)
  await jobs_repo.update_job(job_id, JobUpdate(status=JobStatus.FAILED, error="Failed after 3 attempts: boom"))
  assert (await jobs_repo.get_job(job_id)).error == "Failed after 3 attempts: boom"

  await jobs_repo.update_job(job_id, JobUpdate(status=JobStatus.COMPLETED, progress=100, result=RESULT))
  job = await jobs_repo.get_job(job_id)
  assert job.error is None
  assert job.result == RESULT

  await jobs_repo.update_job(job_id, JobUpdate(status=JobStatus.PENDING, message="Requeued"))
  job = await jobs_repo.get_job(job_id)
  assert job.result is None
  assert job.progress == 0


@pytest.mark.anyio
async def test_update_missing_job_raises(jobs_repo: PostgresJobsRepository) -> None:
  with pytest.raises(JobNotFoundError):
    await jobs_repo.update_job("job_missing", JobUpdate(progress=10))


@pytest.mark.anyio
async def test_invalid_update_is_rejected_before_writing(jobs_repo: PostgresJobsRepository) -> None:
  job_id = await jobs_repo.create_job(JOB_INPUT)
  with pytest.raises(InvalidJobUpdateError):
    await jobs_repo.update_job(job_id, JobUpdate(status=JobStatus.GENERATING, error="nope"))
  assert (await jobs_repo.get_job(job_id)).status == JobStatus.PENDING


@pytest.mark.anyio
async def test_claim_is_fifo_and_increments_attempts_in_sql(jobs_repo: PostgresJobsRepository, clock) -> None:
  first = await jobs_repo.create_job(JOB_INPUT)
  clock.advance(1)
  second = await jobs_repo.create_job(JOB_INPUT)

  assert await jobs_repo.peek_next_pending() == first
  assert await jobs_repo.peek_next_pending() == first

  clock.advance(1)
  assert await jobs_repo.claim_next_pending() == first
  claimed = await jobs_repo.get_job(first)
  assert claimed.status == JobStatus.CRAWLING
  assert claimed.progress == 10
  assert claimed.attempts == 1
  assert claimed.last_attempt_at == clock.now

  assert await jobs_repo.claim_next_pending() == second
  assert await jobs_repo.claim_next_pending() is None


@pytest.mark.anyio
async def test_retried_job_keeps_its_place_in_line(jobs_repo: PostgresJobsRepository, clock) -> None:
  first = await jobs_repo.create_job(JOB_INPUT)
  clock.advance(1)
  second = await jobs_repo.create_job(JOB_INPUT)

  assert await jobs_repo.claim_next_pending() == first
  await jobs_repo.update_job(first, JobUpdate(status=JobStatus.PENDING, message="Retry attempt 2/3 - Error: boom"))

  assert await jobs_repo.claim_next_pending() == first
  assert (await jobs_repo.get_job(first)).attempts == 2
  assert (await jobs_repo.get_job(second)).status == JobStatus.PENDING


@pytest.mark.anyio
async def test_reset_stuck_jobs_requeues_or_fails(jobs_repo: PostgresJobsRepository, clock) -> None:
  retryable = await jobs_repo.create_job(JOB_INPUT)
  exhausted = await jobs_repo.create_job(JOB_INPUT)
  fresh = await jobs_repo.create_job(JOB_INPUT)
  for job_id in (retryable, exhausted):
    await jobs_repo.update_job(job_id, JobUpdate(status=JobStatus.GENERATING, progress=40, message="Generating content with AI..."))
  for _ in range(3):
    await jobs_repo.update_job(exhausted, JobUpdate(increment_attempts=True))

  clock.advance(20 * MINUTE_MS)
  await jobs_repo.update_job(fresh, JobUpdate(status=JobStatus.CRAWLING, progress=10, message="Crawling https://acme.test..."))

  assert await jobs_repo.reset_stuck_jobs(10 * MINUTE_MS, 3) == 2

  requeued = await jobs_repo.get_job(retryable)
  assert requeued.status == JobStatus.PENDING
  assert requeued.progress == 0
  assert "attempt 0/3" in requeued.message

  failed = await jobs_repo.get_job(exhausted)
  assert failed.status == JobStatus.FAILED
  assert failed.attempts == 3
  assert failed.error == "Job stuck in generating state after 3 attempts"

  assert (await jobs_repo.get_job(fresh)).status == JobStatus.CRAWLING


@pytest.mark.anyio
async def test_cleanup_only_removes_old_terminal_jobs(jobs_repo: PostgresJobsRepository, session_factory, clock) -> None:
  old_done = await jobs_repo.create_job(JOB_INPUT)
  old_failed = await jobs_repo.create_job(JOB_INPUT)
  old_pending = await jobs_repo.create_job(JOB_INPUT)
  await jobs_repo.update_job(old_done, JobUpdate(status=JobStatus.COMPLETED, progress=100, result=RESULT))
  await jobs_repo.update_job(old_failed, JobUpdate(status=JobStatus.FAILED, error="boom"))
  clock.advance(25 * 60 * MINUTE_MS)
  recent_done = await jobs_repo.create_job(JOB_INPUT)
  await jobs_repo.update_job(recent_done, JobUpdate(status=JobStatus.COMPLETED, progress=100, result=RESULT))

  assert await jobs_repo.cleanup_old_jobs(24 * 60 * MINUTE_MS) == 2

  async with session_factory() as session:
    remaining = set((await session.execute(select(Job.id))).scalars().all())
  assert remaining == {old_pending, recent_done}


@pytest.mark.anyio
async def test_list_jobs_and_queue_stats(jobs_repo: PostgresJobsRepository, clock) -> None:
  first = await jobs_repo.create_job(JOB_INPUT)
  clock.advance(1)
  second = await jobs_repo.create_job(JOB_INPUT)
  await jobs_repo.update_job(second, JobUpdate(status=JobStatus.FAILED, error="boom"))

  assert [job.id for job in await jobs_repo.list_jobs()] == [second, first]
  assert [job.id for job in await jobs_repo.list_jobs(status=JobStatus.FAILED)] == [second]
  assert len(await jobs_repo.list_jobs(limit=1)) == 1

  stats = await jobs_repo.queue_stats(10 * MINUTE_MS)
  assert stats.status_counts["pending"] == 1
  assert stats.status_counts["failed"] == 1
  assert stats.status_counts["crawling"] == 0
  assert stats.oldest_pending_job_id == first
  assert stats.stuck_count == 0
  assert stats.last_updated_at == clock.now


@pytest.mark.anyio
async def test_sessions_never_serve_stale_reads(session_factory, clock) -> None:
  writer = PostgresJobsRepository(session_factory, clock=clock)
  reader = PostgresJobsRepository(session_factory, clock=clock)
  job_id = await writer.create_job(JOB_INPUT)
  assert (await reader.get_job(job_id)).progress == 0
  await writer.update_job(job_id, JobUpdate(progress=30, message="Crawled 1 pages"))
  assert (await reader.get_job(job_id)).progress == 30

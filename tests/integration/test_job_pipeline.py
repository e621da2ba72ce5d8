"""End-to-end worker runs against the SQLAlchemy store."""

from __future__ import annotations

from dataclasses import replace

import httpx
import pytest

from seowriter.jobs.models import JobInput, JobStatus, JobUpdate, PageRef, WorkerOutcome
from seowriter.scraping.crawler import Crawler, CrawlResult
from seowriter.services.jobs import process_next_job

MINUTE_MS = 60_000

JOB_INPUT = JobInput(url="https://acme.test", topic="Managed IT for growing teams", keywords=["managed it", "help desk"], target_length=900)


class StaticCrawler:
  async def crawl(self, seed_url: str) -> CrawlResult:
    return CrawlResult(context=f"[HOMEPAGE: Acme Cloud Co | {seed_url}]\nAcme Cloud Co runs IT for small teams.", pages=[PageRef(title="Acme Cloud Co", url=seed_url)])


class StaticGenerator:
  def __init__(self, output: str) -> None:
    self.output = output

  async def generate(self, context: str, topic: str, keywords: list[str], target_length: int, notes: str | None = None) -> str:
    return self.output


def _timeout_crawler() -> Crawler:
  def handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectTimeout("timed out", request=request)

  return Crawler(transport=httpx.MockTransport(handler))


@pytest.mark.anyio
async def test_pending_job_completes_in_one_invocation(session_factory, jobs_repo, settings, clock, valid_output: str) -> None:
  job_id = await jobs_repo.create_job(JOB_INPUT)

  result = await process_next_job(session_factory, settings, crawler=StaticCrawler(), generator=StaticGenerator(valid_output), clock=clock)

  assert result.outcome == WorkerOutcome.COMPLETED
  assert result.processed_job_id == job_id
  job = await jobs_repo.get_job(job_id)
  assert job.status == JobStatus.COMPLETED
  assert job.progress == 100
  assert job.attempts == 1
  assert job.error is None
  assert 50 <= len(job.result.meta_title) <= 60
  assert job.result.pages == [PageRef(title="Acme Cloud Co", url="https://acme.test")]


@pytest.mark.anyio
async def test_always_timing_out_crawler_fails_after_three_invocations(session_factory, jobs_repo, settings, clock) -> None:
  job_id = await jobs_repo.create_job(JOB_INPUT)
  generator = StaticGenerator("unused")

  outcomes = []
  for attempt in range(1, 4):
    result = await process_next_job(session_factory, settings, crawler=_timeout_crawler(), generator=generator, clock=clock)
    outcomes.append(result.outcome)
    job = await jobs_repo.get_job(job_id)
    assert job.attempts == attempt
    if attempt < 3:
      assert job.status == JobStatus.PENDING
      assert job.progress == 0
      assert job.message.startswith(f"Retry attempt {attempt + 1}/3 - Error: Timed out fetching https://acme.test")
    clock.advance(1000)

  assert outcomes == [WorkerOutcome.RETRIED, WorkerOutcome.RETRIED, WorkerOutcome.FAILED]
  job = await jobs_repo.get_job(job_id)
  assert job.status == JobStatus.FAILED
  assert job.attempts == 3
  assert job.error == "Failed after 3 attempts: Timed out fetching https://acme.test"

  idle = await process_next_job(session_factory, settings, crawler=_timeout_crawler(), generator=generator, clock=clock)
  assert idle.outcome == WorkerOutcome.IDLE


@pytest.mark.anyio
async def test_job_stuck_in_generating_is_requeued(session_factory, jobs_repo, settings, clock, valid_output: str) -> None:
  job_id = await jobs_repo.create_job(JOB_INPUT)
  assert await jobs_repo.claim_next_pending() == job_id
  await jobs_repo.update_job(job_id, JobUpdate(status=JobStatus.GENERATING, progress=40, message="Generating content with AI..."))
  clock.advance(20 * MINUTE_MS)

  assert await jobs_repo.reset_stuck_jobs(settings.stuck_threshold_ms, settings.jobs_max_retries) == 1
  job = await jobs_repo.get_job(job_id)
  assert job.status == JobStatus.PENDING
  assert job.progress == 0
  assert job.attempts == 1

  # The next invocation picks the requeued job up again.
  result = await process_next_job(session_factory, settings, crawler=StaticCrawler(), generator=StaticGenerator(valid_output), clock=clock)
  assert result.outcome == WorkerOutcome.COMPLETED
  assert (await jobs_repo.get_job(job_id)).attempts == 2


@pytest.mark.anyio
async def test_worker_invocation_runs_stuck_sweep_first(session_factory, jobs_repo, settings, clock, valid_output: str) -> None:
  job_id = await jobs_repo.create_job(JOB_INPUT)
  await jobs_repo.claim_next_pending()
  await jobs_repo.update_job(job_id, JobUpdate(status=JobStatus.PARSING, progress=90, message="Parsing generated content..."))
  clock.advance(20 * MINUTE_MS)

  result = await process_next_job(session_factory, settings, crawler=StaticCrawler(), generator=StaticGenerator(valid_output), clock=clock)

  assert result.stuck_reset == 1
  assert result.processed_job_id == job_id
  assert result.outcome == WorkerOutcome.COMPLETED


@pytest.mark.anyio
async def test_job_forced_into_generating_without_a_claim_is_requeued(session_factory, jobs_repo, settings, clock, valid_output: str) -> None:
  job_id = await jobs_repo.create_job(JOB_INPUT)
  await jobs_repo.update_job(job_id, JobUpdate(status=JobStatus.GENERATING, progress=40, message="Generating content with AI..."))
  assert (await jobs_repo.get_job(job_id)).attempts == 0
  clock.advance(20 * MINUTE_MS)

  assert await jobs_repo.reset_stuck_jobs(settings.stuck_threshold_ms, settings.jobs_max_retries) == 1
  job = await jobs_repo.get_job(job_id)
  assert job.status == JobStatus.PENDING
  assert job.progress == 0
  assert job.attempts == 0
  assert job.message == "Reset from stuck generating state (attempt 0/3)"

  result = await process_next_job(session_factory, settings, crawler=StaticCrawler(), generator=StaticGenerator(valid_output), clock=clock)
  assert result.outcome == WorkerOutcome.COMPLETED
  assert (await jobs_repo.get_job(job_id)).attempts == 1


@pytest.mark.anyio
async def test_missing_model_key_still_runs_sweeps(session_factory, jobs_repo, settings, clock) -> None:
  unconfigured = replace(settings, llm_api_key=None)
  job_id = await jobs_repo.create_job(JOB_INPUT)
  await jobs_repo.update_job(job_id, JobUpdate(status=JobStatus.GENERATING, progress=40, message="Generating content with AI..."))
  clock.advance(20 * MINUTE_MS)

  result = await process_next_job(session_factory, unconfigured, crawler=StaticCrawler(), clock=clock)

  assert result.stuck_reset == 1
  assert result.processed_job_id == job_id
  assert result.outcome == WorkerOutcome.RETRIED
  job = await jobs_repo.get_job(job_id)
  assert job.status == JobStatus.PENDING
  assert job.attempts == 1
  assert job.message.startswith("Retry attempt 2/3 - Error: SEO_LLM_API_KEY")

"""Postgres-backed repository for background jobs using SQLAlchemy."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from msgspec import UNSET
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seowriter.jobs.models import IN_FLIGHT_STATUSES, TERMINAL_STATUSES, JobInput, JobRecord, JobResult, JobStatus, JobUpdate, PageRef
from seowriter.schema.jobs import Job
from seowriter.storage.jobs_repo import JobNotFoundError, JobsRepository, QueueStats
from seowriter.utils.ids import generate_job_id, now_ms

logger = logging.getLogger(__name__)

CREATED_MESSAGE = "Job created, waiting to start..."
CLAIMED_MESSAGE = "Picked up by worker, starting..."

_RESULT_COLUMNS = (
  "result_meta_title",
  "result_meta_description",
  "result_content_markdown",
  "result_faq_raw",
  "result_schema_json_string",
  "result_pages",
)


def _status_values(status: JobStatus) -> dict[str, Any]:
  """Columns implied by a status transition alone."""
  values: dict[str, Any] = {"status": status.value}
  if status != JobStatus.COMPLETED:
    values.update(dict.fromkeys(_RESULT_COLUMNS))
  if status != JobStatus.FAILED:
    values["error"] = None
  if status == JobStatus.PENDING:
    values["progress"] = 0
  return values


def _result_values(result: JobResult) -> dict[str, Any]:
  return {
    "result_meta_title": result.meta_title,
    "result_meta_description": result.meta_description,
    "result_content_markdown": result.content_markdown,
    "result_faq_raw": result.faq_raw,
    "result_schema_json_string": result.schema_json_string,
    "result_pages": [{"title": page.title, "url": page.url} for page in result.pages],
  }


class PostgresJobsRepository(JobsRepository):
  """Persist jobs to Postgres using SQLAlchemy."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, clock: Callable[[], int] = now_ms, max_claim_attempts: int = 5) -> None:
    self._session_factory = session_factory
    self._clock = clock
    self._max_claim_attempts = max_claim_attempts

  async def create_job(self, job_input: JobInput) -> str:
    job_id = generate_job_id()
    now = self._clock()
    async with self._session_factory() as session:
      job = Job(
        id=job_id,
        status=JobStatus.PENDING.value,
        progress=0,
        message=CREATED_MESSAGE,
        created_at=now,
        updated_at=now,
        attempts=0,
        last_attempt_at=None,
        input_url=job_input.url,
        input_topic=job_input.topic,
        input_keywords=list(job_input.keywords),
        input_length=job_input.target_length,
        input_additional_notes=job_input.notes,
      )
      session.add(job)
      await session.commit()
    return job_id

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(Job, job_id)
      if row is None:
        return None
      return self._model_to_record(row)

  async def update_job(self, job_id: str, changes: JobUpdate) -> None:
    changes.validate()
    values: dict[str, Any] = {}
    if changes.status is not UNSET:
      values.update(_status_values(JobStatus(changes.status)))
    if changes.progress is not UNSET:
      values["progress"] = changes.progress
    if changes.message is not UNSET:
      values["message"] = changes.message
    if changes.result is not UNSET:
      values.update(_result_values(changes.result) if changes.result is not None else dict.fromkeys(_RESULT_COLUMNS))
    if changes.error is not UNSET:
      values["error"] = changes.error
    if changes.last_attempt_at is not UNSET:
      values["last_attempt_at"] = changes.last_attempt_at
    if changes.increment_attempts:
      values["attempts"] = Job.attempts + 1
    values["updated_at"] = self._clock()

    stmt = update(Job).where(Job.id == job_id).values(**values).execution_options(synchronize_session=False)
    async with self._session_factory() as session:
      result = await session.execute(stmt)
      await session.commit()
    if result.rowcount == 0:
      raise JobNotFoundError(job_id)

  async def peek_next_pending(self) -> str | None:
    stmt = select(Job.id).where(Job.status == JobStatus.PENDING.value).order_by(Job.created_at.asc(), Job.id.asc()).limit(1)
    async with self._session_factory() as session:
      return (await session.execute(stmt)).scalar_one_or_none()

  async def claim_next_pending(self) -> str | None:
    for _ in range(self._max_claim_attempts):
      async with self._session_factory.begin() as session:
        stmt = select(Job.id).where(Job.status == JobStatus.PENDING.value).order_by(Job.created_at.asc(), Job.id.asc()).limit(1).with_for_update(skip_locked=True)
        job_id = (await session.execute(stmt)).scalar_one_or_none()
        if job_id is None:
          return None
        now = self._clock()
        claim = (
          update(Job)
          .where(Job.id == job_id, Job.status == JobStatus.PENDING.value)
          .values(
            status=JobStatus.CRAWLING.value,
            progress=10,
            message=CLAIMED_MESSAGE,
            attempts=Job.attempts + 1,
            last_attempt_at=now,
            updated_at=now,
            error=None,
          )
          .execution_options(synchronize_session=False)
        )
        result = await session.execute(claim)
      if result.rowcount == 1:
        return job_id
      logger.info("Lost claim race for job %s, trying next candidate.", job_id)
    return None

  async def reset_stuck_jobs(self, stale_threshold_ms: int, max_retries: int) -> int:
    cutoff = self._clock() - stale_threshold_ms
    in_flight = [status.value for status in IN_FLIGHT_STATUSES]
    stmt = select(Job.id, Job.status, Job.updated_at, Job.attempts).where(Job.status.in_(in_flight), Job.updated_at < cutoff).order_by(Job.updated_at.asc())
    reset = 0
    async with self._session_factory() as session:
      rows = (await session.execute(stmt)).all()
      for job_id, status, observed_updated_at, attempts in rows:
        now = self._clock()
        if attempts >= max_retries:
          values = _status_values(JobStatus.FAILED)
          values.update(message="Job failed: exceeded maximum retry attempts", error=f"Job stuck in {status} state after {attempts} attempts")
        else:
          values = _status_values(JobStatus.PENDING)
          values.update(message=f"Reset from stuck {status} state (attempt {attempts}/{max_retries})")
        values["updated_at"] = now
        guarded = (
          update(Job)
          .where(Job.id == job_id, Job.status == status, Job.updated_at == observed_updated_at)
          .values(**values)
          .execution_options(synchronize_session=False)
        )
        result = await session.execute(guarded)
        if result.rowcount:
          reset += 1
          logger.warning("Reset stuck job %s from %s (attempts=%s, failed=%s).", job_id, status, attempts, attempts >= max_retries)
      await session.commit()
    return reset

  async def cleanup_old_jobs(self, max_age_ms: int) -> int:
    cutoff = self._clock() - max_age_ms
    terminal = [status.value for status in TERMINAL_STATUSES]
    stmt = delete(Job).where(Job.status.in_(terminal), Job.updated_at < cutoff).execution_options(synchronize_session=False)
    async with self._session_factory() as session:
      result = await session.execute(stmt)
      await session.commit()
    return int(result.rowcount or 0)

  async def list_jobs(self, *, status: JobStatus | None = None, limit: int = 50) -> list[JobRecord]:
    stmt = select(Job)
    if status is not None:
      stmt = stmt.where(Job.status == JobStatus(status).value)
    stmt = stmt.order_by(Job.created_at.desc(), Job.id.desc()).limit(limit)
    async with self._session_factory() as session:
      rows = (await session.execute(stmt)).scalars().all()
      return [self._model_to_record(row) for row in rows]

  async def queue_stats(self, stale_threshold_ms: int) -> QueueStats:
    cutoff = self._clock() - stale_threshold_ms
    in_flight = [status.value for status in IN_FLIGHT_STATUSES]
    async with self._session_factory() as session:
      count_rows = (await session.execute(select(Job.status, func.count()).group_by(Job.status))).all()
      oldest = (await session.execute(select(Job.id, Job.created_at).where(Job.status == JobStatus.PENDING.value).order_by(Job.created_at.asc(), Job.id.asc()).limit(1))).first()
      stuck_count = (await session.execute(select(func.count()).select_from(Job).where(Job.status.in_(in_flight), Job.updated_at < cutoff))).scalar_one()
      last_updated_at = (await session.execute(select(func.max(Job.updated_at)))).scalar_one_or_none()
    counts = {status.value: 0 for status in JobStatus}
    for status, count in count_rows:
      counts[status] = int(count)
    return QueueStats(
      status_counts=counts,
      oldest_pending_job_id=oldest[0] if oldest is not None else None,
      oldest_pending_created_at=oldest[1] if oldest is not None else None,
      stuck_count=int(stuck_count),
      last_updated_at=last_updated_at,
    )

  def _model_to_record(self, row: Job) -> JobRecord:
    result = None
    if row.status == JobStatus.COMPLETED.value and row.result_content_markdown is not None:
      result = JobResult(
        meta_title=row.result_meta_title or "",
        meta_description=row.result_meta_description or "",
        content_markdown=row.result_content_markdown,
        faq_raw=row.result_faq_raw or "",
        schema_json_string=row.result_schema_json_string or "",
        pages=[PageRef(title=str(page.get("title", "")), url=str(page.get("url", ""))) for page in row.result_pages or []],
      )
    return JobRecord(
      id=row.id,
      status=JobStatus(row.status),
      progress=row.progress,
      message=row.message,
      created_at=row.created_at,
      updated_at=row.updated_at,
      attempts=row.attempts,
      last_attempt_at=row.last_attempt_at,
      input=JobInput(
        url=row.input_url,
        topic=row.input_topic,
        keywords=list(row.input_keywords or []),
        target_length=row.input_length,
        notes=row.input_additional_notes,
      ),
      result=result,
      error=row.error,
    )

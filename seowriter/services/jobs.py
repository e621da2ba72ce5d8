import logging
from collections.abc import Callable
from functools import partial

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seowriter.ai.generator import ContentGenerator
from seowriter.api.models import (
  GenerateArticleRequest,
  JobCreateResponse,
  JobInputModel,
  JobListResponse,
  JobResultModel,
  JobStatusResponse,
  OldestPendingJob,
  PageRefModel,
  WorkerHealthResponse,
  WorkerRunResponse,
)
from seowriter.config import Settings
from seowriter.core.database import session_factory_scope
from seowriter.jobs.models import JobInput, JobRecord, JobStatus, WorkerRunResult
from seowriter.jobs.worker import ArticleGenerator, JobProcessor, SiteCrawler
from seowriter.scraping.crawler import Crawler
from seowriter.storage.jobs_repo import JobsRepository
from seowriter.storage.postgres_jobs_repo import PostgresJobsRepository
from seowriter.utils.ids import now_ms

logger = logging.getLogger(__name__)

_JOB_NOT_FOUND_MSG = "Job not found."
_CREATED_MSG = "Job created successfully. Poll /v1/jobs/{job_id} to check status."


def record_to_response(record: JobRecord) -> JobStatusResponse:
  """Map a stored job onto the public response model."""
  result = None
  if record.result is not None:
    result = JobResultModel(
      meta_title=record.result.meta_title,
      meta_description=record.result.meta_description,
      content_markdown=record.result.content_markdown,
      faq_raw=record.result.faq_raw,
      schema_json_string=record.result.schema_json_string,
      pages=[PageRefModel(title=page.title, url=page.url) for page in record.result.pages],
    )
  return JobStatusResponse(
    id=record.id,
    status=record.status,
    progress=record.progress,
    message=record.message,
    created_at=record.created_at,
    updated_at=record.updated_at,
    attempts=record.attempts,
    last_attempt_at=record.last_attempt_at,
    input=JobInputModel(
      url=record.input.url,
      topic=record.input.topic,
      keywords=list(record.input.keywords),
      length=record.input.target_length,
      additional_notes=record.input.notes,
    ),
    result=result,
    error=record.error,
  )


def run_result_to_response(result: WorkerRunResult) -> WorkerRunResponse:
  return WorkerRunResponse(
    processed_job_id=result.processed_job_id,
    outcome=result.outcome,
    duration_ms=result.duration_ms,
    stuck_reset=result.stuck_reset,
    cleaned_up=result.cleaned_up,
    error=result.error,
  )


async def create_job(request: GenerateArticleRequest, settings: Settings, background_tasks: BackgroundTasks, jobs_repo: JobsRepository, session_factory: async_sessionmaker[AsyncSession]) -> JobCreateResponse:
  """Persist a validated request as a pending job and optionally kick the worker."""
  job_input = JobInput(url=request.url, topic=request.topic, keywords=list(request.keywords), target_length=request.length, notes=request.additional_notes)
  job_id = await jobs_repo.create_job(job_input)
  logger.info("Created job %s for %s (%s keywords, %s words).", job_id, job_input.url, len(job_input.keywords), job_input.target_length)

  if settings.jobs_auto_process:
    background_tasks.add_task(trigger_worker, session_factory, settings)

  return JobCreateResponse(job_id=job_id, message=_CREATED_MSG.format(job_id=job_id))


async def get_job_status(job_id: str, jobs_repo: JobsRepository) -> JobStatusResponse:
  record = await jobs_repo.get_job(job_id)
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_JOB_NOT_FOUND_MSG, headers={"Cache-Control": "no-store"})
  return record_to_response(record)


async def list_jobs(jobs_repo: JobsRepository, *, job_status: JobStatus | None, limit: int) -> JobListResponse:
  records = await jobs_repo.list_jobs(status=job_status, limit=limit)
  return JobListResponse(jobs=[record_to_response(record) for record in records], count=len(records))


async def queue_health(jobs_repo: JobsRepository, settings: Settings, *, clock: Callable[[], int] = now_ms) -> WorkerHealthResponse:
  """Summarize queue state for operators."""
  stats = await jobs_repo.queue_stats(settings.stuck_threshold_ms)
  now = clock()
  oldest = None
  if stats.oldest_pending_job_id is not None and stats.oldest_pending_created_at is not None:
    oldest = OldestPendingJob(id=stats.oldest_pending_job_id, created_at=stats.oldest_pending_created_at, age_minutes=max(0, now - stats.oldest_pending_created_at) // 60000)
  return WorkerHealthResponse(
    status="warning" if stats.stuck_count else "healthy",
    timestamp=now,
    status_counts=stats.status_counts,
    pending_count=stats.status_counts.get(JobStatus.PENDING.value, 0),
    stuck_count=stats.stuck_count,
    oldest_pending_job=oldest,
    last_updated_at=stats.last_updated_at,
  )


async def process_next_job(
  session_factory: async_sessionmaker[AsyncSession],
  settings: Settings,
  *,
  crawler: SiteCrawler | None = None,
  generator: ArticleGenerator | None = None,
  generator_factory: Callable[[], ArticleGenerator] | None = None,
  clock: Callable[[], int] = now_ms,
) -> WorkerRunResult:
  """Run one worker invocation against an existing session factory.

  Without an explicit generator the model client is built only once a job has been claimed.
  """
  processor = JobProcessor(
    jobs_repo=PostgresJobsRepository(session_factory, clock=clock),
    crawler=crawler or Crawler.from_settings(settings),
    generator=generator,
    generator_factory=generator_factory or partial(ContentGenerator.from_settings, settings),
    settings=settings,
    clock=clock,
  )
  result = await processor.run_once()
  logger.info("Worker run finished: outcome=%s job=%s duration_ms=%s", result.outcome.value, result.processed_job_id, result.duration_ms)
  return result


async def run_worker_once(settings: Settings, *, crawler: SiteCrawler | None = None, generator: ArticleGenerator | None = None) -> WorkerRunResult:
  """Run one stateless worker invocation with its own short-lived engine."""
  async with session_factory_scope(settings) as session_factory:
    return await process_next_job(session_factory, settings, crawler=crawler, generator=generator)


async def trigger_worker(session_factory: async_sessionmaker[AsyncSession], settings: Settings) -> None:
  """Background task body; failures are logged because no caller is waiting."""
  try:
    await process_next_job(session_factory, settings)
  except Exception:  # noqa: BLE001
    logger.error("Background worker run failed.", exc_info=True)

"""Background processor for queued article generation jobs."""

from __future__ import annotations

import inspect
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

from seowriter.ai.parser import ParsedSections, parse_sections
from seowriter.config import Settings
from seowriter.jobs.models import JobRecord, JobResult, JobStatus, JobUpdate, WorkerOutcome, WorkerRunResult
from seowriter.scraping.crawler import CrawlResult
from seowriter.services.normalize import word_count
from seowriter.storage.jobs_repo import JobNotFoundError, JobsRepository
from seowriter.utils.ids import now_ms

COMPLETED_MESSAGE = "Content generation completed successfully"
ERROR_PREVIEW_CHARS = 100


class SiteCrawler(Protocol):
  async def crawl(self, seed_url: str) -> CrawlResult: ...


class ArticleGenerator(Protocol):
  async def generate(self, context: str, topic: str, keywords: list[str], target_length: int, notes: str | None = None) -> str: ...


class StageFailedError(Exception):
  """Wraps an exception raised by a pipeline stage so it can be retried."""

  def __init__(self, stage: str, cause: BaseException) -> None:
    super().__init__(f"{stage} failed: {cause}")
    self.stage = stage
    self.cause = cause


def describe_error(exc: BaseException) -> str:
  """Return a human-readable, never-empty description of an exception."""
  text = str(exc).strip()
  return text or type(exc).__name__


class JobProcessor:
  """Runs one worker invocation: maintenance sweeps, then at most one job."""

  def __init__(
    self,
    *,
    jobs_repo: JobsRepository,
    crawler: SiteCrawler,
    generator: ArticleGenerator | None = None,
    generator_factory: Callable[[], ArticleGenerator] | None = None,
    settings: Settings,
    parser: Callable[[str], ParsedSections] = parse_sections,
    clock: Callable[[], int] = now_ms,
  ) -> None:
    self._jobs_repo = jobs_repo
    self._crawler = crawler
    if generator is None and generator_factory is None:
      raise ValueError("JobProcessor needs a generator or a generator_factory.")
    self._generator = generator
    self._generator_factory = generator_factory
    self._settings = settings
    self._parser = parser
    self._clock = clock
    self._logger = logging.getLogger(__name__)

  async def run_once(self) -> WorkerRunResult:
    """Process the oldest pending job, if any.

    Stage failures are recorded on the job as a retry or a terminal failure.
    Store failures are infrastructure errors and propagate to the caller.
    """
    started = self._clock()
    max_retries = self._settings.jobs_max_retries
    stuck_reset = await self._jobs_repo.reset_stuck_jobs(self._settings.stuck_threshold_ms, max_retries)
    cleaned_up = await self._jobs_repo.cleanup_old_jobs(self._settings.retention_ms)
    if stuck_reset or cleaned_up:
      self._logger.info("Maintenance sweep: reset %s stuck job(s), removed %s old job(s).", stuck_reset, cleaned_up)

    job_id = await self._jobs_repo.claim_next_pending()
    if job_id is None:
      self._logger.debug("No pending jobs.")
      return WorkerRunResult(None, WorkerOutcome.IDLE, self._clock() - started, stuck_reset, cleaned_up)

    self._logger.info("Claimed job %s.", job_id)
    error: str | None = None
    try:
      job = await self._jobs_repo.get_job(job_id)
      if job is None:
        raise JobNotFoundError(job_id)
      outcome, error = await self._process(job)
    except JobNotFoundError:
      self._logger.warning("Job %s disappeared while it was being processed.", job_id)
      outcome = WorkerOutcome.ADVANCED

    return WorkerRunResult(job_id, outcome, self._clock() - started, stuck_reset, cleaned_up, error)

  async def _process(self, job: JobRecord) -> tuple[WorkerOutcome, str | None]:
    try:
      await self._update(job.id, status=JobStatus.CRAWLING, progress=10, message=f"Crawling {job.input.url}...")
      crawl: CrawlResult = await self._call_stage(job.id, "crawling", self._crawler.crawl, job.input.url)
      await self._update(job.id, progress=30, message=f"Crawled {len(crawl.pages)} pages")

      await self._update(job.id, status=JobStatus.GENERATING, progress=40, message="Generating content with AI...")
      raw: str = await self._call_stage(
        job.id,
        "generating",
        self._generate,
        crawl.context,
        job.input.topic,
        job.input.keywords,
        job.input.target_length,
        job.input.notes,
      )
      await self._update(job.id, progress=80, message="Content generated, preparing to parse...")

      await self._update(job.id, status=JobStatus.PARSING, progress=90, message="Parsing generated content...")
      parsed: ParsedSections = await self._call_stage(job.id, "parsing", self._parser, raw)
    except StageFailedError as exc:
      return await self._handle_failure(job, exc)

    result = JobResult(
      meta_title=parsed.meta_title,
      meta_description=parsed.meta_description,
      content_markdown=parsed.content_markdown,
      faq_raw=parsed.faq_raw,
      schema_json_string=parsed.schema_json_string,
      pages=list(crawl.pages),
    )
    await self._update(job.id, status=JobStatus.COMPLETED, progress=100, message=COMPLETED_MESSAGE, result=result)
    self._logger.info("Job %s completed (%s words, attempt %s).", job.id, word_count(parsed.content_markdown), job.attempts)
    return WorkerOutcome.COMPLETED, None

  async def _generate(self, context: str, topic: str, keywords: list[str], target_length: int, notes: str | None) -> str:
    # Resolved lazily, after the sweeps and the claim.
    if self._generator is None:
      self._generator = self._generator_factory()
    return await self._generator.generate(context, topic, keywords, target_length, notes)

  async def _call_stage(self, job_id: str, stage: str, func: Callable[..., Any], *args: Any) -> Any:
    started = time.monotonic()
    try:
      value = func(*args)
      if inspect.isawaitable(value):
        value = await value
    except Exception as exc:  # noqa: BLE001
      self._logger.error("Stage %s failed for job %s after %.2fs", stage, job_id, time.monotonic() - started, exc_info=True)
      raise StageFailedError(stage, exc) from exc
    self._logger.info("Stage %s finished for job %s in %.2fs.", stage, job_id, time.monotonic() - started)
    return value

  async def _handle_failure(self, job: JobRecord, failure: StageFailedError) -> tuple[WorkerOutcome, str]:
    max_retries = self._settings.jobs_max_retries
    cause = describe_error(failure.cause)
    if job.attempts < max_retries:
      message = f"Retry attempt {job.attempts + 1}/{max_retries} - Error: {cause[:ERROR_PREVIEW_CHARS]}"
      await self._update(job.id, status=JobStatus.PENDING, progress=0, message=message)
      self._logger.warning("Job %s will retry after %s failure (attempt %s/%s).", job.id, failure.stage, job.attempts, max_retries)
      return WorkerOutcome.RETRIED, cause

    error = f"Failed after {job.attempts} attempts: {cause}"
    await self._update(job.id, status=JobStatus.FAILED, message=f"Job failed during {failure.stage}", error=error)
    self._logger.error("Job %s failed permanently: %s", job.id, error)
    return WorkerOutcome.FAILED, cause

  async def _update(self, job_id: str, **fields: Any) -> None:
    await self._jobs_repo.update_job(job_id, JobUpdate(**fields))

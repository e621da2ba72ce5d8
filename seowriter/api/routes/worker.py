from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seowriter.api.deps import get_crawler, get_generator_factory, get_jobs_repo, get_session_factory
from seowriter.api.models import WorkerHealthResponse, WorkerRunResponse
from seowriter.config import Settings, get_settings
from seowriter.jobs.worker import ArticleGenerator, SiteCrawler
from seowriter.services import jobs as job_service
from seowriter.storage.jobs_repo import JobsRepository

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/run", status_code=status.HTTP_200_OK, response_model=WorkerRunResponse)
async def run_worker(  # noqa: B008
  settings: Settings = Depends(get_settings),  # noqa: B008
  session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),  # noqa: B008
  crawler: SiteCrawler = Depends(get_crawler),  # noqa: B008
  generator_factory: Callable[[], ArticleGenerator] = Depends(get_generator_factory),  # noqa: B008
) -> WorkerRunResponse:
  """Run one worker invocation; intended for cron-style triggers."""
  logger.info("Worker run requested over HTTP.")
  result = await job_service.process_next_job(session_factory, settings, crawler=crawler, generator_factory=generator_factory)
  return job_service.run_result_to_response(result)


@router.get("/health", response_model=WorkerHealthResponse)
async def worker_health(  # noqa: B008
  settings: Settings = Depends(get_settings),  # noqa: B008
  jobs_repo: JobsRepository = Depends(get_jobs_repo),  # noqa: B008
) -> WorkerHealthResponse:
  """Report queue depth, stuck jobs and the oldest pending job."""
  return await job_service.queue_health(jobs_repo, settings)

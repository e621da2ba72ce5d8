import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seowriter.api.deps import get_jobs_repo, get_session_factory
from seowriter.api.models import GenerateArticleRequest, JobCreateResponse, JobListResponse, JobStatusResponse
from seowriter.config import Settings, get_settings
from seowriter.jobs.models import JobStatus
from seowriter.services import export as export_service
from seowriter.services import jobs as job_service
from seowriter.storage.jobs_repo import JobsRepository

router = APIRouter()
logger = logging.getLogger("seowriter.api.routes.jobs")

_NO_STORE = "private, no-store, no-cache, max-age=0, must-revalidate"


@router.post("", response_model=JobCreateResponse)
async def create_job(  # noqa: B008
  request: GenerateArticleRequest,
  background_tasks: BackgroundTasks,
  settings: Settings = Depends(get_settings),  # noqa: B008
  jobs_repo: JobsRepository = Depends(get_jobs_repo),  # noqa: B008
  session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),  # noqa: B008
) -> JobCreateResponse:
  """Create a background article generation job."""
  return await job_service.create_job(request, settings, background_tasks, jobs_repo, session_factory)


@router.get("", response_model=JobListResponse)
async def list_jobs(  # noqa: B008
  response: Response,
  status: JobStatus | None = Query(default=None),  # noqa: B008
  limit: int = Query(default=50, ge=1, le=200),  # noqa: B008
  jobs_repo: JobsRepository = Depends(get_jobs_repo),  # noqa: B008
) -> JobListResponse:
  """List recent jobs, newest first."""
  response.headers["Cache-Control"] = _NO_STORE
  return await job_service.list_jobs(jobs_repo, job_status=status, limit=limit)


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job_status(  # noqa: B008
  job_id: str,
  response: Response,
  jobs_repo: JobsRepository = Depends(get_jobs_repo),  # noqa: B008
) -> JobStatusResponse:
  """Fetch the status and result of a job; never served from a cache."""
  response.headers["Cache-Control"] = _NO_STORE
  response.headers["Pragma"] = "no-cache"
  return await job_service.get_job_status(job_id, jobs_repo)


@router.get("/{job_id}/export/word", response_class=Response)
async def export_job_word(  # noqa: B008
  job_id: str,
  jobs_repo: JobsRepository = Depends(get_jobs_repo),  # noqa: B008
) -> Response:
  """Download a completed article as a Word document."""
  filename, payload = await export_service.export_job_word(job_id, jobs_repo)
  logger.info("Exported job %s as Word (%s bytes).", job_id, len(payload))
  return Response(content=payload, media_type=export_service.DOCX_MEDIA_TYPE, headers={"Content-Disposition": f'attachment; filename="{filename}"', "Cache-Control": _NO_STORE})

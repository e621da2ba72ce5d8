"""Storage interfaces for background jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from seowriter.jobs.models import JobInput, JobRecord, JobStatus, JobUpdate


class JobNotFoundError(LookupError):
  """Raised when a job row targeted by an update does not exist."""

  def __init__(self, job_id: str) -> None:
    super().__init__(f"Job {job_id} not found")
    self.job_id = job_id


@dataclass(frozen=True)
class QueueStats:
  """Snapshot of queue health used by the worker health endpoint."""

  status_counts: dict[str, int] = field(default_factory=dict)
  oldest_pending_job_id: str | None = None
  oldest_pending_created_at: int | None = None
  stuck_count: int = 0
  last_updated_at: int | None = None


class JobsRepository(Protocol):
  """Repository contract for job persistence.

  Implementations must never cache rows in process and must compute update
  payloads from the caller's fields only, never from a prior read of the row.
  """

  async def create_job(self, job_input: JobInput) -> str:
    """Persist a new pending job and return its id."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def update_job(self, job_id: str, changes: JobUpdate) -> None:
    """Apply a direct partial update and bump updated_at."""

  async def peek_next_pending(self) -> str | None:
    """Return the oldest pending job id without mutating it."""

  async def claim_next_pending(self) -> str | None:
    """Atomically move the oldest pending job to crawling and start a new attempt."""

  async def reset_stuck_jobs(self, stale_threshold_ms: int, max_retries: int) -> int:
    """Requeue or fail in-flight jobs that stopped receiving updates."""

  async def cleanup_old_jobs(self, max_age_ms: int) -> int:
    """Delete terminal jobs older than the retention window."""

  async def list_jobs(self, *, status: JobStatus | None = None, limit: int = 50) -> list[JobRecord]:
    """Return recent jobs, newest first."""

  async def queue_stats(self, stale_threshold_ms: int) -> QueueStats:
    """Summarize the queue for health reporting."""

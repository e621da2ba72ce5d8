"""Domain models for asynchronous SEO article generation jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import msgspec
from msgspec import UNSET, UnsetType


class JobStatus(str, Enum):
  PENDING = "pending"
  CRAWLING = "crawling"
  GENERATING = "generating"
  PARSING = "parsing"
  COMPLETED = "completed"
  FAILED = "failed"

  @property
  def is_in_flight(self) -> bool:
    return self in IN_FLIGHT_STATUSES

  @property
  def is_terminal(self) -> bool:
    return self in TERMINAL_STATUSES


IN_FLIGHT_STATUSES = frozenset({JobStatus.CRAWLING, JobStatus.GENERATING, JobStatus.PARSING})
TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class WorkerOutcome(str, Enum):
  """Result of one worker invocation."""

  IDLE = "idle"
  ADVANCED = "advanced"
  COMPLETED = "completed"
  RETRIED = "retried"
  FAILED = "failed"


@dataclass(frozen=True)
class PageRef:
  title: str
  url: str


@dataclass(frozen=True)
class JobInput:
  """Caller-supplied parameters; written once at creation."""

  url: str
  topic: str
  keywords: list[str]
  target_length: int
  notes: str | None = None


@dataclass(frozen=True)
class JobResult:
  meta_title: str
  meta_description: str
  content_markdown: str
  faq_raw: str
  schema_json_string: str
  pages: list[PageRef] = field(default_factory=list)


@dataclass
class JobRecord:
  """Represents one persisted content generation job."""

  id: str
  status: JobStatus
  progress: int
  message: str
  created_at: int
  updated_at: int
  attempts: int
  input: JobInput
  last_attempt_at: int | None = None
  result: JobResult | None = None
  error: str | None = None


@dataclass(frozen=True)
class WorkerRunResult:
  processed_job_id: str | None
  outcome: WorkerOutcome
  duration_ms: int = 0
  stuck_reset: int = 0
  cleaned_up: int = 0
  error: str | None = None


class InvalidJobUpdateError(ValueError):
  """Raised when a partial update would break the job row invariants."""


class JobUpdate(msgspec.Struct, kw_only=True):
  """Sparse set of job fields to write.

  Fields left as ``UNSET`` are not written at all, which is different from writing
  ``None``. Attempts can only move forward through ``increment_attempts``.
  """

  status: JobStatus | UnsetType = UNSET
  progress: int | UnsetType = UNSET
  message: str | UnsetType = UNSET
  result: JobResult | None | UnsetType = UNSET
  error: str | None | UnsetType = UNSET
  last_attempt_at: int | None | UnsetType = UNSET
  increment_attempts: bool = False

  def is_empty(self) -> bool:
    return not self.increment_attempts and all(getattr(self, name) is UNSET for name in ("status", "progress", "message", "result", "error", "last_attempt_at"))

  def validate(self) -> None:
    """Reject payloads that would leave the row in an inconsistent state."""
    if self.progress is not UNSET and not 0 <= self.progress <= 100:
      raise InvalidJobUpdateError(f"progress must be within 0..100, got {self.progress}")
    if self.message is not UNSET and not self.message.strip():
      raise InvalidJobUpdateError("message must not be empty")

    has_result = self.result is not UNSET and self.result is not None
    has_error = self.error is not UNSET and self.error is not None
    if has_result and self.status != JobStatus.COMPLETED:
      raise InvalidJobUpdateError("result can only be written together with status=completed")
    if has_error and self.status != JobStatus.FAILED:
      raise InvalidJobUpdateError("error can only be written together with status=failed")
    if self.status == JobStatus.COMPLETED and not has_result:
      raise InvalidJobUpdateError("status=completed requires a result")
    if self.status == JobStatus.FAILED and not (has_error and self.error.strip()):
      raise InvalidJobUpdateError("status=failed requires a non-empty error")
    if self.status == JobStatus.PENDING and self.progress not in (UNSET, 0):
      raise InvalidJobUpdateError("pending jobs must have progress 0")

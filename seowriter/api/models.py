from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from seowriter.jobs.models import JobStatus, WorkerOutcome
from seowriter.services.normalize import normalize_url, split_keywords

MAX_KEYWORDS = 12
MAX_KEYWORD_CHARS = 60


class GenerateArticleRequest(BaseModel):
  """Request payload for a new article generation job."""

  url: StrictStr
  topic: str = Field(min_length=3, max_length=140)
  keywords: list[str] = Field(description="Comma-separated string or list of keywords.")
  length: int = Field(ge=300, le=3000, description="Target article length in words.")
  additional_notes: str | None = Field(default=None, max_length=2000)
  model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

  @field_validator("url")
  @classmethod
  def validate_https_url(cls, url: str) -> str:
    """Require an absolute https URL and normalize it."""
    parsed = urlparse(url.strip())
    if parsed.scheme.lower() != "https" or not parsed.netloc:
      raise ValueError("url must be an absolute https URL.")
    return normalize_url(url)

  @field_validator("keywords", mode="before")
  @classmethod
  def split_keyword_input(cls, keywords: Any) -> list[str]:
    """Accept a comma-separated string or a list; de-duplicate case-insensitively."""
    if not isinstance(keywords, str | list):
      raise ValueError("keywords must be a comma-separated string or a list of strings.")
    if isinstance(keywords, list) and not all(isinstance(item, str) for item in keywords):
      raise ValueError("keywords must contain only strings.")
    return split_keywords(keywords)

  @field_validator("keywords")
  @classmethod
  def validate_keyword_bounds(cls, keywords: list[str]) -> list[str]:
    if not keywords:
      raise ValueError("At least one keyword is required.")
    if len(keywords) > MAX_KEYWORDS:
      raise ValueError(f"Maximum {MAX_KEYWORDS} keywords allowed.")
    for keyword in keywords:
      if len(keyword) > MAX_KEYWORD_CHARS:
        raise ValueError(f'Keyword "{keyword[:MAX_KEYWORD_CHARS]}..." must be between 1 and {MAX_KEYWORD_CHARS} characters.')
    return keywords

  @field_validator("additional_notes")
  @classmethod
  def blank_notes_to_none(cls, notes: str | None) -> str | None:
    if notes is not None and not notes.strip():
      return None
    return notes


class JobCreateResponse(BaseModel):
  job_id: StrictStr
  message: StrictStr


class PageRefModel(BaseModel):
  title: str
  url: str


class JobInputModel(BaseModel):
  url: str
  topic: str
  keywords: list[str]
  length: int
  additional_notes: str | None = None


class JobResultModel(BaseModel):
  meta_title: str
  meta_description: str
  content_markdown: str
  faq_raw: str
  schema_json_string: str
  pages: list[PageRefModel] = Field(default_factory=list)


class JobStatusResponse(BaseModel):
  """Full job payload returned to pollers."""

  id: StrictStr
  status: JobStatus
  progress: int
  message: str
  created_at: int
  updated_at: int
  attempts: int
  last_attempt_at: int | None = None
  input: JobInputModel
  result: JobResultModel | None = None
  error: str | None = None


class JobListResponse(BaseModel):
  jobs: list[JobStatusResponse]
  count: int


class WorkerRunResponse(BaseModel):
  processed_job_id: str | None
  outcome: WorkerOutcome
  duration_ms: int
  stuck_reset: int
  cleaned_up: int
  error: str | None = None


class OldestPendingJob(BaseModel):
  id: str
  created_at: int
  age_minutes: int


class WorkerHealthResponse(BaseModel):
  status: str
  timestamp: int
  status_counts: dict[str, int]
  pending_count: int
  stuck_count: int
  oldest_pending_job: OldestPendingJob | None = None
  last_updated_at: int | None = None

"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from seowriter.utils.env import env_file_path, load_env_file

load_env_file(env_file_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the SEO writer service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  pg_dsn: str | None
  pg_connect_timeout: int
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  scrape_max_pages: int
  scrape_concurrency: int
  scrape_timeout_ms: int
  scrape_max_words: int
  llm_api_key: str | None
  llm_base_url: str | None
  llm_model: str
  generation_timeout_seconds: float
  generation_temperature: float
  generation_max_tokens: int
  jobs_max_retries: int
  jobs_stuck_threshold_seconds: int
  jobs_retention_seconds: int
  jobs_auto_process: bool

  @property
  def stuck_threshold_ms(self) -> int:
    return self.jobs_stuck_threshold_seconds * 1000

  @property
  def retention_ms(self) -> int:
    return self.jobs_retention_seconds * 1000


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ("http://localhost:3000",)

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("SEO_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("SEO_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None or raw.strip() == "":
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("SEO_ENV", "development").lower()
  debug = _parse_bool(os.getenv("SEO_DEBUG"))

  log_backup_count = int(os.getenv("SEO_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("SEO_LOG_BACKUP_COUNT must be zero or a positive integer.")

  generation_timeout_seconds = float(os.getenv("SEO_GENERATION_TIMEOUT_SECONDS", "240"))
  if generation_timeout_seconds <= 0:
    raise ValueError("SEO_GENERATION_TIMEOUT_SECONDS must be positive.")

  generation_temperature = float(os.getenv("SEO_GENERATION_TEMPERATURE", "0.2"))
  if not 0.0 <= generation_temperature <= 2.0:
    raise ValueError("SEO_GENERATION_TEMPERATURE must be between 0 and 2.")

  # Keep the seed page as the only crawled page unless operators opt into a wider crawl.
  scrape_max_pages = _positive_int("SEO_SCRAPE_MAX_PAGES", "1")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("SEO_ALLOWED_ORIGINS")),
    pg_dsn=_optional_str(os.getenv("SEO_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL")),
    pg_connect_timeout=_positive_int("SEO_PG_CONNECT_TIMEOUT", "5"),
    log_dir=(os.getenv("SEO_LOG_DIR") or "./logs").strip(),
    log_max_bytes=_positive_int("SEO_LOG_MAX_BYTES", "5242880"),
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("SEO_LOG_HTTP_4XX")),
    scrape_max_pages=scrape_max_pages,
    scrape_concurrency=_positive_int("SEO_SCRAPE_CONCURRENCY", "3"),
    scrape_timeout_ms=_positive_int("SEO_SCRAPE_TIMEOUT_MS", "8000"),
    scrape_max_words=_positive_int("SEO_SCRAPE_MAX_WORDS", "1200"),
    llm_api_key=_optional_str(os.getenv("SEO_LLM_API_KEY")) or _optional_str(os.getenv("OPENAI_API_KEY")),
    llm_base_url=_optional_str(os.getenv("SEO_LLM_BASE_URL")),
    llm_model=(os.getenv("SEO_LLM_MODEL") or "gpt-4o-mini").strip(),
    generation_timeout_seconds=generation_timeout_seconds,
    generation_temperature=generation_temperature,
    generation_max_tokens=_positive_int("SEO_GENERATION_MAX_TOKENS", "8000"),
    jobs_max_retries=_positive_int("SEO_JOBS_MAX_RETRIES", "3"),
    jobs_stuck_threshold_seconds=_positive_int("SEO_JOBS_STUCK_THRESHOLD_SECONDS", "600"),
    jobs_retention_seconds=_positive_int("SEO_JOBS_RETENTION_SECONDS", "86400"),
    jobs_auto_process=_parse_bool(os.getenv("SEO_JOBS_AUTO_PROCESS"), default=True),
  )

"""Shared fixtures: in-memory SQLite store, controllable clock and settings."""

from __future__ import annotations

import os

os.environ.setdefault("SEO_JOBS_AUTO_PROCESS", "0")

from collections.abc import AsyncIterator  # noqa: E402
from dataclasses import replace  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import seowriter.schema.jobs  # noqa: E402, F401
from seowriter.config import Settings, get_settings  # noqa: E402
from seowriter.core.database import Base, build_session_factory  # noqa: E402
from seowriter.storage.postgres_jobs_repo import PostgresJobsRepository  # noqa: E402

START_MS = 1_760_000_000_000

VALID_OUTPUT = """META TITLE: Managed IT Services for Growing Teams | Acme Cloud Co
META DESCRIPTION: Learn how Acme Cloud Co keeps growing teams productive with managed IT services, proactive monitoring and a friendly help desk that answers fast.

===CONTENT START===

# Managed IT Services for Growing Teams

Managed IT services let a small team hand day-to-day support to specialists.

## What Acme Cloud Co handles

- Device setup
- Monitoring and patching
===CONTENT END===

===FAQ START===
Q: What does Acme Cloud Co manage?
A: Devices, monitoring and help desk support.
Q: Who is it for?
A: Growing teams without in-house IT.
Q: How do I start?
A: Contact the team through the website.
===FAQ END===

===SCHEMA START===
```json
{"@context": "https://schema.org", "@graph": [{"@type": "Article", "headline": "Managed IT Services for Growing Teams"}, {"@type": "FAQPage", "mainEntity": []}]}
```
===SCHEMA END===
"""


class FakeClock:
  """Millisecond clock that only moves when told to."""

  def __init__(self, start: int = START_MS) -> None:
    self.now = start

  def __call__(self) -> int:
    return self.now

  def advance(self, ms: int) -> None:
    self.now += ms


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
  return FakeClock()


@pytest.fixture
def valid_output() -> str:
  return VALID_OUTPUT


@pytest.fixture
def settings(tmp_path) -> Settings:
  return replace(
    get_settings(),
    log_dir=str(tmp_path),
    pg_dsn=None,
    llm_api_key="test-key",
    scrape_max_pages=1,
    jobs_max_retries=3,
    jobs_stuck_threshold_seconds=600,
    jobs_retention_seconds=86400,
    jobs_auto_process=False,
  )


@pytest.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
  engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
  async with engine.begin() as connection:
    await connection.run_sync(Base.metadata.create_all)
  try:
    yield build_session_factory(engine)
  finally:
    await engine.dispose()


@pytest.fixture
def jobs_repo(session_factory: async_sessionmaker[AsyncSession], clock: FakeClock) -> PostgresJobsRepository:
  return PostgresJobsRepository(session_factory, clock=clock)

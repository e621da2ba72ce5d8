"""Shared FastAPI dependencies for storage and pipeline stages."""

from __future__ import annotations

from collections.abc import Callable
from functools import partial

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seowriter.ai.generator import ContentGenerator
from seowriter.config import Settings, get_settings
from seowriter.jobs.worker import ArticleGenerator, SiteCrawler
from seowriter.scraping.crawler import Crawler
from seowriter.storage.jobs_repo import JobsRepository
from seowriter.storage.postgres_jobs_repo import PostgresJobsRepository


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
  """Return the session factory owned by the running app."""
  session_factory = getattr(request.app.state, "session_factory", None)
  if session_factory is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database not initialized")
  return session_factory


def get_jobs_repo(session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory)) -> JobsRepository:  # noqa: B008
  return PostgresJobsRepository(session_factory)


def get_crawler(settings: Settings = Depends(get_settings)) -> SiteCrawler:  # noqa: B008
  return Crawler.from_settings(settings)


def get_generator_factory(settings: Settings = Depends(get_settings)) -> Callable[[], ArticleGenerator]:  # noqa: B008
  """Defer building the model client until the worker has a job for it."""
  return partial(ContentGenerator.from_settings, settings)

"""Database engine and session factory construction.

Engines are built explicitly and handed to whoever needs them. The HTTP app keeps
one for its lifetime on ``app.state``; each worker invocation builds its own and
disposes it when the invocation ends.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from seowriter.config import Settings


class Base(DeclarativeBase):
  pass


def database_url(settings: Settings) -> str:
  """Build the SQLAlchemy database URL for the configured DSN."""
  dsn = settings.pg_dsn
  if not dsn:
    raise RuntimeError("Database connection is not configured (SEO_PG_DSN is missing).")
  if dsn.startswith("postgresql://"):
    dsn = dsn.replace("postgresql://", "postgresql+asyncpg://", 1)
  elif dsn.startswith("postgres://"):
    dsn = dsn.replace("postgres://", "postgresql+asyncpg://", 1)
  return dsn


def build_engine(settings: Settings) -> AsyncEngine:
  """Create an async engine bound to the primary database."""
  url = database_url(settings)
  connect_args: dict[str, object] = {}
  if url.startswith("postgresql+asyncpg://"):
    connect_args["timeout"] = settings.pg_connect_timeout
  return create_async_engine(url, echo=settings.debug, pool_pre_ping=True, connect_args=connect_args)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
  """Create a session factory that never serves attributes from a stale identity map."""
  return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@asynccontextmanager
async def session_factory_scope(settings: Settings) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
  """Yield a short-lived session factory and dispose its engine on exit."""
  engine = build_engine(settings)
  try:
    yield build_session_factory(engine)
  finally:
    await engine.dispose()

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from seowriter.config import get_settings
from seowriter.core.database import build_engine, build_session_factory
from seowriter.core.logging import initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and own the database engine for the app's lifetime."""
  settings = get_settings()
  logger = logging.getLogger("seowriter.core.lifespan")

  try:
    initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
  except RuntimeError:
    # Keep serving with default logging when the log directory is unwritable.
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  # Tests may install their own session factory before startup.
  engine = None
  if getattr(app.state, "session_factory", None) is None:
    logger.info("Connecting to database %s", _redact_dsn(settings.pg_dsn))
    engine = build_engine(settings)
    app.state.session_factory = build_session_factory(engine)

  try:
    yield
  finally:
    if engine is not None:
      await engine.dispose()
      app.state.session_factory = None


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"

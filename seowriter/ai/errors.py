"""Typed failures raised by the content generator."""

from __future__ import annotations


class GenerationError(RuntimeError):
  """Base class for content generation failures."""


class GenerationAuthError(GenerationError):
  """The model API rejected the configured credentials."""


class ModelNotFoundError(GenerationError):
  """The configured model does not exist for this API key."""


class RateLimitedError(GenerationError):
  """The model API throttled the request."""


class GenerationTimeoutError(GenerationError):
  """The model did not answer within the configured timeout."""


class GenerationTruncatedError(GenerationError):
  """The model stopped at the output token limit."""


class EmptyGenerationError(GenerationError):
  """The model returned no text."""

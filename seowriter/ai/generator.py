"""Single-call article generation against an OpenAI-compatible chat endpoint."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import openai
from openai import AsyncOpenAI

from seowriter.ai.errors import (
  EmptyGenerationError,
  GenerationAuthError,
  GenerationError,
  GenerationTimeoutError,
  GenerationTruncatedError,
  ModelNotFoundError,
  RateLimitedError,
)
from seowriter.ai.prompts import SYSTEM_PROMPT, build_generation_prompt
from seowriter.config import Settings

logger = logging.getLogger(__name__)


class ContentGenerator:
  """Generate the delimited article output in one model call.

  The SDK's own retries are disabled; retrying is the job queue's concern.
  """

  def __init__(
    self,
    *,
    model: str,
    timeout_seconds: float,
    temperature: float = 0.2,
    max_tokens: int = 8000,
    api_key: str | None = None,
    base_url: str | None = None,
    client: Any | None = None,
  ) -> None:
    self.model = model
    self._timeout_seconds = timeout_seconds
    self._temperature = temperature
    self._max_tokens = max_tokens
    if client is None:
      if not api_key:
        raise ValueError("SEO_LLM_API_KEY (or OPENAI_API_KEY) environment variable is required")
      client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)
    self._client = client

  @classmethod
  def from_settings(cls, settings: Settings, *, client: Any | None = None) -> ContentGenerator:
    return cls(
      model=settings.llm_model,
      timeout_seconds=settings.generation_timeout_seconds,
      temperature=settings.generation_temperature,
      max_tokens=settings.generation_max_tokens,
      api_key=settings.llm_api_key,
      base_url=settings.llm_base_url,
      client=client,
    )

  async def generate(self, context: str, topic: str, keywords: list[str], target_length: int, notes: str | None = None) -> str:
    prompt = build_generation_prompt(context, topic, keywords, target_length, notes)
    started = time.monotonic()
    try:
      response = await asyncio.wait_for(
        self._client.chat.completions.create(
          model=self.model,
          messages=[{"role": "system", "content": SYSTEM_PROMPT}, {"role": "user", "content": prompt}],
          temperature=self._temperature,
          max_tokens=self._max_tokens,
        ),
        timeout=self._timeout_seconds,
      )
    except (TimeoutError, asyncio.TimeoutError, openai.APITimeoutError) as exc:
      raise GenerationTimeoutError(f"Generation timed out after {self._timeout_seconds:g}s") from exc
    except openai.AuthenticationError as exc:
      raise GenerationAuthError("Model API rejected the configured API key") from exc
    except openai.NotFoundError as exc:
      raise ModelNotFoundError(f"Model '{self.model}' was not found") from exc
    except openai.RateLimitError as exc:
      raise RateLimitedError("Model API rate limit exceeded") from exc
    except openai.APIError as exc:
      raise GenerationError(f"Model API error: {exc}") from exc

    elapsed = time.monotonic() - started
    if not response.choices:
      raise EmptyGenerationError("Model returned no choices")
    choice = response.choices[0]
    content = (choice.message.content or "").strip()
    if choice.finish_reason == "length":
      raise GenerationTruncatedError(f"Output hit the {self._max_tokens} token limit and was truncated")
    if not content:
      raise EmptyGenerationError("Model returned an empty response")

    usage = getattr(response, "usage", None)
    logger.info(
      "Generated %s chars with %s in %.1fs (prompt_tokens=%s completion_tokens=%s).",
      len(content),
      self.model,
      elapsed,
      getattr(usage, "prompt_tokens", None),
      getattr(usage, "completion_tokens", None),
    )
    return content

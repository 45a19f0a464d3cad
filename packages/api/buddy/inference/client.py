# This project was developed with assistance from AI tools.
"""Thin OpenAI-compatible LLM client.

Wraps the openai Python SDK with configurable base_url so it works
against any OpenAI-compatible endpoint (OpenAI, vLLM, LlamaStack, etc.).
"""

import logging
from typing import Any

from openai import AsyncOpenAI

from ..core.config import settings

logger = logging.getLogger(__name__)

_client: AsyncOpenAI | None = None


def _get_client() -> AsyncOpenAI:
    """Return the cached AsyncOpenAI client (avoids re-creating HTTP connections)."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = AsyncOpenAI(
            base_url=settings.LLM_BASE_URL,
            api_key=settings.LLM_API_KEY,
            timeout=settings.LLM_TIMEOUT,
            max_retries=0,
        )
    return _client


def clear_client_cache() -> None:
    """Drop the cached client (useful after settings change)."""
    global _client  # noqa: PLW0603
    _client = None


async def get_completion(
    messages: list[dict[str, str]],
    model: str | None = None,
    **kwargs: Any,
) -> str:
    """Get a non-streaming completion, defaulting to the fast model."""
    client = _get_client()
    response = await client.chat.completions.create(
        model=model or settings.LLM_MODEL_FAST,
        messages=messages,
        **kwargs,
    )
    return response.choices[0].message.content or ""


def log_ai_status() -> None:
    """Log at startup whether the AI classification fallback is active."""
    if settings.AI_CLASSIFICATION_ENABLED:
        logger.info(
            "AI classification enabled (model=%s, base_url=%s, timeout=%ss)",
            settings.LLM_MODEL_FAST,
            settings.LLM_BASE_URL,
            settings.LLM_TIMEOUT,
        )
    else:
        logger.info("AI classification disabled; inconclusive documents stay unclassified")

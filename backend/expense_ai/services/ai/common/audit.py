"""AI run logging: one structured log line per provider call."""

from __future__ import annotations

import hashlib
import logging
from typing import Any

from expense_ai.core.config import get_settings

from .providers.base import ProviderResult

logger = logging.getLogger(__name__)


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def log_ai_run(
    *,
    scope: str,
    provider_result: ProviderResult,
    prompt_text: str,
    extra_meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Log an ``AI_RUN`` line for one provider call and return its fields.

    *scope* is the calling feature (``receipt_extract``, ``manual_entry``,
    ``coach``). Prompt and response are logged as hashes; the raw response
    is echoed only with ``AI_DEBUG_RAW_RESPONSES=true``.
    """
    run = {
        "scope": scope,
        "provider": provider_result.provider,
        "model": provider_result.model,
        "tokens_in": provider_result.prompt_tokens,
        "tokens_out": provider_result.completion_tokens,
        "latency_ms": provider_result.latency_ms,
        "prompt_sha256": _sha256(prompt_text),
        "response_sha256": _sha256(provider_result.raw_text),
        "response_chars": len(provider_result.raw_text),
        **(extra_meta or {}),
    }
    logger.info("AI_RUN %s", run)

    if get_settings().ai_debug_raw_responses:
        logger.info("AI_RUN raw response [%s/%s]:\n%s", scope, provider_result.provider, provider_result.raw_text)

    return run

"""AI router: resolves provider + model from explicit preference and credentials."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from expense_ai.core.config import KNOWN_PROVIDERS, Settings, get_settings

from .errors import ConfigurationError
from .providers import BaseProvider, get_provider
from .providers.stub import STUB_MODEL

logger = logging.getLogger(__name__)

NO_PROVIDER_MESSAGE = (
    "No AI provider configured. Set DEEPSEEK_API_KEY, OPENAI_API_KEY, "
    "or use AI_PROVIDER=stub for local testing."
)


@dataclass(frozen=True)
class ResolvedConfig:
    """Final resolved provider + model after the precedence chain."""

    provider: BaseProvider
    model: str
    temperature: float
    max_tokens: int
    timeout_seconds: float


def _preference_chain(settings: Settings, explicit: str | None) -> list[str]:
    chain = []
    for raw in (explicit, settings.ai_provider):
        preference = (raw or "").lower().strip()
        if not preference or preference in chain:
            continue
        if preference not in KNOWN_PROVIDERS:
            logger.warning("Unknown AI provider preference %r ignored", preference)
            continue
        chain.append(preference)
    return chain


def resolve_provider_name(settings: Settings, explicit: str | None = None) -> str:
    """Pick ``deepseek``, ``openai`` or ``stub`` for the given settings.

    Resolution chain (first hit wins):
      1. The explicit preference (override or per-scope setting), when its
         credential is present (the stub needs none).
      2. ``AI_PROVIDER``, on the same terms.
      3. DeepSeek, if ``DEEPSEEK_API_KEY`` is set.
      4. OpenAI, if ``OPENAI_API_KEY`` is set.
      5. ``ConfigurationError``.
    """
    for preference in _preference_chain(settings, explicit):
        if preference == "stub":
            return "stub"
        if preference == "deepseek" and settings.has_deepseek_credentials:
            return "deepseek"
        if preference == "openai" and settings.has_openai_credentials:
            return "openai"
        logger.info("Preferred AI provider %s has no credentials, falling back", preference)

    if settings.has_deepseek_credentials:
        return "deepseek"
    if settings.has_openai_credentials:
        return "openai"

    raise ConfigurationError(NO_PROVIDER_MESSAGE)


def _model_for(settings: Settings, provider_name: str) -> str:
    if provider_name == "deepseek":
        return settings.deepseek_model
    if provider_name == "openai":
        return settings.openai_vision_model
    return STUB_MODEL


def resolve(
    scope: str,
    *,
    override_provider: str | None = None,
    scope_preference: str | None = None,
) -> ResolvedConfig:
    """Resolve provider + model for a given *scope*.

    ``scope_preference`` (e.g. ``AI_COACH_PROVIDER``) is tried before
    ``AI_PROVIDER``; a scope preference without credentials falls back to the
    global one. ``override_provider`` takes the scope preference's place, but
    only when ``ENABLE_AI_OVERRIDES=true``.
    """
    settings = get_settings()

    explicit = scope_preference or None
    if settings.enable_ai_overrides and override_provider:
        explicit = override_provider

    provider_name = resolve_provider_name(settings, explicit)
    logger.debug("AI scope %s resolved to provider %s", scope, provider_name)

    return ResolvedConfig(
        provider=get_provider(provider_name),
        model=_model_for(settings, provider_name),
        temperature=settings.ai_temperature,
        max_tokens=settings.ai_max_tokens,
        timeout_seconds=settings.ai_timeout_seconds,
    )

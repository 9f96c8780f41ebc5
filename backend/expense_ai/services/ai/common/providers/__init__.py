"""Provider factory: builds the provider instance for a resolved provider name."""

from __future__ import annotations

import logging

from expense_ai.core.config import get_settings

from ..errors import ConfigurationError
from .base import BaseProvider, ChatMessage, EncodedFile, ProviderResult
from .stub import StubProvider

logger = logging.getLogger(__name__)

__all__ = [
    "get_provider",
    "BaseProvider",
    "ChatMessage",
    "EncodedFile",
    "ProviderResult",
    "StubProvider",
]


def get_provider(provider_name: str) -> BaseProvider:
    """Return a provider instance for *provider_name*.

    Callers are expected to pass a name produced by the router, so the
    credential for a live provider is already known to be present.
    """
    settings = get_settings()
    name = provider_name.lower().strip()

    if name == "stub":
        return StubProvider()

    if name == "deepseek":
        from .deepseek import DeepSeekProvider

        return DeepSeekProvider(api_key=settings.deepseek_api_key)

    if name == "openai":
        from .openai import OpenAIProvider

        return OpenAIProvider(api_key=settings.openai_api_key)

    raise ConfigurationError(f"Unknown AI provider {provider_name!r}")

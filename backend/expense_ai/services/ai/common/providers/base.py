"""Abstract base for all AI providers."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Sequence


@dataclass(frozen=True)
class EncodedFile:
    """A receipt file ready for transport: base64 text plus its MIME type."""

    base64_data: str
    mime_type: str
    filename: str = "receipt"

    @property
    def is_document(self) -> bool:
        return self.mime_type == "application/pdf"

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64_data}"


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "user" | "assistant"
    content: str


@dataclass(frozen=True)
class ProviderResult:
    """Immutable result returned by every provider."""

    raw_text: str
    model: str
    provider: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: float = 0.0
    metadata: dict = field(default_factory=dict)


class BaseProvider(abc.ABC):
    """Contract that every AI provider must implement.

    ``generate`` is the transport; ``extract`` and ``parse_freeform`` are the
    two capabilities the pipeline asks for.
    """

    name: str = "base"
    supports_vision: bool = False

    @abc.abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        image: EncodedFile | None = None,
        history: Sequence[ChatMessage] = (),
        model: str = "",
        temperature: float = 0.0,
        max_tokens: int = 1000,
        timeout_seconds: float = 60.0,
    ) -> ProviderResult:
        """Send *prompt* and return a ``ProviderResult``."""

    async def extract(self, instruction: str, image: EncodedFile, **kwargs) -> ProviderResult:
        return await self.generate(instruction, image=image, **kwargs)

    async def parse_freeform(self, prompt: str, *, source_text: str | None = None, **kwargs) -> ProviderResult:
        return await self.generate(prompt, **kwargs)

"""DeepSeek provider (OpenAI-compatible API, text only)."""

from __future__ import annotations

import logging
import time
from typing import Any, Sequence

import httpx

from ..errors import ProviderError
from .base import BaseProvider, ChatMessage, EncodedFile, ProviderResult

logger = logging.getLogger(__name__)

DEEPSEEK_CHAT_URL = "https://api.deepseek.com/v1/chat/completions"


class DeepSeekProvider(BaseProvider):
    name = "deepseek"

    def __init__(self, api_key: str, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        if not api_key:
            raise ProviderError(self.name, "DEEPSEEK_API_KEY is not configured")
        self._api_key = api_key
        self._transport = transport

    @staticmethod
    def _inline_file(prompt: str, image: EncodedFile | None) -> str:
        # No vision input on this API: the file travels base64-encoded in the text.
        if image is None:
            return prompt
        return (
            f"{prompt}\n\n"
            "The receipt file is provided below. Decode the base64 payload before analyzing it.\n\n"
            f"MIME type: {image.mime_type}\n"
            f"Base64 data:\n{image.base64_data}"
        )

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
        model = model or "deepseek-chat"
        t0 = time.monotonic()

        messages: list[dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        for msg in history:
            messages.append({"role": msg.role, "content": msg.content})
        messages.append({"role": "user", "content": self._inline_file(prompt, image)})

        try:
            async with httpx.AsyncClient(timeout=timeout_seconds, transport=self._transport) as client:
                resp = await client.post(
                    DEEPSEEK_CHAT_URL,
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": model,
                        "max_tokens": max_tokens,
                        "temperature": temperature,
                        "messages": messages,
                    },
                )
        except httpx.RequestError as exc:
            raise ProviderError(self.name, f"request failed: {exc}") from exc

        if resp.status_code < 200 or resp.status_code >= 300:
            raise ProviderError(self.name, f"API error ({resp.status_code}): {resp.text[:500]}")

        try:
            data = resp.json()
            text = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ProviderError(self.name, f"failed to parse response: {exc}") from exc

        if not text:
            raise ProviderError(self.name, "response did not contain any content")

        elapsed = (time.monotonic() - t0) * 1000
        usage = data.get("usage") or {}

        return ProviderResult(
            raw_text=text,
            model=model,
            provider=self.name,
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            latency_ms=round(elapsed, 2),
        )

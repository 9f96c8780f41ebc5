"""OpenAI provider (vision-capable chat completions)."""

from __future__ import annotations

import logging
import time
from typing import Any, Sequence

import httpx

from ..errors import ProviderError
from .base import BaseProvider, ChatMessage, EncodedFile, ProviderResult

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"


class OpenAIProvider(BaseProvider):
    name = "openai"
    supports_vision = True

    def __init__(self, api_key: str, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        if not api_key:
            raise ProviderError(self.name, "OPENAI_API_KEY is not configured")
        self._api_key = api_key
        self._transport = transport

    def _user_content(self, prompt: str, image: EncodedFile | None) -> str | list[dict[str, Any]]:
        if image is None:
            return prompt
        if image.is_document:
            file_part = {
                "type": "file",
                "file": {"filename": image.filename, "file_data": image.data_url},
            }
        else:
            file_part = {"type": "image_url", "image_url": {"url": image.data_url}}
        return [{"type": "text", "text": prompt}, file_part]

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
        model = model or "gpt-4o"
        t0 = time.monotonic()

        messages: list[dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        for msg in history:
            messages.append({"role": msg.role, "content": msg.content})
        messages.append({"role": "user", "content": self._user_content(prompt, image)})

        try:
            async with httpx.AsyncClient(timeout=timeout_seconds, transport=self._transport) as client:
                resp = await client.post(
                    OPENAI_CHAT_URL,
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
            raise ProviderError(self.name, f"unexpected response body: {exc}") from exc

        if not text:
            raise ProviderError(self.name, "response did not contain any content")

        elapsed = (time.monotonic() - t0) * 1000
        usage = data.get("usage") or {}

        return ProviderResult(
            raw_text=text,
            model=data.get("model") or model,
            provider=self.name,
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            latency_ms=round(elapsed, 2),
        )

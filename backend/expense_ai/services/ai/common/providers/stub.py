"""Stub provider: deterministic offline responses for local testing."""

from __future__ import annotations

import json
import logging
import re
from datetime import date
from typing import Sequence

from expense_ai.utils.numbers import coerce_decimal

from .base import BaseProvider, ChatMessage, EncodedFile, ProviderResult

logger = logging.getLogger(__name__)

STUB_MODEL = "stub-v1"

_CLAUSE_SPLIT_RE = re.compile(r",(?!\d)|;|\n|\band\b", re.IGNORECASE)
_AMOUNT_RE = re.compile(r"[$€£]?\s*(\d[\d,]*(?:\.\d{1,2})?)")
_FILLER_RE = re.compile(r"^(?:(?:for|on|at|spent|paid)\s+)+|\s+(?:for|on|at)$", re.IGNORECASE)


def sample_receipt(today: date | None = None) -> dict:
    today = today or date.today()
    return {
        "merchantName": "Sample Coffee Shop",
        "date": today.isoformat(),
        "totalAmount": 11.5,
        "currency": "USD",
        "category": "Food",
        "items": [
            {"description": "Latte", "quantity": 1, "unitPrice": 4.5, "totalPrice": 4.5, "category": "Food"},
            {"description": "Blueberry Muffin", "quantity": 1, "unitPrice": 3.5, "totalPrice": 3.5, "category": "Food"},
            {"description": "Sparkling Water", "quantity": 1, "unitPrice": 2.0, "totalPrice": 2.0, "category": "Food"},
        ],
        "paymentMethod": "Credit Card",
        "taxAmount": 0.8,
        "tipAmount": 0.7,
    }


def split_freeform(text: str) -> list[dict]:
    """Split a sentence like ``"Coffee $5, parking $10"`` into entry dicts."""
    entries: list[dict] = []
    for clause in _CLAUSE_SPLIT_RE.split(text or ""):
        clause = clause.strip()
        match = _AMOUNT_RE.search(clause)
        if not clause or not match:
            continue
        amount = coerce_decimal(match.group(1))
        description = (clause[: match.start()] + clause[match.end() :]).strip(" -:$")
        description = _FILLER_RE.sub("", description).strip() or "Expense"
        entries.append(
            {
                "description": description,
                "amount": amount,
                "category": "",
                "merchantName": "Manual Entry",
                "date": None,
            }
        )
    return entries


class StubProvider(BaseProvider):
    name = "stub"
    supports_vision = True

    def __init__(self, today: date | None = None) -> None:
        self._today = today

    def _result(self, prompt: str, text: str, model: str) -> ProviderResult:
        return ProviderResult(
            raw_text=text,
            model=model or STUB_MODEL,
            provider=self.name,
            prompt_tokens=len(prompt.split()),
            completion_tokens=len(text.split()),
            latency_ms=0.0,
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
        text = json.dumps(sample_receipt(self._today)) if image is not None else '{"stub": true}'
        return self._result(prompt, text, model)

    async def extract(self, instruction: str, image: EncodedFile, **kwargs) -> ProviderResult:
        logger.warning("Using stub AI provider. Returned receipt data is static and for testing only.")
        return self._result(instruction, json.dumps(sample_receipt(self._today)), kwargs.get("model", ""))

    async def parse_freeform(self, prompt: str, *, source_text: str | None = None, **kwargs) -> ProviderResult:
        entries = split_freeform(source_text if source_text is not None else prompt)
        return self._result(prompt, json.dumps(entries), kwargs.get("model", ""))

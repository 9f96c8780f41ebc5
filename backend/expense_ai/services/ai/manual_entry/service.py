"""Manual entry parsing: one freeform sentence in, one ``ExpenseDraft`` out.

The provider returns an array of entries; every entry becomes a line item
and the whole sentence is aggregated into a single expense.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from expense_ai.schemas.expense import Category, ExpenseDraft, LineItem, parse_category
from expense_ai.services.categorization import categorize_item
from expense_ai.utils.numbers import coerce_decimal, round_money

from ..common import router as ai_router
from ..common.audit import log_ai_run
from ..common.errors import ExtractionValidationError, ParseError, ProviderError
from ..common.json_tools import parse_json_array
from ..common.providers.base import ProviderResult
from ..receipt_extract.normalize import parse_date

logger = logging.getLogger(__name__)

MANUAL_ENTRY_MERCHANT = "Manual Entry"
MAX_MANUAL_ENTRY_CHARS = 2000

MANUAL_ENTRY_SYSTEM_PROMPT = "You convert short spending notes into structured expense entries. Return ONLY valid JSON."


def build_manual_entry_prompt(text: str, today: date) -> str:
    return f"""Today's date is {today.isoformat()}.

Extract every expense mentioned in the text below and return a JSON array. Each element must have this shape:
{{
  "description": "What was bought",
  "amount": 0.0,
  "category": "One of: Food, Transport, Shopping, Bills, Other",
  "merchantName": "Store or service name, or \\"{MANUAL_ENTRY_MERCHANT}\\" if none is named",
  "date": "YYYY-MM-DD or null"
}}

Rules:
- "amount" is a number, never a string.
- If a month and day are mentioned without a year, assume the current year ({today.year}).
- Relative dates such as "yesterday" are relative to today's date.
- Use null for "date" when no date is mentioned.
- Respond ONLY with the JSON array, no markdown or explanation.

Text: {text}"""


@dataclass
class ManualEntryServiceResult:
    draft: ExpenseDraft
    provider_result: ProviderResult


def _entry_to_item(entry: Any) -> LineItem:
    if not isinstance(entry, dict):
        raise ParseError("Manual entry element is not an object", raw_text=str(entry))

    description = str(entry.get("description") or "").strip()
    amount = coerce_decimal(entry.get("amount"))
    if amount is None or amount < 0:
        logger.info("Manual entry %r has no usable amount (%r)", description, entry.get("amount"))
        amount = 0.0

    category = parse_category(entry.get("category"))
    if category is None:
        category = categorize_item(description)

    return LineItem(
        description=description,
        quantity=1,
        unit_price=amount,
        total_price=amount,
        category=category,
    )


def _dominant_category(items: list[LineItem]) -> Category:
    """Most frequent item category; ties go to the one seen first."""
    counts = Counter(item.category for item in items)
    # Counter keeps insertion order and max() returns the first maximum.
    return max(counts, key=counts.__getitem__)


def aggregate_entries(entries: list[Any], *, today: date) -> ExpenseDraft:
    """Fold parsed entries into one draft."""
    if not entries:
        raise ParseError("AI response contained no expense entries", raw_text="[]")

    items = [_entry_to_item(entry) for entry in entries]
    total = round_money(sum(item.total_price or 0.0 for item in items))
    if total <= 0:
        raise ExtractionValidationError("Total amount must be a positive number")

    first = entries[0]
    merchant = str(first.get("merchantName") or "").strip() or MANUAL_ENTRY_MERCHANT
    entry_date = parse_date(first.get("date")) or today

    return ExpenseDraft(
        merchant_name=merchant,
        date=entry_date,
        total_amount=total,
        category=_dominant_category(items),
        items=items,
    )


async def parse_manual_entry(
    text: str,
    *,
    today: Optional[date] = None,
    override_provider: Optional[str] = None,
) -> ManualEntryServiceResult:
    """Parse freeform *text* like ``"Coffee $5, parking $10"`` into one expense."""
    text = (text or "").strip()
    if not text:
        raise ParseError("Manual entry text is empty", raw_text="")
    if len(text) > MAX_MANUAL_ENTRY_CHARS:
        logger.warning(
            "Manual entry text truncated from %d to %d characters; expenses past the cut are dropped",
            len(text),
            MAX_MANUAL_ENTRY_CHARS,
        )
        text = text[:MAX_MANUAL_ENTRY_CHARS]
    today = today or date.today()

    config = ai_router.resolve("manual_entry", override_provider=override_provider)
    prompt = build_manual_entry_prompt(text, today)

    try:
        result = await config.provider.parse_freeform(
            prompt,
            source_text=text,
            system_prompt=MANUAL_ENTRY_SYSTEM_PROMPT,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout_seconds=config.timeout_seconds,
        )
    except ProviderError:
        raise
    except Exception as exc:
        raise ProviderError(config.provider.name, str(exc)) from exc

    log_ai_run(
        scope="manual_entry",
        provider_result=result,
        prompt_text=prompt,
        extra_meta={"input_chars": len(text)},
    )

    entries = parse_json_array(result.raw_text)
    if not entries:
        raise ParseError("AI response contained no expense entries", raw_text=result.raw_text)

    draft = aggregate_entries(entries, today=today)
    logger.info(
        "Manual entry parsed into %d items, total %.2f (%s)",
        len(draft.items),
        draft.total_amount,
        draft.category.value,
    )
    return ManualEntryServiceResult(draft=draft, provider_result=result)

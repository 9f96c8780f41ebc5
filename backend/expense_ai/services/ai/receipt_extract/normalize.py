"""Turns a provider's receipt answer into a trustworthy ``ExpenseDraft``.

Only an unrecoverable total aborts; every other defect is corrected with a
documented default (placeholder merchant, dropped date, USD, inferred
category).
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Optional

from expense_ai.schemas.expense import ExpenseDraft, LineItem, parse_category
from expense_ai.services.ai.common.errors import ExtractionValidationError
from expense_ai.services.ai.common.json_tools import parse_json_object
from expense_ai.services.categorization import categorize_item, categorize_receipt
from expense_ai.utils.numbers import coerce_decimal, round_money

logger = logging.getLogger(__name__)

UNKNOWN_MERCHANT = "Unknown Merchant"
DEFAULT_CURRENCY = "USD"

ALTERNATE_TOTAL_KEYS = (
    "total",
    "total_amount",
    "amount",
    "grandTotal",
    "grand_total",
    "totalPrice",
    "amountPaid",
    "amount_paid",
)

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%d.%m.%Y", "%b %d, %Y", "%d %b %Y", "%B %d, %Y")


def parse_date(value: Any) -> Optional[date]:
    """Parse a calendar date, returning ``None`` for anything unparseable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _non_negative(value: Any) -> Optional[float]:
    number = coerce_decimal(value)
    if number is None or number < 0:
        return None
    return number


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def item_sum(items: list[LineItem]) -> float:
    """Sum of item totals, using quantity x unit price when the total is missing."""
    total = 0.0
    for item in items:
        if item.total_price is not None:
            total += item.total_price
        elif item.quantity and item.unit_price and item.unit_price > 0:
            total += item.quantity * item.unit_price
    return round_money(total)


def normalize_item(raw: Any) -> LineItem:
    if not isinstance(raw, dict):
        raw = {"description": _text(raw)}

    description = _text(raw.get("description") or raw.get("name"))
    quantity = coerce_decimal(raw.get("quantity"))
    if quantity is not None and quantity <= 0:
        quantity = None

    category = parse_category(raw.get("category"))
    if category is None:
        category = categorize_item(description)
        logger.debug("Item %r categorized by keywords as %s", description, category.value)

    return LineItem(
        description=description,
        quantity=quantity,
        unit_price=_non_negative(raw.get("unitPrice", raw.get("unit_price"))),
        total_price=_non_negative(raw.get("totalPrice", raw.get("total_price"))),
        category=category,
    )


def normalize_receipt_data(data: dict[str, Any]) -> ExpenseDraft:
    """Apply the field-level repairs to an already-parsed receipt dict."""
    merchant = _text(data.get("merchantName") or data.get("merchant_name") or data.get("merchant"))
    if not merchant:
        logger.info("Receipt has no merchant name, using %r", UNKNOWN_MERCHANT)
        merchant = UNKNOWN_MERCHANT

    raw_total = data.get("totalAmount")
    if raw_total is None or raw_total == "":
        for key in ALTERNATE_TOTAL_KEYS:
            if data.get(key) not in (None, ""):
                logger.info("Using %r as the receipt total", key)
                raw_total = data[key]
                break

    raw_items = data.get("items")
    items = [normalize_item(raw) for raw in raw_items] if isinstance(raw_items, list) else []

    total = coerce_decimal(raw_total)
    if total is None or total <= 0:
        recomputed = item_sum(items)
        if recomputed <= 0:
            raise ExtractionValidationError("Total amount must be a positive number")
        logger.info("Receipt total %r unusable, recomputed %.2f from %d items", raw_total, recomputed, len(items))
        total = recomputed

    receipt_date = None
    if data.get("date"):
        receipt_date = parse_date(data["date"])
        if receipt_date is None:
            logger.warning("Invalid date format %r, setting to null", data["date"])

    currency = _text(data.get("currency")).upper() or DEFAULT_CURRENCY

    category = parse_category(data.get("category"))
    if category is None:
        category = categorize_receipt(merchant, items)
        logger.info(
            "Receipt category %r invalid, keyword match gave %s",
            data.get("category"),
            category.value,
        )

    return ExpenseDraft(
        merchant_name=merchant,
        date=receipt_date,
        total_amount=total,
        currency=currency,
        category=category,
        items=items,
        payment_method=_text(data.get("paymentMethod") or data.get("payment_method")) or None,
        tax_amount=_non_negative(data.get("taxAmount", data.get("tax_amount"))),
        tip_amount=_non_negative(data.get("tipAmount", data.get("tip_amount"))),
    )


def normalize_receipt_response(raw_text: str) -> ExpenseDraft:
    """Parse the first JSON object in *raw_text* and normalize it."""
    return normalize_receipt_data(parse_json_object(raw_text))


def renormalize(draft: ExpenseDraft) -> ExpenseDraft:
    """Run a draft through normalization again (used after manual edits)."""
    return normalize_receipt_data(draft.to_record())


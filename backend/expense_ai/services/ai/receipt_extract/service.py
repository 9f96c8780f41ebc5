"""Receipt extraction service: image in, normalized ``ExpenseDraft`` out."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from expense_ai.core.config import get_settings
from expense_ai.core.image_processing import encode_for_transport, prepare_receipt_image, resolve_content_type
from expense_ai.schemas.expense import ExpenseDraft

from ..common import router as ai_router
from ..common.audit import log_ai_run
from ..common.errors import ParseError, ProviderError
from ..common.providers.base import ProviderResult
from .normalize import normalize_receipt_response

logger = logging.getLogger(__name__)

RECEIPT_SYSTEM_PROMPT = "You are a meticulous assistant that extracts structured expense data from receipts."

RECEIPT_EXTRACTION_INSTRUCTION = """Please analyze this receipt image and extract the following information in JSON format:
{
  "merchantName": "Name of the store/restaurant",
  "date": "Date in YYYY-MM-DD format",
  "totalAmount": "Total amount as a number",
  "currency": "Currency code (e.g., USD, EUR)",
  "category": "One of: Food, Transport, Shopping, Bills, Other",
  "items": [
    {
      "description": "Item description",
      "quantity": "Quantity as number",
      "unitPrice": "Unit price as number",
      "totalPrice": "Total price for this item as number",
      "category": "One of: Food, Transport, Shopping, Bills, Other"
    }
  ],
  "paymentMethod": "Cash, Credit Card, Debit Card, etc.",
  "taxAmount": "Tax amount as number if visible",
  "tipAmount": "Tip amount as number if visible"
}

Classify every item on its own, using exactly one of these categories:
- Food: beverages, coffee, groceries, restaurant meals, snacks
- Transport: fuel, parking, tolls, taxis, rideshare, public transit
- Shopping: clothing, electronics, household and other retail goods
- Bills: utilities, phone, internet, insurance, subscriptions
- Other: anything that fits none of the above
The receipt "category" is the category that best describes the purchase as a whole.

If any information is not clearly visible or available, use null for that field.
Ensure all monetary amounts are numbers, not strings.
Respond ONLY with the JSON object, no markdown or explanation."""


@dataclass
class ReceiptExtractServiceResult:
    """Result from ``extract_receipt`` including provider metadata."""

    draft: ExpenseDraft
    provider_result: ProviderResult
    optimized_image: bool


async def extract_receipt(
    content: bytes,
    *,
    content_type: Optional[str] = None,
    filename: Optional[str] = None,
    override_provider: Optional[str] = None,
) -> ReceiptExtractServiceResult:
    """Extract a normalized expense from a receipt image or PDF.

    Raises ``ConfigurationError`` when no provider resolves, ``ProviderError``
    when the call fails, ``ParseError`` when no JSON comes back and
    ``ExtractionValidationError`` when no positive total can be recovered.
    """
    settings = get_settings()
    config = ai_router.resolve("receipt_extract", override_provider=override_provider)

    mime_type = resolve_content_type(content_type, filename)
    prepared = prepare_receipt_image(
        content,
        mime_type,
        max_dimension=settings.receipt_image_max_dimension,
        quality=settings.receipt_image_quality,
        filename=filename,
    )
    encoded = encode_for_transport(
        prepared,
        max_payload_chars=settings.receipt_max_payload_chars,
        filename=filename,
    )

    logger.info("Processing receipt %s with %s (%s)", filename or "upload", config.provider.name, config.model)
    try:
        result = await config.provider.extract(
            RECEIPT_EXTRACTION_INSTRUCTION,
            encoded,
            system_prompt=RECEIPT_SYSTEM_PROMPT,
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
        scope="receipt_extract",
        provider_result=result,
        prompt_text=RECEIPT_EXTRACTION_INSTRUCTION,
        extra_meta={
            "filename": filename,
            "mime_type": encoded.mime_type,
            "payload_chars": len(encoded.base64_data),
            "optimized": prepared.optimized,
        },
    )

    try:
        draft = normalize_receipt_response(result.raw_text)
    except ParseError:
        logger.error("Failed to parse receipt response from %s", result.provider)
        logger.info("Raw AI response: %s", result.raw_text)
        raise

    return ReceiptExtractServiceResult(
        draft=draft,
        provider_result=result,
        optimized_image=prepared.optimized,
    )

"""Expense ingestion pipeline.

Wires the two ingestion paths end to end:

    receipt bytes / freeform text
      -> provider extraction -> normalization + categorization
      -> ExpenseStore.save_expense
      -> BudgetMonitor.check (never blocks ingestion)
      -> AlertNotifier.notify

Extraction errors (``ConfigurationError``, ``ProviderError``, ``ParseError``,
``ExtractionValidationError``) propagate to the caller; nothing is saved
when they occur.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from expense_ai.schemas.budget import BudgetAlert
from expense_ai.schemas.expense import ExpenseRecord
from expense_ai.services.ai.common.providers.base import ProviderResult
from expense_ai.services.ai.manual_entry.service import parse_manual_entry
from expense_ai.services.ai.receipt_extract.service import extract_receipt
from expense_ai.services.budget_monitor import BudgetGuard, BudgetMonitor
from expense_ai.services.collaborators import AlertNotifier, BudgetStore, ExpenseStore

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    expense: ExpenseRecord
    alerts: list[BudgetAlert] = field(default_factory=list)
    provider_result: Optional[ProviderResult] = None


class ExpensePipeline:
    def __init__(
        self,
        expense_store: ExpenseStore,
        budget_store: BudgetStore,
        notifier: Optional[AlertNotifier] = None,
        *,
        guard: Optional[BudgetGuard] = None,
    ) -> None:
        self.expense_store = expense_store
        self.monitor = BudgetMonitor(expense_store, budget_store, notifier, guard=guard)

    async def ingest_receipt(
        self,
        user_id: str,
        content: bytes,
        *,
        content_type: Optional[str] = None,
        filename: Optional[str] = None,
        override_provider: Optional[str] = None,
        today: Optional[date] = None,
    ) -> IngestResult:
        extracted = await extract_receipt(
            content,
            content_type=content_type,
            filename=filename,
            override_provider=override_provider,
        )
        record = await self.expense_store.save_expense(user_id, extracted.draft)
        logger.info(
            "Saved receipt expense for user %s: %s %.2f %s",
            user_id,
            record.merchant_name,
            record.total_amount,
            record.category.value,
        )
        alerts = await self.monitor.check(user_id, today=today)
        return IngestResult(expense=record, alerts=alerts, provider_result=extracted.provider_result)

    async def ingest_manual_entry(
        self,
        user_id: str,
        text: str,
        *,
        override_provider: Optional[str] = None,
        today: Optional[date] = None,
    ) -> IngestResult:
        parsed = await parse_manual_entry(text, today=today, override_provider=override_provider)
        record = await self.expense_store.save_expense(user_id, parsed.draft)
        logger.info(
            "Saved manual expense for user %s: %d items, %.2f",
            user_id,
            len(record.items),
            record.total_amount,
        )
        alerts = await self.monitor.check(user_id, today=today)
        return IngestResult(expense=record, alerts=alerts, provider_result=parsed.provider_result)

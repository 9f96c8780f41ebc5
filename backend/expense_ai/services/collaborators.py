"""Interfaces of the persistence and delivery layers the pipeline talks to."""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from expense_ai.schemas.budget import BudgetAlert, BudgetSnapshot
from expense_ai.schemas.expense import ExpenseDraft, ExpenseRecord


class ExpenseStore(Protocol):
    async def list_expenses(self, user_id: str, month: str) -> Sequence[ExpenseRecord]:
        """Persisted expenses of *user_id* dated in ``YYYY-MM`` *month*."""
        ...

    async def save_expense(self, user_id: str, draft: ExpenseDraft) -> ExpenseRecord:
        ...


class BudgetStore(Protocol):
    async def get_budget(self, user_id: str, month: str) -> Optional[BudgetSnapshot | dict[str, Any]]:
        """Budget for the month, either validated or as stored (``{"month", "limits"}``)."""
        ...


class AlertNotifier(Protocol):
    async def notify(self, user_id: str, alert: BudgetAlert) -> None:
        ...

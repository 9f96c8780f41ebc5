import uuid
from typing import Any, Optional

import pytest

from expense_ai.core.config import get_settings
from expense_ai.schemas.budget import BudgetAlert, BudgetSnapshot
from expense_ai.schemas.expense import ExpenseDraft, ExpenseRecord
from expense_ai.services.budget_monitor import budget_guard

_AI_ENV_VARS = (
    "AI_PROVIDER",
    "ENABLE_AI_OVERRIDES",
    "DEEPSEEK_API_KEY",
    "DEEPSEEK_MODEL",
    "OPENAI_API_KEY",
    "OPENAI_VISION_MODEL",
    "AI_COACH_PROVIDER",
    "AI_DEBUG_RAW_RESPONSES",
    "RECEIPT_IMAGE_MAX_DIMENSION",
    "RECEIPT_IMAGE_QUALITY",
    "RECEIPT_MAX_PAYLOAD_CHARS",
    "BUDGET_ALERT_THRESHOLD",
    "BUDGET_MONITOR_RELEASE_DELAY_SECONDS",
)


@pytest.fixture(autouse=True)
def _reset_process_state(monkeypatch):
    # Start every test from a clean environment so a developer's real API keys
    # never leak in, and with the process-wide budget guard empty.
    for name in _AI_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    budget_guard.reset()
    yield
    get_settings.cache_clear()
    budget_guard.reset()


@pytest.fixture
def stub_provider_env(monkeypatch):
    monkeypatch.setenv("AI_PROVIDER", "stub")
    get_settings.cache_clear()


class InMemoryExpenseStore:
    def __init__(self, expenses: Optional[list[ExpenseRecord]] = None) -> None:
        self.expenses: dict[str, list[ExpenseRecord]] = {}
        for expense in expenses or []:
            self.expenses.setdefault(expense.user_id or "", []).append(expense)

    async def list_expenses(self, user_id: str, month: str) -> list[ExpenseRecord]:
        return [
            e for e in self.expenses.get(user_id, []) if e.date is not None and e.date.strftime("%Y-%m") == month
        ]

    async def save_expense(self, user_id: str, draft: ExpenseDraft) -> ExpenseRecord:
        record = ExpenseRecord(**draft.model_dump(), id=str(uuid.uuid4()), user_id=user_id)
        self.expenses.setdefault(user_id, []).append(record)
        return record


class InMemoryBudgetStore:
    def __init__(self, budgets: Optional[dict[tuple[str, str], Any]] = None) -> None:
        self.budgets = budgets or {}

    async def get_budget(self, user_id: str, month: str) -> Optional[BudgetSnapshot | dict[str, Any]]:
        return self.budgets.get((user_id, month))


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, BudgetAlert]] = []

    async def notify(self, user_id: str, alert: BudgetAlert) -> None:
        self.sent.append((user_id, alert))


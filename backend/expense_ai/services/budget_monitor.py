"""Budget threshold monitor.

After expenses are added, month-to-date spend per category is compared with
the user's monthly limits and ``approaching`` / ``exceeded`` alerts are
emitted. The monitor is advisory: every failure is logged and swallowed so a
broken budget never blocks expense creation.
"""

from __future__ import annotations

import logging
import math
import time
from datetime import date
from threading import Lock
from typing import Callable, Iterable, Optional

from expense_ai.core.config import get_settings
from expense_ai.schemas.budget import AlertSeverity, BudgetAlert, BudgetSnapshot
from expense_ai.schemas.expense import Category, ExpenseDraft
from expense_ai.services.collaborators import AlertNotifier, BudgetStore, ExpenseStore
from expense_ai.services.spending import add_expense, category_totals, month_key
from expense_ai.utils.numbers import round_money

logger = logging.getLogger(__name__)

GuardKey = tuple[str, str]


_PRUNE_INTERVAL_SECONDS = 60.0


class BudgetGuard:
    """Process-local, non-blocking in-flight flag per ``(user_id, month)``.

    ``try_acquire`` never waits: a concurrent run sees ``False`` and skips.
    ``release`` can be deferred so a burst of back-to-back checks collapses
    into one run. Expired deferred releases are pruned under the lock.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        prune_interval_seconds: float = _PRUNE_INTERVAL_SECONDS,
    ) -> None:
        # None while a run is in flight, else the time the deferred release ends
        self._held: dict[GuardKey, Optional[float]] = {}
        self._lock = Lock()
        self._clock = clock
        self._prune_interval_seconds = max(0.0, prune_interval_seconds)
        self._last_prune_at = clock()

    @staticmethod
    def _active(release_at: Optional[float], now: float) -> bool:
        return release_at is None or now < release_at

    def _prune_expired(self, now: float) -> None:
        """Drop keys whose deferred release has passed (called under lock)."""
        expired = [key for key, release_at in self._held.items() if not self._active(release_at, now)]
        for key in expired:
            del self._held[key]
        self._last_prune_at = now

    def try_acquire(self, key: GuardKey) -> bool:
        now = self._clock()
        with self._lock:
            if now - self._last_prune_at >= self._prune_interval_seconds:
                self._prune_expired(now)
            if key in self._held and self._active(self._held[key], now):
                return False
            self._held[key] = None
            return True

    def release(self, key: GuardKey, delay_seconds: float = 0.0) -> None:
        """Free *key* now, or once *delay_seconds* have passed."""
        with self._lock:
            if key not in self._held:
                return
            if delay_seconds <= 0:
                del self._held[key]
            else:
                self._held[key] = self._clock() + delay_seconds

    def is_held(self, key: GuardKey) -> bool:
        now = self._clock()
        with self._lock:
            if key not in self._held:
                return False
            if self._active(self._held[key], now):
                return True
            del self._held[key]
            return False

    def __len__(self) -> int:
        with self._lock:
            return len(self._held)

    def reset(self) -> None:
        with self._lock:
            self._held.clear()
            self._last_prune_at = self._clock()


budget_guard = BudgetGuard()


def _percentage(ratio: float) -> int:
    # half-up, so 84.5% reports as 85
    return int(math.floor(ratio * 100 + 0.5))


def evaluate_thresholds(
    spent: dict[Category, float],
    budget: BudgetSnapshot,
    *,
    threshold: float = 0.85,
) -> list[BudgetAlert]:
    """Alerts for every category whose spend crossed *threshold* or its limit."""
    alerts: list[BudgetAlert] = []
    for category in Category:
        limit = budget.limit_for(category)
        if limit <= 0:
            continue
        amount = round_money(spent.get(category, 0.0))
        ratio = amount / limit
        if ratio >= 1.0:
            severity = AlertSeverity.EXCEEDED
        elif ratio >= threshold:
            severity = AlertSeverity.APPROACHING
        else:
            continue
        alerts.append(
            BudgetAlert(
                category=category,
                percentage=_percentage(ratio),
                severity=severity,
                spent=amount,
                limit=limit,
            )
        )
    return alerts


class BudgetMonitor:
    def __init__(
        self,
        expense_store: ExpenseStore,
        budget_store: BudgetStore,
        notifier: Optional[AlertNotifier] = None,
        *,
        guard: Optional[BudgetGuard] = None,
    ) -> None:
        self.expense_store = expense_store
        self.budget_store = budget_store
        self.notifier = notifier
        self.guard = guard if guard is not None else budget_guard

    async def check(
        self,
        user_id: str,
        new_expenses: Iterable[ExpenseDraft] = (),
        *,
        today: Optional[date] = None,
    ) -> list[BudgetAlert]:
        """Run one threshold check for *user_id* and deliver the alerts.

        *new_expenses* are expenses added in this invocation that the store
        may not return yet. Returns the alerts emitted, ``[]`` when the guard
        skipped the run or anything failed.
        """
        settings = get_settings()
        today = today or date.today()
        month = today.strftime("%Y-%m")
        key = (user_id, month)

        if not self.guard.try_acquire(key):
            logger.info("Budget check for user %s (%s) already in flight, skipping", user_id, month)
            return []

        try:
            alerts = await self._run(user_id, month, list(new_expenses), settings.budget_alert_threshold)
        except Exception:
            logger.exception("Budget check failed for user %s (%s)", user_id, month)
            return []
        finally:
            self.guard.release(key, settings.budget_monitor_release_delay_seconds)

        await self._deliver(user_id, alerts)
        return alerts

    async def _run(
        self,
        user_id: str,
        month: str,
        new_expenses: list[ExpenseDraft],
        threshold: float,
    ) -> list[BudgetAlert]:
        stored = await self.budget_store.get_budget(user_id, month)
        if not stored:
            logger.debug("No budget for user %s (%s)", user_id, month)
            return []
        if isinstance(stored, BudgetSnapshot):
            budget = stored
        else:
            budget = BudgetSnapshot.model_validate({"month": month, **stored})

        existing = await self.expense_store.list_expenses(user_id, month)
        spent = category_totals(existing, month=month)
        for expense in new_expenses:
            # an undated expense added just now belongs to the current month
            if month_key(expense) in (month, None):
                add_expense(spent, expense)

        alerts = evaluate_thresholds(spent, budget, threshold=threshold)
        for alert in alerts:
            logger.info(
                "Budget %s for user %s: %s at %d%% (%.2f / %.2f)",
                alert.severity.value,
                user_id,
                alert.category.value,
                alert.percentage,
                alert.spent,
                alert.limit,
            )
        return alerts

    async def _deliver(self, user_id: str, alerts: list[BudgetAlert]) -> None:
        if self.notifier is None:
            return
        for alert in alerts:
            try:
                await self.notifier.notify(user_id, alert)
            except Exception:
                logger.warning("Failed to deliver %s alert to user %s", alert.category.value, user_id, exc_info=True)

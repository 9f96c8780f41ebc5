"""Budget threshold monitor.

Covers:
- Threshold transitions: approaching at 85%, exceeded at 100%, limit 0 skipped
- Month-to-date fold: itemized vs receipt-level expenses, other months ignored
- Non-blocking guard: overlapping runs skip, deferred release re-opens
- Failures in stores are logged and swallowed
- Push payload shape
"""

import asyncio
import unittest
from datetime import date

import pytest

from conftest import InMemoryBudgetStore, InMemoryExpenseStore, RecordingNotifier
from expense_ai.schemas.budget import AlertSeverity, BudgetAlert, BudgetSnapshot
from expense_ai.schemas.expense import Category, ExpenseDraft, ExpenseRecord, LineItem
from expense_ai.services.budget_monitor import BudgetGuard, BudgetMonitor, budget_guard, evaluate_thresholds

TODAY = date(2026, 10, 19)
MONTH = "2026-10"


def _expense(total, category=Category.FOOD, when=TODAY, items=(), user_id="u1"):
    return ExpenseRecord(
        merchant_name="Shop",
        total_amount=total,
        category=category,
        date=when,
        items=list(items),
        user_id=user_id,
    )


class EvaluateThresholdsTests(unittest.TestCase):
    def _alerts(self, spent, limit):
        budget = BudgetSnapshot(month=MONTH, limits={"Food": limit})
        return evaluate_thresholds({Category.FOOD: spent}, budget)

    def test_approaching_at_85_percent(self):
        [alert] = self._alerts(85, 100)
        self.assertEqual(alert.severity, AlertSeverity.APPROACHING)
        self.assertEqual(alert.percentage, 85)

    def test_below_threshold(self):
        self.assertEqual(self._alerts(84.9, 100), [])

    def test_exceeded(self):
        [alert] = self._alerts(101, 100)
        self.assertEqual(alert.severity, AlertSeverity.EXCEEDED)
        self.assertEqual(alert.percentage, 101)

    def test_exactly_at_limit_is_exceeded(self):
        [alert] = self._alerts(100, 100)
        self.assertEqual(alert.severity, AlertSeverity.EXCEEDED)

    def test_zero_limit_never_alerts(self):
        self.assertEqual(self._alerts(10_000, 0), [])

    def test_percentage_rounds_to_nearest(self):
        [alert] = self._alerts(87.5, 100)
        self.assertEqual(alert.percentage, 88)

    def test_custom_threshold(self):
        budget = BudgetSnapshot(month=MONTH, limits={"Bills": 100})
        self.assertEqual(evaluate_thresholds({Category.BILLS: 80}, budget, threshold=0.9), [])
        self.assertEqual(len(evaluate_thresholds({Category.BILLS: 90}, budget, threshold=0.9)), 1)


class BudgetSnapshotTests(unittest.TestCase):
    def test_limits_coerced(self):
        budget = BudgetSnapshot(month=MONTH, limits={"Food": "$300", "Transport": -5, "Pets": 40, "Bills": "n/a"})
        self.assertEqual(budget.limit_for(Category.FOOD), 300.0)
        self.assertEqual(budget.limit_for(Category.TRANSPORT), 0.0)
        self.assertEqual(budget.limit_for(Category.BILLS), 0.0)
        self.assertEqual(budget.limit_for(Category.SHOPPING), 0.0)

    def test_month_format(self):
        with self.assertRaises(ValueError):
            BudgetSnapshot(month="2026-13")


class BudgetGuardTests(unittest.TestCase):
    def setUp(self):
        self.now = 1000.0
        self.guard = BudgetGuard(clock=lambda: self.now)

    def test_second_acquire_skips(self):
        self.assertTrue(self.guard.try_acquire(("u1", MONTH)))
        self.assertFalse(self.guard.try_acquire(("u1", MONTH)))

    def test_keys_are_independent(self):
        self.assertTrue(self.guard.try_acquire(("u1", MONTH)))
        self.assertTrue(self.guard.try_acquire(("u2", MONTH)))
        self.assertTrue(self.guard.try_acquire(("u1", "2026-11")))

    def test_deferred_release(self):
        key = ("u1", MONTH)
        self.guard.try_acquire(key)
        self.guard.release(key, delay_seconds=2.0)

        self.now += 1.0
        self.assertTrue(self.guard.is_held(key))
        self.assertFalse(self.guard.try_acquire(key))

        self.now += 1.5
        self.assertFalse(self.guard.is_held(key))
        self.assertTrue(self.guard.try_acquire(key))

    def test_immediate_release(self):
        key = ("u1", MONTH)
        self.guard.try_acquire(key)
        self.guard.release(key)
        self.assertTrue(self.guard.try_acquire(key))
        self.assertEqual(len(self.guard), 1)

    def test_expired_releases_pruned(self):
        for n in range(1000):
            key = (f"user-{n}", MONTH)
            self.guard.try_acquire(key)
            self.guard.release(key, delay_seconds=2.0)
        self.assertEqual(len(self.guard), 1000)

        self.now += 3600
        self.assertTrue(self.guard.try_acquire(("u1", MONTH)))
        self.assertEqual(len(self.guard), 1)

    def test_is_held_drops_expired_key(self):
        key = ("u1", MONTH)
        self.guard.try_acquire(key)
        self.guard.release(key, delay_seconds=2.0)
        self.now += 5
        self.assertFalse(self.guard.is_held(key))
        self.assertEqual(len(self.guard), 0)

    def test_in_flight_keys_survive_prune(self):
        self.guard.try_acquire(("u1", MONTH))
        self.now += 3600
        self.assertTrue(self.guard.try_acquire(("u2", MONTH)))
        self.assertFalse(self.guard.try_acquire(("u1", MONTH)))

    def test_monitors_share_process_guard_by_default(self):
        first = BudgetMonitor(InMemoryExpenseStore(), InMemoryBudgetStore())
        second = BudgetMonitor(InMemoryExpenseStore(), InMemoryBudgetStore())
        self.assertIs(first.guard, budget_guard)
        self.assertIs(second.guard, budget_guard)


def _monitor(expenses=(), limits=None, notifier=None, clock=None):
    budgets = {}
    if limits is not None:
        budgets[("u1", MONTH)] = {"month": MONTH, "limits": limits}
    guard = BudgetGuard(clock=clock) if clock else BudgetGuard()
    return BudgetMonitor(InMemoryExpenseStore(list(expenses)), InMemoryBudgetStore(budgets), notifier, guard=guard)


@pytest.mark.asyncio
async def test_check_folds_items_and_receipt_totals():
    expenses = [
        # itemized: split across categories
        _expense(
            50,
            items=[
                LineItem(description="groceries", total_price=40, category=Category.FOOD),
                LineItem(description="parking", total_price=10, category=Category.TRANSPORT),
            ],
        ),
        # receipt-level only
        _expense(45, category=Category.FOOD),
        # previous month, ignored
        _expense(500, when=date(2026, 9, 30)),
    ]
    notifier = RecordingNotifier()
    monitor = _monitor(expenses, limits={"Food": 100, "Transport": 100}, notifier=notifier)

    alerts = await monitor.check("u1", today=TODAY)

    assert [(a.category, a.severity) for a in alerts] == [(Category.FOOD, AlertSeverity.APPROACHING)]
    assert alerts[0].spent == 85.0
    assert notifier.sent == [("u1", alerts[0])]


@pytest.mark.asyncio
async def test_new_expenses_added_to_month_total():
    monitor = _monitor([_expense(90)], limits={"Food": 100})
    new = ExpenseDraft(merchant_name="Cafe", total_amount=11, category=Category.FOOD)

    alerts = await monitor.check("u1", [new], today=TODAY)

    assert [(a.category, a.severity, a.percentage) for a in alerts] == [
        (Category.FOOD, AlertSeverity.EXCEEDED, 101)
    ]


@pytest.mark.asyncio
async def test_no_budget_no_alerts():
    monitor = _monitor([_expense(1000)], limits=None)
    assert await monitor.check("u1", today=TODAY) == []


@pytest.mark.asyncio
async def test_guard_window_prevents_double_fire(monkeypatch):
    monkeypatch.setenv("BUDGET_MONITOR_RELEASE_DELAY_SECONDS", "2")
    clock = {"now": 500.0}
    notifier = RecordingNotifier()
    monitor = _monitor([_expense(95)], limits={"Food": 100}, notifier=notifier, clock=lambda: clock["now"])

    first = await monitor.check("u1", today=TODAY)
    clock["now"] += 0.5
    second = await monitor.check("u1", today=TODAY)
    clock["now"] += 2.0
    third = await monitor.check("u1", today=TODAY)

    assert len(first) == 1
    assert second == []
    assert len(third) == 1
    assert len(notifier.sent) == 2


@pytest.mark.asyncio
async def test_concurrent_runs_skip_instead_of_waiting():
    started = asyncio.Event()
    release = asyncio.Event()

    class SlowBudgetStore(InMemoryBudgetStore):
        async def get_budget(self, user_id, month):
            started.set()
            await release.wait()
            return {"month": month, "limits": {"Food": 100}}

    monitor = BudgetMonitor(InMemoryExpenseStore([_expense(99)]), SlowBudgetStore())

    first = asyncio.create_task(monitor.check("u1", today=TODAY))
    await started.wait()
    second = await monitor.check("u1", today=TODAY)
    release.set()

    assert second == []
    assert len(await first) == 1


@pytest.mark.asyncio
async def test_malformed_budget_is_swallowed(monkeypatch, caplog):
    monkeypatch.setenv("BUDGET_MONITOR_RELEASE_DELAY_SECONDS", "0")
    store = InMemoryBudgetStore({("u1", MONTH): {"limits": "not a mapping"}})
    monitor = BudgetMonitor(InMemoryExpenseStore([_expense(99)]), store)

    assert await monitor.check("u1", today=TODAY) == []
    assert "Budget check failed" in caplog.text
    # guard released even after a failure
    assert monitor.guard.try_acquire(("u1", MONTH))


@pytest.mark.asyncio
async def test_notifier_failure_does_not_drop_other_alerts():
    class FlakyNotifier(RecordingNotifier):
        async def notify(self, user_id, alert):
            if alert.category == Category.FOOD:
                raise RuntimeError("push service down")
            await super().notify(user_id, alert)

    notifier = FlakyNotifier()
    monitor = _monitor(
        [_expense(99), _expense(99, category=Category.BILLS)],
        limits={"Food": 100, "Bills": 100},
        notifier=notifier,
    )

    alerts = await monitor.check("u1", today=TODAY)

    assert len(alerts) == 2
    assert [a.category for _, a in notifier.sent] == [Category.BILLS]


def test_push_payload():
    alert = BudgetAlert(category=Category.FOOD, percentage=92, severity=AlertSeverity.APPROACHING, spent=92, limit=100)

    payload = alert.to_push_payload()

    assert payload["tag"] == "budget-food-approaching"
    assert payload["data"] == {"url": "/budgets", "category": "Food"}
    assert "92%" in payload["body"]

"""Builds an ``AnalysisSnapshot`` from persisted expenses and a budget."""

from __future__ import annotations

import calendar
from collections import Counter
from typing import Iterable, Optional

from expense_ai.schemas.budget import BudgetSnapshot
from expense_ai.schemas.expense import Category, ExpenseDraft
from expense_ai.services.spending import category_totals
from expense_ai.utils.numbers import round_money

from .contracts import DEFAULT_MOOD, AnalysisSnapshot, CategoryInsight, MerchantTotal

TOP_MERCHANT_LIMIT = 5


def _top_merchants(expenses: list[ExpenseDraft]) -> list[MerchantTotal]:
    totals: dict[str, float] = {}
    counts: dict[str, int] = {}
    for expense in expenses:
        name = expense.merchant_name
        totals[name] = totals.get(name, 0.0) + expense.total_amount
        counts[name] = counts.get(name, 0) + 1
    # sorted() is stable, so equal totals keep first-seen order
    ranked = sorted(totals, key=lambda name: totals[name], reverse=True)
    return [
        MerchantTotal(name=name, total_spent=round_money(totals[name]), count=counts[name])
        for name in ranked[:TOP_MERCHANT_LIMIT]
    ]


def _most_active_weekday(expenses: list[ExpenseDraft]) -> Optional[str]:
    counts = Counter(expense.date.weekday() for expense in expenses if expense.date is not None)
    if not counts:
        return None
    weekday = max(counts, key=counts.__getitem__)
    return calendar.day_name[weekday]


def build_analysis_snapshot(
    expenses: Iterable[ExpenseDraft],
    budget: Optional[BudgetSnapshot] = None,
    mood: str = DEFAULT_MOOD,
) -> AnalysisSnapshot:
    """Aggregate *expenses* (already filtered to the period) against *budget*."""
    expenses = list(expenses)
    totals = category_totals(expenses)
    total_spent = round_money(sum(expense.total_amount for expense in expenses))

    categories = []
    for category in Category:
        limit = budget.limit_for(category) if budget else 0.0
        spent = totals[category]
        categories.append(
            CategoryInsight(
                category=category,
                spent=spent,
                budget=limit,
                remaining=round_money(limit - spent),
            )
        )

    return AnalysisSnapshot(
        month=budget.month if budget else None,
        total_spent=total_spent,
        expense_count=len(expenses),
        average_expense=round_money(total_spent / len(expenses)) if expenses else 0.0,
        total_budget=round_money(sum(c.budget for c in categories)),
        categories=categories,
        top_merchants=_top_merchants(expenses),
        most_active_weekday=_most_active_weekday(expenses),
        mood=mood,
    )

"""Category spending folds shared by the budget monitor and the coach snapshot."""

from __future__ import annotations

from typing import Iterable, Optional

from expense_ai.schemas.expense import Category, ExpenseDraft
from expense_ai.utils.numbers import round_money


def month_key(expense: ExpenseDraft) -> Optional[str]:
    """``YYYY-MM`` of the expense date, ``None`` when undated."""
    if expense.date is None:
        return None
    return expense.date.strftime("%Y-%m")


def empty_totals() -> dict[Category, float]:
    return {category: 0.0 for category in Category}


def add_expense(totals: dict[Category, float], expense: ExpenseDraft) -> None:
    """Add one expense to *totals*.

    Itemized expenses are split by item category; an expense without items
    counts its whole total under the receipt category.
    """
    if expense.items:
        for item in expense.items:
            totals[item.category] = totals.get(item.category, 0.0) + item.effective_total()
    else:
        totals[expense.category] = totals.get(expense.category, 0.0) + expense.total_amount


def category_totals(expenses: Iterable[ExpenseDraft], *, month: Optional[str] = None) -> dict[Category, float]:
    """Fold *expenses* into per-category totals, optionally limited to one month."""
    totals = empty_totals()
    for expense in expenses:
        if month is not None and month_key(expense) != month:
            continue
        add_expense(totals, expense)
    return {category: round_money(amount) for category, amount in totals.items()}

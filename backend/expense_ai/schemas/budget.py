from __future__ import annotations

import re
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from expense_ai.schemas.expense import Category, parse_category
from expense_ai.utils.numbers import coerce_decimal

_MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class BudgetSnapshot(BaseModel):
    """Per-category monthly limits for one user and one ``YYYY-MM`` month."""

    month: str
    limits: dict[Category, float] = Field(default_factory=dict)

    @field_validator("month")
    @classmethod
    def _check_month(cls, value: str) -> str:
        value = value.strip()
        if not _MONTH_RE.match(value):
            raise ValueError(f"month must be YYYY-MM, got {value!r}")
        return value

    @field_validator("limits", mode="before")
    @classmethod
    def _coerce_limits(cls, value: Any) -> dict[Category, float]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("limits must be a mapping of category to amount")
        shaped: dict[Category, float] = {}
        for name, amount in value.items():
            category = parse_category(name)
            if category is None:
                continue
            numeric = coerce_decimal(amount)
            shaped[category] = numeric if numeric is not None and numeric > 0 else 0.0
        return shaped

    def limit_for(self, category: Category) -> float:
        return self.limits.get(category, 0.0)


class AlertSeverity(StrEnum):
    APPROACHING = "approaching"
    EXCEEDED = "exceeded"


class BudgetAlert(BaseModel):
    category: Category
    percentage: int
    severity: AlertSeverity
    spent: float
    limit: float

    def to_push_payload(self) -> dict[str, Any]:
        """Payload shape understood by the push-notification delivery layer."""
        if self.severity == AlertSeverity.EXCEEDED:
            title = f"{self.category.value} budget exceeded"
            body = (
                f"You've spent ${self.spent:.2f} of your ${self.limit:.2f} "
                f"{self.category.value} budget ({self.percentage}%)."
            )
        else:
            title = f"{self.category.value} budget almost used"
            body = (
                f"You've used {self.percentage}% of your {self.category.value} budget "
                f"(${self.spent:.2f} of ${self.limit:.2f})."
            )
        return {
            "title": title,
            "body": body,
            "icon": "/icon-192.svg",
            "tag": f"budget-{self.category.value.lower()}-{self.severity.value}",
            "data": {"url": "/budgets", "category": self.category.value},
        }

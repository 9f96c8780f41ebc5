from __future__ import annotations

import datetime as dt
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Category(StrEnum):
    FOOD = "Food"
    TRANSPORT = "Transport"
    SHOPPING = "Shopping"
    BILLS = "Bills"
    OTHER = "Other"


CATEGORY_VALUES: tuple[str, ...] = tuple(c.value for c in Category)


def parse_category(value: Any) -> Optional[Category]:
    """Return the matching ``Category`` or ``None`` for anything outside the closed set."""
    if isinstance(value, Category):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Category(value.strip())
    except ValueError:
        return None


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_record(self) -> dict[str, Any]:
        """Wire/persistence shape: camelCase keys, ISO dates."""
        return self.model_dump(mode="json", by_alias=True)


class LineItem(_CamelModel):
    description: str = ""
    quantity: Optional[float] = Field(default=None, gt=0)
    unit_price: Optional[float] = Field(default=None, ge=0)
    total_price: Optional[float] = Field(default=None, ge=0)
    category: Category = Category.OTHER

    def effective_total(self) -> float:
        """Price used for aggregation: total, else quantity x unit, else unit."""
        if self.total_price is not None:
            return self.total_price
        if self.quantity and self.unit_price:
            return self.quantity * self.unit_price
        return self.unit_price or 0.0


class ExpenseDraft(_CamelModel):
    merchant_name: str = Field(min_length=1)
    date: Optional[dt.date] = None
    total_amount: float = Field(gt=0, allow_inf_nan=False)
    currency: str = "USD"
    category: Category = Category.OTHER
    items: list[LineItem] = Field(default_factory=list)
    payment_method: Optional[str] = None
    tax_amount: Optional[float] = Field(default=None, ge=0)
    tip_amount: Optional[float] = Field(default=None, ge=0)


class ExpenseRecord(ExpenseDraft):
    """A persisted expense as returned by the record store."""

    id: Optional[str] = None
    user_id: Optional[str] = None

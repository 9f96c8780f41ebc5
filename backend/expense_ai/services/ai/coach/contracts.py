"""Coach scope contracts: spending snapshot in, one coaching message out."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from expense_ai.schemas.expense import Category

VALID_MOODS = ("supportive", "balanced", "direct")
DEFAULT_MOOD = "balanced"


class CategoryInsight(BaseModel):
    category: Category
    spent: float = 0.0
    budget: float = 0.0
    remaining: float = 0.0


class MerchantTotal(BaseModel):
    name: str
    total_spent: float
    count: int


class AnalysisSnapshot(BaseModel):
    """Point-in-time spending aggregate handed to the coach.

    Built by the caller (see ``build_analysis_snapshot``); the coach only
    reads it.
    """

    model_config = {"frozen": True}

    month: Optional[str] = None
    total_spent: float = 0.0
    expense_count: int = 0
    average_expense: float = 0.0
    total_budget: float = 0.0
    categories: list[CategoryInsight] = Field(default_factory=list)
    top_merchants: list[MerchantTotal] = Field(default_factory=list)
    most_active_weekday: Optional[str] = None
    mood: str = DEFAULT_MOOD

    @field_validator("mood", mode="before")
    @classmethod
    def _known_mood(cls, value) -> str:
        mood = str(value or "").strip().lower()
        return mood if mood in VALID_MOODS else DEFAULT_MOOD

    def category(self, category: Category) -> Optional[CategoryInsight]:
        for insight in self.categories:
            if insight.category == category:
                return insight
        return None


class CoachMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = ""

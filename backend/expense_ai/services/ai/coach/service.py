"""AI spending coach.

Turns an ``AnalysisSnapshot`` plus the trailing conversation into one short,
supportive message. ``AI_COACH_PROVIDER=stub`` (or a stub-resolved
provider) answers from a local template without any network call.
Provider and parse failures propagate; the caller owns fallback UX.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from expense_ai.core.config import get_settings

from ..common import router as ai_router
from ..common.audit import log_ai_run
from ..common.errors import ParseError, ProviderError
from ..common.providers.base import ChatMessage, ProviderResult
from .contracts import AnalysisSnapshot, CoachMessage

logger = logging.getLogger(__name__)

MAX_HISTORY_MESSAGES = 10
MAX_HISTORY_MESSAGE_CHARS = 600
MAX_REPLY_CHARS = 1200

CHECK_IN_PROMPT = "Give me a short check-in on my spending so far."

_MOOD_STYLE = {
    "supportive": "Be warm and encouraging; celebrate small wins.",
    "balanced": "Be friendly and practical.",
    "direct": "Be brief and to the point; lead with the most important number.",
}

COACH_PERSONA = (
    "You are a supportive personal spending coach.\n"
    "Rules:\n"
    "- Talk about what has already happened this period; never forecast or predict future spending.\n"
    "- Use only the numbers given in the spending summary; do not invent figures.\n"
    "- Offer at most two concrete, gentle suggestions.\n"
    "- Keep the reply under 120 words, plain text, no markdown tables."
)


def format_snapshot(analysis: AnalysisSnapshot) -> str:
    """Render the snapshot as plain text for the system prompt."""
    lines = [
        f"Period: {analysis.month or 'current period'}",
        f"Total spent: ${analysis.total_spent:.2f} across {analysis.expense_count} expenses "
        f"(average ${analysis.average_expense:.2f})",
    ]
    if analysis.total_budget > 0:
        lines.append(f"Total budget: ${analysis.total_budget:.2f}")
    for insight in analysis.categories:
        if insight.spent <= 0 and insight.budget <= 0:
            continue
        if insight.budget > 0:
            lines.append(
                f"- {insight.category.value}: spent ${insight.spent:.2f} of ${insight.budget:.2f} "
                f"(${insight.remaining:.2f} remaining)"
            )
        else:
            lines.append(f"- {insight.category.value}: spent ${insight.spent:.2f} (no budget set)")
    if analysis.top_merchants:
        merchants = ", ".join(f"{m.name} ${m.total_spent:.2f}" for m in analysis.top_merchants)
        lines.append(f"Top merchants: {merchants}")
    if analysis.most_active_weekday:
        lines.append(f"Most active day: {analysis.most_active_weekday}")
    return "\n".join(lines)


def build_system_prompt(analysis: AnalysisSnapshot) -> str:
    style = _MOOD_STYLE.get(analysis.mood, _MOOD_STYLE["balanced"])
    return f"{COACH_PERSONA}\nTone: {style}\n\nSpending summary:\n{format_snapshot(analysis)}"


def trim_history(conversation: Sequence[CoachMessage]) -> list[ChatMessage]:
    """Keep the last messages, each cut to the per-message budget."""
    trimmed = []
    for message in list(conversation)[-MAX_HISTORY_MESSAGES:]:
        content = (message.content or "").strip()[:MAX_HISTORY_MESSAGE_CHARS]
        if content:
            trimmed.append(ChatMessage(role=message.role, content=content))
    return trimmed


def _clip_reply(text: str) -> str:
    text = text.strip()
    if len(text) <= MAX_REPLY_CHARS:
        return text
    clipped = text[:MAX_REPLY_CHARS].rsplit(" ", 1)[0]
    return clipped.rstrip() + "…"


def templated_insight(analysis: AnalysisSnapshot) -> str:
    """Deterministic offline message built from the snapshot numbers."""
    if analysis.expense_count == 0:
        return "No expenses logged yet this period. Add a receipt or a quick note and I'll help you keep track."

    parts = [
        f"You've spent ${analysis.total_spent:.2f} across {analysis.expense_count} expenses "
        f"so far, about ${analysis.average_expense:.2f} each."
    ]

    budgeted = [c for c in analysis.categories if c.budget > 0]
    over = [c for c in budgeted if c.remaining < 0]
    if over:
        worst = min(over, key=lambda c: c.remaining)
        parts.append(f"{worst.category.value} is ${-worst.remaining:.2f} over its ${worst.budget:.2f} budget.")
    elif budgeted:
        roomiest = max(budgeted, key=lambda c: c.remaining)
        parts.append(f"You still have ${roomiest.remaining:.2f} left in {roomiest.category.value}.")

    if analysis.top_merchants:
        top = analysis.top_merchants[0]
        parts.append(f"Your top merchant is {top.name} at ${top.total_spent:.2f}.")
    if analysis.most_active_weekday:
        parts.append(f"{analysis.most_active_weekday} is your busiest spending day.")
    return " ".join(parts)


@dataclass
class CoachInsightResult:
    message: str
    provider_result: Optional[ProviderResult] = None


async def generate_coach_insight(
    analysis: AnalysisSnapshot,
    conversation: Sequence[CoachMessage] = (),
    *,
    override_provider: Optional[str] = None,
) -> CoachInsightResult:
    """Produce one coaching message for *analysis*."""
    settings = get_settings()
    config = ai_router.resolve(
        "coach",
        override_provider=override_provider,
        scope_preference=settings.ai_coach_provider or None,
    )
    if config.provider.name == "stub":
        logger.info("Coach using templated stub insight")
        return CoachInsightResult(message=templated_insight(analysis))

    history = trim_history(conversation)
    if history and history[-1].role == "user":
        prompt = history.pop().content
    else:
        prompt = CHECK_IN_PROMPT
    system_prompt = build_system_prompt(analysis)

    try:
        result = await config.provider.generate(
            prompt,
            system_prompt=system_prompt,
            history=history,
            model=config.model,
            temperature=settings.ai_coach_temperature,
            max_tokens=settings.ai_coach_max_tokens,
            timeout_seconds=config.timeout_seconds,
        )
    except ProviderError:
        raise
    except Exception as exc:
        raise ProviderError(config.provider.name, str(exc)) from exc

    log_ai_run(
        scope="coach",
        provider_result=result,
        prompt_text=f"{system_prompt}\n\n{prompt}",
        extra_meta={"history_messages": len(history), "mood": analysis.mood},
    )

    message = _clip_reply(result.raw_text)
    if not message:
        raise ParseError("Coach response was empty", raw_text=result.raw_text)
    return CoachInsightResult(message=message, provider_result=result)

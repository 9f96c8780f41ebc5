import math
import re
from typing import Any, Optional

_NON_NUMERIC_RE = re.compile(r"[^0-9,.\-]")
# A comma followed by exactly three digits and then a non-digit (or the end)
# is a thousands separator; any other comma is a decimal point.
_THOUSANDS_COMMA_RE = re.compile(r",(?=\d{3}(?:\D|$))")


def coerce_decimal(raw: Any) -> Optional[float]:
    """Coerce a model-supplied amount to a finite float, or ``None``.

    >>> coerce_decimal("$1,234.56")
    1234.56
    >>> coerce_decimal("12,5")
    12.5
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else None

    if not isinstance(raw, str):
        return None

    cleaned = _NON_NUMERIC_RE.sub("", raw)
    if not cleaned:
        return None
    cleaned = _THOUSANDS_COMMA_RE.sub("", cleaned)
    cleaned = cleaned.replace(",", ".")

    try:
        value = float(cleaned)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def round_money(value: float) -> float:
    return round(value, 2)

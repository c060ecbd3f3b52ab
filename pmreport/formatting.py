from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional


def as_number(value: object) -> Optional[float]:
    """Read ``value`` as a float; missing, blank, NaN or malformed values become ``None``.

    Numbers too large for a float saturate to +/-inf.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        out = float(value)  # type: ignore[arg-type]
    except OverflowError:
        return math.inf if value > 0 else -math.inf  # type: ignore[operator]
    except (TypeError, ValueError):
        return None
    if math.isnan(out):
        return None
    return out


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    number = as_number(value)
    if number is None or not math.isfinite(number):
        return number
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(number)).quantize(q, rounding=ROUND_HALF_UP))


def format_pct(count: float, denominator: float) -> str:
    """``count / denominator`` as a percentage string with one decimal, ``"0.0"`` for an empty denominator."""
    if not denominator:
        return "0.0"
    return f"{round_half_up(count / denominator * 100, 1):.1f}"

from __future__ import annotations

import math
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Optional

_CENT = Decimal("0.01")


def round2(x: Any) -> float:
    """
    Round to 2 decimals, half away from zero, on the decimal representation
    of the value (so 1.005 -> 1.01, -2.675 -> -2.68).
    """
    v = coerce_number(x)
    dv = Decimal(repr(v))
    with localcontext() as ctx:
        # room for every integer digit plus the cents
        ctx.prec = max(28, dv.adjusted() + 3)
        d = dv.quantize(_CENT, rounding=ROUND_HALF_UP)
    out = float(d)
    return 0.0 if out == 0 else out  # no -0.0


def coerce_number(v: Any, fallback: float = 0.0) -> float:
    """float(v) when finite, else fallback. Never lets NaN/inf through."""
    if v is None or isinstance(v, bool):
        return fallback
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return fallback
    try:
        f = float(Decimal(v) if isinstance(v, str) else v)
    except (TypeError, ValueError, InvalidOperation, OverflowError):
        return fallback
    return f if math.isfinite(f) else fallback


def clamp(n: float, low: float, high: float) -> float:
    return min(high, max(low, n))


def clean_text(v: Any) -> str:
    return v.strip() if isinstance(v, str) else ""


def parse_date(v: Any) -> Optional[date]:
    if not v:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    try:
        return datetime.fromisoformat(str(v).strip()).date()
    except ValueError:
        return None

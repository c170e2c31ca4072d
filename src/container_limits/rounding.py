"""Deterministic decimal rounding shared by the accountant, evaluator and range filter."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Context, Decimal

# digits kept on top of the integer part so the quantize never runs out of precision
_GUARD_DIGITS = 2


def round_half_away(value: float, decimals: int) -> float:
    """
    Round to a fixed number of decimals, ties away from zero.

    The value is read through its shortest repr so that 2.675 rounds to 2.68
    rather than following its binary expansion. Re-rounding a result at the
    same precision returns it unchanged. Non-finite values come back as they are.
    """
    value = float(value)
    if not math.isfinite(value):
        return value

    exact = Decimal(repr(value))
    context = Context(prec=max(exact.adjusted(), 0) + decimals + _GUARD_DIGITS)
    rounded = exact.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP, context=context)
    # avoid -0.0 leaking into responses
    return float(rounded) + 0.0


def round2(value: float) -> float:
    return round_half_away(value, 2)


def round1(value: float) -> float:
    return round_half_away(value, 1)

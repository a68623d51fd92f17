"""Rounding helpers for persisted values.

Returns are stored with 4 decimals and monetary values with 2.  Rounding is
half-up (not Python's banker's rounding) and is applied only when values
are persisted or compared at persisted precision.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

RETURN_PRECISION = 4
MONEY_PRECISION = 2


def round_to(value: float, decimals: int) -> float:
    """Round *value* half-up to *decimals* places.

    Uses Decimal on the shortest repr of the float so that e.g. ``2.675``
    rounds to ``2.68``.
    """
    if decimals < 0:
        raise ValueError(f"decimals must be >= 0, got {decimals}")
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))

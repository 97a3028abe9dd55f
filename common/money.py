"""Decimal helpers for currency amounts."""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize(value) -> Decimal:
    """Round to cents using commercial rounding."""

    return Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    return quantize(Decimal(amount) * Decimal(percent) / Decimal(100))

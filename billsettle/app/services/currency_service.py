"""
services/currency_service.py — Currency normalisation.

Every monetary figure derived from a receipt is multiplied by that receipt's
rate and rounded to a whole minor unit at the point it is recorded into a
participant's running totals, never earlier, so rounding error does not
compound across the pipeline.

Layer rules:
  - No Flask imports. Pure functions on Decimal / Fraction / int.
  - Never raises for a missing rate: the caller decides whether to warn.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction

from billsettle.app.models.receipt import Receipt


_ONE = Decimal("1")


def resolve_rate(receipt: Receipt, settlement_currency: str) -> Decimal:
    """
    Rate converting `receipt` amounts into the settlement currency.

    The receipt's own exchange_rate when its currency differs from the
    settlement currency and a rate was supplied; 1 otherwise.
    """
    if receipt.currency != settlement_currency and receipt.exchange_rate:
        return Decimal(receipt.exchange_rate)
    return _ONE


def missing_rate(receipt: Receipt, settlement_currency: str) -> bool:
    """True when a foreign-currency receipt has no usable rate (1:1 is assumed)."""
    return receipt.currency != settlement_currency and not receipt.exchange_rate


def to_minor_units(value: Decimal | Fraction | int) -> int:
    """Rounds to the nearest whole minor unit; halves round away from zero."""
    if isinstance(value, Fraction):
        magnitude = math.floor(abs(value) + Fraction(1, 2))
        return magnitude if value >= 0 else -magnitude
    return int(Decimal(value).quantize(_ONE, rounding=ROUND_HALF_UP))


def convert(amount: Decimal | Fraction | int, rate: Decimal) -> int:
    """Converts a receipt-currency amount and rounds it once."""
    if isinstance(amount, Fraction):
        return to_minor_units(amount * Fraction(rate))
    return to_minor_units(Decimal(amount) * rate)

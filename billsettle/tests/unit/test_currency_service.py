"""
tests/unit/test_currency_service.py — Unit tests for currency_service.

What this file proves:
  - The receipt's rate is used only when currencies differ AND a rate exists
  - A missing rate silently means 1:1 (and missing_rate() reports it)
  - Rounding is to the nearest minor unit, halves away from zero
"""

from __future__ import annotations

from decimal import Decimal
from fractions import Fraction

import pytest

from billsettle.app.models.receipt import Receipt
from billsettle.app.services.currency_service import (
    convert,
    missing_rate,
    resolve_rate,
    to_minor_units,
)


def _receipt(currency: str = "USD", rate: str | None = None) -> Receipt:
    return Receipt(
        id="r1",
        currency=currency,
        exchange_rate=Decimal(rate) if rate is not None else None,
    )


def test_same_currency_uses_one_even_with_rate():
    receipt = _receipt("USD", "1.50")
    assert resolve_rate(receipt, "USD") == Decimal("1")
    assert not missing_rate(receipt, "USD")


def test_foreign_currency_uses_receipt_rate():
    receipt = _receipt("EUR", "1.0850")
    assert resolve_rate(receipt, "USD") == Decimal("1.0850")
    assert not missing_rate(receipt, "USD")


def test_foreign_currency_without_rate_defaults_to_one():
    receipt = _receipt("EUR")
    assert resolve_rate(receipt, "USD") == Decimal("1")
    assert missing_rate(receipt, "USD")


@pytest.mark.parametrize("value, expected", [
    (Decimal("0.5"), 1),
    (Decimal("1.4999"), 1),
    (Decimal("2.5"), 3),
    (Decimal("-2.5"), -3),
    (Decimal("499.5"), 500),
    (7, 7),
    (Fraction(1, 2), 1),
    (Fraction(-3, 2), -2),
    (Fraction(3241, 6), 540),
])
def test_to_minor_units_rounds_half_away_from_zero(value, expected):
    assert to_minor_units(value) == expected


def test_convert_rounds_once_after_multiplying():
    # 333 * 1.5 = 499.5 → 500
    assert convert(333, Decimal("1.5")) == 500
    assert convert(1000, Decimal("1")) == 1000
    assert isinstance(convert(1000, Decimal("1.1")), int)


def test_convert_exact_fraction():
    # 1080⅓ * 1.5 = 1620.5 → 1621
    assert convert(Fraction(3241, 3), Decimal("1.5")) == 1621

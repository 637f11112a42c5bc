"""
services/charge_service.py — Receipt-level discount and service-charge allocation.

Both are spread across the participants who have items on the receipt, in
proportion to their GROSS (pre-item-discount) share of it, using
allocation_service.distribute_proportionally(). Participants with no items
on the receipt carry none of it.

service_charge_amount() is shared with payment_service so the charge a
payer is credited for is computed by exactly the same rule as the charge
that is allocated.

Layer rules:
  - No Flask imports.
  - Amounts here are in the receipt's own currency; conversion happens when
    the caller records them.
"""

from __future__ import annotations

from decimal import Decimal
from fractions import Fraction
from typing import Mapping

from billsettle.app.models.receipt import Discount, Receipt, ServiceChargeType
from billsettle.app.models.summary import RoundingAdjustment
from billsettle.app.services.allocation_service import (
    RoundingLedger,
    distribute_proportionally,
)
from billsettle.app.services.currency_service import to_minor_units


def service_charge_amount(receipt: Receipt, subtotal: int) -> int:
    """
    The receipt's service charge in minor units of its own currency.

    FIXED:      the configured value.
    PERCENTAGE: round((subtotal - receipt discounts) * value / 100), where
                subtotal is the full pre-discount item subtotal of the
                receipt (assigned and unassigned items alike).
    """
    charge = receipt.service_charge
    if charge.type == ServiceChargeType.FIXED:
        return to_minor_units(charge.value)

    base = Decimal(subtotal - receipt.discount_total)
    return to_minor_units(base * Decimal(charge.value) / Decimal(100))


def allocate_receipt_discount(
        discount: Discount,
        weights: Mapping[str, Fraction],
        ledger: RoundingLedger,
        names: Mapping[str, str],
) -> tuple[dict[str, int], list[RoundingAdjustment]]:
    """Distributes one receipt-level discount by gross-share weight."""
    return distribute_proportionally(discount.amount, weights, ledger, names)


def allocate_service_charge(
        charge: int,
        weights: Mapping[str, Fraction],
        ledger: RoundingLedger,
        names: Mapping[str, str],
) -> tuple[dict[str, int], list[RoundingAdjustment]]:
    """
    Distributes a service charge by gross-share weight.

    Only positive charges are distributed; anything else yields no shares
    and leaves the ledger untouched.
    """
    if charge <= 0:
        return {}, []
    return distribute_proportionally(charge, weights, ledger, names)

"""
models/receipt.py — Receipt, Discount and ServiceCharge records.

No business logic. No imports from services or routes.

Key design points:
  - All money is an int in minor currency units (cents). Never float.
  - `exchange_rate` and percentage service-charge values are Decimal.
  - `payer_id` may be None: the receipt still obligates its assignees but
    contributes to nobody's totalPaid.
  - ServiceChargeType is a Python enum so schemas and services share one
    definition. Do not duplicate these as plain string constants.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal


class ServiceChargeType(str, enum.Enum):
    FIXED      = "fixed"
    PERCENTAGE = "percentage"


@dataclass(frozen=True)
class Discount:
    """Item- or receipt-level discount. Positive amount = reduction."""
    id: str
    name: str
    amount: int


@dataclass(frozen=True)
class ServiceCharge:
    """
    Receipt service charge / tip.

    FIXED:      `value` is an absolute amount in minor units.
    PERCENTAGE: `value` is a (possibly fractional) percent of the
                discounted subtotal.
    """
    type: ServiceChargeType = ServiceChargeType.FIXED
    value: Decimal = Decimal("0")


@dataclass(frozen=True)
class Receipt:
    id: str
    currency: str
    name: str = ""
    payer_id: str | None = None
    exchange_rate: Decimal | None = None
    discounts: tuple[Discount, ...] = ()
    service_charge: ServiceCharge = field(default_factory=ServiceCharge)

    @property
    def discount_total(self) -> int:
        return sum(d.amount for d in self.discounts)

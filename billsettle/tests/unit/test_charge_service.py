"""
tests/unit/test_charge_service.py — Unit tests for charge_service.

What this file proves:
  - Fixed service charges are taken as-is
  - Percentage service charges are computed on (subtotal − receipt discounts)
    and rounded to the nearest minor unit
  - Receipt discounts and service charges are distributed by gross share
  - Non-positive service charges are not distributed
  - Gross-share weights stay exact, so a discount that divides evenly in
    their proportion needs no rounding unit
"""

from __future__ import annotations

from decimal import Decimal

from billsettle.app.models.item import Item, SplitMode
from billsettle.app.models.receipt import (
    Discount,
    Receipt,
    ServiceCharge,
    ServiceChargeType,
)
from billsettle.app.services.allocation_service import RoundingLedger, decompose_share
from billsettle.app.services.charge_service import (
    allocate_receipt_discount,
    allocate_service_charge,
    service_charge_amount,
)


NAMES = {"p1": "Alice", "p2": "Bob", "p3": "Charlie"}


def _receipt(
    charge_type: ServiceChargeType = ServiceChargeType.FIXED,
    value: str = "0",
    discounts: tuple[Discount, ...] = (),
) -> Receipt:
    return Receipt(
        id="r1",
        currency="USD",
        discounts=discounts,
        service_charge=ServiceCharge(type=charge_type, value=Decimal(value)),
    )


def test_fixed_service_charge_is_value():
    assert service_charge_amount(_receipt(value="250"), subtotal=10_000) == 250


def test_percentage_service_charge_on_discounted_subtotal():
    """10% of (3000 − 300) = 270."""
    receipt = _receipt(
        ServiceChargeType.PERCENTAGE,
        "10",
        discounts=(Discount(id="d1", name="Promo", amount=300),),
    )
    assert service_charge_amount(receipt, subtotal=3000) == 270


def test_fractional_percentage_rounds_to_nearest_unit():
    """12.5% of 1234 = 154.25 → 154."""
    receipt = _receipt(ServiceChargeType.PERCENTAGE, "12.5")
    assert service_charge_amount(receipt, subtotal=1234) == 154


def test_default_service_charge_is_zero():
    receipt = Receipt(id="r1", currency="USD")
    assert service_charge_amount(receipt, subtotal=5000) == 0


def test_receipt_discount_distributed_by_gross_share():
    discount = Discount(id="d1", name="10% off", amount=300)
    weights = {"p1": Decimal("2000"), "p2": Decimal("1000")}

    distributed, adjustments = allocate_receipt_discount(
        discount, weights, RoundingLedger(NAMES), NAMES,
    )

    assert distributed == {"p1": 200, "p2": 100}
    assert adjustments == []


def test_service_charge_distributed_by_gross_share_with_rounding():
    weights = {"p1": Decimal("1000"), "p2": Decimal("1000")}
    ledger = RoundingLedger(NAMES)

    distributed, adjustments = allocate_service_charge(101, weights, ledger, NAMES)

    assert distributed == {"p1": 51, "p2": 50}
    assert [a.participant_id for a in adjustments] == ["p1"]
    assert ledger.debt("p1") == 1


def test_zero_or_negative_service_charge_not_distributed():
    weights = {"p1": Decimal("1000")}
    ledger = RoundingLedger(NAMES)

    assert allocate_service_charge(0, weights, ledger, NAMES) == ({}, [])
    assert allocate_service_charge(-50, weights, ledger, NAMES) == ({}, [])
    assert ledger.debt("p1") == 0


def test_receipt_discount_over_item_discounted_weights_is_exact():
    """
    111 item with a 60 discount, split exactly 25 / 12 / 14 of the 51 left.
    Gross shares are 111·25/51, 111·12/51 and 111·14/51; a 1428 receipt
    discount falls on them as 700 / 336 / 392 with nothing left over.
    """
    item = Item(
        id="i1",
        receipt_id="r1",
        cost=111,
        discounts=(Discount(id="d1", name="Promo", amount=60),),
        assignees=("p1", "p2", "p3"),
        split_mode=SplitMode.EXACT,
        exact_assignments={"p1": 25, "p2": 12, "p3": 14},
    )
    weights = {
        pid: decompose_share(item, share, item.effective_cost)[0]
        for pid, share in item.exact_assignments.items()
    }
    ledger = RoundingLedger(NAMES)

    distributed, adjustments = allocate_receipt_discount(
        Discount(id="d2", name="Coupon", amount=1428), weights, ledger, NAMES,
    )

    assert distributed == {"p1": 700, "p2": 336, "p3": 392}
    assert adjustments == []
    assert ledger.debt("p1") == 0

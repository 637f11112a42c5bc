"""
services/payment_service.py — What each participant actually paid.

A receipt's payer is credited with the receipt's full total:

    (item subtotal − item discounts − receipt discounts) + service charge

converted with the receipt's rate and rounded once.

A receipt with no payer, or with a payer who is not a participant, credits
nobody. It still obligates its assignees through the share allocation; the
asymmetry is intentional and surfaced as a warning.

Layer rules:
  - No Flask imports. Returns plain dicts and warning records.
"""

from __future__ import annotations

from billsettle.app.errors import WarningCode
from billsettle.app.models.item import Item
from billsettle.app.models.receipt import Receipt
from billsettle.app.models.session import SessionSnapshot
from billsettle.app.models.summary import AllocationWarning
from billsettle.app.services.charge_service import service_charge_amount
from billsettle.app.services.currency_service import convert, resolve_rate


def receipt_total(receipt: Receipt, items: list[Item]) -> int:
    """Receipt total in minor units of the receipt's own currency."""
    subtotal = sum(i.cost for i in items)
    item_discounts = sum(i.discount_total for i in items)
    after_discounts = subtotal - item_discounts - receipt.discount_total
    return after_discounts + service_charge_amount(receipt, subtotal)


def aggregate_payments(
        snapshot: SessionSnapshot,
) -> tuple[dict[str, int], list[AllocationWarning]]:
    """
    Returns ({participant_id: total_paid}, warnings).

    Every participant appears in the result, with 0 if they paid nothing.
    """
    paid: dict[str, int] = {p.id: 0 for p in snapshot.participants}
    warnings: list[AllocationWarning] = []

    for receipt in snapshot.receipts:
        if receipt.payer_id is None:
            warnings.append(AllocationWarning(
                WarningCode.RECEIPT_WITHOUT_PAYER,
                f"Receipt {receipt.name or receipt.id!r} has no payer; "
                f"its cost is shared but credited to nobody.",
                receipt_id=receipt.id,
            ))
            continue

        if receipt.payer_id not in paid:
            warnings.append(AllocationWarning(
                WarningCode.UNKNOWN_PAYER,
                f"Payer {receipt.payer_id!r} of receipt {receipt.name or receipt.id!r} "
                f"is not a participant; the payment was ignored.",
                receipt_id=receipt.id,
            ))
            continue

        rate = resolve_rate(receipt, snapshot.settlement_currency)
        total = receipt_total(receipt, snapshot.items_on(receipt.id))
        paid[receipt.payer_id] += convert(total, rate)

    return paid, warnings

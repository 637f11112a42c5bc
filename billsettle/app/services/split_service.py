"""
services/split_service.py — The settlement computation pipeline.

calculate_splits() is the engine's only entry point. It is a pure function
of the snapshot: same input, same SplitSummary, bit for bit. All working
state (rounding ledger, running totals) lives inside one call.

Pipeline, per receipt and then session-wide:
  1. currency_service        rate for the receipt (1 when absent)
  2. allocation_service      net share per item, decomposed into gross +
                             item-discount shares for the breakdown
  3. charge_service          receipt discounts and service charge,
                             weighted by gross share
  4. payment_service         total paid per participant
  5. reconciliation_service  total share, single session-wide correction,
                             balances
  6. settlement_service      greedy transfers

Layer rules:
  - No Flask imports. Returns model dataclasses; the route serialises them.
  - calculate_splits() never raises on well-typed input. Degradations are
    reported as AllocationWarning records on the summary.
  - validate_snapshot_references() is the strict gate the API runs first;
    it raises AppError (422) for dangling ids.
"""

from __future__ import annotations

from decimal import Decimal
from fractions import Fraction
from typing import Mapping

from billsettle.app.errors import AppError, ErrorCode, WarningCode
from billsettle.app.models.item import Item
from billsettle.app.models.receipt import Receipt
from billsettle.app.models.session import SessionSnapshot
from billsettle.app.models.summary import (
    AllocationWarning,
    BreakdownEntry,
    ParticipantSummary,
    RoundedAllocation,
    SplitSummary,
)
from billsettle.app.services.allocation_service import (
    RoundingLedger,
    allocate_item,
    decompose_share,
)
from billsettle.app.services.charge_service import (
    allocate_receipt_discount,
    allocate_service_charge,
    service_charge_amount,
)
from billsettle.app.services.currency_service import convert, missing_rate, resolve_rate
from billsettle.app.services.payment_service import aggregate_payments
from billsettle.app.services.reconciliation_service import reconcile
from billsettle.app.services.settlement_service import match_settlements


# ── Reference validation (API gate) ────────────────────────────────────────

def validate_snapshot_references(snapshot: SessionSnapshot) -> None:
    """
    Raises AppError (422) for the first id that points at nothing.

    UNKNOWN_RECEIPT     -- an item's receipt_id is not a receipt.
    UNKNOWN_PARTICIPANT -- a payer, assignee or assignment key is not a
                           participant.

    The engine tolerates all of these (see calculate_splits); the API
    rejects them because they almost always mean a stale client.
    """
    participant_ids = {p.id for p in snapshot.participants}
    receipt_ids = {r.id for r in snapshot.receipts}

    for receipt in snapshot.receipts:
        if receipt.payer_id is not None and receipt.payer_id not in participant_ids:
            raise AppError(
                ErrorCode.UNKNOWN_PARTICIPANT,
                f"Payer {receipt.payer_id!r} of receipt {receipt.id!r} is not a participant.",
                422,
                field="receipts",
            )

    for item in snapshot.items:
        if item.receipt_id not in receipt_ids:
            raise AppError(
                ErrorCode.UNKNOWN_RECEIPT,
                f"Item {item.id!r} references unknown receipt {item.receipt_id!r}.",
                422,
                field="items",
            )

        referenced = (
            list(item.assignees)
            + list(item.percentage_assignments)
            + list(item.exact_assignments)
        )
        for pid in referenced:
            if pid not in participant_ids:
                raise AppError(
                    ErrorCode.UNKNOWN_PARTICIPANT,
                    f"Item {item.id!r} is assigned to unknown participant {pid!r}.",
                    422,
                    field="items",
                )


# ── Private helpers ────────────────────────────────────────────────────────

def _label(receipt: Receipt) -> str:
    return receipt.name or receipt.id


def _known_assignees(
        item: Item,
        names: Mapping[str, str],
        warnings: list[AllocationWarning],
) -> list[str]:
    """
    Drops assignees who are not participants, warning once per id.

    Repeated ids collapse to their first occurrence, so an item is never
    divided by more heads than it has shares.
    """
    known = []
    for pid in dict.fromkeys(item.assignees):
        if pid in names:
            known.append(pid)
        else:
            warnings.append(AllocationWarning(
                WarningCode.UNKNOWN_ASSIGNEE,
                f"Assignee {pid!r} of item {item.name or item.id!r} is not a participant "
                f"and was dropped.",
                receipt_id=item.receipt_id,
                item_id=item.id,
            ))
    return known


def _allocate_items(
        receipt: Receipt,
        items: list[Item],
        rate: Decimal,
        summaries: dict[str, ParticipantSummary],
        ledger: RoundingLedger,
        names: Mapping[str, str],
        result: SplitSummary,
) -> dict[str, Fraction]:
    """
    Allocates every item on one receipt and records the item breakdown.

    Returns the per-participant gross-share weights for the receipt.
    Participants without items on the receipt are absent.
    """
    weights: dict[str, Fraction] = {}

    for item in items:
        assignees = _known_assignees(item, names, result.warnings)
        allocation = allocate_item(item, assignees, ledger, names)
        result.item_allocations.append(allocation)

        if not assignees:
            result.warnings.append(AllocationWarning(
                WarningCode.UNASSIGNED_ITEM,
                f"Item {item.name or item.id!r} has no assignees; its cost is not "
                f"shared by anyone.",
                receipt_id=receipt.id,
                item_id=item.id,
            ))
            continue

        if allocation.used_fallback:
            result.warnings.append(AllocationWarning(
                WarningCode.SPLIT_FALLBACK_TO_EQUAL,
                f"Item {item.name or item.id!r}: {allocation.requested_mode.value} "
                f"assignments do not add up; split equally instead.",
                receipt_id=receipt.id,
                item_id=item.id,
            ))

        if allocation.rounded:
            result.rounded_items.append(RoundedAllocation(
                receipt_id=receipt.id,
                receipt_name=receipt.name,
                description=item.name,
                total_amount=allocation.effective_cost,
                assignees_count=len(assignees),
                adjustments=allocation.adjustments,
                item_id=item.id,
            ))

        if allocation.effective_cost <= 0:
            continue

        for pid, net_share in allocation.shares.items():
            gross, discount_shares = decompose_share(item, net_share, allocation.effective_cost)
            breakdown = summaries[pid].breakdown

            breakdown.items.append(BreakdownEntry(
                description=item.name,
                amount=convert(gross, rate),
                receipt_id=receipt.id,
                item_id=item.id,
            ))
            for discount, share in zip(item.discounts, discount_shares):
                if share > 0:
                    breakdown.discounts.append(BreakdownEntry(
                        description=f"Discount on {item.name}",
                        amount=-convert(share, rate),
                        receipt_id=receipt.id,
                        item_id=item.id,
                        is_discount=True,
                    ))

            weights[pid] = weights.get(pid, Fraction(0)) + gross

    return weights


def _allocate_receipt_charges(
        receipt: Receipt,
        subtotal: int,
        weights: Mapping[str, Fraction],
        rate: Decimal,
        summaries: dict[str, ParticipantSummary],
        ledger: RoundingLedger,
        names: Mapping[str, str],
        result: SplitSummary,
) -> None:
    """Spreads receipt discounts and the service charge by gross share."""
    carriers = any(w > 0 for w in weights.values())

    for discount in receipt.discounts:
        result.total_discounts += convert(discount.amount, rate)
        distributed, adjustments = allocate_receipt_discount(discount, weights, ledger, names)

        if discount.amount > 0 and not carriers:
            result.warnings.append(AllocationWarning(
                WarningCode.UNDISTRIBUTED_CHARGE,
                f"Discount {discount.name!r} on receipt {_label(receipt)!r} has nobody "
                f"to apply to.",
                receipt_id=receipt.id,
            ))

        if adjustments:
            result.discount_rounding.append(RoundedAllocation(
                receipt_id=receipt.id,
                receipt_name=receipt.name,
                description=discount.name,
                total_amount=discount.amount,
                assignees_count=len(distributed),
                adjustments=tuple(adjustments),
            ))

        for pid, amount in distributed.items():
            if amount:
                summaries[pid].breakdown.discounts.append(BreakdownEntry(
                    description=discount.name,
                    amount=-convert(amount, rate),
                    receipt_id=receipt.id,
                    is_discount=True,
                ))

    charge = service_charge_amount(receipt, subtotal)
    result.total_service_charge += convert(charge, rate)
    distributed, adjustments = allocate_service_charge(charge, weights, ledger, names)

    if charge > 0 and not carriers:
        result.warnings.append(AllocationWarning(
            WarningCode.UNDISTRIBUTED_CHARGE,
            f"Service charge on receipt {_label(receipt)!r} has nobody to apply to.",
            receipt_id=receipt.id,
        ))

    description = f'Service charge on "{_label(receipt)}"'
    if adjustments:
        result.service_charge_rounding.append(RoundedAllocation(
            receipt_id=receipt.id,
            receipt_name=receipt.name,
            description=description,
            total_amount=charge,
            assignees_count=len(distributed),
            adjustments=tuple(adjustments),
        ))

    for pid, amount in distributed.items():
        if amount:
            share = convert(amount, rate)
            summary = summaries[pid]
            summary.breakdown.service_charges.append(BreakdownEntry(
                description=description,
                amount=share,
                receipt_id=receipt.id,
            ))
            summary.total_service_charge_share += share


# ── Public entry point ─────────────────────────────────────────────────────

def calculate_splits(snapshot: SessionSnapshot) -> SplitSummary:
    """
    Computes shares, payments, balances and settlements for a session.

    Guarantees:
      sum(total_share) == sum(total_paid) == result.total, exactly.
      Applying result.settlements zeroes every balance.

    Returns:
        A fresh SplitSummary. Empty (all zeros, no settlements) when the
        snapshot has no participants.
    """
    result = SplitSummary()
    if not snapshot.participants:
        return result

    names = {p.id: p.name for p in snapshot.participants}
    summaries = {p.id: ParticipantSummary(id=p.id, name=p.name) for p in snapshot.participants}
    ledger = RoundingLedger(names)
    currency = snapshot.settlement_currency

    receipt_ids = {r.id for r in snapshot.receipts}
    for item in snapshot.items:
        if item.receipt_id not in receipt_ids:
            result.warnings.append(AllocationWarning(
                WarningCode.ORPHAN_ITEM,
                f"Item {item.name or item.id!r} references unknown receipt "
                f"{item.receipt_id!r} and was ignored.",
                item_id=item.id,
            ))

    for receipt in snapshot.receipts:
        rate = resolve_rate(receipt, currency)
        result.exchange_rates[receipt.id] = rate
        if missing_rate(receipt, currency):
            result.warnings.append(AllocationWarning(
                WarningCode.MISSING_EXCHANGE_RATE,
                f"Receipt {_label(receipt)!r} is in {receipt.currency} but has no "
                f"exchange rate to {currency}; 1:1 was used.",
                receipt_id=receipt.id,
            ))

        items = snapshot.items_on(receipt.id)
        subtotal = sum(i.cost for i in items)
        result.total_item_cost += convert(subtotal, rate)
        result.total_discounts += convert(sum(i.discount_total for i in items), rate)

        weights = _allocate_items(receipt, items, rate, summaries, ledger, names, result)
        _allocate_receipt_charges(
            receipt, subtotal, weights, rate, summaries, ledger, names, result,
        )

    paid, payment_warnings = aggregate_payments(snapshot)
    result.warnings.extend(payment_warnings)
    for pid, amount in paid.items():
        summaries[pid].total_paid = amount

    ordered = list(summaries.values())
    result.total, result.session_correction = reconcile(ordered, ledger)
    result.participant_summaries = ordered
    result.settlements = match_settlements(ordered, snapshot.paid_settlements)

    result.rounding_occurred = bool(
        result.rounded_items
        or result.discount_rounding
        or result.service_charge_rounding
        or result.session_correction
    )
    return result

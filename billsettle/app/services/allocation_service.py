"""
services/allocation_service.py — Item share allocation and proportional rounding.

This file is the SINGLE SOURCE OF TRUTH for how an amount is divided into
whole minor units. Item splits, receipt discounts and service charges all go
through the same two primitives:

  distribute_remainder()      hands out leftover units one at a time
  distribute_proportionally() floor-divides by weight, then distributes the rest

Fairness across many allocations:
  Every unit handed out is charged to the receiving participant in a
  RoundingLedger. The next remainder goes first to whoever has the least
  accumulated debt (ties broken by participant id), so the same person is
  not favoured item after item.

The ledger is an explicit value created once per calculate_splits() call and
passed through every allocation. Nothing here holds module-level state.

Layer rules:
  - No Flask imports. Plain ints, Fractions and model dataclasses.
  - Weights are exact Fractions, so a proportional split that divides evenly
    never produces a remainder unit.
  - Never raises on well-typed input. Invalid percentage / exact assignments
    fall back to an equal split and say so via ItemAllocation.used_fallback.
"""

from __future__ import annotations

import logging
import math
from fractions import Fraction
from typing import Iterable, Mapping

from billsettle.app.models.item import Item, SplitMode
from billsettle.app.models.summary import ItemAllocation, RoundingAdjustment


logger = logging.getLogger(__name__)


class RoundingLedger:
    """Per-participant count of extra minor units already received."""

    def __init__(self, participant_ids: Iterable[str] = ()) -> None:
        self._debt: dict[str, int] = {pid: 0 for pid in participant_ids}

    def debt(self, participant_id: str) -> int:
        return self._debt.get(participant_id, 0)

    def charge(self, participant_id: str, units: int = 1) -> None:
        self._debt[participant_id] = self.debt(participant_id) + units

    def order(self, participant_ids: Iterable[str]) -> list[str]:
        """Least debt first; equal debt falls back to participant id."""
        return sorted(participant_ids, key=lambda pid: (self.debt(pid), pid))

    def snapshot(self) -> dict[str, int]:
        return dict(self._debt)


# ── Rounding primitives ────────────────────────────────────────────────────

def distribute_remainder(
        shares: dict[str, int],
        remainder: int,
        ledger: RoundingLedger,
        names: Mapping[str, str],
) -> list[RoundingAdjustment]:
    """
    Adds `remainder` to `shares` one unit at a time, in ledger order.

    The order is fixed before the first unit is handed out and cycled if
    the remainder exceeds the number of recipients. A negative remainder
    takes units away in the same order. Mutates `shares` and `ledger`.

    Returns one RoundingAdjustment per unit moved (empty when remainder == 0).
    """
    if remainder == 0 or not shares:
        return []

    order = ledger.order(shares)
    step = 1 if remainder > 0 else -1
    adjustments: list[RoundingAdjustment] = []

    for i in range(abs(remainder)):
        pid = order[i % len(order)]
        shares[pid] += step
        ledger.charge(pid, step)
        adjustments.append(RoundingAdjustment(pid, names.get(pid, pid), step))

    return adjustments


def distribute_proportionally(
        total: int,
        weights: Mapping[str, Fraction | int],
        ledger: RoundingLedger,
        names: Mapping[str, str],
) -> tuple[dict[str, int], list[RoundingAdjustment]]:
    """
    Splits `total` minor units across participants in proportion to `weights`.

    Only participants with a strictly positive weight take part. Each gets
    floor(total * weight / sum(weights)); the leftover is distributed with
    distribute_remainder(). The result always sums to `total` exactly.

    Returns ({participant_id: amount}, adjustments).
    """
    pids = sorted(pid for pid, w in weights.items() if w > 0)
    exact = {pid: Fraction(weights[pid]) for pid in pids}
    total_weight = sum(exact.values(), Fraction(0))

    if not pids or total_weight == 0 or total == 0:
        return {pid: 0 for pid in pids}, []

    distributed = {pid: math.floor(total * exact[pid] / total_weight) for pid in pids}
    remainder = total - sum(distributed.values())
    adjustments = distribute_remainder(distributed, remainder, ledger, names)
    return distributed, adjustments


# ── Item allocation ────────────────────────────────────────────────────────

def _equal_shares(
        effective_cost: int,
        assignees: list[str],
        ledger: RoundingLedger,
        names: Mapping[str, str],
) -> tuple[dict[str, int], list[RoundingAdjustment]]:
    base, remainder = divmod(effective_cost, len(assignees))
    shares = {pid: base for pid in assignees}
    adjustments = distribute_remainder(shares, remainder, ledger, names)
    return shares, adjustments


def _percentage_shares(
        item: Item,
        effective_cost: int,
        assignees: list[str],
        ledger: RoundingLedger,
        names: Mapping[str, str],
) -> tuple[dict[str, int], list[RoundingAdjustment]] | None:
    """None when the assignees' percents do not sum to exactly 100."""
    percents = {pid: item.percentage_assignments.get(pid, 0) for pid in assignees}
    if sum(percents.values()) != 100:
        return None

    shares = {pid: (effective_cost * pct) // 100 for pid, pct in percents.items()}
    remainder = effective_cost - sum(shares.values())
    adjustments = distribute_remainder(shares, remainder, ledger, names)
    return shares, adjustments


def _exact_shares(
        item: Item,
        effective_cost: int,
        assignees: list[str],
) -> dict[str, int] | None:
    """None when the assignees' exact amounts do not sum to the effective cost."""
    shares = {pid: item.exact_assignments.get(pid, 0) for pid in assignees}
    if sum(shares.values()) != effective_cost:
        return None
    return shares


def allocate_item(
        item: Item,
        assignees: list[str],
        ledger: RoundingLedger,
        names: Mapping[str, str],
) -> ItemAllocation:
    """
    Divides one item's effective cost among `assignees` under its split mode.

    Args:
        item:      The item being split.
        assignees: Participant ids to split across (already filtered to
                   known participants by the caller).
        ledger:    Rounding-debt accumulator for this calculation.
        names:     participant id -> display name, for audit records.

    Returns:
        ItemAllocation whose `shares` sum to item.effective_cost exactly,
        or are all zero when the effective cost is not positive, or are
        empty when there are no assignees.
    """
    effective_cost = item.effective_cost
    requested = item.split_mode

    if not assignees or effective_cost <= 0:
        return ItemAllocation(
            item_id=item.id,
            receipt_id=item.receipt_id,
            requested_mode=requested,
            applied_mode=requested,
            used_fallback=False,
            effective_cost=effective_cost,
            shares={pid: 0 for pid in assignees},
        )

    result = None
    if requested == SplitMode.PERCENTAGE:
        result = _percentage_shares(item, effective_cost, assignees, ledger, names)
    elif requested == SplitMode.EXACT:
        exact = _exact_shares(item, effective_cost, assignees)
        result = None if exact is None else (exact, [])

    used_fallback = requested != SplitMode.EQUAL and result is None
    if used_fallback:
        logger.debug(
            "Item %s: %s assignments do not add up, splitting equally.",
            item.id,
            requested.value,
        )

    if result is None:
        result = _equal_shares(effective_cost, assignees, ledger, names)
        applied = SplitMode.EQUAL
    else:
        applied = requested

    shares, adjustments = result
    if adjustments:
        logger.debug(
            "Item %s: distributed %d remainder unit(s) across %d assignee(s).",
            item.id,
            len(adjustments),
            len(assignees),
        )

    return ItemAllocation(
        item_id=item.id,
        receipt_id=item.receipt_id,
        requested_mode=requested,
        applied_mode=applied,
        used_fallback=used_fallback,
        effective_cost=effective_cost,
        shares=shares,
        adjustments=tuple(adjustments),
    )


def decompose_share(
        item: Item,
        net_share: int,
        effective_cost: int,
) -> tuple[Fraction, list[Fraction]]:
    """
    Splits a net share back into its gross (pre-discount) part and one
    share per item-level discount, in the same proportion.

    gross - sum(discount shares) == net_share exactly.
    The gross share is the weight used downstream for receipt-level
    discounts and service charges, so an item-discounted participant is
    not penalised twice.
    """
    proportion = Fraction(net_share, effective_cost)
    gross = item.cost * proportion
    discount_shares = [d.amount * proportion for d in item.discounts]
    return gross, discount_shares

"""
models/summary.py — Records produced by the engine.

Derived, never stored. Every SplitSummary is built from scratch by
split_service.calculate_splits() and handed to the caller.

Sign convention for BreakdownEntry.amount:
  items           → positive (gross, pre-discount share)
  discounts       → negative
  service charges → positive
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from billsettle.app.models.item import SplitMode
from billsettle.app.models.settlement import Settlement


@dataclass(frozen=True)
class BreakdownEntry:
    description: str
    amount: int
    receipt_id: str
    item_id: str | None = None
    is_discount: bool = False


@dataclass
class Breakdown:
    items: list[BreakdownEntry] = field(default_factory=list)
    discounts: list[BreakdownEntry] = field(default_factory=list)
    service_charges: list[BreakdownEntry] = field(default_factory=list)

    def total(self) -> int:
        return (
            sum(e.amount for e in self.items)
            + sum(e.amount for e in self.discounts)
            + sum(e.amount for e in self.service_charges)
        )


@dataclass
class ParticipantSummary:
    id: str
    name: str
    total_paid: int = 0
    total_share: int = 0
    total_service_charge_share: int = 0
    balance: int = 0
    breakdown: Breakdown = field(default_factory=Breakdown)


@dataclass(frozen=True)
class RoundingAdjustment:
    """One remainder unit handed to a participant (+1 or -1)."""
    participant_id: str
    participant_name: str
    amount: int


@dataclass(frozen=True)
class ItemAllocation:
    """
    How one item's effective cost was divided.

    `used_fallback` is True when a percentage or exact split was requested
    but its assignments did not add up, so an equal split was applied instead.
    """
    item_id: str
    receipt_id: str
    requested_mode: SplitMode
    applied_mode: SplitMode
    used_fallback: bool
    effective_cost: int
    shares: dict[str, int]
    adjustments: tuple[RoundingAdjustment, ...] = ()

    @property
    def rounded(self) -> bool:
        return bool(self.adjustments)


@dataclass(frozen=True)
class RoundedAllocation:
    """Audit record for an item, discount or service charge that needed remainder units."""
    receipt_id: str
    receipt_name: str
    description: str
    total_amount: int
    assignees_count: int
    adjustments: tuple[RoundingAdjustment, ...]
    item_id: str | None = None


@dataclass(frozen=True)
class SessionCorrection:
    participant_id: str
    participant_name: str
    amount: int


@dataclass(frozen=True)
class AllocationWarning:
    code: str
    message: str
    receipt_id: str | None = None
    item_id: str | None = None

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        if self.receipt_id is not None:
            payload["receipt_id"] = self.receipt_id
        if self.item_id is not None:
            payload["item_id"] = self.item_id
        return payload


@dataclass
class SplitSummary:
    participant_summaries: list[ParticipantSummary] = field(default_factory=list)
    settlements: list[Settlement] = field(default_factory=list)
    total: int = 0
    total_item_cost: int = 0
    total_discounts: int = 0
    total_service_charge: int = 0
    rounding_occurred: bool = False
    rounded_items: list[RoundedAllocation] = field(default_factory=list)
    discount_rounding: list[RoundedAllocation] = field(default_factory=list)
    service_charge_rounding: list[RoundedAllocation] = field(default_factory=list)
    session_correction: SessionCorrection | None = None
    item_allocations: list[ItemAllocation] = field(default_factory=list)
    exchange_rates: dict[str, Decimal] = field(default_factory=dict)
    warnings: list[AllocationWarning] = field(default_factory=list)

    def summary_for(self, participant_id: str) -> ParticipantSummary | None:
        return next(
            (s for s in self.participant_summaries if s.id == participant_id),
            None,
        )

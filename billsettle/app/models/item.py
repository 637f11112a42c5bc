"""
models/item.py — Line item record and split-mode enum.

No business logic beyond derived read-only properties.

Key design points:
  - `cost` is the original, pre-discount cost for all units, in minor units.
  - `effective_cost` = cost − item-level discounts. It may be zero or negative
    while a receipt is being edited; the allocator treats <= 0 as nothing to
    allocate.
  - `percentage_assignments` are integer percents; `exact_assignments` are
    minor units. Both are consulted only for their split mode.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Mapping

from billsettle.app.models.receipt import Discount


class SplitMode(str, enum.Enum):
    EQUAL      = "equal"
    PERCENTAGE = "percentage"
    EXACT      = "exact"


@dataclass(frozen=True)
class Item:
    id: str
    receipt_id: str
    cost: int
    name: str = ""
    quantity: int = 1
    unit_cost: int | None = None
    discounts: tuple[Discount, ...] = ()
    assignees: tuple[str, ...] = ()
    split_mode: SplitMode = SplitMode.EQUAL
    percentage_assignments: Mapping[str, int] = field(default_factory=dict)
    exact_assignments: Mapping[str, int] = field(default_factory=dict)

    @property
    def discount_total(self) -> int:
        return sum(d.amount for d in self.discounts)

    @property
    def effective_cost(self) -> int:
        return self.cost - self.discount_total

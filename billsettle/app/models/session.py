"""
models/session.py — The session snapshot the engine consumes.

Rebuilt fresh from caller-supplied data on every invocation. The engine owns
no persistent state and never mutates a snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from billsettle.app.models.item import Item
from billsettle.app.models.participant import Participant
from billsettle.app.models.receipt import Receipt


@dataclass(frozen=True)
class SessionSnapshot:
    participants: tuple[Participant, ...] = ()
    receipts: tuple[Receipt, ...] = ()
    items: tuple[Item, ...] = ()
    settlement_currency: str = "USD"
    # settlement id -> already paid, as tracked by the client
    paid_settlements: Mapping[str, bool] = field(default_factory=dict)

    def items_on(self, receipt_id: str) -> list[Item]:
        """Items belonging to `receipt_id`, in snapshot order."""
        return [i for i in self.items if i.receipt_id == receipt_id]

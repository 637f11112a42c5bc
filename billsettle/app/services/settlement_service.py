"""
services/settlement_service.py — Greedy settlement matching.

Repeatedly matches the largest debtor with the largest creditor until one
side runs out. For N participants this produces at most N-1 transfers. It
is simple and deterministic but not proven to be the global minimum number
of transfers for every balance distribution.

Layer rules:
  - No Flask imports.
  - Reads balances from ParticipantSummary objects; never modifies them.
"""

from __future__ import annotations

from typing import Mapping

from billsettle.app.models.settlement import Settlement
from billsettle.app.models.summary import ParticipantSummary


def settlement_id(from_id: str, to_id: str) -> str:
    return f"{from_id}_{to_id}"


def match_settlements(
        summaries: list[ParticipantSummary],
        paid_settlements: Mapping[str, bool] | None = None,
) -> list[Settlement]:
    """
    Args:
        summaries:        Reconciled participant summaries. Balances MUST
                          sum to zero (reconciliation_service guarantees it).
        paid_settlements: settlement id -> paid flag tracked by the client.
                          Copied onto matching settlements.

    Returns:
        Settlements in the order they were matched. Empty when every
        balance is already zero.
    """
    paid_settlements = paid_settlements or {}

    # sorted() is stable, so equal balances keep participant order.
    debtors = sorted(
        [[s.id, s.name, -s.balance] for s in summaries if s.balance < 0],
        key=lambda d: d[2],
        reverse=True,
    )
    creditors = sorted(
        [[s.id, s.name, s.balance] for s in summaries if s.balance > 0],
        key=lambda c: c[2],
        reverse=True,
    )

    settlements: list[Settlement] = []
    i = j = 0

    while i < len(debtors) and j < len(creditors):
        debtor, creditor = debtors[i], creditors[j]
        amount = min(debtor[2], creditor[2])

        sid = settlement_id(debtor[0], creditor[0])
        settlements.append(Settlement(
            id=sid,
            from_id=debtor[0],
            from_name=debtor[1],
            to_id=creditor[0],
            to_name=creditor[1],
            amount=amount,
            paid=bool(paid_settlements.get(sid, False)),
        ))

        debtor[2] -= amount
        creditor[2] -= amount

        if debtor[2] == 0:
            i += 1
        if creditor[2] == 0:
            j += 1

    return settlements

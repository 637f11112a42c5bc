"""
services/reconciliation_service.py — Session-wide share reconciliation.

Guarantees the session invariant:

    sum(total_share) == sum(total_paid) == grand total

exactly, in minor units. Each participant's share is the sum of their
breakdown. Whatever rounding drift remains between that and the grand total
is handed, in one piece, to a single participant: the one with the least
rounding debt (then lowest id) among those who paid something, or among
everybody if nobody paid.

After reconciliation balance = total_paid − total_share for everyone, and
balances sum to exactly zero.

Layer rules:
  - No Flask imports.
  - Mutates only the ParticipantSummary objects it is given, which are
    owned by the current calculation.
"""

from __future__ import annotations

import logging

from billsettle.app.errors import AppError, ErrorCode
from billsettle.app.models.summary import ParticipantSummary, SessionCorrection
from billsettle.app.services.allocation_service import RoundingLedger


logger = logging.getLogger(__name__)


def _pick_correction_recipient(
        summaries: list[ParticipantSummary],
        ledger: RoundingLedger,
) -> ParticipantSummary:
    payers = [s for s in summaries if s.total_paid > 0]
    candidates = payers or summaries
    return min(candidates, key=lambda s: (ledger.debt(s.id), s.id))


def reconcile(
        summaries: list[ParticipantSummary],
        ledger: RoundingLedger,
) -> tuple[int, SessionCorrection | None]:
    """
    Finalises total_share and balance on every summary.

    Returns (grand_total, correction). `correction` is None when the
    breakdowns already added up to the grand total.

    Raises:
        AppError(INTERNAL_ERROR, 500) -- balances do not sum to zero after
                                         the correction. This is a bug.
    """
    for summary in summaries:
        summary.total_share = summary.breakdown.total()

    grand_total = sum(s.total_paid for s in summaries)
    difference = grand_total - sum(s.total_share for s in summaries)

    correction = None
    if difference != 0 and summaries:
        recipient = _pick_correction_recipient(summaries, ledger)
        recipient.total_share += difference
        correction = SessionCorrection(recipient.id, recipient.name, difference)
        logger.info(
            "Session-wide correction of %d applied to participant %s.",
            difference,
            recipient.id,
        )

    for summary in summaries:
        summary.balance = summary.total_paid - summary.total_share

    balance_sum = sum(s.balance for s in summaries)
    if balance_sum != 0:
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Balance integrity check failed: sum was {balance_sum} (expected 0). "
            f"This is a bug; please report it.",
            500,
        )

    return grand_total, correction

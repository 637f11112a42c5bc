"""
routes/splits.py — Split calculation route handler.

Layer rules:
  - Parse, validate, call the service, return envelope.
  - No business logic. The _serialize_* helpers are pure data-shaping.
  - Money is returned as JSON integers in minor units. Exchange rates are
    Decimal and leave as strings through the app's JSON provider.

Endpoints (base url_prefix=/api/v1/splits):
  POST /splits/calculate  → 200  full SplitSummary + engine warnings
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from billsettle.app.errors import AppError, ErrorCode
from billsettle.app.models.settlement import Settlement
from billsettle.app.models.summary import (
    BreakdownEntry,
    ItemAllocation,
    ParticipantSummary,
    RoundedAllocation,
    RoundingAdjustment,
    SplitSummary,
)
from billsettle.app.schemas.session_schema import SessionSnapshotSchema
from billsettle.app.services import split_service

splits_bp = Blueprint("splits", __name__)


# ── Serialization helpers ──────────────────────────────────────────────────

def _serialize_entry(entry: BreakdownEntry) -> dict:
    return {
        "description": entry.description,
        "amount": entry.amount,
        "receipt_id": entry.receipt_id,
        "item_id": entry.item_id,
        "is_discount": entry.is_discount,
    }


def _serialize_participant(summary: ParticipantSummary) -> dict:
    return {
        "id": summary.id,
        "name": summary.name,
        "total_paid": summary.total_paid,
        "total_share": summary.total_share,
        "total_service_charge_share": summary.total_service_charge_share,
        "balance": summary.balance,
        "breakdown": {
            "items": [_serialize_entry(e) for e in summary.breakdown.items],
            "discounts": [_serialize_entry(e) for e in summary.breakdown.discounts],
            "service_charges": [_serialize_entry(e) for e in summary.breakdown.service_charges],
        },
    }


def _serialize_settlement(s: Settlement) -> dict:
    return {
        "id": s.id,
        "from": s.from_id,
        "from_name": s.from_name,
        "to": s.to_id,
        "to_name": s.to_name,
        "amount": s.amount,
        "paid": s.paid,
    }


def _serialize_adjustment(a: RoundingAdjustment) -> dict:
    return {
        "participant_id": a.participant_id,
        "participant_name": a.participant_name,
        "amount": a.amount,
    }


def _serialize_rounded(r: RoundedAllocation) -> dict:
    return {
        "receipt_id": r.receipt_id,
        "receipt_name": r.receipt_name,
        "item_id": r.item_id,
        "description": r.description,
        "total_amount": r.total_amount,
        "assignees_count": r.assignees_count,
        "adjustments": [_serialize_adjustment(a) for a in r.adjustments],
    }


def _serialize_allocation(a: ItemAllocation) -> dict:
    return {
        "item_id": a.item_id,
        "receipt_id": a.receipt_id,
        "requested_mode": a.requested_mode.value,
        "applied_mode": a.applied_mode.value,
        "used_fallback": a.used_fallback,
        "effective_cost": a.effective_cost,
        "shares": dict(a.shares),
        "rounded": a.rounded,
    }


def _serialize_summary(summary: SplitSummary) -> dict:
    correction = summary.session_correction
    return {
        "participant_summaries": [_serialize_participant(s) for s in summary.participant_summaries],
        "settlements": [_serialize_settlement(s) for s in summary.settlements],
        "total": summary.total,
        "total_item_cost": summary.total_item_cost,
        "total_discounts": summary.total_discounts,
        "total_service_charge": summary.total_service_charge,
        "exchange_rates": summary.exchange_rates,
        "item_allocations": [_serialize_allocation(a) for a in summary.item_allocations],
        "rounding": {
            "occurred": summary.rounding_occurred,
            "items": [_serialize_rounded(r) for r in summary.rounded_items],
            "discounts": [_serialize_rounded(r) for r in summary.discount_rounding],
            "service_charges": [_serialize_rounded(r) for r in summary.service_charge_rounding],
            "session_correction": None if correction is None else {
                "participant_id": correction.participant_id,
                "participant_name": correction.participant_name,
                "amount": correction.amount,
            },
        },
    }


# ── Route handlers ─────────────────────────────────────────────────────────

@splits_bp.route("/calculate", methods=["POST"])
def calculate():
    """
    POST /splits/calculate — Compute the settlement summary for a session.

    The body is the full session snapshot. When settlement_currency is
    omitted, the configured SETTLEMENT_CURRENCY is used.

    Reference problems (unknown receipt / participant ids) are rejected with
    422 before computing. Everything the engine tolerates is returned as a
    warning alongside the 200.
    """
    payload = request.get_json(force=True)
    if not isinstance(payload, dict):
        raise AppError(ErrorCode.BAD_REQUEST, "Request body must be a JSON object.", 400)
    payload.setdefault("settlement_currency", current_app.config["SETTLEMENT_CURRENCY"])

    snapshot = SessionSnapshotSchema().load(payload)
    split_service.validate_snapshot_references(snapshot)
    summary = split_service.calculate_splits(snapshot)

    return jsonify({
        "data": _serialize_summary(summary),
        "warnings": [w.to_dict() for w in summary.warnings],
    }), 200

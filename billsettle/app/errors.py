"""
errors.py — AppError base class, error code registry and warning code registry.

Every error returned by the BillSettle API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - The computation engine itself never raises on well-typed input; it reports
    degradations through warnings (WarningCode below). AppError is reserved
    for request validation and broken internal invariants.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD                = "MISSING_FIELD"
    INVALID_FIELD                = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION     = "INVALID_AMOUNT_PRECISION"
    INVALID_SPLIT_MODE           = "INVALID_SPLIT_MODE"
    INVALID_SERVICE_CHARGE_TYPE  = "INVALID_SERVICE_CHARGE_TYPE"
    DUPLICATE_PARTICIPANT        = "DUPLICATE_PARTICIPANT"
    DUPLICATE_RECEIPT            = "DUPLICATE_RECEIPT"
    DUPLICATE_ITEM               = "DUPLICATE_ITEM"
    DUPLICATE_ASSIGNEE           = "DUPLICATE_ASSIGNEE"

    # ── Reference Errors (422) ─────────────────────────────────────────────
    # Well-formed snapshot whose ids point at nothing.
    UNKNOWN_RECEIPT              = "UNKNOWN_RECEIPT"
    UNKNOWN_PARTICIPANT          = "UNKNOWN_PARTICIPANT"

    # ── Transport Errors (400 / 404 / 405 / 413) ───────────────────────────
    BAD_REQUEST                  = "BAD_REQUEST"
    NOT_FOUND                    = "NOT_FOUND"
    METHOD_NOT_ALLOWED           = "METHOD_NOT_ALLOWED"
    PAYLOAD_TOO_LARGE            = "PAYLOAD_TOO_LARGE"

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR               = "INTERNAL_ERROR"


# ── Warning Code Registry ──────────────────────────────────────────────────
#
# Warnings are returned alongside a 2xx response in the `warnings` array.
# They do not block the request; the engine has already degraded gracefully.
# ──────────────────────────────────────────────────────────────────────────

class WarningCode:

    # Percentage / exact assignments did not add up; item was split equally.
    SPLIT_FALLBACK_TO_EQUAL = "SPLIT_FALLBACK_TO_EQUAL"

    # Receipt currency differs from the settlement currency and carries no rate.
    # A 1:1 rate was used.
    MISSING_EXCHANGE_RATE   = "MISSING_EXCHANGE_RATE"

    # Item has no assignees; its cost is paid but carried by nobody until the
    # session-wide correction absorbs it.
    UNASSIGNED_ITEM         = "UNASSIGNED_ITEM"

    # Item references a receipt that is not in the snapshot. Ignored.
    ORPHAN_ITEM             = "ORPHAN_ITEM"

    # Item assignee (or assignment key) is not a participant. Dropped.
    UNKNOWN_ASSIGNEE        = "UNKNOWN_ASSIGNEE"

    # Receipt payer is not a participant. Receipt contributes to nobody's totalPaid.
    UNKNOWN_PAYER           = "UNKNOWN_PAYER"

    # Receipt has no payer. Still obligates its assignees.
    RECEIPT_WITHOUT_PAYER   = "RECEIPT_WITHOUT_PAYER"

    # Receipt-level discount or service charge with no weighted participant.
    UNDISTRIBUTED_CHARGE    = "UNDISTRIBUTED_CHARGE"

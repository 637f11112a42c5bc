"""
schemas/session_schema.py — Marshmallow schemas for the session snapshot.

Validation responsibility:
  - This file (400):
      - Field types, required fields, enum values
      - Money is a strict int in minor units; never float (INVALID_FIELD)
      - Assignment values: percentages 0..100, exact amounts >= 0
      - Fixed service charges must be whole minor units (INVALID_AMOUNT_PRECISION)
      - Duplicate participant / receipt / item ids and duplicate assignees
      - Item cost derived from quantity × unit_cost when cost is absent
  - services/split_service.py (422):
      - UNKNOWN_RECEIPT, UNKNOWN_PARTICIPANT — cross-reference checks

Every schema turns its payload into the frozen model dataclass via @post_load,
so SessionSnapshotSchema().load(payload) returns a ready SessionSnapshot.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import (
    Schema,
    ValidationError,
    fields,
    post_load,
    validate,
    validates_schema,
)

from billsettle.app.errors import ErrorCode
from billsettle.app.models.item import Item, SplitMode
from billsettle.app.models.participant import Participant
from billsettle.app.models.receipt import Discount, Receipt, ServiceCharge, ServiceChargeType
from billsettle.app.models.session import SessionSnapshot


def _validate_non_empty_after_trim(value: str) -> None:
    """
    Raises ValidationError if the string is blank or contains only whitespace.
    validate.Length(min=1) alone would accept "   ".
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def _normalise_currency(value: str) -> str:
    return value.strip().upper()


def _first_duplicate(values: list[str]) -> str | None:
    seen = set()
    for value in values:
        if value in seen:
            return value
        seen.add(value)
    return None


def _id_field(**kwargs) -> fields.Str:
    return fields.Str(
        validate=[validate.Length(min=1, max=128), _validate_non_empty_after_trim],
        **kwargs,
    )


def _money_field(**kwargs) -> fields.Int:
    """Minor units: strict ints only, so 12.5 or "12" never sneak in as money."""
    return fields.Int(strict=True, **kwargs)


class ParticipantSchema(Schema):

    id = _id_field(required=True)
    name = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=255), _validate_non_empty_after_trim],
    )

    @post_load
    def make_participant(self, data: dict, **kwargs) -> Participant:
        return Participant(**data)


class DiscountSchema(Schema):

    id = _id_field(required=True)
    name = fields.Str(load_default="Discount")
    amount = _money_field(
        required=True,
        validate=validate.Range(min=0, error="Discount amount must not be negative."),
    )

    @post_load
    def make_discount(self, data: dict, **kwargs) -> Discount:
        return Discount(**data)


class ServiceChargeSchema(Schema):

    type = fields.Enum(
        ServiceChargeType,
        load_default=ServiceChargeType.FIXED,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_SERVICE_CHARGE_TYPE},
    )
    value = fields.Decimal(
        load_default=Decimal("0"),
        validate=validate.Range(min=0, error="Service charge must not be negative."),
    )

    @validates_schema
    def validate_fixed_is_whole(self, data: dict, **kwargs) -> None:
        """A fixed charge is an amount in minor units, so it must be integral."""
        value = data.get("value", Decimal("0"))
        if data.get("type") == ServiceChargeType.FIXED and value != value.to_integral_value():
            raise ValidationError({"value": [ErrorCode.INVALID_AMOUNT_PRECISION]})

    @post_load
    def make_service_charge(self, data: dict, **kwargs) -> ServiceCharge:
        return ServiceCharge(**data)


class ReceiptSchema(Schema):
    """
    One receipt. `currency` defaults to the snapshot's settlement currency
    (filled in by SessionSnapshotSchema before the receipt is built).
    """

    id = _id_field(required=True)
    name = fields.Str(load_default="")
    payer_id = fields.Str(load_default=None, allow_none=True)
    currency = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(min=1, max=8),
    )
    exchange_rate = fields.Decimal(
        load_default=None,
        allow_none=True,
        validate=validate.Range(min=0, min_inclusive=False, error="exchange_rate must be positive."),
    )
    discounts = fields.List(fields.Nested(DiscountSchema), load_default=list)
    service_charge = fields.Nested(ServiceChargeSchema, load_default=None, allow_none=True)


class ItemSchema(Schema):

    id = _id_field(required=True)
    receipt_id = _id_field(required=True)
    name = fields.Str(load_default="")
    quantity = fields.Int(
        strict=True,
        load_default=1,
        validate=validate.Range(min=1, error="quantity must be at least 1."),
    )
    unit_cost = _money_field(load_default=None, allow_none=True)
    cost = _money_field(load_default=None, allow_none=True)
    discounts = fields.List(fields.Nested(DiscountSchema), load_default=list)
    assignees = fields.List(fields.Str(), load_default=list)
    split_mode = fields.Enum(
        SplitMode,
        load_default=SplitMode.EQUAL,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_SPLIT_MODE},
    )
    percentage_assignments = fields.Dict(
        keys=fields.Str(),
        values=fields.Int(
            strict=True,
            validate=validate.Range(min=0, max=100, error="Percentages must be between 0 and 100."),
        ),
        load_default=dict,
    )
    exact_assignments = fields.Dict(
        keys=fields.Str(),
        values=_money_field(
            validate=validate.Range(min=0, error="Exact amounts must not be negative."),
        ),
        load_default=dict,
    )

    @validates_schema
    def validate_item_coherence(self, data: dict, **kwargs) -> None:
        """
        1. Either cost or unit_cost must be present.
        2. DUPLICATE_ASSIGNEE: the same participant id appears twice.
        """
        if data.get("cost") is None and data.get("unit_cost") is None:
            raise ValidationError(
                {"cost": ["Missing data for required field."]}
            )

        if _first_duplicate(data.get("assignees", [])) is not None:
            raise ValidationError({"assignees": [ErrorCode.DUPLICATE_ASSIGNEE]})

    @post_load
    def make_item(self, data: dict, **kwargs) -> Item:
        if data.get("cost") is None:
            data["cost"] = data["quantity"] * data["unit_cost"]
        data["discounts"] = tuple(data["discounts"])
        data["assignees"] = tuple(data["assignees"])
        return Item(**data)


class SessionSnapshotSchema(Schema):
    """
    POST /splits/calculate request body.

    settlement_currency is required here; the route fills it from config
    (SETTLEMENT_CURRENCY) when the client leaves it out.
    """

    settlement_currency = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=8),
    )
    participants = fields.List(fields.Nested(ParticipantSchema), load_default=list)
    receipts = fields.List(fields.Nested(ReceiptSchema), load_default=list)
    items = fields.List(fields.Nested(ItemSchema), load_default=list)
    paid_settlements = fields.Dict(
        keys=fields.Str(),
        values=fields.Bool(),
        load_default=dict,
    )

    @validates_schema
    def validate_unique_ids(self, data: dict, **kwargs) -> None:
        """Ids are identities; a repeated id would silently merge two records."""
        checks = (
            ("participants", [p.id for p in data.get("participants", [])],
             ErrorCode.DUPLICATE_PARTICIPANT),
            ("receipts", [r["id"] for r in data.get("receipts", [])],
             ErrorCode.DUPLICATE_RECEIPT),
            ("items", [i.id for i in data.get("items", [])],
             ErrorCode.DUPLICATE_ITEM),
        )
        for field_name, ids, code in checks:
            if _first_duplicate(ids) is not None:
                raise ValidationError({field_name: [code]})

    @post_load
    def make_snapshot(self, data: dict, **kwargs) -> SessionSnapshot:
        currency = _normalise_currency(data["settlement_currency"])
        receipts = tuple(
            Receipt(
                id=r["id"],
                name=r["name"],
                payer_id=r["payer_id"] or None,
                currency=_normalise_currency(r["currency"] or currency),
                exchange_rate=r["exchange_rate"],
                discounts=tuple(r["discounts"]),
                service_charge=r["service_charge"] or ServiceCharge(),
            )
            for r in data["receipts"]
        )
        return SessionSnapshot(
            participants=tuple(data["participants"]),
            receipts=receipts,
            items=tuple(data["items"]),
            settlement_currency=currency,
            paid_settlements=data["paid_settlements"],
        )

"""
tests/unit/test_session_schema.py — Unit tests for the session snapshot schemas.

What this file proves:
  - A valid payload loads straight into frozen model dataclasses
  - Defaults: receipt currency = settlement currency, split mode = equal,
    service charge = fixed 0, quantity = 1
  - Money fields are strict ints; fractions and strings are rejected
  - Percentage assignments stay within 0..100 and exact amounts are non-negative
  - Enum, precision and duplicate errors carry the registered error codes
  - Cross-reference rules (unknown receipt / participant) are NOT tested
    here; they belong to split_service

Unit test constraints:
  - No Flask application context. Schemas inherit from marshmallow.Schema
    directly, so they can be instantiated anywhere.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from marshmallow import ValidationError

from billsettle.app.errors import ErrorCode
from billsettle.app.models.item import Item, SplitMode
from billsettle.app.models.receipt import ServiceChargeType
from billsettle.app.models.session import SessionSnapshot
from billsettle.app.schemas.session_schema import (
    DiscountSchema,
    ItemSchema,
    ServiceChargeSchema,
    SessionSnapshotSchema,
)


def _payload(**overrides) -> dict:
    payload = {
        "settlement_currency": "usd",
        "participants": [
            {"id": "p1", "name": "Alice"},
            {"id": "p2", "name": "Bob"},
        ],
        "receipts": [
            {"id": "r1", "name": "Dinner", "payer_id": "p1"},
        ],
        "items": [
            {"id": "i1", "receipt_id": "r1", "name": "Pizza", "cost": 2000,
             "assignees": ["p1", "p2"]},
        ],
    }
    payload.update(overrides)
    return payload


def _load(payload: dict) -> SessionSnapshot:
    return SessionSnapshotSchema().load(payload)


# ═══════════════════════════════════════════════════════════════════════════
# SessionSnapshotSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestSessionSnapshotSchema:

    def test_valid_payload_builds_snapshot(self):
        snapshot = _load(_payload())

        assert isinstance(snapshot, SessionSnapshot)
        assert snapshot.settlement_currency == "USD"
        assert [p.name for p in snapshot.participants] == ["Alice", "Bob"]
        assert isinstance(snapshot.items[0], Item)
        assert snapshot.items[0].assignees == ("p1", "p2")
        assert snapshot.paid_settlements == {}

    def test_receipt_defaults(self):
        receipt = _load(_payload()).receipts[0]

        assert receipt.currency == "USD"
        assert receipt.exchange_rate is None
        assert receipt.discounts == ()
        assert receipt.service_charge.type == ServiceChargeType.FIXED
        assert receipt.service_charge.value == Decimal("0")

    def test_receipt_currency_is_upper_cased(self):
        snapshot = _load(_payload(receipts=[
            {"id": "r1", "payer_id": "p1", "currency": " eur ", "exchange_rate": "1.0850"},
        ]))

        receipt = snapshot.receipts[0]
        assert receipt.currency == "EUR"
        assert receipt.exchange_rate == Decimal("1.0850")

    def test_empty_payer_means_no_payer(self):
        snapshot = _load(_payload(receipts=[{"id": "r1", "payer_id": ""}]))
        assert snapshot.receipts[0].payer_id is None

    def test_missing_settlement_currency_raises(self):
        payload = _payload()
        del payload["settlement_currency"]

        with pytest.raises(ValidationError) as exc:
            _load(payload)
        assert "settlement_currency" in exc.value.messages

    def test_paid_settlements_loaded(self):
        snapshot = _load(_payload(paid_settlements={"p2_p1": True}))
        assert snapshot.paid_settlements == {"p2_p1": True}

    @pytest.mark.parametrize("collection, entries, code", [
        ("participants", [{"id": "p1", "name": "A"}, {"id": "p1", "name": "B"}],
         ErrorCode.DUPLICATE_PARTICIPANT),
        ("receipts", [{"id": "r1"}, {"id": "r1"}],
         ErrorCode.DUPLICATE_RECEIPT),
        ("items", [{"id": "i1", "receipt_id": "r1", "cost": 1},
                   {"id": "i1", "receipt_id": "r1", "cost": 2}],
         ErrorCode.DUPLICATE_ITEM),
    ])
    def test_duplicate_ids_raise(self, collection, entries, code):
        with pytest.raises(ValidationError) as exc:
            _load(_payload(**{collection: entries}))
        assert exc.value.messages[collection] == [code]

    def test_negative_exchange_rate_raises(self):
        with pytest.raises(ValidationError) as exc:
            _load(_payload(receipts=[{"id": "r1", "currency": "EUR", "exchange_rate": "-1"}]))
        assert "exchange_rate" in exc.value.messages["receipts"][0]

    def test_blank_participant_name_raises(self):
        with pytest.raises(ValidationError) as exc:
            _load(_payload(participants=[{"id": "p1", "name": "   "}]))
        assert "name" in exc.value.messages["participants"][0]


# ═══════════════════════════════════════════════════════════════════════════
# ItemSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestItemSchema:

    def _load(self, data: dict) -> Item:
        return ItemSchema().load(data)

    def test_defaults(self):
        item = self._load({"id": "i1", "receipt_id": "r1", "cost": 500})

        assert item.split_mode == SplitMode.EQUAL
        assert item.quantity == 1
        assert item.assignees == ()
        assert item.discounts == ()

    def test_cost_derived_from_quantity_and_unit_cost(self):
        item = self._load({"id": "i1", "receipt_id": "r1", "quantity": 3, "unit_cost": 450})
        assert item.cost == 1350

    def test_explicit_cost_wins_over_unit_cost(self):
        item = self._load({"id": "i1", "receipt_id": "r1", "quantity": 3,
                           "unit_cost": 450, "cost": 1200})
        assert item.cost == 1200

    def test_missing_cost_and_unit_cost_raises(self):
        with pytest.raises(ValidationError) as exc:
            self._load({"id": "i1", "receipt_id": "r1"})
        assert "cost" in exc.value.messages

    @pytest.mark.parametrize("bad_cost", [12.5, "1200"])
    def test_cost_must_be_int(self, bad_cost):
        with pytest.raises(ValidationError) as exc:
            self._load({"id": "i1", "receipt_id": "r1", "cost": bad_cost})
        assert "cost" in exc.value.messages

    def test_unknown_split_mode_raises_with_code(self):
        with pytest.raises(ValidationError) as exc:
            self._load({"id": "i1", "receipt_id": "r1", "cost": 1, "split_mode": "shares"})
        assert exc.value.messages["split_mode"] == [ErrorCode.INVALID_SPLIT_MODE]

    def test_percentage_assignments_loaded(self):
        item = self._load({
            "id": "i1", "receipt_id": "r1", "cost": 3000,
            "assignees": ["p1", "p2"],
            "split_mode": "percentage",
            "percentage_assignments": {"p1": 70, "p2": 30},
        })
        assert item.split_mode == SplitMode.PERCENTAGE
        assert item.percentage_assignments == {"p1": 70, "p2": 30}

    @pytest.mark.parametrize("field, values", [
        ("percentage_assignments", {"p1": 150, "p2": -50}),
        ("percentage_assignments", {"p1": 101}),
        ("exact_assignments", {"p1": 1500, "p2": -500}),
    ])
    def test_out_of_range_assignment_values_raise(self, field, values):
        with pytest.raises(ValidationError) as exc:
            self._load({"id": "i1", "receipt_id": "r1", "cost": 1000,
                        "assignees": ["p1", "p2"], field: values})
        assert field in exc.value.messages

    def test_duplicate_assignee_raises(self):
        with pytest.raises(ValidationError) as exc:
            self._load({"id": "i1", "receipt_id": "r1", "cost": 1, "assignees": ["p1", "p1"]})
        assert exc.value.messages["assignees"] == [ErrorCode.DUPLICATE_ASSIGNEE]

    def test_zero_quantity_raises(self):
        with pytest.raises(ValidationError) as exc:
            self._load({"id": "i1", "receipt_id": "r1", "quantity": 0, "unit_cost": 100})
        assert "quantity" in exc.value.messages


# ═══════════════════════════════════════════════════════════════════════════
# DiscountSchema / ServiceChargeSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestDiscountSchema:

    def test_valid_discount(self):
        discount = DiscountSchema().load({"id": "d1", "name": "Promo", "amount": 300})
        assert discount.amount == 300

    def test_negative_amount_raises(self):
        with pytest.raises(ValidationError) as exc:
            DiscountSchema().load({"id": "d1", "amount": -1})
        assert "amount" in exc.value.messages


class TestServiceChargeSchema:

    def test_percentage_accepts_fraction(self):
        charge = ServiceChargeSchema().load({"type": "percentage", "value": "12.5"})

        assert charge.type == ServiceChargeType.PERCENTAGE
        assert charge.value == Decimal("12.5")

    def test_fixed_fraction_raises_precision_code(self):
        with pytest.raises(ValidationError) as exc:
            ServiceChargeSchema().load({"type": "fixed", "value": "10.5"})
        assert exc.value.messages["value"] == [ErrorCode.INVALID_AMOUNT_PRECISION]

    def test_unknown_type_raises_with_code(self):
        with pytest.raises(ValidationError) as exc:
            ServiceChargeSchema().load({"type": "tip", "value": "1"})
        assert exc.value.messages["type"] == [ErrorCode.INVALID_SERVICE_CHARGE_TYPE]

    def test_negative_value_raises(self):
        with pytest.raises(ValidationError) as exc:
            ServiceChargeSchema().load({"type": "fixed", "value": "-5"})
        assert "value" in exc.value.messages

"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session using create_app("testing").
  - The engine is stateless, so there is nothing to clean between tests;
    every request carries its own snapshot.

Helper functions (not fixtures) are provided for common operations:
  - participant(pid, name)     → participant dict
  - receipt(rid, payer, ...)   → receipt dict
  - item(iid, rid, cost, ...)  → item dict
  - snapshot(...)              → full request body
  - calculate(client, body)    → HTTP response

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import pytest

from billsettle.app import create_app


CALCULATE_URL = "/api/v1/splits/calculate"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """Creates the Flask application in 'testing' mode once for the entire test session."""
    return create_app("testing")


@pytest.fixture
def client(app):
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Payload helpers
# ═══════════════════════════════════════════════════════════════════════════

def participant(pid: str, name: str) -> dict:
    return {"id": pid, "name": name}


def receipt(rid: str, payer: str | None = "p1", **extra) -> dict:
    body = {"id": rid, "name": extra.pop("name", "Dinner"), "payer_id": payer}
    body.update(extra)
    return body


def item(iid: str, rid: str, cost: int, assignees=("p1", "p2"), **extra) -> dict:
    body = {
        "id": iid,
        "receipt_id": rid,
        "name": extra.pop("name", "Pizza"),
        "cost": cost,
        "assignees": list(assignees),
    }
    body.update(extra)
    return body


def snapshot(
    items: list[dict],
    receipts: list[dict] | None = None,
    participants: list[dict] | None = None,
    **extra,
) -> dict:
    body = {
        "participants": participants if participants is not None else [
            participant("p1", "Alice"),
            participant("p2", "Bob"),
        ],
        "receipts": receipts if receipts is not None else [receipt("r1")],
        "items": items,
    }
    body.update(extra)
    return body


def calculate(client, body):
    return client.post(CALCULATE_URL, json=body)

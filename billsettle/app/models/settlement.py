"""
models/settlement.py — A directed transfer produced by the settlement matcher.

Key design points:
  - `amount` is a positive int in minor units.
  - `id` is "<from_id>_<to_id>". The greedy matcher never emits the same
    pair twice, so the id is unique within one summary and stable across
    re-invocations on the same input (clients key `paid` flags on it).
  - from_id != to_id always: a participant is never both debtor and creditor.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Settlement:
    id: str
    from_id: str
    from_name: str
    to_id: str
    to_name: str
    amount: int
    paid: bool = False

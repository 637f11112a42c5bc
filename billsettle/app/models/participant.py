"""
models/participant.py — Participant record.

Identity is `id`. `name` is display-only; deterministic orderings inside the
engine always sort by `id`, never by `name`.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Participant:
    id: str
    name: str

"""
routes/health.py — Liveness probe.

Endpoints (base url_prefix=/api/v1):
  GET /health → 200
"""

from __future__ import annotations

from flask import Blueprint, jsonify

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    return jsonify({"data": {"status": "ok"}, "warnings": []}), 200

"""routes/health.py — Liveness probe with a database round-trip."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from hrdesk.app.extensions import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__)


@health_bp.route("", methods=["GET"])
def health():
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Health check database probe failed: %s", type(exc).__name__)
        return jsonify({"data": {"status": "degraded", "database": "unavailable"}}), 503
    return jsonify({"data": {"status": "ok", "database": "ok"}}), 200

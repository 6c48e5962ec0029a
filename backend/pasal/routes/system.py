# backend/pasal/routes/system.py
"""Liveness endpoint."""

from flask import Blueprint, current_app, jsonify

from ..extensions import db

system_bp = Blueprint("system", __name__)


@system_bp.get("/api/health")
def health():
    """Returns {"status": "ok"} when the database answers, 503 otherwise."""
    try:
        db.session.execute(db.text("SELECT 1"))
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Health check failed")
        return jsonify({"status": "error", "database": "unreachable"}), 503
    return jsonify({"status": "ok"}), 200

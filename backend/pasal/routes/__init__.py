# Overview: Shared helpers for Flask API routes.

from flask import current_app, jsonify

from ..extensions import db
from ..validation import DomainError


def json_error(exc: DomainError):
    """Error body and status for a service-layer DomainError."""
    db.session.rollback()
    return jsonify(exc.to_dict()), exc.status


def internal_error(log_message: str):
    """Log the active exception and return a generic 500."""
    db.session.rollback()
    current_app.logger.exception(log_message)
    return jsonify({"error": "Internal server error"}), 500

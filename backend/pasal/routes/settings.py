# Overview: Flask API routes for store settings.

from flask import Blueprint, jsonify, request

from ..config import ROLE_ADMIN, ROLE_STAFF
from ..decorators import require_auth, require_role
from ..services import settings_service
from ..validation import DomainError
from . import internal_error, json_error


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def get_settings_route():
    try:
        setting = settings_service.get_settings()
    except Exception:
        return internal_error("Failed to load settings")
    return jsonify(setting.to_dict()), 200


@settings_bp.put("")
@require_auth
@require_role(ROLE_ADMIN)
def update_settings_route():
    """Body: any of {"store_name", "currency", "tax_rate"}; tax_rate is a fraction in [0, 1]."""
    payload = request.get_json(silent=True) or {}
    try:
        setting = settings_service.update_settings(payload)
    except DomainError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to update settings")
    return jsonify(setting.to_dict()), 200

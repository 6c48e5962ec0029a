# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/pasal/routes/auth.py
"""
Authentication API routes

Accounts are configured at startup (ADMIN_* / STAFF_* environment
variables). Login exchanges credentials for a bearer token; the token is
sent as "Authorization: Bearer <token>" on every protected route.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import bearer_token, require_auth
from ..services import auth_service, session_service
from ..time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate a staff account and create a session token.

    Request body: {"username": str, "password": str}

    Returns:
        200: {user, token, expires_at}
        400: Missing username or password
        401: Invalid credentials
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not username or not password:
            return jsonify({"error": "username and password required"}), 400

        account = auth_service.authenticate(username, password)
        if not account:
            current_app.logger.warning("Failed login for %s from %s", username, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(account)

        return jsonify({
            "user": account.to_dict(),
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Return the authenticated account."""
    return jsonify({
        "user": g.current_account.to_dict(),
        "expires_at": to_utc_z(g.session_context.session.expires_at),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session token."""
    session_service.revoke_session(bearer_token())
    return jsonify({"message": "Logged out successfully"}), 200

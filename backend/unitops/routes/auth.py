# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- POST /api/auth/login    credentials -> session cookie + identity snapshot
- GET  /api/auth/session  current identity snapshot, 401 without a live session
- POST /api/auth/logout   revoke the session and clear the cookie

The session token travels in the HTTP-only `user_session` cookie. The login
response also returns it so API clients can send "Authorization: Bearer".
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..decorators import get_request_token, require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _set_session_cookie(response, token: str, session):
    response.set_cookie(
        current_app.config.get("SESSION_COOKIE_NAME", "user_session"),
        token,
        expires=session.expires_at,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite="Lax",
        path="/",
    )
    return response


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Body: {"user_name": ..., "password": ...}
    """
    try:
        data = request.get_json(silent=True) or {}
        user_name = data.get("user_name")
        password = data.get("password")

        if not all([user_name, password]) or not isinstance(user_name, str) or not isinstance(password, str):
            return jsonify({"error": "user_name and password required"}), 400

        user = auth_service.authenticate(user_name, password)

        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                action="LOGIN",
                reason=f"Invalid credentials for {user_name[:64]}",
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        context = session_service.context_from_session(session)

        response = jsonify({
            **context.to_dict(),
            "token": token,
            "message": "Login successful",
        })
        return _set_session_cookie(response, token, session), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/session")
@require_auth
def session_route():
    """Identity snapshot captured at login."""
    return jsonify(g.session_context.to_dict()), 200


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout) and clear the cookie.

    Logging out without a live session still clears the cookie.
    """
    try:
        token = get_request_token()
        if token:
            session_service.revoke_session(token, reason="User logout")

        response = jsonify({"message": "Logout successful"})
        response.delete_cookie(current_app.config.get("SESSION_COOKIE_NAME", "user_session"), path="/")
        return response, 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500

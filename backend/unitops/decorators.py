# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError


def _is_authenticated() -> bool:
    return hasattr(g, 'session_context')


def get_request_token() -> str | None:
    """
    Session token of the current request.

    The HTTP-only session cookie wins; an "Authorization: Bearer <token>"
    header is accepted for API clients.
    """
    cookie_name = current_app.config.get("SESSION_COOKIE_NAME", "user_session")
    token = request.cookies.get(cookie_name)
    if token:
        return token

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    return None


def require_auth(f):
    """
    Require a live session.

    Sets g.session_context (SessionContext). Returns 401 if:
    - No session cookie and no Bearer token
    - Token unknown, revoked or expired
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = get_request_token()
        if not token:
            return jsonify({"error": "No active session"}), 401

        context = session_service.resolve_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired session"}), 401

        g.session_context = context
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability):
    """Require a page capability flag on the session snapshot."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_capability(g.session_context, capability)
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_capability": capability.value,
                    "message": str(e)
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_super_admin(f):
    """Require the super-admin role. Page flags are not consulted."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401

        try:
            permission_service.require_super_admin(g.session_context)
        except PermissionDeniedError as e:
            return jsonify({"error": str(e)}), 403

        return f(*args, **kwargs)
    return decorated_function

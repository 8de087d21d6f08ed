# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, auth_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _load_context(token: str | None) -> bool:
    """Populate g from a token. Returns False when there is no valid session."""
    g.current_user = None
    g.session_context = None
    g.session_token = None
    if not token:
        return False

    context = session_service.validate_session(token)
    if not context:
        return False

    g.current_user = context.user
    g.session_context = context
    g.session_token = token
    return True


def require_auth(f):
    """
    Require a valid Bearer session.

    Sets:
    - g.current_user: the authenticated User
    - g.session_context: the SessionContext
    - g.session_token: the plaintext token (for logout)

    Returns 401 when the header is missing or the token is invalid, expired
    or revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        if not _load_context(token):
            return jsonify({"error": "Invalid or expired token"}), 401

        return f(*args, **kwargs)

    return decorated_function


def optional_auth(f):
    """
    Like require_auth but lets anonymous callers through with
    g.current_user = None. A bad token is treated as anonymous.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        _load_context(_bearer_token())
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a role-derived permission. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401

            if not auth_service.has_permission(user, permission_code):
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator

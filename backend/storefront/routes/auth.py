# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/storefront/routes/auth.py
"""
Authentication API routes

- Customer self-registration (signup) with password strength validation
- Login returns a Bearer session token and sets the cached-user cookie
  (ehsaas_admin_user: base64 JSON, 7 days, SameSite=Strict, Secure)
- Logout revokes the session and clears the cookie
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError
from ..validation import ConflictError, ValidationError
from ..decorators import require_auth, optional_auth
from ..user_cookie import encode_user_cookie


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def set_user_cookie(response, user) -> None:
    days = current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_DAYS", 7)
    response.set_cookie(
        current_app.config["USER_CACHE_COOKIE_NAME"],
        encode_user_cookie(auth_service.cached_user(user)),
        max_age=days * 24 * 60 * 60,
        path="/",
        secure=current_app.config.get("USER_CACHE_COOKIE_SECURE", True),
        samesite="Strict",
    )


def clear_user_cookie(response) -> None:
    response.delete_cookie(
        current_app.config["USER_CACHE_COOKIE_NAME"],
        path="/",
        secure=current_app.config.get("USER_CACHE_COOKIE_SECURE", True),
        samesite="Strict",
    )


@auth_bp.post("/signup")
def signup_route():
    """
    Register a customer account.

    201 with a token, or 201 with confirmation_required=true and no token
    when email confirmation is enabled.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        try:
            result = auth_service.sign_up(
                email,
                password,
                first_name=data.get("first_name") or "User",
                last_name=data.get("last_name") or "",
                user_agent=request.headers.get("User-Agent"),
                ip_address=request.remote_addr,
            )
        except PasswordValidationError as e:
            return jsonify({"error": str(e)}), 400
        except ValidationError as e:
            return jsonify({"error": str(e), "fields": e.fields}), 400
        except ConflictError as e:
            return jsonify({"error": str(e)}), 409

        response = jsonify({
            "user": auth_service.cached_user(result.user),
            "token": result.token,
            "confirmation_required": result.confirmation_required,
            "message": result.message,
        })
        response.status_code = 201
        if result.token:
            set_user_cookie(response, result.user)
        return response

    except Exception:
        current_app.logger.exception("Failed to sign up user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.sign_in(email, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        response = jsonify({
            "user": auth_service.cached_user(user),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        })
        set_user_cookie(response, user)
        return response

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token, reason="User logout")
    response = jsonify({"message": "Logout successful"})
    clear_user_cookie(response)
    return response


@auth_bp.get("/session")
@optional_auth
def session_route():
    """Current user, or null for anonymous/expired sessions."""
    user = g.current_user
    return {"user": auth_service.cached_user(user) if user else None}


@auth_bp.get("/profile")
@require_auth
def profile_route():
    """Full profile used by clients to refine the cached user after login."""
    user = g.current_user
    return {
        "profile": user.to_profile(),
        "account_type": user.account_type,
        "user": auth_service.cached_user(user),
    }

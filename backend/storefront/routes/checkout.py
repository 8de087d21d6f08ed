# Overview: Flask API route for placing an order from a cart.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service, checkout_service
from ..services.order_service import OrderError
from ..validation import ValidationError
from ..decorators import optional_auth
from .auth import set_user_cookie
from .cart import CART_TOKEN_HEADER

checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


@checkout_bp.post("")
@optional_auth
def checkout_route():
    """
    Place a cash-on-delivery order for the cart in X-Cart-Token.

    Body:
    - shipping: {full_name, phone, email?, address, city, state, pincode, landmark?}
    - payment_method: "cod" (default)

    Anonymous callers get a guest account; the response then carries its
    session token and the cached-user cookie is set.
    """
    payload = request.get_json(silent=True) or {}

    try:
        result = checkout_service.finalize_checkout(
            request.headers.get(CART_TOKEN_HEADER),
            payload.get("shipping") or {},
            payment_method=payload.get("payment_method") or "cod",
            user=g.current_user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except ValidationError as e:
        return jsonify({"error": str(e), "fields": e.fields}), 400
    except OrderError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to complete checkout")
        return jsonify({"error": "Internal server error"}), 500

    body = {
        "order": result.order.to_dict(include_items=True),
        "token": result.session_token,
        "user": auth_service.cached_user(result.guest_user) if result.guest_user else None,
    }
    response = jsonify(body)
    response.status_code = 201
    if result.session_token:
        set_user_cookie(response, result.guest_user)
    return response

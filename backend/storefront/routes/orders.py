# Overview: Flask API routes for customer order history and order detail.

from flask import Blueprint, jsonify, g

from ..services import order_service
from ..validation import AuthorizationError, NotFoundError
from ..decorators import require_auth, optional_auth

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("/mine")
@require_auth
def my_orders():
    orders = order_service.list_user_orders(g.current_user)
    return {"items": orders, "count": len(orders)}


@orders_bp.get("/<int:order_id>")
@optional_auth
def get_order(order_id: int):
    """
    Owners and admins see any order; anonymous callers only guest orders
    (order confirmation page right after a guest checkout).
    """
    try:
        return order_service.get_order(order_id, g.current_user)
    except NotFoundError:
        return jsonify({"error": "Order not found"}), 404
    except AuthorizationError as e:
        return jsonify({"error": str(e)}), 401 if g.current_user is None else 403

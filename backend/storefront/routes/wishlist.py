# Overview: Flask API routes for the signed-in customer's wishlist.

from flask import Blueprint, jsonify, g

from ..services import wishlist_service
from ..validation import ConflictError, NotFoundError
from ..decorators import require_auth

wishlist_bp = Blueprint("wishlist", __name__, url_prefix="/api/wishlist")


@wishlist_bp.get("")
@require_auth
def list_wishlist():
    items = wishlist_service.list_items(g.current_user)
    return {"items": items, "count": len(items)}


@wishlist_bp.get("/count")
@require_auth
def wishlist_count():
    return {"count": wishlist_service.count(g.current_user)}


@wishlist_bp.get("/<int:product_id>")
@require_auth
def wishlist_contains(product_id: int):
    return {"product_id": product_id, "in_wishlist": wishlist_service.contains(g.current_user, product_id)}


@wishlist_bp.post("/<int:product_id>")
@require_auth
def add_to_wishlist(product_id: int):
    try:
        item = wishlist_service.add(g.current_user, product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    return item.to_dict(), 201


@wishlist_bp.delete("/<int:product_id>")
@require_auth
def remove_from_wishlist(product_id: int):
    if not wishlist_service.remove(g.current_user, product_id):
        return jsonify({"error": "Product is not in wishlist"}), 404
    return {"ok": True}


@wishlist_bp.post("/<int:product_id>/toggle")
@require_auth
def toggle_wishlist(product_id: int):
    try:
        in_wishlist = wishlist_service.toggle(g.current_user, product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return {"product_id": product_id, "in_wishlist": in_wishlist}

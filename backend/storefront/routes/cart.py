# Overview: Flask API routes for cart operations; parses input and returns JSON responses.

"""
Cart routes.

Carts are addressed by the X-Cart-Token header. A missing or unknown token
on a write creates a new cart; the token is echoed back in the response
body and header so the client can keep it.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..services import cart_service, catalog_service, variant_service
from ..validation import NotFoundError, ValidationError
from ..decorators import optional_auth

cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")

CART_TOKEN_HEADER = "X-Cart-Token"


def _cart_token() -> str | None:
    return request.headers.get(CART_TOKEN_HEADER) or None


def _cart_response(cart, status: int = 200):
    response = jsonify(cart_service.serialize_cart(cart))
    response.status_code = status
    response.headers[CART_TOKEN_HEADER] = cart.token
    return response


def _empty_cart_body() -> dict:
    return {
        "token": None,
        "items": [],
        "totals": cart_service.compute_totals([]).to_dict(),
    }


def _resolve_cart_variant(product, payload: dict):
    """Variant for a cart add: explicit id, else selections, else the page default."""
    catalog = catalog_service.load_variant_catalog(product.id)
    if catalog.is_empty:
        return None

    variant_id = payload.get("variant_id")
    if variant_id is not None:
        variant = next((v for v in catalog.variants if v.id == variant_id), None)
        if variant is None:
            raise NotFoundError("Variant not found")
        return variant

    selections = payload.get("selections")
    if selections:
        if not isinstance(selections, dict):
            raise ValidationError("selections must be an object")
        return variant_service.resolve_variant(
            catalog.variants, {str(k): str(v) for k, v in selections.items()}
        ).variant

    return variant_service.default_resolution(catalog.variants).variant


@cart_bp.get("")
def get_cart():
    cart = cart_service.get_cart(_cart_token())
    if cart is None:
        return _empty_cart_body()
    return _cart_response(cart)


@cart_bp.post("/items")
@optional_auth
def add_item():
    """
    Body:
    - product_id: int (required)
    - variant_id: int (optional)
    - selections: {option_name: value} (optional, resolved server-side)
    - quantity: int >= 1 (default 1)
    """
    payload = request.get_json(silent=True) or {}
    product_id = payload.get("product_id")
    quantity = payload.get("quantity", 1)

    if not isinstance(product_id, int) or isinstance(product_id, bool):
        return {"error": "product_id must be an integer"}, 400

    try:
        product = catalog_service.get_product(product_id)
        variant = _resolve_cart_variant(product, payload)
        draft = cart_service.build_line_item(product, variant)

        user = g.current_user
        cart = cart_service.get_or_create_cart(_cart_token(), user_id=user.id if user else None)
        cart_service.add_to_cart(cart, draft, quantity)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to add item to cart")
        return jsonify({"error": "Internal server error"}), 500

    return _cart_response(cart, 201)


@cart_bp.patch("/items/<key>")
def update_item(key: str):
    payload = request.get_json(silent=True) or {}
    cart = cart_service.get_cart(_cart_token())
    if cart is None:
        return {"error": "Cart not found"}, 404

    try:
        cart_service.update_quantity(cart, key, payload.get("quantity"))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400

    return _cart_response(cart)


@cart_bp.delete("/items/<key>")
def remove_item(key: str):
    cart = cart_service.get_cart(_cart_token())
    if cart is None or not cart_service.remove_from_cart(cart, key):
        return {"error": "Cart item not found"}, 404
    return _cart_response(cart)


@cart_bp.delete("")
def clear_cart():
    cart = cart_service.get_cart(_cart_token())
    if cart is None:
        return _empty_cart_body()
    cart_service.clear_cart(cart)
    return _cart_response(cart)

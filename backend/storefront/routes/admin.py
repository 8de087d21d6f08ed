# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/storefront/routes/admin.py
"""
Admin console routes.

Provides endpoints for:
- Product management (list, create, update, soft delete)
- Variant options/variants (create, replace, delete)
- Gallery images (add, remove, set primary)
- Orders (list, statistics, status and payment updates)
- Users (list)
- Store settings (read, update)

All endpoints require authentication and a role-derived permission.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..models import Product, User
from ..services import catalog_service, order_service, settings_service
from ..services.order_service import OrderError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ..decorators import require_auth, require_permission

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "short_description",
        "price_paise", "sale_price_paise", "stock_quantity", "min_stock_level",
        "weight", "material", "brand", "featured", "is_active",
        "category", "images", "specifications",
    },
    required_on_create={"sku", "name", "price_paise"},
)


def _list_arg(payload: dict, key: str) -> list[dict] | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise ValidationError(f"{key} must be a list of objects")
    return value


# =============================================================================
# PRODUCTS
# =============================================================================

@admin_bp.get("/products")
@require_auth
@require_permission("read:products")
def list_products():
    """
    Query params:
    - page, per_page
    - include_inactive: bool (default true)
    """
    page = request.args.get("page", 1, type=int)
    per_page = request.args.get("per_page", 20, type=int)
    include_inactive = request.args.get("include_inactive", "true").lower() == "true"
    return catalog_service.list_all_products(page=page, per_page=per_page, include_inactive=include_inactive)


@admin_bp.get("/products/<int:product_id>")
@require_auth
@require_permission("read:products")
def get_product(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except NotFoundError:
        return {"error": "Product not found"}, 404

    data = product.to_dict(include_details=True)
    data["variants"] = catalog_service.load_variant_catalog(product.id).to_dict()
    return data


@admin_bp.post("/products")
@require_auth
@require_permission("write:products")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        images = _list_arg(patch, "images")
        specifications = _list_arg(patch, "specifications")
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        product = catalog_service.create_product(patch=patch, images=images, specifications=specifications)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return product.to_dict(include_details=True), 201


@admin_bp.put("/products/<int:product_id>")
@require_auth
@require_permission("write:products")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        current = catalog_service.get_product(product_id)
    except NotFoundError:
        return {"error": "Product not found"}, 404

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        images = _list_arg(patch, "images")
        specifications = _list_arg(patch, "specifications")
        enforce_rules_product(patch, current=current)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        product = catalog_service.update_product(
            product_id, patch=patch, images=images, specifications=specifications
        )
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return product.to_dict(include_details=True)


@admin_bp.delete("/products/<int:product_id>")
@require_auth
@require_permission("write:products")
def delete_product_route(product_id: int):
    """Soft delete (is_active=False)."""
    if not catalog_service.delete_product(product_id):
        return {"error": "Product not found"}, 404
    return {"ok": True}, 200


# =============================================================================
# VARIANTS
# =============================================================================

def _variant_payload() -> tuple[list[dict], list[dict]]:
    payload = request.get_json(silent=True) or {}
    options = _list_arg(payload, "options") or []
    variants = _list_arg(payload, "variants") or []
    return options, variants


@admin_bp.post("/products/<int:product_id>/variants")
@require_auth
@require_permission("write:products")
def create_variants_route(product_id: int):
    """
    Body:
    - options: [{name, display_name, values: [{value, display_value}]}]
    - variants: [{name, price_paise, stock_quantity, option_values: [{option_name, value}],
                  image_ids, primary_image_id}]
    """
    try:
        options, variants = _variant_payload()
        catalog_service.create_product_variants(product_id, options, variants)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create variants for product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500

    return catalog_service.load_variant_catalog(product_id).to_dict(), 201


@admin_bp.put("/products/<int:product_id>/variants")
@require_auth
@require_permission("write:products")
def replace_variants_route(product_id: int):
    """Replace semantics: existing options and variants are deleted first."""
    try:
        options, variants = _variant_payload()
        catalog_service.update_product_variants(product_id, options, variants)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to replace variants for product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500

    return catalog_service.load_variant_catalog(product_id).to_dict()


@admin_bp.delete("/products/<int:product_id>/variants")
@require_auth
@require_permission("write:products")
def delete_variants_route(product_id: int):
    try:
        catalog_service.get_product(product_id)
        catalog_service.delete_product_variants(product_id)
    except NotFoundError:
        return {"error": "Product not found"}, 404
    except Exception:
        current_app.logger.exception("Failed to delete variants for product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500
    return {"ok": True}


# =============================================================================
# IMAGES
# =============================================================================

@admin_bp.post("/products/<int:product_id>/images")
@require_auth
@require_permission("write:products")
def add_image_route(product_id: int):
    """Body: url, media_type (image|video), is_primary, sort_order, alt_text."""
    payload = request.get_json(silent=True) or {}
    try:
        image = catalog_service.add_product_image(
            product_id,
            payload.get("url"),
            media_type=payload.get("media_type") or "image",
            is_primary=bool(payload.get("is_primary", False)),
            sort_order=payload.get("sort_order"),
            alt_text=payload.get("alt_text"),
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to add image to product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500

    return image.to_dict(), 201


@admin_bp.delete("/images/<int:image_id>")
@require_auth
@require_permission("write:products")
def remove_image_route(image_id: int):
    try:
        removed = catalog_service.remove_product_image(image_id)
    except Exception:
        current_app.logger.exception("Failed to remove image %s", image_id)
        return jsonify({"error": "Internal server error"}), 500
    if not removed:
        return {"error": "Image not found"}, 404
    return {"ok": True}


@admin_bp.post("/images/<int:image_id>/primary")
@require_auth
@require_permission("write:products")
def set_primary_image_route(image_id: int):
    try:
        image = catalog_service.set_primary_image(image_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to set primary image %s", image_id)
        return jsonify({"error": "Internal server error"}), 500
    return image.to_dict()


# =============================================================================
# ORDERS
# =============================================================================

@admin_bp.get("/orders")
@require_auth
@require_permission("read:orders")
def list_orders():
    """Query params: page (default 1), page_size (default 50), status."""
    page = request.args.get("page", 1, type=int)
    page_size = request.args.get("page_size", 50, type=int)
    status = request.args.get("status")
    try:
        return order_service.list_orders_for_admin(g.current_user, page=page, page_size=page_size, status=status)
    except ValidationError as e:
        return {"error": str(e)}, 400


@admin_bp.get("/orders/stats")
@require_auth
@require_permission("read:orders")
def order_stats():
    return order_service.order_statistics(g.current_user)


@admin_bp.get("/orders/<int:order_id>")
@require_auth
@require_permission("read:orders")
def get_order(order_id: int):
    try:
        return order_service.get_order(order_id, g.current_user)
    except NotFoundError:
        return {"error": "Order not found"}, 404


@admin_bp.patch("/orders/<int:order_id>/status")
@require_auth
@require_permission("write:orders")
def update_order_status_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        order = order_service.update_order_status(order_id, payload.get("status"), g.current_user)
    except AuthorizationError as e:
        return {"error": str(e)}, 403
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except OrderError as e:
        return {"error": str(e), "details": e.details}, 400

    return order.to_dict(include_items=True)


@admin_bp.patch("/orders/<int:order_id>/payment")
@require_auth
@require_permission("write:orders")
def update_payment_status_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        order = order_service.update_payment_status(order_id, payload.get("payment_status"), g.current_user)
    except AuthorizationError as e:
        return {"error": str(e)}, 403
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400

    return order.to_dict(include_items=True)


# =============================================================================
# USERS
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_permission("read:users")
def list_users():
    """
    Query params:
    - include_guests: bool (default false)
    - account_type: customer|admin|super_admin
    """
    include_guests = request.args.get("include_guests", "false").lower() == "true"
    account_type = request.args.get("account_type")

    query = db.session.query(User)
    if not include_guests:
        query = query.filter(User.is_guest.is_(False))
    if account_type:
        query = query.filter(User.account_type == account_type)

    users = query.order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})


# =============================================================================
# SETTINGS
# =============================================================================

@admin_bp.get("/settings")
@require_auth
@require_permission("read:settings")
def get_settings():
    return settings_service.get_settings()


@admin_bp.put("/settings")
@require_auth
@require_permission("write:settings")
def update_settings():
    payload = request.get_json(silent=True)
    try:
        return settings_service.update_settings(payload, g.current_user)
    except AuthorizationError as e:
        return {"error": str(e)}, 403
    except ValidationError as e:
        return {"error": str(e), "fields": e.fields}, 400

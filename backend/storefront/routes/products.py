# Overview: Flask API routes for storefront product browsing; parses input and returns JSON responses.

# backend/storefront/routes/products.py
"""
Public catalog routes.

Browsing is anonymous. Inactive products are hidden from listings (with the
empty-feed fallback in catalog_service.list_products) but product detail
still resolves so old links and order history keep working.
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service, variant_service
from ..services.pricing_service import quote
from ..validation import NotFoundError

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _selection_payload(product, resolution, current_index: int = 0) -> dict:
    placeholder = current_app.config.get("PRODUCT_IMAGE_PLACEHOLDER", "/placeholder.svg")
    product_images = [img.to_dict() for img in product.images]
    gallery = variant_service.build_gallery(product_images, resolution.variant, placeholder)

    return {
        "variant": resolution.variant.to_dict() if resolution.variant else None,
        "selections": resolution.selections,
        "quote": quote(product, resolution.variant).to_dict(),
        "gallery": gallery,
        "gallery_index": variant_service.gallery_index_for(resolution.variant, gallery, current_index),
    }


@products_bp.get("")
def list_products():
    """
    Query params:
    - page: int (default 1)
    - per_page: int (default 20, max 100)
    - category_id: int (optional)
    """
    page = request.args.get("page", 1, type=int)
    per_page = request.args.get("per_page", 20, type=int)
    category_id = request.args.get("category_id", type=int)

    try:
        return catalog_service.list_products(page=page, per_page=per_page, category_id=category_id)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/featured")
def featured_products():
    limit = min(request.args.get("limit", 24, type=int), 100)
    products = catalog_service.featured_products(limit=limit)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/categories")
def list_categories():
    categories = catalog_service.list_categories()
    return {"items": [c.to_dict() for c in categories], "count": len(categories)}


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except NotFoundError:
        return {"error": "Product not found"}, 404

    data = product.to_dict(include_details=True)
    data["quote"] = quote(product).to_dict()
    return data


@products_bp.get("/<int:product_id>/related")
def related_products(product_id: int):
    limit = min(request.args.get("limit", 4, type=int), 24)
    products = catalog_service.related_products(product_id, limit=limit)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>/variants")
def product_variants(product_id: int):
    """Options, active variants, and the initial selection (base or first variant)."""
    try:
        product = catalog_service.get_product(product_id)
    except NotFoundError:
        return {"error": "Product not found"}, 404

    catalog = catalog_service.load_variant_catalog(product.id)
    resolution = variant_service.default_resolution(catalog.variants)

    data = catalog.to_dict()
    data["default"] = _selection_payload(product, resolution)
    return data


@products_bp.post("/<int:product_id>/quote")
def quote_selection(product_id: int):
    """
    Resolve a selection and price it.

    Body:
    - selections: {option_name: value} (current page state)
    - option_name / value: optional single change merged into selections
    - variant_id: optional, select a variant directly (thumbnail click)
    - current_index: gallery index to keep when the variant has no image
    """
    payload = request.get_json(silent=True) or {}

    selections = payload.get("selections") or {}
    if not isinstance(selections, dict):
        return {"error": "selections must be an object"}, 400
    current_index = payload.get("current_index", 0)
    if not isinstance(current_index, int) or isinstance(current_index, bool):
        return {"error": "current_index must be an integer"}, 400

    try:
        product = catalog_service.get_product(product_id)
    except NotFoundError:
        return {"error": "Product not found"}, 404

    catalog = catalog_service.load_variant_catalog(product.id)

    variant_id = payload.get("variant_id")
    if variant_id is not None:
        variant = next((v for v in catalog.variants if v.id == variant_id), None)
        if variant is None:
            return {"error": "Variant not found"}, 404
        resolution = variant_service.resolve_variant(catalog.variants, variant_service.select_variant(variant))
    elif payload.get("option_name"):
        resolution = variant_service.change_option(
            catalog.variants,
            {str(k): str(v) for k, v in selections.items()},
            str(payload["option_name"]),
            str(payload.get("value", "")),
        )
    else:
        resolution = variant_service.resolve_variant(
            catalog.variants,
            {str(k): str(v) for k, v in selections.items()},
        )

    return _selection_payload(product, resolution, current_index)

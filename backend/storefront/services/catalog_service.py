# backend/storefront/services/catalog_service.py
"""
Catalog Service

Product master data, gallery images and the variant option space.

VARIANTS: options/values/variants are written together and replaced
wholesale on update (delete then recreate). Each variant stores a
canonical combination_key of its sorted (option, value) pairs; a unique
constraint on (product_id, combination_key) backs the in-service checks for
duplicate combinations and a second base variant.

READS: load_variant_catalog never raises. A failing query is logged and an
empty catalog is returned, which the storefront treats as "no variants".
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import (
    Category,
    Product,
    ProductImage,
    ProductSpecification,
    Variant,
    VariantImage,
    VariantOption,
    VariantValue,
    VariantValueAssignment,
)
from ..validation import ConflictError, NotFoundError, ValidationError, enforce_rules_variant
from .variant_service import LoadedVariant, VariantCatalog, VariantImageRef


PRODUCT_MUTABLE_FIELDS = {
    "sku", "name", "description", "short_description",
    "price_paise", "sale_price_paise", "stock_quantity", "min_stock_level",
    "weight", "material", "brand", "featured", "is_active",
}


# -----------------------------------------------------------------------------
# Products
# -----------------------------------------------------------------------------

def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_or_create_category(name: str | None) -> Category | None:
    if not name or not str(name).strip():
        return None
    name = str(name).strip()
    category = db.session.query(Category).filter_by(name=name).first()
    if category is None:
        category = Category(name=name)
        db.session.add(category)
        db.session.flush()
    return category


def get_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _ensure_unique_sku(sku: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("SKU already exists")


def _replace_images(product: Product, images: list[dict]) -> None:
    max_images = current_app.config.get("MAX_PRODUCT_IMAGES", 8)
    if len(images) > max_images:
        raise ValidationError(f"A product can have at most {max_images} images")

    old_ids = [img.id for img in product.images if img.id is not None]
    if old_ids:
        db.session.query(VariantImage).filter(
            VariantImage.image_id.in_(old_ids)
        ).delete(synchronize_session=False)
    product.images.clear()
    db.session.flush()

    primary_index = next((i for i, img in enumerate(images) if img.get("is_primary")), 0)
    for index, image in enumerate(images):
        url = (image.get("url") or image.get("image_url") or "").strip()
        if not url:
            raise ValidationError("Image url is required")
        product.images.append(ProductImage(
            image_url=url,
            alt_text=image.get("alt_text"),
            media_type=image.get("media_type") or "image",
            is_primary=index == primary_index,
            sort_order=index,
        ))


def _replace_specifications(product: Product, specifications: list[dict]) -> None:
    product.specifications.clear()
    db.session.flush()
    for index, spec in enumerate(specifications):
        name = (spec.get("spec_name") or "").strip()
        value = (spec.get("spec_value") or "").strip()
        if not name or not value:
            raise ValidationError("Specifications need spec_name and spec_value")
        product.specifications.append(ProductSpecification(
            spec_name=name,
            spec_value=value,
            display_order=spec.get("display_order") or index,
        ))


def create_product(*, patch: dict, images: list[dict] | None = None,
                   specifications: list[dict] | None = None) -> Product:
    """
    Create a product from a validated patch.

    The "category" key is a category name, created on first use.
    Raises ConflictError when the SKU is taken.
    """
    _ensure_unique_sku(patch["sku"])

    product = Product()
    apply_product_patch(product, patch)
    product.category = get_or_create_category(patch.get("category"))
    db.session.add(product)
    db.session.flush()

    if images:
        _replace_images(product, images)
    if specifications:
        _replace_specifications(product, specifications)

    db.session.commit()
    return product


def update_product(product_id: int, *, patch: dict, images: list[dict] | None = None,
                   specifications: list[dict] | None = None) -> Product:
    """Images and specifications are replaced only when a non-empty list is sent."""
    product = get_product(product_id)

    if "sku" in patch and patch["sku"] != product.sku:
        _ensure_unique_sku(patch["sku"], exclude_id=product.id)

    apply_product_patch(product, patch)
    if "category" in patch:
        product.category = get_or_create_category(patch.get("category"))

    if images:
        _replace_images(product, images)
    if specifications:
        _replace_specifications(product, specifications)

    db.session.commit()
    return product


def delete_product(product_id: int) -> bool:
    """Soft delete. Returns False when the product does not exist."""
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        return False
    product.is_active = False
    db.session.commit()
    return True


def _paginate(query, page: int, per_page: int) -> dict:
    per_page = min(max(per_page or 20, 1), 100)
    page = max(page or 1, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    products = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def list_products(page: int = 1, per_page: int = 20, category_id: int | None = None) -> dict:
    """
    Storefront listing, newest first.

    Only active products are listed. If that yields nothing, the query is
    retried without the active filter so feeds are never empty.
    """
    base = db.session.query(Product)
    if category_id is not None:
        base = base.filter(Product.category_id == category_id)
    base = base.order_by(Product.created_at.desc(), Product.id.desc())

    result = _paginate(base.filter(Product.is_active.is_(True)), page, per_page)
    if result["pagination"]["total"] == 0:
        current_app.logger.warning("No active products found; listing without is_active filter")
        result = _paginate(base, page, per_page)
    return result


def list_all_products(page: int = 1, per_page: int = 20, include_inactive: bool = True) -> dict:
    """Admin listing: no empty-feed fallback, inactive products included by default."""
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return _paginate(query.order_by(Product.created_at.desc(), Product.id.desc()), page, per_page)


def featured_products(limit: int = 24) -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.featured.is_(True))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .all()
    )


def related_products(product_id: int, limit: int = 4) -> list[Product]:
    """Active products in the same category, excluding the product itself."""
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None or product.category_id is None:
        return []
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.category_id == product.category_id,
            Product.id != product.id,
        )
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .all()
    )


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


# -----------------------------------------------------------------------------
# Images
# -----------------------------------------------------------------------------

def _promote_next_primary(product: Product, exclude_id: int | None = None) -> None:
    for img in sorted(product.images, key=lambda i: (i.sort_order, i.id or 0)):
        if img.id != exclude_id:
            img.is_primary = True
            return


def add_product_image(
    product_id: int,
    url: str,
    media_type: str = "image",
    is_primary: bool = False,
    sort_order: int | None = None,
    alt_text: str | None = None,
) -> ProductImage:
    """
    Attach a gallery image.

    The image takes the requested sort slot when free, otherwise the first
    free slot. A video, the product's first image, or an explicit
    is_primary request becomes the primary image.
    """
    product = get_product(product_id)
    max_images = current_app.config.get("MAX_PRODUCT_IMAGES", 8)

    if not url or not str(url).strip():
        raise ValidationError("url is required")
    if media_type not in ("image", "video"):
        raise ValidationError("media_type must be 'image' or 'video'")

    taken = {img.sort_order for img in product.images}
    if len(product.images) >= max_images:
        raise ValidationError(f"A product can have at most {max_images} images")

    free_slots = [slot for slot in range(max_images) if slot not in taken]
    if sort_order is not None and sort_order in free_slots:
        slot = sort_order
    else:
        slot = free_slots[0]

    make_primary = is_primary or media_type == "video" or not product.images
    if make_primary:
        for img in product.images:
            img.is_primary = False

    image = ProductImage(
        image_url=str(url).strip(),
        alt_text=alt_text,
        media_type=media_type,
        is_primary=make_primary,
        sort_order=slot,
    )
    product.images.append(image)
    db.session.commit()
    return image


def remove_product_image(image_id: int) -> bool:
    image = db.session.query(ProductImage).filter_by(id=image_id).first()
    if image is None:
        return False

    product = image.product
    was_primary = image.is_primary

    db.session.query(VariantImage).filter_by(image_id=image.id).delete()
    product.images.remove(image)
    db.session.flush()

    if was_primary:
        _promote_next_primary(product)

    db.session.commit()
    return True


def set_primary_image(image_id: int) -> ProductImage:
    image = db.session.query(ProductImage).filter_by(id=image_id).first()
    if image is None:
        raise NotFoundError("Image not found")
    for img in image.product.images:
        img.is_primary = img.id == image.id
    db.session.commit()
    return image


# -----------------------------------------------------------------------------
# Variants
# -----------------------------------------------------------------------------

# Separators of the combination key; option names and values may not contain them
KEY_RESERVED_CHARS = ("|", "=")


def combination_key(pairs) -> str:
    """Canonical form of a variant's option set; "" is the base variant."""
    return "|".join(f"{name}={value}" for name, value in sorted(pairs))


def generate_variant_sku(base_sku: str, option_values: list[str]) -> str:
    """ER-100 + ["Red", "medium"] -> ER-100-RM"""
    suffix = "".join(value[:1] for value in option_values).upper()
    return f"{base_sku}-{suffix}"


def load_variant_catalog(product_id: int) -> VariantCatalog:
    try:
        options = (
            db.session.query(VariantOption)
            .filter(VariantOption.product_id == product_id, VariantOption.is_active.is_(True))
            .order_by(VariantOption.sort_order.asc(), VariantOption.id.asc())
            .all()
        )
        variants = (
            db.session.query(Variant)
            .filter(Variant.product_id == product_id, Variant.is_active.is_(True))
            .order_by(Variant.sort_order.asc(), Variant.id.asc())
            .all()
        )

        loaded = []
        for v in variants:
            assignments = sorted(v.assignments, key=lambda a: (a.option.sort_order, a.option_id))
            loaded.append(LoadedVariant(
                id=v.id,
                name=v.name,
                sku=v.sku,
                price_paise=v.price_paise,
                stock_quantity=v.stock_quantity,
                sort_order=v.sort_order,
                options=tuple((a.option.name, a.value.value) for a in assignments),
                images=tuple(
                    VariantImageRef(id=link.image.id, url=link.image.image_url, is_primary=link.is_primary)
                    for link in v.image_links
                    if link.image is not None
                ),
            ))

        return VariantCatalog(options=[o.to_dict() for o in options], variants=loaded)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.warning("Failed to load variants for product %s: %s", product_id, e)
        return VariantCatalog()


def _entry(raw, what: str) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError(f"Each {what} must be an object")
    return raw


def _label(raw: dict, key: str, *, reserved: bool = True) -> str:
    """
    Read an option name or value as text.

    Numbers are accepted (ring size 7 becomes "7"); anything else that is not
    a string is rejected. With reserved=True the key separators are refused
    so two different option sets can never share a combination key.
    """
    value = raw.get(key)
    if value is None:
        return ""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValidationError(f"{key} must be a string")
    text = str(value).strip()
    if reserved and any(ch in text for ch in KEY_RESERVED_CHARS):
        raise ValidationError(f"{key} may not contain '|' or '=': {text}")
    return text


def _create_options(product: Product, options: list[dict]) -> dict[str, tuple[VariantOption, dict]]:
    lookup: dict[str, tuple[VariantOption, dict]] = {}
    for existing in product.variant_options:
        lookup[existing.name] = (existing, {val.value: val for val in existing.values})

    for index, raw in enumerate(options or []):
        raw = _entry(raw, "variant option")
        name = _label(raw, "name")
        if not name:
            raise ValidationError("Variant option name is required")
        if name in lookup:
            raise ConflictError(f"Duplicate variant option: {name}")

        option = VariantOption(
            product_id=product.id,
            name=name,
            display_name=_label(raw, "display_name", reserved=False) or name,
            sort_order=raw.get("sort_order", index),
        )
        db.session.add(option)

        values: dict[str, VariantValue] = {}
        for value_index, raw_value in enumerate(raw.get("values") or []):
            raw_value = _entry(raw_value, "option value")
            value = _label(raw_value, "value")
            if not value:
                raise ValidationError(f"Empty value for option {name}")
            if value in values:
                raise ConflictError(f"Duplicate value {value} for option {name}")
            values[value] = VariantValue(
                option=option,
                value=value,
                display_value=_label(raw_value, "display_value", reserved=False) or value,
                sort_order=value_index,
            )
            db.session.add(values[value])

        lookup[name] = (option, values)

    db.session.flush()
    return lookup


def _resolve_pairs(raw_pairs: list[dict], lookup: dict) -> list[tuple[VariantOption, VariantValue]]:
    resolved = []
    seen = set()
    for pair in raw_pairs or []:
        pair = _entry(pair, "option value assignment")
        option_name = _label(pair, "option_name", reserved=False)
        value = _label(pair, "value", reserved=False)
        if option_name not in lookup:
            raise ValidationError(f"Unknown variant option: {option_name}")
        if option_name in seen:
            raise ValidationError(f"Option {option_name} assigned twice")
        option, values = lookup[option_name]
        if value not in values:
            raise ValidationError(f"Unknown value {value} for option {option_name}")
        seen.add(option_name)
        resolved.append((option, values[value]))
    return resolved


def _build_variants(product: Product, options: list[dict], variants: list[dict]) -> list[Variant]:
    lookup = _create_options(product, options)

    taken_keys = {
        key for (key,) in db.session.query(Variant.combination_key).filter_by(product_id=product.id)
    }
    valid_image_ids = {img.id for img in product.images}

    created = []
    for index, raw in enumerate(variants or []):
        raw = _entry(raw, "variant")
        enforce_rules_variant(raw)
        pairs = _resolve_pairs(raw.get("option_values"), lookup)
        key = combination_key((o.name, v.value) for o, v in pairs)

        if key in taken_keys:
            if key == "":
                raise ConflictError("Product already has a base variant")
            raise ConflictError(f"Duplicate variant combination: {key}")
        taken_keys.add(key)

        if pairs:
            sku = raw.get("sku") or generate_variant_sku(product.sku, [v.value for _, v in pairs])
        else:
            sku = raw.get("sku") or product.sku

        variant = Variant(
            product_id=product.id,
            sku=sku,
            name=_label(raw, "name", reserved=False),
            combination_key=key,
            price_paise=raw.get("price_paise"),
            stock_quantity=raw.get("stock_quantity", 0),
            min_stock_level=raw.get("min_stock_level", 0),
            sort_order=raw.get("sort_order", index),
            is_active=raw.get("is_active", True),
        )
        db.session.add(variant)
        db.session.flush()

        for option, value in pairs:
            db.session.add(VariantValueAssignment(variant_id=variant.id, option_id=option.id, value_id=value.id))

        primary_image_id = raw.get("primary_image_id")
        for image_id in dict.fromkeys(raw.get("image_ids") or []):
            if image_id not in valid_image_ids:
                current_app.logger.warning(
                    "Skipping image %s for variant %s: not an image of product %s",
                    image_id, variant.id, product.id,
                )
                continue
            db.session.add(VariantImage(
                variant_id=variant.id,
                image_id=image_id,
                is_primary=image_id == primary_image_id,
            ))

        created.append(variant)

    return created


def _commit_or_rollback(build):
    try:
        result = build()
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        raise


def create_product_variants(product_id: int, options: list[dict], variants: list[dict]) -> list[Variant]:
    """
    Create options, values and variants for a product in one transaction.

    Variant payload: name, price_paise, stock_quantity, option_values
    ([{"option_name", "value"}]), image_ids, primary_image_id.
    """
    product = get_product(product_id)
    return _commit_or_rollback(lambda: _build_variants(product, options, variants))


def _delete_variant_rows(product_id: int) -> None:
    variant_ids = [vid for (vid,) in db.session.query(Variant.id).filter_by(product_id=product_id)]
    if variant_ids:
        db.session.query(VariantValueAssignment).filter(
            VariantValueAssignment.variant_id.in_(variant_ids)
        ).delete(synchronize_session=False)
        db.session.query(VariantImage).filter(
            VariantImage.variant_id.in_(variant_ids)
        ).delete(synchronize_session=False)
        db.session.query(Variant).filter(Variant.id.in_(variant_ids)).delete(synchronize_session=False)

    option_ids = [oid for (oid,) in db.session.query(VariantOption.id).filter_by(product_id=product_id)]
    if option_ids:
        db.session.query(VariantValue).filter(
            VariantValue.option_id.in_(option_ids)
        ).delete(synchronize_session=False)
        db.session.query(VariantOption).filter(
            VariantOption.id.in_(option_ids)
        ).delete(synchronize_session=False)
    db.session.expire_all()


def delete_product_variants(product_id: int) -> None:
    _commit_or_rollback(lambda: _delete_variant_rows(product_id))


def update_product_variants(product_id: int, options: list[dict], variants: list[dict]) -> list[Variant]:
    """
    Replace semantics: everything is deleted, then recreated.

    Both steps share one transaction, so a rejected payload leaves the
    existing options and variants untouched.
    """
    product = get_product(product_id)

    def _replace() -> list[Variant]:
        _delete_variant_rows(product.id)
        return _build_variants(product, options, variants)

    return _commit_or_rollback(_replace)

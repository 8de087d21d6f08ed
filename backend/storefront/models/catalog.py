from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


class Category(db.Model):
    """Product category. Created on demand when an admin saves a product."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    PRICING:
    - price_paise is the list price.
    - sale_price_paise (optional) is what the storefront charges when no
      variant is selected; price_paise is then shown struck through.
    - Variants carry their own price and stock, which take precedence.

    LIFECYCLE: created/edited via the admin console, read-only for the
    storefront. Deletion is a soft delete (is_active=False) so historical
    order items keep resolving.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_created", "is_active", "created_at"),
        db.Index("ix_products_category_active", "category_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    short_description = db.Column(db.String(512), nullable=True)

    # Authoritative storage in paise (frontend only formats for display)
    price_paise = db.Column(db.Integer, nullable=False)
    sale_price_paise = db.Column(db.Integer, nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=0)

    weight = db.Column(db.String(64), nullable=True)
    material = db.Column(db.String(128), nullable=True)
    brand = db.Column(db.String(128), nullable=True)

    featured = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    @property
    def primary_image(self) -> "ProductImage | None":
        images = [img for img in self.images if img.media_type != "video"]
        for img in images:
            if img.is_primary:
                return img
        return images[0] if images else None

    def to_dict(self, include_details: bool = False) -> dict:
        data = {
            "id": self.id,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "short_description": self.short_description,
            "price_paise": self.price_paise,
            "sale_price_paise": self.sale_price_paise,
            "stock_quantity": self.stock_quantity,
            "min_stock_level": self.min_stock_level,
            "weight": self.weight,
            "material": self.material,
            "brand": self.brand,
            "featured": self.featured,
            "is_active": self.is_active,
            "product_images": [img.to_dict() for img in self.images],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_details:
            data["product_specifications"] = [spec.to_dict() for spec in self.specifications]
        return data


class ProductImage(db.Model):
    """
    Gallery media for a product.

    sort_order is a slot in [0, MAX_PRODUCT_IMAGES). New uploads take the
    first free slot so deleted positions are backfilled.
    """
    __tablename__ = "product_images"
    __table_args__ = (
        db.Index("ix_product_images_product_sort", "product_id", "sort_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    image_url = db.Column(db.String(1024), nullable=False)
    alt_text = db.Column(db.String(255), nullable=True)
    media_type = db.Column(db.String(16), nullable=False, default="image")  # image, video
    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship(
        "Product",
        backref=db.backref("images", lazy=True, order_by="ProductImage.sort_order", cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "image_url": self.image_url,
            "alt_text": self.alt_text,
            "media_type": self.media_type,
            "is_primary": self.is_primary,
            "sort_order": self.sort_order,
        }


class ProductSpecification(db.Model):
    """Free-text specification row (e.g. "Metal" -> "925 Silver")."""
    __tablename__ = "product_specifications"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    spec_name = db.Column(db.String(128), nullable=False)
    spec_value = db.Column(db.String(512), nullable=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship(
        "Product",
        backref=db.backref(
            "specifications",
            lazy=True,
            order_by="ProductSpecification.display_order",
            cascade="all, delete-orphan",
        ),
    )

    def to_dict(self) -> dict:
        return {
            "spec_name": self.spec_name,
            "spec_value": self.spec_value,
            "display_order": self.display_order,
        }


class VariantOption(db.Model):
    """
    A purchasable dimension of a product (e.g. "size").

    Option names are unique per product.
    """
    __tablename__ = "product_variant_options"
    __table_args__ = (
        db.UniqueConstraint("product_id", "name", name="uq_variant_options_product_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    display_name = db.Column(db.String(128), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    product = db.relationship("Product", backref=db.backref("variant_options", lazy=True))

    def to_dict(self) -> dict:
        values = sorted(
            (v for v in self.values if v.is_active),
            key=lambda v: (v.sort_order, v.id),
        )
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name or self.name,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
            "values": [v.to_dict() for v in values],
        }


class VariantValue(db.Model):
    __tablename__ = "product_variant_values"
    __table_args__ = (
        db.UniqueConstraint("option_id", "value", name="uq_variant_values_option_value"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    option_id = db.Column(db.Integer, db.ForeignKey("product_variant_options.id"), nullable=False, index=True)
    value = db.Column(db.String(128), nullable=False)
    display_value = db.Column(db.String(128), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    option = db.relationship("VariantOption", backref=db.backref("values", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "option_id": self.option_id,
            "value": self.value,
            "display_value": self.display_value or self.value,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
        }


class Variant(db.Model):
    """
    A concrete point in a product's option space with its own price/stock.

    combination_key is the canonical, sorted "option=value|..." string of the
    variant's assignments. The unique constraint on (product_id,
    combination_key) rejects two variants at the same point, and since the
    base variant's key is "", at most one base variant per product.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.UniqueConstraint("product_id", "combination_key", name="uq_product_variants_combination"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    sku = db.Column(db.String(96), nullable=False)
    name = db.Column(db.String(255), nullable=False, default="")
    combination_key = db.Column(db.String(512), nullable=False, default="")

    price_paise = db.Column(db.Integer, nullable=True)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=0)

    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("variants", lazy=True))


class VariantValueAssignment(db.Model):
    """Places a variant at one (option, value) coordinate."""
    __tablename__ = "variant_value_assignments"
    __table_args__ = (
        db.UniqueConstraint("variant_id", "option_id", name="uq_variant_assignment_option"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)
    option_id = db.Column(db.Integer, db.ForeignKey("product_variant_options.id"), nullable=False)
    value_id = db.Column(db.Integer, db.ForeignKey("product_variant_values.id"), nullable=False)

    variant = db.relationship("Variant", backref=db.backref("assignments", lazy=True))
    option = db.relationship("VariantOption")
    value = db.relationship("VariantValue")


class VariantImage(db.Model):
    """Links a product gallery image to a variant."""
    __tablename__ = "variant_images"
    __table_args__ = (
        db.UniqueConstraint("variant_id", "image_id", name="uq_variant_images"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)
    image_id = db.Column(db.Integer, db.ForeignKey("product_images.id"), nullable=False)
    is_primary = db.Column(db.Boolean, nullable=False, default=False)

    variant = db.relationship("Variant", backref=db.backref("image_links", lazy=True))
    image = db.relationship("ProductImage")

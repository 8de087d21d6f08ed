from __future__ import annotations

import json

from ..extensions import db
from storefront.time_utils import to_utc_z


class Cart(db.Model):
    """
    Shopping cart addressed by an opaque client-held token.

    Guests and signed-in customers use the same mechanism; user_id is
    recorded when known but never required.
    """
    __tablename__ = "carts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )


class CartLine(db.Model):
    """
    One cart entry.

    line_key is the composite id ("<productId>" or "<productId>-<variantId>")
    and is unique within a cart. unit_price_paise is frozen when the line is
    first added; later product edits do not reprice it.
    """
    __tablename__ = "cart_lines"
    __table_args__ = (
        db.UniqueConstraint("cart_id", "line_key", name="uq_cart_lines_cart_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("carts.id"), nullable=False, index=True)

    line_key = db.Column(db.String(64), nullable=False)
    product_id = db.Column(db.Integer, nullable=False)
    variant_id = db.Column(db.Integer, nullable=True)

    name = db.Column(db.String(255), nullable=False)
    variant_name = db.Column(db.String(255), nullable=True)
    unit_price_paise = db.Column(db.Integer, nullable=False)
    original_price_paise = db.Column(db.Integer, nullable=True)
    image_url = db.Column(db.String(1024), nullable=True)

    # Flattened variant option pairs for display, e.g. {"size": "M"}
    attributes_json = db.Column(db.Text, nullable=False, default="{}")

    quantity = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    cart = db.relationship(
        "Cart",
        backref=db.backref("lines", lazy=True, order_by="CartLine.id", cascade="all, delete-orphan"),
    )

    @property
    def attributes(self) -> dict:
        return json.loads(self.attributes_json or "{}")

    @attributes.setter
    def attributes(self, value: dict) -> None:
        self.attributes_json = json.dumps(value or {}, sort_keys=True)

    def to_dict(self) -> dict:
        return {
            "id": self.line_key,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "name": self.name,
            "variant_name": self.variant_name,
            "unit_price_paise": self.unit_price_paise,
            "original_price_paise": self.original_price_paise,
            "image": self.image_url,
            "attributes": self.attributes,
            "quantity": self.quantity,
            "added_at": to_utc_z(self.created_at),
        }

from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


ORDER_STATUSES = ("pending", "confirmed", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")


class ShippingAddress(db.Model):
    """Address captured at checkout. One row per order."""
    __tablename__ = "user_addresses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False, default="")
    address_line_1 = db.Column(db.String(512), nullable=False)
    address_line_2 = db.Column(db.String(512), nullable=True)
    city = db.Column(db.String(128), nullable=False)
    state = db.Column(db.String(128), nullable=False)
    postal_code = db.Column(db.String(6), nullable=False)
    phone = db.Column(db.String(10), nullable=True)
    landmark = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "address_line_1": self.address_line_1,
            "address_line_2": self.address_line_2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "phone": self.phone,
            "landmark": self.landmark,
        }


class Order(db.Model):
    """
    Customer order, created once at checkout completion.

    LIFECYCLE: pending -> confirmed -> shipped -> delivered, or -> cancelled
    from any non-terminal status. Only status fields change after creation;
    orders are never deleted.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True)

    # NULL for anonymous orders (guest account creation failed)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    is_guest = db.Column(db.Boolean, nullable=False, default=False)

    status = db.Column(db.String(16), nullable=False, default="pending")
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    payment_method = db.Column(db.String(32), nullable=True)

    # All amounts in paise
    subtotal_paise = db.Column(db.Integer, nullable=False)
    tax_paise = db.Column(db.Integer, nullable=False, default=0)
    shipping_paise = db.Column(db.Integer, nullable=False, default=0)
    discount_paise = db.Column(db.Integer, nullable=False, default=0)
    total_paise = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="INR")

    shipping_address_id = db.Column(db.Integer, db.ForeignKey("user_addresses.id"), nullable=True)
    shipping_method = db.Column(db.String(64), nullable=True)
    tracking_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    shipping_address = db.relationship("ShippingAddress")
    user = db.relationship("User", backref=db.backref("orders", lazy=True))

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "is_guest": self.is_guest,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "subtotal_paise": self.subtotal_paise,
            "tax_paise": self.tax_paise,
            "shipping_paise": self.shipping_paise,
            "discount_paise": self.discount_paise,
            "total_paise": self.total_paise,
            "currency": self.currency,
            "shipping_method": self.shipping_method,
            "tracking_number": self.tracking_number,
            "notes": self.notes,
            "shipping_address": self.shipping_address.to_dict() if self.shipping_address else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Frozen snapshot of a cart line at checkout."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    # Not a foreign key: the snapshot must survive product edits
    product_id = db.Column(db.Integer, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(96), nullable=False, default="N/A")

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_paise = db.Column(db.Integer, nullable=False)
    total_price_paise = db.Column(db.Integer, nullable=False)

    size = db.Column(db.String(64), nullable=True)
    color = db.Column(db.String(64), nullable=True)

    order = db.relationship("Order", backref=db.backref("items", lazy=True, order_by="OrderItem.id"))

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "unit_price_paise": self.unit_price_paise,
            "total_price_paise": self.total_price_paise,
            "size": self.size,
            "color": self.color,
        }

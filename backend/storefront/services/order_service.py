# backend/storefront/services/order_service.py
"""
Order Service

Orders are created once (at checkout) and afterwards only move through the
status lifecycle:

    pending -> confirmed -> shipped -> delivered
    (any non-terminal status) -> cancelled

delivered and cancelled are terminal. Orders are never deleted.

ACCESS:
- Owners and admins can read an order.
- Anonymous callers can read guest orders only (order confirmation page).
- Status changes and the admin list/statistics are admin-only.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Order, OrderItem, ShippingAddress, User, ORDER_STATUSES, PAYMENT_STATUSES
from ..validation import AuthorizationError, NotFoundError, ValidationError
from .concurrency import lock_for_update, run_with_retry, UNIQUE_RETRY_ERRORS
from storefront.time_utils import epoch_millis


ALLOWED_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"shipped", "cancelled"},
    "shipped": {"delivered", "cancelled"},
    "delivered": set(),
    "cancelled": set(),
}

ORDER_NUMBER_PREFIX = "EJ"


class OrderError(Exception):
    """Raised when an order operation violates a business rule."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def generate_order_number() -> str:
    """EJ + last 8 digits of the millisecond clock."""
    return f"{ORDER_NUMBER_PREFIX}{str(epoch_millis())[-8:]}"


def split_full_name(full_name: str, default_first: str = "", default_last: str = "") -> tuple[str, str]:
    parts = (full_name or "").split()
    first = parts[0] if parts else ""
    last = " ".join(parts[1:])
    return first or default_first, last or default_last


def _is_admin(actor: User | None) -> bool:
    return actor is not None and actor.is_admin


def _require_admin(actor: User | None, message: str = "Admin access required") -> None:
    if not _is_admin(actor):
        raise AuthorizationError(message)


def _get_order_row(order_id: int) -> Order:
    order = db.session.query(Order).filter_by(id=order_id).first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def create_order(order_data: dict, items: list[dict], shipping: dict | None = None,
                 actor: User | None = None) -> Order:
    """
    Persist the shipping address, the order and its items in one transaction.

    order_data carries the money fields (paise), status, payment_status,
    payment_method and optionally user_id/is_guest/shipping_method/notes.
    A colliding order number is regenerated.
    """
    if not items:
        raise OrderError("Cannot create an order without items")

    status = order_data.get("status", "pending")
    payment_status = order_data.get("payment_status", "pending")
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid order status: {status}")
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"Invalid payment status: {payment_status}")

    user_id = order_data.get("user_id", actor.id if actor is not None else None)

    def _insert() -> Order:
        address = None
        if shipping:
            first, last = split_full_name(shipping["full_name"])
            address = ShippingAddress(
                user_id=user_id,
                first_name=first or shipping["full_name"],
                last_name=last,
                address_line_1=shipping["address"],
                city=shipping["city"],
                state=shipping["state"],
                postal_code=shipping["pincode"],
                phone=shipping.get("phone"),
                landmark=shipping.get("landmark") or None,
            )
            db.session.add(address)

        order = Order(
            order_number=generate_order_number(),
            user_id=user_id,
            is_guest=bool(order_data.get("is_guest", False)),
            status=status,
            payment_status=payment_status,
            payment_method=order_data.get("payment_method"),
            subtotal_paise=order_data["subtotal_paise"],
            tax_paise=order_data.get("tax_paise", 0),
            shipping_paise=order_data.get("shipping_paise", 0),
            discount_paise=order_data.get("discount_paise", 0),
            total_paise=order_data["total_paise"],
            currency=order_data.get("currency", "INR"),
            shipping_address=address,
            shipping_method=order_data.get("shipping_method"),
            tracking_number=order_data.get("tracking_number"),
            notes=order_data.get("notes"),
        )
        db.session.add(order)

        for item in items:
            order.items.append(OrderItem(
                product_id=item["product_id"],
                product_name=item["product_name"],
                product_sku=item.get("product_sku") or "N/A",
                quantity=item["quantity"],
                unit_price_paise=item["unit_price_paise"],
                total_price_paise=item["total_price_paise"],
                size=item.get("size"),
                color=item.get("color"),
            ))

        db.session.commit()
        return order

    return run_with_retry(_insert, retry_on=UNIQUE_RETRY_ERRORS)


def get_order(order_id: int, actor: User | None) -> dict:
    """Order with items, shipping address and the customer's profile."""
    order = _get_order_row(order_id)

    if actor is None:
        if not order.is_guest:
            raise AuthorizationError("Access denied: This order requires authentication")
    elif order.user_id != actor.id and not _is_admin(actor):
        raise AuthorizationError("Access denied: You can only view your own orders")

    data = order.to_dict(include_items=True)
    data["profile"] = order.user.to_profile() if order.user is not None else None
    return data


def list_user_orders(actor: User | None) -> list[dict]:
    if actor is None:
        raise AuthorizationError("Authentication required to view orders")
    orders = (
        db.session.query(Order)
        .filter(Order.user_id == actor.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return [o.to_dict(include_items=True) for o in orders]


def list_orders_for_admin(actor: User | None, page: int = 1, page_size: int = 50,
                          status: str | None = None) -> dict:
    _require_admin(actor)

    page = max(page or 1, 1)
    page_size = min(max(page_size or 50, 1), 200)

    query = db.session.query(Order)
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid order status: {status}")
        query = query.filter(Order.status == status)

    total = query.count()
    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    items = []
    for order in orders:
        data = order.to_dict(include_items=True)
        data["profile"] = order.user.to_profile() if order.user is not None else None
        items.append(data)

    return {"orders": items, "total": total, "page": page, "page_size": page_size}


def update_order_status(order_id: int, new_status: str, actor: User | None) -> Order:
    _require_admin(actor, "Admin access required to update order status")

    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid order status: {new_status}")

    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError("Order not found")

    if new_status not in ALLOWED_TRANSITIONS[order.status]:
        raise OrderError(
            f"Cannot change order status from {order.status} to {new_status}",
            details={"from": order.status, "to": new_status,
                     "allowed": sorted(ALLOWED_TRANSITIONS[order.status])},
        )

    order.status = new_status
    db.session.commit()
    return order


def update_payment_status(order_id: int, payment_status: str, actor: User | None) -> Order:
    _require_admin(actor, "Admin access required to update order status")

    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"Invalid payment status: {payment_status}")

    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError("Order not found")

    order.payment_status = payment_status
    db.session.commit()
    return order


def order_statistics(actor: User | None) -> dict:
    _require_admin(actor)

    rows = db.session.query(Order.status, Order.payment_status, Order.total_paise).all()
    return {
        "total_orders": len(rows),
        "pending_orders": sum(1 for status, _, _ in rows if status == "pending"),
        "shipped_orders": sum(1 for status, _, _ in rows if status == "shipped"),
        "delivered_orders": sum(1 for status, _, _ in rows if status == "delivered"),
        "total_revenue_paise": sum(total for _, payment, total in rows if payment == "paid"),
    }

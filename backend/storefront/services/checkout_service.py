# Overview: Checkout: shipping validation, guest accounts and cart-to-order conversion.

"""
Checkout Service

finalize_checkout turns a cart into a confirmed cash-on-delivery order:

1. Refuse an empty cart.
2. For anonymous shoppers, create a guest customer account (shipping email
   or a generated guest_<random>_<ms>@<domain> address, random password).
   If that fails the order is still placed without a user.
3. Snapshot every cart line into an order item.
4. Create the order (confirmed / payment pending / cod) and clear the cart.

Guests get a session token back so the client is signed in afterwards.
"""
from __future__ import annotations

import re
import secrets
import string
from dataclasses import dataclass

from flask import current_app

from ..models import User
from ..validation import ConflictError, ValidationError
from . import auth_service, cart_service, order_service, session_service
from .auth_service import PasswordValidationError
from .order_service import OrderError, split_full_name
from storefront.time_utils import epoch_millis


SUPPORTED_PAYMENT_METHODS = {"cod"}

PHONE_RE = re.compile(r"^\d{10}$")
PINCODE_RE = re.compile(r"^\d{6}$")


@dataclass
class CheckoutResult:
    order: object
    guest_user: User | None = None
    session_token: str | None = None


def _text(info: dict, key: str) -> str:
    value = info.get(key)
    return value.strip() if isinstance(value, str) else ""


def validate_shipping(info: dict) -> dict:
    """
    Validate and normalize checkout shipping details.

    Raises ValidationError whose `fields` maps each bad field to a message.
    """
    if not isinstance(info, dict):
        raise ValidationError("Shipping information is required")

    cleaned = {
        "full_name": _text(info, "full_name"),
        "phone": _text(info, "phone"),
        "email": _text(info, "email"),
        "address": _text(info, "address"),
        "city": _text(info, "city"),
        "state": _text(info, "state"),
        "pincode": _text(info, "pincode"),
        "landmark": _text(info, "landmark"),
    }

    errors: dict[str, str] = {}
    if not cleaned["full_name"]:
        errors["full_name"] = "Full name is required"
    if not PHONE_RE.match(cleaned["phone"]):
        errors["phone"] = "Phone number must be exactly 10 digits"
    if not PINCODE_RE.match(cleaned["pincode"]):
        errors["pincode"] = "PIN code must be exactly 6 digits"
    if not cleaned["city"]:
        errors["city"] = "City is required"
    if not cleaned["state"]:
        errors["state"] = "State is required"
    if not cleaned["address"]:
        errors["address"] = "Address is required"
    if cleaned["email"] and not auth_service.EMAIL_RE.match(cleaned["email"]):
        errors["email"] = "Invalid email address"

    if errors:
        raise ValidationError("Invalid shipping information", fields=errors)

    return cleaned


def generate_guest_email() -> str:
    alphabet = string.ascii_lowercase + string.digits
    rand = "".join(secrets.choice(alphabet) for _ in range(8))
    domain = current_app.config.get("GUEST_EMAIL_DOMAIN", "ehsaasjewellery.com")
    return f"guest_{rand}_{epoch_millis()}@{domain}"


def create_guest_user(shipping: dict) -> User | None:
    """Guest customer account for an anonymous checkout. None on failure."""
    email = shipping.get("email") or generate_guest_email()
    first, last = split_full_name(shipping["full_name"], "Guest", "User")
    try:
        return auth_service.create_user(
            email,
            auth_service.generate_random_password(),
            first_name=first,
            last_name=last,
            is_guest=True,
            phone=shipping.get("phone"),
        )
    except (ConflictError, ValidationError, PasswordValidationError) as e:
        current_app.logger.warning("Guest account creation failed for %s: %s", email, e)
        return None


def order_items_from_cart(cart) -> list[dict]:
    items = []
    for line in cart.lines:
        attrs = line.attributes
        items.append({
            "product_id": cart_service.product_id_from_key(line.line_key),
            "product_name": line.name,
            "product_sku": "N/A",
            "quantity": line.quantity,
            "unit_price_paise": line.unit_price_paise,
            "total_price_paise": line.unit_price_paise * line.quantity,
            "size": attrs.get("size") or None,
            "color": attrs.get("color") or None,
        })
    return items


def finalize_checkout(
    cart_token: str | None,
    shipping: dict,
    payment_method: str = "cod",
    user: User | None = None,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> CheckoutResult:
    shipping = validate_shipping(shipping)

    payment_method = (payment_method or "cod").strip().lower()
    if payment_method not in SUPPORTED_PAYMENT_METHODS:
        raise ValidationError(f"Unsupported payment method: {payment_method}",
                              fields={"payment_method": "Only cash on delivery is available"})

    cart = cart_service.get_cart(cart_token)
    if cart is None or not cart.lines:
        raise OrderError("Cart is empty", details={"cart_token": cart_token})

    guest_user = None
    if user is None:
        guest_user = create_guest_user(shipping)

    owner = user or guest_user
    totals = cart_service.compute_totals(cart.lines, cart_service.active_discount_policy())

    order = order_service.create_order(
        {
            "user_id": owner.id if owner is not None else None,
            "is_guest": user is None,
            "status": "confirmed",
            "payment_status": "pending",
            "payment_method": payment_method,
            "subtotal_paise": totals.subtotal_paise,
            "discount_paise": totals.discount_paise,
            "total_paise": totals.final_total_paise,
            "currency": "INR",
        },
        order_items_from_cart(cart),
        shipping,
        actor=owner,
    )

    cart_service.clear_cart(cart)

    token = None
    if guest_user is not None:
        _, token = session_service.create_session(guest_user.id, user_agent=user_agent, ip_address=ip_address)

    current_app.logger.info("Order %s placed (guest=%s)", order.order_number, user is None)
    return CheckoutResult(order=order, guest_user=guest_user, session_token=token)

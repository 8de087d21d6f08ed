# Overview: Cart accumulation and totals; lines keyed by product/variant composite id.

"""
Cart Service

LINE IDENTITY: a line is keyed by "<productId>" or "<productId>-<variantId>".
Adding an item whose key already exists sums the quantities instead of
appending a second line, so a key appears at most once per cart.

PRICING: the unit price is resolved once (pricing_service.quote) when the
line is first added and stays frozen for the life of the line.

TOTALS: subtotal is the sum of unit price x quantity. The discount comes
from a pluggable DiscountPolicy; the storefront default is the bundle
promotion (3+ items: ₹300 off, exactly 2 items: 20% off capped at ₹200).
The final total never goes below zero.
"""
from __future__ import annotations

import re
import secrets
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Iterable

from flask import current_app

from ..extensions import db
from ..models import Cart, CartLine
from ..validation import ValidationError, NotFoundError
from .pricing_service import quote, round_half_up


# (total_items, subtotal_paise) -> discount_paise
DiscountPolicy = Callable[[int, int], int]

BUNDLE_FLAT_DISCOUNT_PAISE = 30_000
BUNDLE_PAIR_PERCENT = 20
BUNDLE_PAIR_CAP_PAISE = 20_000


@dataclass(frozen=True)
class LineItemDraft:
    key: str
    product_id: int
    variant_id: int | None
    name: str
    unit_price_paise: int
    original_price_paise: int | None = None
    variant_name: str | None = None
    image_url: str | None = None
    attributes: dict = field(default_factory=dict)


@dataclass(frozen=True)
class CartTotals:
    total_items: int
    subtotal_paise: int
    discount_paise: int
    final_total_paise: int

    def to_dict(self) -> dict:
        return {
            "total_items": self.total_items,
            "subtotal_paise": self.subtotal_paise,
            "discount_paise": self.discount_paise,
            "final_total_paise": self.final_total_paise,
        }


def line_key(product_id: int, variant_id: int | None = None) -> str:
    if variant_id is None:
        return str(product_id)
    return f"{product_id}-{variant_id}"


def product_id_from_key(key: str) -> int:
    return int(str(key).split("-", 1)[0])


def flatten_variant_attributes(variant) -> dict[str, str]:
    """{"Ring Size": "7"} style option pairs -> {"ringsize": "7"}."""
    if variant is None:
        return {}
    return {re.sub(r"\s+", "", name.lower()): value for name, value in variant.options}


def bundle_discount(total_items: int, subtotal_paise: int) -> int:
    if total_items >= 3:
        return BUNDLE_FLAT_DISCOUNT_PAISE
    if total_items == 2:
        pct = round_half_up(Decimal(subtotal_paise) * BUNDLE_PAIR_PERCENT / 100)
        return min(pct, BUNDLE_PAIR_CAP_PAISE)
    return 0


def no_discount(total_items: int, subtotal_paise: int) -> int:
    return 0


def active_discount_policy() -> DiscountPolicy:
    if current_app.config.get("CART_PROMOTIONS_ENABLED", True):
        return bundle_discount
    return no_discount


def compute_totals(lines: Iterable, discount_policy: DiscountPolicy = bundle_discount) -> CartTotals:
    """Pure: works on CartLine rows or any objects with unit_price_paise/quantity."""
    lines = list(lines)
    total_items = sum(line.quantity for line in lines)
    subtotal = sum(line.unit_price_paise * line.quantity for line in lines)

    discount = discount_policy(total_items, subtotal) if lines else 0

    return CartTotals(
        total_items=total_items,
        subtotal_paise=subtotal,
        discount_paise=discount,
        final_total_paise=max(0, subtotal - discount),
    )


def build_line_item(product, variant=None, image_url: str | None = None) -> LineItemDraft:
    """
    Freeze a product (at an optional resolved variant) into a cart line draft.

    Raises ValidationError when the quote is not purchasable.
    """
    price = quote(product, variant)
    if not price.purchasable:
        raise ValidationError("Product is out of stock")

    if image_url is None and getattr(product, "primary_image", None) is not None:
        image_url = product.primary_image.image_url

    variant_id = variant.id if variant is not None else None
    variant_name = variant.name if variant is not None and not variant.is_base else None

    return LineItemDraft(
        key=line_key(product.id, variant_id),
        product_id=product.id,
        variant_id=variant_id,
        name=product.name,
        unit_price_paise=price.effective_price_paise,
        original_price_paise=price.original_price_paise,
        variant_name=variant_name,
        image_url=image_url,
        attributes=flatten_variant_attributes(variant),
    )


def _find_line(cart: Cart, key: str) -> CartLine | None:
    for line in cart.lines:
        if line.line_key == key:
            return line
    return None


def get_cart(token: str | None) -> Cart | None:
    if not token:
        return None
    return db.session.query(Cart).filter_by(token=token).first()


def get_or_create_cart(token: str | None, user_id: int | None = None) -> Cart:
    """Unknown or missing tokens get a fresh cart with a new token."""
    cart = get_cart(token)
    if cart is not None:
        if user_id is not None and cart.user_id is None:
            cart.user_id = user_id
            db.session.commit()
        return cart

    cart = Cart(token=secrets.token_urlsafe(24), user_id=user_id)
    db.session.add(cart)
    db.session.commit()
    return cart


def add_to_cart(cart: Cart, draft: LineItemDraft, quantity: int = 1) -> CartLine:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise ValidationError("quantity must be an integer >= 1")

    line = _find_line(cart, draft.key)
    if line is not None:
        line.quantity += quantity
    else:
        line = CartLine(
            line_key=draft.key,
            product_id=draft.product_id,
            variant_id=draft.variant_id,
            name=draft.name,
            variant_name=draft.variant_name,
            unit_price_paise=draft.unit_price_paise,
            original_price_paise=draft.original_price_paise,
            image_url=draft.image_url,
            quantity=quantity,
        )
        line.attributes = draft.attributes
        cart.lines.append(line)

    db.session.commit()
    return line


def remove_from_cart(cart: Cart, key: str) -> bool:
    line = _find_line(cart, key)
    if line is None:
        return False
    cart.lines.remove(line)
    db.session.commit()
    return True


def update_quantity(cart: Cart, key: str, quantity: int) -> CartLine | None:
    """Set a line's quantity; zero or less removes it. Returns None when removed."""
    if not isinstance(quantity, int) or isinstance(quantity, bool):
        raise ValidationError("quantity must be an integer")

    line = _find_line(cart, key)
    if line is None:
        raise NotFoundError("Cart item not found")

    if quantity <= 0:
        cart.lines.remove(line)
        db.session.commit()
        return None

    line.quantity = quantity
    db.session.commit()
    return line


def clear_cart(cart: Cart) -> None:
    cart.lines.clear()
    db.session.commit()


def item_quantity(cart: Cart, key: str) -> int:
    line = _find_line(cart, key)
    return line.quantity if line is not None else 0


def serialize_cart(cart: Cart, discount_policy: DiscountPolicy | None = None) -> dict:
    policy = discount_policy or active_discount_policy()
    return {
        "token": cart.token,
        "items": [line.to_dict() for line in cart.lines],
        "totals": compute_totals(cart.lines, policy).to_dict(),
    }

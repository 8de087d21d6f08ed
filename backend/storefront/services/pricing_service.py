# Overview: Price and availability quote for a product page or cart line.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP


@dataclass(frozen=True)
class PriceQuote:
    effective_price_paise: int
    original_price_paise: int | None
    discount_percent: int | None
    availability: int
    purchasable: bool

    @property
    def status(self) -> str:
        return "in_stock" if self.purchasable else "out_of_stock"

    def to_dict(self) -> dict:
        return {
            "effective_price_paise": self.effective_price_paise,
            "original_price_paise": self.original_price_paise,
            "discount_percent": self.discount_percent,
            "availability": self.availability,
            "purchasable": self.purchasable,
            "status": self.status,
        }


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def quote(product, variant=None) -> PriceQuote:
    """
    Price a product, optionally at a resolved variant.

    `product` needs price_paise, sale_price_paise, stock_quantity and
    is_active; `variant` needs price_paise and stock_quantity. Works with
    ORM rows and LoadedVariant snapshots alike.

    A variant price of 0 or None falls through to the product's sale/list
    price.
    """
    sale_price = product.sale_price_paise or None

    if variant is not None and variant.price_paise:
        effective = variant.price_paise
        original = None
    else:
        effective = sale_price if sale_price is not None else product.price_paise
        original = product.price_paise if sale_price is not None else None

    discount_percent = None
    if original and original > effective:
        discount_percent = round_half_up(Decimal(original - effective) * 100 / Decimal(original))
    else:
        original = None

    availability = variant.stock_quantity if variant is not None else product.stock_quantity
    availability = availability or 0

    return PriceQuote(
        effective_price_paise=effective,
        original_price_paise=original,
        discount_percent=discount_percent,
        availability=availability,
        purchasable=bool(product.is_active) and availability > 0,
    )

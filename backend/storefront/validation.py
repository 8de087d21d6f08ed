from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# ₹99,99,999.99; keeps paise amounts inside a 32-bit Integer column
MAX_PRICE_PAISE = 999_999_999

_TRUE_STRINGS = {"1", "true", "yes", "on"}


class ValidationError(ValueError):
    """400-level input problem. `fields` maps field name -> message when known."""

    def __init__(self, message: str, fields: dict[str, str] | None = None):
        super().__init__(message)
        self.fields = fields or {}


class ConflictError(ValueError):
    """409-level business rule conflict (duplicate SKU, variant combination, email)."""


class NotFoundError(LookupError):
    """404-level missing resource."""


class AuthorizationError(PermissionError):
    """Caller may not perform the action. The message is shown to the client verbatim."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which payload keys an endpoint accepts.

    writable_fields is the allowlist: anything else is rejected outright so
    clients cannot reach columns like is_guest or password_hash.
    Writable keys that are not columns (e.g. "category", "images") pass
    through for the service layer to interpret.
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _as_integer(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} must be an integer")

    text = value.strip()
    if "e" in text.lower():
        raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
    if "." in text:
        raise ValidationError(f"{key} must be an integer (no decimals)")
    try:
        return int(text)
    except ValueError:
        raise ValidationError(f"{key} must be an integer")


def _as_boolean(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _coerce_column(col, value: Any) -> Any:
    coltype = col.type
    if isinstance(coltype, Integer):
        return _as_integer(col.key, value)
    if isinstance(coltype, Boolean):
        return _as_boolean(value)
    if isinstance(coltype, (String, Text)):
        text = str(value).strip()
        if text == "" and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        if isinstance(coltype, String) and coltype.length and len(text) > coltype.length:
            raise ValidationError(f"{col.key} exceeds max length {coltype.length}")
        return text
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Clean an admin JSON body against the model's columns and the policy.

    partial=False (create) also enforces required_on_create. Returns a
    patch containing only writable keys, with column values coerced.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    rejected = sorted(k for k in payload if k not in policy.writable_fields)
    if rejected:
        raise ValidationError(f"Field not allowed: {', '.join(rejected)}")

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, raw in payload.items():
        col = columns.get(key)
        if col is None:
            patch[key] = raw
        elif raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _coerce_column(col, raw)
    return patch


def _check_price(name: str, value: Any) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if not 0 <= value <= MAX_PRICE_PAISE:
        raise ValidationError(f"{name} must be between 0 and {MAX_PRICE_PAISE}")


def enforce_rules_product(patch: dict, current=None) -> None:
    """
    Product rules beyond column metadata.

    On update `current` is the stored Product, so a patch that only moves
    the sale price is still checked against the existing list price.
    """
    for name in ("price_paise", "sale_price_paise"):
        if patch.get(name) is not None:
            _check_price(name, patch[name])

    for name in ("stock_quantity", "min_stock_level"):
        if patch.get(name) is not None and patch[name] < 0:
            raise ValidationError(f"{name} must be >= 0")

    price = patch.get("price_paise", getattr(current, "price_paise", None))
    sale = patch.get("sale_price_paise", getattr(current, "sale_price_paise", None))
    if price is not None and sale is not None and sale > price:
        raise ValidationError("sale_price_paise cannot exceed price_paise")


def enforce_rules_variant(variant: dict) -> None:
    if variant.get("price_paise") is not None:
        _check_price("price_paise", variant["price_paise"])
    stock = variant.get("stock_quantity", 0)
    if not isinstance(stock, int) or isinstance(stock, bool) or stock < 0:
        raise ValidationError("stock_quantity must be an integer >= 0")

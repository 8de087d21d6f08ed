from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, User, WishlistItem
from ..validation import AuthorizationError, ConflictError, NotFoundError


def _require_user(user: User | None, action: str) -> User:
    if user is None:
        raise AuthorizationError(f"User must be authenticated to {action} wishlist")
    return user


def list_items(user: User | None) -> list[dict]:
    """Newest first, with the product embedded."""
    if user is None:
        return []
    rows = (
        db.session.query(WishlistItem)
        .filter(WishlistItem.user_id == user.id)
        .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
        .all()
    )
    items = []
    for row in rows:
        data = row.to_dict()
        data["product"] = row.product.to_dict() if row.product is not None else None
        items.append(data)
    return items


def add(user: User | None, product_id: int) -> WishlistItem:
    user = _require_user(user, "add to")

    if db.session.query(Product.id).filter_by(id=product_id).first() is None:
        raise NotFoundError("Product not found")
    if contains(user, product_id):
        raise ConflictError("Product is already in wishlist")

    item = WishlistItem(user_id=user.id, product_id=product_id)
    db.session.add(item)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Product is already in wishlist")
    return item


def remove(user: User | None, product_id: int) -> bool:
    user = _require_user(user, "remove from")
    deleted = (
        db.session.query(WishlistItem)
        .filter_by(user_id=user.id, product_id=product_id)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted > 0


def contains(user: User | None, product_id: int) -> bool:
    if user is None:
        return False
    return (
        db.session.query(WishlistItem.id)
        .filter_by(user_id=user.id, product_id=product_id)
        .first()
        is not None
    )


def count(user: User | None) -> int:
    if user is None:
        return 0
    return db.session.query(WishlistItem).filter_by(user_id=user.id).count()


def toggle(user: User | None, product_id: int) -> bool:
    """Flip membership. Returns True when the product is now in the wishlist."""
    user = _require_user(user, "toggle")
    if contains(user, product_id):
        remove(user, product_id)
        return False
    add(user, product_id)
    return True

from .catalog import (
    Category,
    Product,
    ProductImage,
    ProductSpecification,
    VariantOption,
    VariantValue,
    Variant,
    VariantValueAssignment,
    VariantImage,
)
from .orders import Order, OrderItem, ShippingAddress, ORDER_STATUSES, PAYMENT_STATUSES
from .auth import User, SessionToken, ACCOUNT_TYPES
from .carts import Cart, CartLine
from .wishlist import WishlistItem
from .settings import StoreSetting

__all__ = [
    'Category', 'Product', 'ProductImage', 'ProductSpecification',
    'VariantOption', 'VariantValue', 'Variant', 'VariantValueAssignment', 'VariantImage',
    'Order', 'OrderItem', 'ShippingAddress', 'ORDER_STATUSES', 'PAYMENT_STATUSES',
    'User', 'SessionToken', 'ACCOUNT_TYPES',
    'Cart', 'CartLine',
    'WishlistItem',
    'StoreSetting',
]

# Import all models so Base.metadata knows every table
from marketplace.models.user import User, UserRole
from marketplace.models.store import Store
from marketplace.models.product import Product, ProductStatus
from marketplace.models.address import Address
from marketplace.models.cart import CartItem
from marketplace.models.order import Order, OrderStatus, OrderStatusHistory, TERMINAL_STATUSES

__all__ = [
    "User",
    "UserRole",
    "Store",
    "Product",
    "ProductStatus",
    "Address",
    "CartItem",
    "Order",
    "OrderStatus",
    "OrderStatusHistory",
    "TERMINAL_STATUSES",
]

# Services module
from marketplace.services.catalog_service import CatalogService
from marketplace.services.inventory_service import InventoryService
from marketplace.services.address_service import AddressService
from marketplace.services.cart_service import CartService
from marketplace.services.order_number_service import OrderNumberGenerator
from marketplace.services.order_service import OrderService

__all__ = [
    "CatalogService",
    "InventoryService",
    "AddressService",
    "CartService",
    "OrderNumberGenerator",
    "OrderService",
]

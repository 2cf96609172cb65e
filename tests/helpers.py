"""Helpers shared by the order lifecycle tests."""
from typing import Optional, Tuple
import uuid

from sqlalchemy import select

from marketplace.models import Product, CartItem
from marketplace.schemas.order import OrderCreate, OrderItemCreate


def order_request(
    seed,
    *lines: Tuple[Product, int],
    store_id: Optional[uuid.UUID] = None,
    address_id: Optional[uuid.UUID] = None,
    payment_method: Optional[str] = None,
    remark: Optional[str] = None,
) -> OrderCreate:
    """Checkout request for the seeded store and buyer address."""
    return OrderCreate(
        store_id=store_id or seed.store.id,
        address_id=address_id or seed.address.id,
        payment_method=payment_method,
        remark=remark,
        items=[OrderItemCreate(product_id=product.id, quantity=qty) for product, qty in lines],
    )


async def stock_and_sales(session, product_id: uuid.UUID) -> Tuple[int, int]:
    """Read stock and sales straight from the products table."""
    row = (await session.execute(
        select(Product.stock, Product.sales).where(Product.id == product_id)
    )).one()
    return row[0], row[1]


async def add_to_cart(session_factory, user_id: uuid.UUID, product_id: uuid.UUID, quantity: int = 1) -> None:
    async with session_factory() as session:
        session.add(CartItem(user_id=user_id, product_id=product_id, quantity=quantity))
        await session.commit()

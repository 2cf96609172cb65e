"""Inventory Service: atomic stock reservation and release."""
import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.product import Product

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Stock ledger on top of the catalog's products table.

    Both operations are single conditional UPDATE statements, so concurrent
    callers on the same product are serialised by the database row lock and
    never read a stale stock value. Neither commits: they join the caller's
    transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def reserve(self, product_id: uuid.UUID, quantity: int) -> bool:
        """
        Take quantity units out of stock and count them as sold.

        Returns False, changing nothing, when stock < quantity.
        """
        if quantity <= 0:
            raise ValueError(f"Reservation quantity must be positive, got {quantity}")

        stmt = (
            update(Product)
            .where(
                Product.id == product_id,
                Product.stock >= quantity,
            )
            .values(
                stock=Product.stock - quantity,
                sales=Product.sales + quantity,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        reserved = result.rowcount == 1

        if reserved:
            logger.debug(f"Reserved {quantity} of product {product_id}")
        else:
            logger.info(f"Reservation of {quantity} for product {product_id} rejected: insufficient stock")
        return reserved

    async def release(self, product_id: uuid.UUID, quantity: int) -> None:
        """
        Put quantity units back in stock and take them off the sales counter.

        Sales is clamped at zero; reaching the clamp means an earlier
        reservation was never recorded and is logged as an error.
        """
        if quantity <= 0:
            raise ValueError(f"Release quantity must be positive, got {quantity}")

        stmt = (
            update(Product)
            .where(
                Product.id == product_id,
                Product.sales >= quantity,
            )
            .values(
                stock=Product.stock + quantity,
                sales=Product.sales - quantity,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 1:
            logger.debug(f"Released {quantity} of product {product_id}")
            return

        exists = await self.db.scalar(select(Product.id).where(Product.id == product_id))
        if exists is None:
            logger.warning(f"Release of {quantity} skipped: product {product_id} no longer in catalog")
            return

        clamp_stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(
                stock=Product.stock + quantity,
                sales=0,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(clamp_stmt)
        logger.error(
            f"Sales counter for product {product_id} would go negative releasing {quantity}; "
            f"clamped to 0. Inventory bookkeeping is inconsistent."
        )

    async def get_stock(self, product_id: uuid.UUID) -> int:
        """Current stock, read straight from the database."""
        stock = await self.db.scalar(select(Product.stock).where(Product.id == product_id))
        if stock is None:
            raise ValueError(f"Product {product_id} not found")
        return stock

"""Cart Service: removes purchased products from a buyer's cart."""
from typing import Iterable
import uuid
import logging

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.cart import CartItem

logger = logging.getLogger(__name__)


class CartService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def clear_purchased(self, buyer_id: uuid.UUID, product_ids: Iterable[uuid.UUID]) -> int:
        """Delete the buyer's cart lines for the given products and commit. Returns rows removed."""
        product_ids = list(set(product_ids))
        if not product_ids:
            return 0

        stmt = delete(CartItem).where(
            CartItem.user_id == buyer_id,
            CartItem.product_id.in_(product_ids),
        )
        result = await self.db.execute(stmt)
        await self.db.commit()

        removed = result.rowcount or 0
        logger.debug(f"Removed {removed} cart lines for buyer {buyer_id}")
        return removed

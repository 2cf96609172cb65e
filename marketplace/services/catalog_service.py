"""Catalog Service: read-only product lookup for checkout."""
from typing import Optional
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.product import Product


class CatalogService:
    """Service for reading products as the catalog currently lists them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lookup(self, product_id: uuid.UUID) -> Optional[Product]:
        """Get product by ID, or None if it is not in the catalog."""
        stmt = select(Product).where(Product.id == product_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

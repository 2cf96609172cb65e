import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import String, DateTime, ForeignKey, Integer, Numeric, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.database import Base
from marketplace.db_types import UUIDType

if TYPE_CHECKING:
    from marketplace.models.store import Store


class ProductStatus(str, Enum):
    """Listing status enumeration."""
    LISTED = "LISTED"
    DELISTED = "DELISTED"


class Product(Base):
    """
    Catalog product and its inventory record.

    stock and sales are changed only by InventoryService through
    conditional UPDATE statements.
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("sales >= 0", name="ck_products_sales_non_negative"),
        Index('ix_product_store_status', 'store_id', 'status'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("stores.id", ondelete="RESTRICT"),
        nullable=False
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Current selling price; orders freeze it at checkout"
    )

    # Inventory
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sales: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Units sold, moves opposite to stock on reserve/release"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=ProductStatus.LISTED.value,
        nullable=False,
        comment="LISTED, DELISTED"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    store: Mapped["Store"] = relationship("Store")

    @property
    def is_listed(self) -> bool:
        return self.status == ProductStatus.LISTED.value

    def __repr__(self) -> str:
        return f"<Product(name='{self.name}', stock={self.stock})>"

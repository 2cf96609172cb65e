import uuid
from datetime import datetime, timezone
from enum import IntEnum
from typing import TYPE_CHECKING, Optional, List
from decimal import Decimal

from sqlalchemy import String, DateTime, ForeignKey, Text, Numeric, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.database import Base
from marketplace.db_types import UUIDType, IntEnumType, SnapshotJSON
from marketplace.schemas.snapshot import LineItemSnapshot, AddressSnapshot

if TYPE_CHECKING:
    from marketplace.models.user import User
    from marketplace.models.store import Store


class OrderStatus(IntEnum):
    """Order status codes as persisted in orders.status."""
    UNPAID = 0           # Created, stock reserved, awaiting payment
    PAID = 1             # Paid, awaiting shipment
    SHIPPED = 2          # Handed to carrier
    COMPLETED = 3        # Buyer confirmed receipt
    CANCELLED = 4        # Cancelled before payment, stock released
    REFUNDED = 5         # Refund approved, stock released
    REFUND_PENDING = 6   # Buyer asked for a refund
    REFUND_REJECTED = 7  # Seller turned the refund down

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
    OrderStatus.REFUND_REJECTED,
})


class Order(Base):
    """
    Order model for the marketplace checkout.

    line_items and shipping_snapshot are frozen at creation;
    total_amount is their sum and never recomputed. Rows are never
    deleted, cancelled and refunded orders stay for audit.
    """
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint('order_number', name='uq_orders_order_number'),
        Index('ix_order_buyer_created', 'buyer_id', 'created_at'),
        Index('ix_order_store_created', 'store_id', 'created_at'),
        Index('ix_order_status_created', 'status', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Order Identification
    order_number: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="External order number: UTC timestamp + random digits"
    )

    buyer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("stores.id", ondelete="RESTRICT"),
        nullable=False
    )

    # Snapshots (stored as JSON for historical record)
    line_items: Mapped[List[LineItemSnapshot]] = mapped_column(
        SnapshotJSON(LineItemSnapshot, many=True),
        nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Sum of line totals, fixed at creation"
    )
    shipping_snapshot: Mapped[AddressSnapshot] = mapped_column(
        SnapshotJSON(AddressSnapshot),
        nullable=False
    )

    # Payment / Shipping
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    payment_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    shipping_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Status
    status: Mapped[OrderStatus] = mapped_column(
        IntEnumType(OrderStatus),
        default=OrderStatus.UNPAID,
        nullable=False,
        comment="0=UNPAID 1=PAID 2=SHIPPED 3=COMPLETED 4=CANCELLED 5=REFUNDED 6=REFUND_PENDING 7=REFUND_REJECTED"
    )
    refund_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Notes
    remark: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
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

    # Relationships
    buyer: Mapped["User"] = relationship("User")
    store: Mapped["Store"] = relationship("Store")
    status_history: Mapped[List["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory",
        back_populates="order",
        lazy="selectin",
        order_by="OrderStatusHistory.created_at"
    )

    @property
    def item_count(self) -> int:
        """Get total number of units."""
        return sum(item.quantity for item in self.line_items)

    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.status).is_terminal

    def __repr__(self) -> str:
        return f"<Order(number='{self.order_number}', status={self.status!r})>"


class OrderStatusHistory(Base):
    """Order status change history."""
    __tablename__ = "order_status_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    from_status: Mapped[Optional[OrderStatus]] = mapped_column(IntEnumType(OrderStatus), nullable=True)
    to_status: Mapped[OrderStatus] = mapped_column(IntEnumType(OrderStatus), nullable=False)
    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    order: Mapped["Order"] = relationship("Order", back_populates="status_history")

    def __repr__(self) -> str:
        return f"<OrderStatusHistory(from={self.from_status!r}, to={self.to_status!r})>"

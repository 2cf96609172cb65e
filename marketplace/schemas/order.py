from pydantic import Field, computed_field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
import uuid

from marketplace.config import settings
from marketplace.models.order import OrderStatus
from marketplace.schemas.base import BaseResponseSchema, BaseCreateSchema
from marketplace.schemas.snapshot import LineItemSnapshot, AddressSnapshot, MAX_LINE_QUANTITY


# ==================== REQUEST SCHEMAS ====================

def _check_payment_method(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in settings.PAYMENT_METHODS:
        raise ValueError(f"Unsupported payment method '{value}'")
    return value


class OrderItemCreate(BaseCreateSchema):
    """One requested line. Price is always taken from the catalog."""
    product_id: uuid.UUID
    quantity: int = Field(..., ge=1, le=MAX_LINE_QUANTITY)
    specification: Optional[str] = Field(None, max_length=255)


class OrderCreate(BaseCreateSchema):
    """Checkout request for a single store."""
    store_id: uuid.UUID
    address_id: uuid.UUID
    payment_method: Optional[str] = Field(None, max_length=50)
    items: List[OrderItemCreate] = Field(..., min_length=1)
    remark: Optional[str] = None

    @field_validator("payment_method")
    @classmethod
    def validate_payment_method(cls, v: Optional[str]) -> Optional[str]:
        return _check_payment_method(v)


class PaymentRequest(BaseCreateSchema):
    """Payment confirmation; the gateway itself is outside this service."""
    payment_method: Optional[str] = Field(None, max_length=50)

    @field_validator("payment_method")
    @classmethod
    def validate_payment_method(cls, v: Optional[str]) -> Optional[str]:
        return _check_payment_method(v)


class RefundRequest(BaseCreateSchema):
    reason: str = Field(..., min_length=1)


class RefundDecision(BaseCreateSchema):
    agree: bool


# ==================== STATUS HISTORY SCHEMAS ====================

class StatusHistoryResponse(BaseResponseSchema):
    """Order status history response."""
    id: uuid.UUID
    from_status: Optional[OrderStatus] = None
    to_status: OrderStatus
    changed_by: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    created_at: datetime


# ==================== ORDER SCHEMAS ====================

class OrderResponse(BaseResponseSchema):
    """Order response schema."""
    id: uuid.UUID
    order_number: str
    buyer_id: uuid.UUID
    store_id: uuid.UUID
    status: OrderStatus
    line_items: List[LineItemSnapshot]
    total_amount: Decimal
    shipping_snapshot: AddressSnapshot
    payment_method: str
    payment_time: Optional[datetime] = None
    shipping_time: Optional[datetime] = None
    refund_reason: Optional[str] = None
    remark: Optional[str] = None
    allowed_actions: List[str] = []
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def status_label(self) -> str:
        """Status name next to the numeric code."""
        return self.status.name

    @computed_field
    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.line_items)


class OrderDetailResponse(OrderResponse):
    """Detailed order response with status history."""
    status_history: List[StatusHistoryResponse] = []


class OrderListResponse(BaseResponseSchema):
    """Paginated order list."""
    items: List[OrderResponse]
    total: int
    page: int
    size: int
    pages: int


class OrderCountResponse(BaseResponseSchema):
    """Buyer dashboard counters."""
    unpaid: int = 0
    to_ship: int = 0
    to_receive: int = 0
    completed: int = 0
    refund_pending: int = 0


class PaymentMethodListResponse(BaseResponseSchema):
    """Payment methods a buyer may choose, code to display name."""
    methods: dict[str, str]
    default: str


class StoreOrderStats(BaseResponseSchema):
    """Order totals for one store."""
    store_id: uuid.UUID
    total_orders: int = 0
    by_status: dict[str, int] = {}
    completed_revenue: Decimal = Decimal("0")

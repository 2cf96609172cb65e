"""
Snapshot value types frozen into an order at checkout.

They are stored as JSON on the order row and never recomputed from the
live catalog or address book.
"""
from decimal import Decimal
from typing import Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field

# Largest quantity the INTEGER stock and sales columns can hold
MAX_LINE_QUANTITY = 2_147_483_647


class LineItemSnapshot(BaseModel):
    """One purchased line, priced at the moment of checkout."""
    model_config = ConfigDict(frozen=True)

    product_id: uuid.UUID
    product_name: str
    unit_price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., ge=1, le=MAX_LINE_QUANTITY)
    specification: Optional[str] = None
    line_total: Decimal = Field(..., ge=0)

    @classmethod
    def capture(
        cls,
        product_id: uuid.UUID,
        product_name: str,
        unit_price: Decimal,
        quantity: int,
        specification: Optional[str] = None,
    ) -> "LineItemSnapshot":
        """Build a snapshot whose line_total is unit_price x quantity."""
        return cls(
            product_id=product_id,
            product_name=product_name,
            unit_price=unit_price,
            quantity=quantity,
            specification=specification,
            line_total=unit_price * quantity,
        )


class AddressSnapshot(BaseModel):
    """Shipping address as it was when the order was placed."""
    model_config = ConfigDict(frozen=True)

    address_id: uuid.UUID
    receiver_name: str
    receiver_phone: str
    province: str
    city: str
    district: Optional[str] = None
    detail_address: str

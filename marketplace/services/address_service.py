"""Address Service: resolves a buyer's saved address into a shipping snapshot."""
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.exceptions import NotFoundError
from marketplace.models.address import Address
from marketplace.schemas.snapshot import AddressSnapshot


class AddressService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, buyer_id: uuid.UUID, address_id: uuid.UUID) -> AddressSnapshot:
        """
        Snapshot the buyer's address as it is right now.

        An address belonging to someone else is reported as missing.
        """
        stmt = select(Address).where(
            Address.id == address_id,
            Address.user_id == buyer_id,
        )
        address = (await self.db.execute(stmt)).scalar_one_or_none()
        if address is None:
            raise NotFoundError(
                "Shipping address not found",
                details={"address_id": str(address_id)},
            )

        return AddressSnapshot(
            address_id=address.id,
            receiver_name=address.receiver_name,
            receiver_phone=address.receiver_phone,
            province=address.province,
            city=address.city,
            district=address.district,
            detail_address=address.detail_address,
        )

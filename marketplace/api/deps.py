from typing import Annotated
import uuid

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import get_db


async def get_current_actor(
    x_actor_id: Annotated[uuid.UUID, Header(description="ID of the user performing the call")],
) -> uuid.UUID:
    """
    Dependency returning the acting user's ID.

    There is no authentication layer: the caller names itself in the
    X-Actor-Id header and the order service checks ownership.
    """
    return x_actor_id


# Type aliases for cleaner dependency injection
DB = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[uuid.UUID, Depends(get_current_actor)]

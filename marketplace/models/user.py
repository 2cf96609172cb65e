import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.database import Base
from marketplace.db_types import UUIDType


class UserRole(str, Enum):
    """User role enumeration."""
    BUYER = "BUYER"
    MERCHANT = "MERCHANT"
    ADMIN = "ADMIN"


class User(Base):
    """
    Marketplace account.
    Only the fields the order lifecycle needs for ownership checks.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(
        String(20),
        default=UserRole.BUYER.value,
        nullable=False,
        comment="BUYER, MERCHANT, ADMIN"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<User(username='{self.username}', role='{self.role}')>"

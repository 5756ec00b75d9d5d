"""User model. Accounts are provisioned by the identity provider."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from stockroom.database import Base
from stockroom.db_types import UUIDType


class UserRole(str, Enum):
    """Warehouse staff roles."""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"


# Roles allowed to approve variances, transfers and receiving sessions
SUPERVISOR_ROLES = (UserRole.ADMIN, UserRole.MANAGER)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    role: Mapped[str] = mapped_column(
        String(50),
        default="STAFF",
        nullable=False,
        comment="ADMIN, MANAGER, STAFF"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def is_supervisor(self) -> bool:
        return self.role in {r.value for r in SUPERVISOR_ROLES}

    def __repr__(self) -> str:
        return f"<User(email='{self.email}', role='{self.role}')>"

"""Warehouse location model."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from stockroom.database import Base
from stockroom.db_types import UUIDType


class LocationType(str, Enum):
    STORAGE = "STORAGE"
    PICKING = "PICKING"
    RECEIVING = "RECEIVING"
    PACKING = "PACKING"
    SHIPPING = "SHIPPING"
    RETURNS = "RETURNS"
    QUARANTINE = "QUARANTINE"


class Location(Base):
    __tablename__ = "locations"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    type: Mapped[str] = mapped_column(
        String(50),
        default="STORAGE",
        nullable=False,
        index=True,
        comment="STORAGE, PICKING, RECEIVING, PACKING, SHIPPING, RETURNS, QUARANTINE"
    )
    zone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    aisle: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    shelf: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    bin: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    barcode: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)
    # Walk order for pick path sequencing
    pick_sequence: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Location(name='{self.name}', type='{self.type}')>"

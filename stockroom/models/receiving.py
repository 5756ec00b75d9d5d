"""Purchase order receiving sessions."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockroom.database import Base
from stockroom.db_types import UUIDType


class ReceivingStatus(str, Enum):
    PENDING = "PENDING"      # Counting on the dock
    SUBMITTED = "SUBMITTED"  # Waiting for supervisor approval
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ReceivingSession(Base):
    __tablename__ = "receiving_sessions"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    po_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    po_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    vendor: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    location_id: Mapped[uuid.UUID] = mapped_column(UUIDType, ForeignKey("locations.id"), nullable=False)

    status: Mapped[str] = mapped_column(
        String(50), default="PENDING", nullable=False, index=True,
        comment="PENDING, SUBMITTED, APPROVED, REJECTED"
    )
    counted_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    line_items: Mapped[List["ReceivingLineItem"]] = relationship(
        "ReceivingLineItem",
        back_populates="session",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReceivingLineItem.sku",
    )


class ReceivingLineItem(Base):
    __tablename__ = "receiving_line_items"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("receiving_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    variant_id: Mapped[uuid.UUID] = mapped_column(UUIDType, ForeignKey("product_variants.id"), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity_expected: Mapped[int] = mapped_column(Integer, default=0)
    quantity_counted: Mapped[int] = mapped_column(Integer, default=0)

    session: Mapped["ReceivingSession"] = relationship("ReceivingSession", back_populates="line_items")

    @property
    def variance(self) -> int:
        return self.quantity_counted - self.quantity_expected

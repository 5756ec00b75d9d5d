"""Pick list models for warehouse order picking operations."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockroom.database import Base
from stockroom.db_types import UUIDType, JSONType

if TYPE_CHECKING:
    from stockroom.models.order import Order, OrderItem
    from stockroom.models.product import ProductVariant
    from stockroom.models.location import Location


class PickListStatus(str, Enum):
    """Pick list status enumeration."""
    PENDING = "PENDING"           # Generated, no picker yet
    ASSIGNED = "ASSIGNED"         # Assigned to picker
    IN_PROGRESS = "IN_PROGRESS"   # Picking in progress
    PAUSED = "PAUSED"             # Picker stepped away
    COMPLETED = "COMPLETED"       # Every item in a terminal state
    CANCELLED = "CANCELLED"


class PickItemStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    SHORT_PICK = "SHORT_PICK"     # Picked less than required, remainder backordered
    SKIPPED = "SKIPPED"


class PickEventType(str, Enum):
    PICK_LIST_CREATED = "PICK_LIST_CREATED"
    PICK_STARTED = "PICK_STARTED"
    PICK_PAUSED = "PICK_PAUSED"
    PICK_REASSIGNED = "PICK_REASSIGNED"
    ITEM_PICKED = "ITEM_PICKED"
    ITEM_SHORT_PICKED = "ITEM_SHORT_PICKED"
    ITEM_SKIPPED = "ITEM_SKIPPED"
    PICK_COMPLETED = "PICK_COMPLETED"


class PickList(Base):
    """
    Pick list model for warehouse picking operations.
    Groups reserved order lines into one walk through the building.
    """
    __tablename__ = "pick_lists"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    batch_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
        comment="Unique batch number e.g., PICK-20240101-0001"
    )

    status: Mapped[str] = mapped_column(
        String(50),
        default="PENDING",
        nullable=False,
        index=True,
        comment="PENDING, ASSIGNED, IN_PROGRESS, PAUSED, COMPLETED, CANCELLED"
    )

    priority: Mapped[int] = mapped_column(
        Integer,
        default=5,
        comment="Priority 1-10, lower is higher priority"
    )

    # Counts, recomputed from items after every mutation
    total_items: Mapped[int] = mapped_column(Integer, default=0)
    picked_items: Mapped[int] = mapped_column(Integer, default=0)

    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Assigned picker"
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    items: Mapped[List["PickListItem"]] = relationship(
        "PickListItem",
        back_populates="pick_list",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PickListItem.sequence",
    )
    events: Mapped[List["PickEvent"]] = relationship(
        "PickEvent",
        back_populates="pick_list",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PickEvent.created_at",
    )

    def __repr__(self) -> str:
        return f"<PickList(batch='{self.batch_number}', status='{self.status}')>"


class PickListItem(Base):
    """One reserved order line to be picked from one location."""
    __tablename__ = "pick_list_items"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    pick_list_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("pick_lists.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    order_item_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("order_items.id", ondelete="CASCADE"),
        nullable=False
    )
    reservation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("inventory_reservations.id", ondelete="SET NULL"),
        nullable=True
    )
    variant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("product_variants.id"),
        nullable=False
    )
    location_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("locations.id"),
        nullable=False
    )

    quantity_to_pick: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_picked: Mapped[int] = mapped_column(Integer, default=0)
    sequence: Mapped[int] = mapped_column(Integer, default=0, comment="Order in pick path")

    status: Mapped[str] = mapped_column(
        String(50),
        default="PENDING",
        nullable=False,
        comment="PENDING, COMPLETED, SHORT_PICK, SKIPPED"
    )

    picked_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    picked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    pick_list: Mapped["PickList"] = relationship("PickList", back_populates="items")
    variant: Mapped["ProductVariant"] = relationship("ProductVariant", lazy="selectin")
    location: Mapped["Location"] = relationship("Location", lazy="selectin")


class PickEvent(Base):
    __tablename__ = "pick_events"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    pick_list_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("pick_lists.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("pick_list_items.id", ondelete="SET NULL"),
        nullable=True
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    pick_list: Mapped["PickList"] = relationship("PickList", back_populates="events")

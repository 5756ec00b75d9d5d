"""Return merchandise authorization (RMA) models."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Numeric, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockroom.database import Base
from stockroom.db_types import UUIDType, JSONType


class ReturnStatus(str, Enum):
    PENDING = "PENDING"                         # Awaiting approval
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    IN_TRANSIT = "IN_TRANSIT"                   # Customer shipped it back
    RECEIVED = "RECEIVED"                       # Package at the dock
    INSPECTION_COMPLETE = "INSPECTION_COMPLETE"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"


class RefundStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ReturnReason(str, Enum):
    DEFECTIVE = "DEFECTIVE"
    WRONG_ITEM = "WRONG_ITEM"
    DAMAGED_SHIPPING = "DAMAGED_SHIPPING"
    NOT_AS_DESCRIBED = "NOT_AS_DESCRIBED"
    NO_LONGER_NEEDED = "NO_LONGER_NEEDED"
    CHANGED_MIND = "CHANGED_MIND"
    OTHER = "OTHER"


# Reasons where the merchant is at fault: no restocking fee
FEE_EXEMPT_REASONS = (
    ReturnReason.DEFECTIVE,
    ReturnReason.WRONG_ITEM,
    ReturnReason.DAMAGED_SHIPPING,
)


class ReturnCondition(str, Enum):
    NEW_UNOPENED = "NEW_UNOPENED"
    LIKE_NEW = "LIKE_NEW"
    GOOD = "GOOD"
    FAIR = "FAIR"
    DAMAGED = "DAMAGED"


class ReturnDisposition(str, Enum):
    RESTOCK = "RESTOCK"
    DISPOSE = "DISPOSE"


class ReturnItemStatus(str, Enum):
    PENDING = "PENDING"
    RECEIVED = "RECEIVED"
    INSPECTED = "INSPECTED"
    RESTOCKED = "RESTOCKED"


class ReturnEventType(str, Enum):
    RMA_CREATED = "RMA_CREATED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PACKAGE_RECEIVED = "PACKAGE_RECEIVED"
    ITEM_INSPECTED = "ITEM_INSPECTED"
    INSPECTION_COMPLETE = "INSPECTION_COMPLETE"
    ITEMS_RESTOCKED = "ITEMS_RESTOCKED"
    REFUND_COMPLETED = "REFUND_COMPLETED"


class ReturnOrder(Base):
    __tablename__ = "return_orders"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    rma_number: Mapped[str] = mapped_column(
        String(30), unique=True, nullable=False, index=True,
        comment="RMA-YYYY-NNNN"
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(
        String(50), default="PENDING", nullable=False, index=True,
        comment="PENDING, APPROVED, REJECTED, IN_TRANSIT, RECEIVED, INSPECTION_COMPLETE, REFUNDED, CANCELLED"
    )
    reason: Mapped[str] = mapped_column(
        String(50), nullable=False,
        comment="DEFECTIVE, WRONG_ITEM, DAMAGED_SHIPPING, NOT_AS_DESCRIBED, NO_LONGER_NEEDED, CHANGED_MIND, OTHER"
    )
    reason_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approval_required: Mapped[bool] = mapped_column(Boolean, default=False)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    refund_status: Mapped[str] = mapped_column(
        String(50), default="PENDING", nullable=False,
        comment="PENDING, PROCESSING, COMPLETED, FAILED"
    )
    restocking_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    refund_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    received_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    inspected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[List["ReturnItem"]] = relationship(
        "ReturnItem",
        back_populates="return_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReturnItem.created_at",
    )
    events: Mapped[List["ReturnEvent"]] = relationship(
        "ReturnEvent",
        back_populates="return_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReturnEvent.created_at",
    )
    order = relationship("Order", lazy="selectin")


class ReturnItem(Base):
    __tablename__ = "return_items"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    return_order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("return_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, ForeignKey("order_items.id", ondelete="SET NULL"), nullable=True
    )
    variant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("product_variants.id"), nullable=False
    )
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))

    quantity_requested: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_received: Mapped[int] = mapped_column(Integer, default=0)
    quantity_restockable: Mapped[int] = mapped_column(Integer, default=0)
    quantity_disposed: Mapped[int] = mapped_column(Integer, default=0)

    status: Mapped[str] = mapped_column(
        String(50), default="PENDING", nullable=False,
        comment="PENDING, RECEIVED, INSPECTED, RESTOCKED"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    return_order: Mapped["ReturnOrder"] = relationship("ReturnOrder", back_populates="items")
    variant = relationship("ProductVariant", lazy="selectin")
    inspections: Mapped[List["ReturnInspection"]] = relationship(
        "ReturnInspection",
        back_populates="return_item",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReturnInspection.created_at",
    )


class ReturnInspection(Base):
    __tablename__ = "return_inspections"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    return_item_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("return_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    condition: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="NEW_UNOPENED, LIKE_NEW, GOOD, FAIR, DAMAGED"
    )
    condition_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    disposition: Mapped[str] = mapped_column(String(50), nullable=False, comment="RESTOCK, DISPOSE")
    disposition_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    restock_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, ForeignKey("locations.id"), nullable=True
    )
    inspected_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    return_item: Mapped["ReturnItem"] = relationship("ReturnItem", back_populates="inspections")


class ReturnEvent(Base):
    __tablename__ = "return_events"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    return_order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("return_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    return_order: Mapped["ReturnOrder"] = relationship("ReturnOrder", back_populates="events")

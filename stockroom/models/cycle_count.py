"""
Cycle Counting Models.

A campaign groups count tasks, one per inventory row (variant at a location).
Each task snapshots the system quantity when it is created; the counted
quantity is compared against it to decide whether the adjustment can be
posted directly or needs supervisor review.
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List
from uuid import UUID, uuid4

from sqlalchemy import String, Integer, DateTime, ForeignKey, Text, Boolean, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockroom.database import Base
from stockroom.db_types import UUIDType, JSONType


# ============================================================================
# ENUMS
# ============================================================================

class CampaignStatus(str, Enum):
    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class CountType(str, Enum):
    """Why the campaign was created."""
    SCHEDULED = "SCHEDULED"
    SPOT_CHECK = "SPOT_CHECK"
    SHORTAGE = "SHORTAGE"  # Raised by allocation when stock was short


class CountTaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    VARIANCE_REVIEW = "VARIANCE_REVIEW"
    RECOUNT_REQUIRED = "RECOUNT_REQUIRED"
    SKIPPED = "SKIPPED"
    CANCELLED = "CANCELLED"


class CountEventType(str, Enum):
    TASK_CREATED = "TASK_CREATED"
    COUNT_RECORDED = "COUNT_RECORDED"
    COUNT_SKIPPED = "COUNT_SKIPPED"
    VARIANCE_NOTED = "VARIANCE_NOTED"
    RECOUNT_REQUESTED = "RECOUNT_REQUESTED"
    TASK_COMPLETED = "TASK_COMPLETED"


# ============================================================================
# MODELS
# ============================================================================

class CycleCountCampaign(Base):
    __tablename__ = "cycle_count_campaigns"

    id: Mapped[UUID] = mapped_column(UUIDType, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    count_type: Mapped[str] = mapped_column(
        String(50), default="SCHEDULED", comment="SCHEDULED, SPOT_CHECK, SHORTAGE"
    )
    status: Mapped[str] = mapped_column(
        String(50), default="ACTIVE", index=True,
        comment="PLANNED, ACTIVE, COMPLETED, CANCELLED"
    )

    # Denormalized rollups, always recomputed from tasks
    total_tasks: Mapped[int] = mapped_column(Integer, default=0)
    completed_tasks: Mapped[int] = mapped_column(Integer, default=0)
    variances_found: Mapped[int] = mapped_column(Integer, default=0)

    tolerance: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("5"))

    # Order that triggered a shortage count
    source_order_id: Mapped[Optional[UUID]] = mapped_column(
        UUIDType, ForeignKey("orders.id", ondelete="SET NULL")
    )

    created_by: Mapped[Optional[UUID]] = mapped_column(
        UUIDType, ForeignKey("users.id", ondelete="SET NULL")
    )
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    tasks: Mapped[List["CycleCountTask"]] = relationship(
        "CycleCountTask",
        back_populates="campaign",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CycleCountTask.task_number",
    )


class CycleCountTask(Base):
    __tablename__ = "cycle_count_tasks"

    id: Mapped[UUID] = mapped_column(UUIDType, primary_key=True, default=uuid4)
    campaign_id: Mapped[UUID] = mapped_column(
        UUIDType, ForeignKey("cycle_count_campaigns.id", ondelete="CASCADE"), index=True
    )
    task_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    variant_id: Mapped[UUID] = mapped_column(UUIDType, ForeignKey("product_variants.id"), index=True)
    location_id: Mapped[UUID] = mapped_column(UUIDType, ForeignKey("locations.id"), index=True)

    system_quantity: Mapped[int] = mapped_column(Integer, default=0)
    counted_quantity: Mapped[Optional[int]] = mapped_column(Integer)
    variance: Mapped[Optional[int]] = mapped_column(Integer)
    # None when system quantity is zero
    variance_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    tolerance: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("5"))

    status: Mapped[str] = mapped_column(
        String(50), default="PENDING", index=True,
        comment="PENDING, IN_PROGRESS, COMPLETED, VARIANCE_REVIEW, RECOUNT_REQUIRED, SKIPPED, CANCELLED"
    )
    requires_recount: Mapped[bool] = mapped_column(Boolean, default=False)
    recount_reason: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    assigned_to: Mapped[Optional[UUID]] = mapped_column(
        UUIDType, ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    counted_by: Mapped[Optional[UUID]] = mapped_column(
        UUIDType, ForeignKey("users.id", ondelete="SET NULL")
    )
    counted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    campaign: Mapped["CycleCountCampaign"] = relationship("CycleCountCampaign", back_populates="tasks")
    variant = relationship("ProductVariant", lazy="selectin")
    location = relationship("Location", lazy="selectin")
    events: Mapped[List["CycleCountEvent"]] = relationship(
        "CycleCountEvent",
        back_populates="task",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CycleCountEvent.created_at",
    )


class CycleCountEvent(Base):
    __tablename__ = "cycle_count_events"

    id: Mapped[UUID] = mapped_column(UUIDType, primary_key=True, default=uuid4)
    task_id: Mapped[UUID] = mapped_column(
        UUIDType, ForeignKey("cycle_count_tasks.id", ondelete="CASCADE"), index=True
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    user_id: Mapped[Optional[UUID]] = mapped_column(
        UUIDType, ForeignKey("users.id", ondelete="SET NULL")
    )
    previous_value: Mapped[Optional[int]] = mapped_column(Integer)
    new_value: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    details: Mapped[Optional[dict]] = mapped_column("metadata", JSONType)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    task: Mapped["CycleCountTask"] = relationship("CycleCountTask", back_populates="events")

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from stockroom.database import Base
from stockroom.db_types import UUIDType, JSONType


class AuditLog(Base):
    """
    Audit log model for tracking workflow state changes.
    Records: allocations, count adjustments, transfer decisions, refunds, etc.
    """
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    # Who performed the action
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    # Actions: ALLOCATE, STATUS_CHANGE, COUNT_RECORDED, VARIANCE_APPROVED,
    #          TRANSFER_APPROVED, REFUND_PROCESSED, etc.

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    # Entity types: ORDER, CYCLE_COUNT_TASK, PICK_LIST, RETURN, TRANSFER, etc.

    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True, index=True)

    # Change tracking
    old_values: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    new_values: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<AuditLog(action='{self.action}', entity='{self.entity_type}', id='{self.entity_id}')>"

"""In-app notification model."""
from enum import Enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey

from stockroom.database import Base
from stockroom.db_types import UUIDType, JSONType


class NotificationType(str, Enum):
    RECOUNT_ASSIGNED = "RECOUNT_ASSIGNED"
    PICK_LIST_ASSIGNED = "PICK_LIST_ASSIGNED"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TRANSFER_APPROVED = "TRANSFER_APPROVED"
    TRANSFER_REJECTED = "TRANSFER_REJECTED"
    RETURN_RECEIVED = "RETURN_RECEIVED"
    RECEIVING_PROCESSED = "RECEIVING_PROCESSED"


class Notification(Base):
    """Notification row for a user; a real-time push is sent after commit."""

    __tablename__ = "notifications"

    id = Column(UUIDType, primary_key=True, default=uuid4)
    user_id = Column(UUIDType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String(50), nullable=False, index=True, comment="RECOUNT_ASSIGNED, PICK_LIST_ASSIGNED, TASK_ASSIGNED, TRANSFER_*, RETURN_RECEIVED, RECEIVING_PROCESSED")
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(500))
    data = Column(JSONType, default=dict)

    read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

"""Pending synchronization records for the external commerce platform."""
from enum import Enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, String, Text, DateTime, Integer, ForeignKey

from stockroom.database import Base
from stockroom.db_types import UUIDType, JSONType


class SyncType(str, Enum):
    FULFILLMENT = "FULFILLMENT"
    REFUND = "REFUND"


class SyncStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class FulfillmentSync(Base):
    """
    A platform update that could not be delivered when the local transaction
    committed. The retry job picks up PENDING rows.
    """

    __tablename__ = "fulfillment_syncs"

    id = Column(UUIDType, primary_key=True, default=uuid4)
    order_id = Column(UUIDType, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    sync_type = Column(String(50), nullable=False, comment="FULFILLMENT, REFUND")
    status = Column(String(50), default="PENDING", nullable=False, index=True, comment="PENDING, COMPLETED, FAILED")
    payload = Column(JSONType, default=dict)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    last_attempt_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))

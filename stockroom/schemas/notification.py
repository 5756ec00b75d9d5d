"""Notification schemas."""
from datetime import datetime
from typing import Optional, List, Dict, Any
import uuid

from pydantic import BaseModel

from stockroom.schemas.base import BaseResponseSchema


class NotificationResponse(BaseResponseSchema):
    id: uuid.UUID
    type: str
    title: str
    message: str
    link: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    unread_count: int

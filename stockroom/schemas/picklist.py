"""Pydantic schemas for pick list models."""
from pydantic import Field

from stockroom.schemas.base import BaseCreateSchema, BaseResponseSchema
from typing import Optional, List
from datetime import datetime
import uuid


# ==================== PICK LIST ITEM SCHEMAS ====================

class PickListItemResponse(BaseResponseSchema):
    id: uuid.UUID
    pick_list_id: uuid.UUID
    order_id: uuid.UUID
    order_item_id: uuid.UUID
    reservation_id: Optional[uuid.UUID] = None
    variant_id: uuid.UUID
    location_id: uuid.UUID
    quantity_to_pick: int
    quantity_picked: int
    sequence: int
    status: str
    picked_by: Optional[uuid.UUID] = None
    picked_at: Optional[datetime] = None
    notes: Optional[str] = None


# ==================== PICK LIST SCHEMAS ====================

class PickListGenerateRequest(BaseCreateSchema):
    """Request to generate a pick list from allocated orders."""
    order_ids: List[uuid.UUID] = Field(..., min_length=1)
    assigned_to: Optional[uuid.UUID] = None
    priority: int = Field(5, ge=1, le=10)
    notes: Optional[str] = None
    auto_start: bool = False


class PickListAssignRequest(BaseCreateSchema):
    assigned_to: uuid.UUID


class PickListPauseRequest(BaseCreateSchema):
    reason: Optional[str] = None


class PickListResponse(BaseResponseSchema):
    id: uuid.UUID
    batch_number: str
    status: str
    priority: int
    total_items: int
    picked_items: int
    assigned_to: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None


class PickListDetailResponse(PickListResponse):
    items: List[PickListItemResponse] = []


# ==================== PICKING ====================

class PickItemRequest(BaseCreateSchema):
    """Confirm a pick. user_id, when sent, must be the authenticated user."""
    quantity_picked: int = Field(..., ge=1)
    scanned_code: Optional[str] = None
    user_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class SkipItemRequest(BaseCreateSchema):
    reason: Optional[str] = None

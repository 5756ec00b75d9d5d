"""Schemas for stock transfers and purchase order receiving."""
from datetime import datetime
from typing import Optional, List
import uuid

from pydantic import Field

from stockroom.schemas.base import BaseCreateSchema, BaseResponseSchema


# ==================== TRANSFERS ====================

class TransferCreate(BaseCreateSchema):
    variant_id: uuid.UUID
    from_location_id: uuid.UUID
    to_location_id: uuid.UUID
    quantity: int
    reason: Optional[str] = None


class TransferRejectRequest(BaseCreateSchema):
    reason: Optional[str] = None


class TransferResponse(BaseResponseSchema):
    id: uuid.UUID
    variant_id: uuid.UUID
    from_location_id: uuid.UUID
    to_location_id: uuid.UUID
    quantity: int
    reason: Optional[str] = None
    status: str
    requested_by: Optional[uuid.UUID] = None
    confirmed_by: Optional[uuid.UUID] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None


# ==================== RECEIVING ====================

class ReceivingLineRequest(BaseCreateSchema):
    variant_id: uuid.UUID
    quantity_expected: int = Field(0, ge=0)


class ReceivingCreate(BaseCreateSchema):
    po_id: str = Field(..., min_length=1, max_length=100)
    po_reference: Optional[str] = None
    vendor: Optional[str] = None
    location_id: Optional[uuid.UUID] = None
    items: List[ReceivingLineRequest] = Field(..., min_length=1)


class ReceivingCountLine(BaseCreateSchema):
    line_item_id: uuid.UUID
    quantity_counted: int = Field(..., ge=0)


class ReceivingCountRequest(BaseCreateSchema):
    counts: List[ReceivingCountLine] = Field(..., min_length=1)


class ReceivingRejectRequest(BaseCreateSchema):
    reason: Optional[str] = None


class ReceivingLineResponse(BaseResponseSchema):
    id: uuid.UUID
    variant_id: uuid.UUID
    sku: str
    quantity_expected: int
    quantity_counted: int
    variance: int


class ReceivingResponse(BaseResponseSchema):
    id: uuid.UUID
    po_id: str
    po_reference: Optional[str] = None
    vendor: Optional[str] = None
    location_id: uuid.UUID
    status: str
    counted_by: Optional[uuid.UUID] = None
    approved_by: Optional[uuid.UUID] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    submitted_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    line_items: List[ReceivingLineResponse] = []

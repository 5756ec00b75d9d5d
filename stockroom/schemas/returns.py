"""Returns (RMA) schemas."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
import uuid

from pydantic import Field

from stockroom.models.returns import ReturnReason, ReturnCondition, ReturnDisposition
from stockroom.schemas.base import BaseCreateSchema, BaseResponseSchema


# ==================== REQUESTS ====================

class ReturnItemRequest(BaseCreateSchema):
    order_item_id: uuid.UUID
    quantity: int = Field(..., ge=1)


class ReturnCreate(BaseCreateSchema):
    order_id: uuid.UUID
    reason: ReturnReason
    reason_details: Optional[str] = None
    customer_email: Optional[str] = None
    items: List[ReturnItemRequest] = Field(..., min_length=1)


class ReturnApproveRequest(BaseCreateSchema):
    notes: Optional[str] = None


class ReturnRejectRequest(BaseCreateSchema):
    reason: Optional[str] = None


class ReturnReceiveRequest(BaseCreateSchema):
    tracking_number: Optional[str] = None


class InspectItemRequest(BaseCreateSchema):
    quantity_received: int = Field(..., ge=0)
    condition: ReturnCondition
    disposition: ReturnDisposition
    restock_location_id: Optional[uuid.UUID] = None
    condition_notes: Optional[str] = None
    disposition_notes: Optional[str] = None


# ==================== RESPONSES ====================

class ReturnInspectionResponse(BaseResponseSchema):
    id: uuid.UUID
    condition: str
    condition_notes: Optional[str] = None
    disposition: str
    disposition_notes: Optional[str] = None
    restock_location_id: Optional[uuid.UUID] = None
    inspected_by: Optional[uuid.UUID] = None
    created_at: datetime


class ReturnItemResponse(BaseResponseSchema):
    id: uuid.UUID
    order_item_id: Optional[uuid.UUID] = None
    variant_id: uuid.UUID
    unit_price: Decimal
    quantity_requested: int
    quantity_received: int = 0
    quantity_restockable: int = 0
    quantity_disposed: int = 0
    status: str


class ReturnResponse(BaseResponseSchema):
    id: uuid.UUID
    rma_number: str
    order_id: uuid.UUID
    customer_email: Optional[str] = None
    status: str
    reason: str
    reason_details: Optional[str] = None
    approval_required: bool = False
    rejection_reason: Optional[str] = None
    refund_status: str
    restocking_fee: Decimal
    refund_amount: Optional[Decimal] = None
    approved_by: Optional[uuid.UUID] = None
    created_at: datetime
    approved_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    inspected_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None


class ReturnDetailResponse(ReturnResponse):
    items: List[ReturnItemResponse] = []


class RefundLineResponse(BaseResponseSchema):
    return_item_id: str
    unit_price: Decimal
    quantity_restockable: int
    quantity_disposed: int
    amount: Decimal


class RefundCalculationResponse(BaseResponseSchema):
    rma_number: str
    items: List[RefundLineResponse]
    subtotal: Decimal
    restocking_fee: Decimal
    refund_amount: Decimal

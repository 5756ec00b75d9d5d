"""Pydantic schemas for orders and order actions."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
import uuid

from pydantic import Field

from stockroom.schemas.base import BaseCreateSchema, BaseResponseSchema
from stockroom.services.order_service import OrderAction


class OrderActionRequest(BaseCreateSchema):
    action: OrderAction
    order_id: Optional[uuid.UUID] = None
    order_ids: Optional[List[uuid.UUID]] = None


class OrderCancelRequest(BaseCreateSchema):
    reason: Optional[str] = Field(None, max_length=500)


class OrderItemResponse(BaseResponseSchema):
    id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int
    unit_price: Decimal


class OrderStatusHistoryResponse(BaseResponseSchema):
    previous_status: Optional[str] = None
    new_status: str
    changed_by: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    created_at: datetime


class OrderResponse(BaseResponseSchema):
    id: uuid.UUID
    order_number: str
    external_order_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    status: str
    total_amount: Decimal
    tracking_number: Optional[str] = None
    created_at: datetime
    allocated_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class OrderDetailResponse(OrderResponse):
    items: List[OrderItemResponse] = []
    status_history: List[OrderStatusHistoryResponse] = []

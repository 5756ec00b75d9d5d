"""Schemas for packing and shipping tasks."""
from datetime import datetime
from typing import Optional, List
import uuid

from pydantic import Field

from stockroom.models.work_task import WorkTaskType
from stockroom.schemas.base import BaseCreateSchema, BaseResponseSchema


class WorkTaskCreate(BaseCreateSchema):
    order_ids: List[uuid.UUID] = Field(..., min_length=1)
    type: WorkTaskType = WorkTaskType.PACKING
    assigned_to: Optional[uuid.UUID] = None
    priority: int = Field(5, ge=1, le=10)
    notes: Optional[str] = None


class WorkTaskAssignRequest(BaseCreateSchema):
    assigned_to: uuid.UUID


class TaskItemCompleteRequest(BaseCreateSchema):
    notes: Optional[str] = None


class TaskItemResponse(BaseResponseSchema):
    id: uuid.UUID
    task_id: uuid.UUID
    order_id: uuid.UUID
    order_item_id: Optional[uuid.UUID] = None
    quantity_required: int
    quantity_completed: int
    sequence: int
    status: str
    completed_by: Optional[uuid.UUID] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None


class WorkTaskResponse(BaseResponseSchema):
    id: uuid.UUID
    task_number: str
    type: str
    status: str
    priority: int
    total_orders: int
    completed_orders: int
    total_items: int
    completed_items: int
    assigned_to: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class WorkTaskDetailResponse(WorkTaskResponse):
    items: List[TaskItemResponse] = []

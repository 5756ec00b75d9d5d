"""Cycle counting schemas."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import Field

from stockroom.models.cycle_count import CountType, CountTaskStatus
from stockroom.schemas.base import BaseCreateSchema, BaseResponseSchema


# ============================================================================
# CAMPAIGN SCHEMAS
# ============================================================================

class CampaignCreate(BaseCreateSchema):
    """At least one of inventory_ids, variant_ids or location_ids selects the rows to count."""
    name: str = Field(..., max_length=200)
    description: Optional[str] = None
    count_type: CountType = CountType.SCHEDULED
    inventory_ids: Optional[List[UUID]] = None
    variant_ids: Optional[List[UUID]] = None
    location_ids: Optional[List[UUID]] = None
    tolerance: Optional[Decimal] = Field(None, ge=0, le=100)
    assigned_to: Optional[UUID] = None


class CountTaskResponse(BaseResponseSchema):
    id: UUID
    campaign_id: UUID
    task_number: str
    variant_id: UUID
    location_id: UUID
    system_quantity: int
    counted_quantity: Optional[int] = None
    variance: Optional[int] = None
    variance_percentage: Optional[Decimal] = None
    tolerance: Decimal
    status: str
    requires_recount: bool = False
    recount_reason: Optional[str] = None
    notes: Optional[str] = None
    assigned_to: Optional[UUID] = None
    counted_by: Optional[UUID] = None
    counted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class CampaignResponse(BaseResponseSchema):
    id: UUID
    name: str
    description: Optional[str] = None
    count_type: str
    status: str
    total_tasks: int
    completed_tasks: int
    variances_found: int
    tolerance: Decimal
    source_order_id: Optional[UUID] = None
    created_by: Optional[UUID] = None
    start_date: datetime
    end_date: Optional[datetime] = None


class CampaignDetailResponse(CampaignResponse):
    tasks: List[CountTaskResponse] = []


# ============================================================================
# COUNTING
# ============================================================================

class CountRecordRequest(BaseCreateSchema):
    item_id: Optional[UUID] = None
    counted_quantity: Optional[int] = None
    notes: Optional[str] = None
    status: Optional[CountTaskStatus] = None


class VarianceApproveRequest(BaseCreateSchema):
    notes: Optional[str] = None


class RecountRequest(BaseCreateSchema):
    reason: Optional[str] = None
    assigned_to: Optional[UUID] = None

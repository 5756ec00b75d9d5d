"""
Cycle Counting API Endpoints.

Campaign creation, count recording, supervisor variance review and
campaign completion.
"""
from uuid import UUID

from fastapi import APIRouter

from stockroom.api.deps import DB, CurrentUser, Notifications
from stockroom.core.exceptions import ValidationError
from stockroom.database import unit_of_work
from stockroom.schemas.cycle_count import (
    CampaignCreate,
    CampaignDetailResponse,
    CountRecordRequest,
    CountTaskResponse,
    RecountRequest,
    VarianceApproveRequest,
)
from stockroom.services.cycle_count_service import CycleCountService


router = APIRouter()


# ============================================================================
# CAMPAIGNS
# ============================================================================

@router.post("/campaigns", response_model=CampaignDetailResponse)
async def create_campaign(
    data: CampaignCreate,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        campaign = await CycleCountService(db, notifications).create_campaign(
            name=data.name,
            description=data.description,
            count_type=data.count_type,
            inventory_ids=data.inventory_ids,
            variant_ids=data.variant_ids,
            location_ids=data.location_ids,
            tolerance=data.tolerance,
            assigned_to=data.assigned_to,
            user_id=current_user.id,
        )
    return CampaignDetailResponse.model_validate(campaign)


@router.get("/campaigns/{campaign_id}", response_model=CampaignDetailResponse)
async def get_campaign(
    campaign_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    campaign = await CycleCountService(db).get_campaign(campaign_id)
    return CampaignDetailResponse.model_validate(campaign)


@router.post("/campaigns/{campaign_id}/complete")
async def complete_campaign(
    campaign_id: UUID,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        summary = await CycleCountService(db, notifications).complete_campaign(campaign_id, current_user.id)
    return {"success": True, "summary": summary}


@router.get("/campaigns/{campaign_id}/report")
async def get_campaign_report(
    campaign_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    return await CycleCountService(db).get_report(campaign_id)


# ============================================================================
# COUNTING
# ============================================================================

@router.post("/{task_id}/count", response_model=CountTaskResponse)
async def record_count(
    task_id: UUID,
    data: CountRecordRequest,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    """Record a physical count for one task. `itemId`, when sent, must name the same task."""
    if data.item_id is not None and data.item_id != task_id:
        raise ValidationError("itemId does not match the count task")

    async with unit_of_work(db, notifications):
        task = await CycleCountService(db, notifications).record_count(
            task_id,
            data.counted_quantity,
            current_user.id,
            notes=data.notes,
            status=data.status,
        )
    return CountTaskResponse.model_validate(task)


@router.post("/tasks/{task_id}/approve", response_model=CountTaskResponse)
async def approve_variance(
    task_id: UUID,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
    data: VarianceApproveRequest = VarianceApproveRequest(),
):
    async with unit_of_work(db, notifications):
        task = await CycleCountService(db, notifications).approve_variance(task_id, current_user, data.notes)
    return CountTaskResponse.model_validate(task)


@router.post("/tasks/{task_id}/request-recount", response_model=CountTaskResponse)
async def request_recount(
    task_id: UUID,
    data: RecountRequest,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        task = await CycleCountService(db, notifications).request_recount(
            task_id, current_user, data.reason, data.assigned_to
        )
    return CountTaskResponse.model_validate(task)

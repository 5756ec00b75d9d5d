"""Pick list API endpoints for warehouse picking operations."""
import uuid

from fastapi import APIRouter

from stockroom.api.deps import DB, CurrentUser, Notifications, Supervisor
from stockroom.core.exceptions import ValidationError
from stockroom.database import unit_of_work
from stockroom.schemas.picklist import (
    PickItemRequest,
    PickListAssignRequest,
    PickListDetailResponse,
    PickListGenerateRequest,
    PickListItemResponse,
    PickListPauseRequest,
    SkipItemRequest,
)
from stockroom.services.picklist_service import PicklistService


router = APIRouter()


# ==================== PICK LISTS ====================

@router.post("", response_model=PickListDetailResponse)
async def generate_pick_list(
    data: PickListGenerateRequest,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    """Generate a pick list from ALLOCATED orders."""
    async with unit_of_work(db, notifications):
        pick_list = await PicklistService(db, notifications).generate_pick_list(
            data.order_ids,
            user_id=current_user.id,
            assigned_to=data.assigned_to,
            priority=data.priority,
            notes=data.notes,
            auto_start=data.auto_start,
        )
    return PickListDetailResponse.model_validate(pick_list)


@router.get("/{pick_list_id}", response_model=PickListDetailResponse)
async def get_pick_list(
    pick_list_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
):
    pick_list = await PicklistService(db).get_pick_list(pick_list_id)
    return PickListDetailResponse.model_validate(pick_list)


@router.post("/{pick_list_id}/start", response_model=PickListDetailResponse)
async def start_picking(
    pick_list_id: uuid.UUID,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        pick_list = await PicklistService(db, notifications).start_picking(pick_list_id, current_user.id)
    return PickListDetailResponse.model_validate(pick_list)


@router.post("/{pick_list_id}/pause", response_model=PickListDetailResponse)
async def pause_picking(
    pick_list_id: uuid.UUID,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
    data: PickListPauseRequest = PickListPauseRequest(),
):
    async with unit_of_work(db, notifications):
        pick_list = await PicklistService(db, notifications).pause_picking(
            pick_list_id, current_user.id, data.reason
        )
    return PickListDetailResponse.model_validate(pick_list)


@router.post("/{pick_list_id}/reassign", response_model=PickListDetailResponse)
async def reassign_pick_list(
    pick_list_id: uuid.UUID,
    data: PickListAssignRequest,
    db: DB,
    notifications: Notifications,
    current_user: Supervisor,
):
    async with unit_of_work(db, notifications):
        pick_list = await PicklistService(db, notifications).reassign(
            pick_list_id, data.assigned_to, current_user.id
        )
    return PickListDetailResponse.model_validate(pick_list)


# ==================== PICKING ====================

@router.post("/{pick_list_id}/items/{item_id}/pick", response_model=PickListItemResponse)
async def pick_item(
    pick_list_id: uuid.UUID,
    item_id: uuid.UUID,
    data: PickItemRequest,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    """Confirm a scanned pick. A quantity below the requested one closes the line as SHORT_PICK."""
    if data.user_id is not None and data.user_id != current_user.id:
        raise ValidationError("userId does not match the authenticated user")

    async with unit_of_work(db, notifications):
        item = await PicklistService(db, notifications).pick_item(
            pick_list_id,
            item_id,
            data.quantity_picked,
            data.scanned_code,
            current_user.id,
            data.notes,
        )
    return PickListItemResponse.model_validate(item)


@router.post("/{pick_list_id}/items/{item_id}/skip", response_model=PickListItemResponse)
async def skip_item(
    pick_list_id: uuid.UUID,
    item_id: uuid.UUID,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
    data: SkipItemRequest = SkipItemRequest(),
):
    async with unit_of_work(db, notifications):
        item = await PicklistService(db, notifications).skip_item(
            pick_list_id, item_id, current_user.id, data.reason
        )
    return PickListItemResponse.model_validate(item)

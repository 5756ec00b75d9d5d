"""
Returns (RMA) API endpoints.

Lifecycle: create -> approve/reject -> receive -> inspect items ->
restock -> process refund.
"""
import uuid

from fastapi import APIRouter

from stockroom.api.deps import DB, CurrentUser, Notifications, Supervisor
from stockroom.database import unit_of_work
from stockroom.models.fulfillment_sync import SyncType
from stockroom.models.order import Order
from stockroom.schemas.returns import (
    InspectItemRequest,
    RefundCalculationResponse,
    ReturnApproveRequest,
    ReturnCreate,
    ReturnDetailResponse,
    ReturnItemResponse,
    ReturnReceiveRequest,
    ReturnRejectRequest,
)
from stockroom.services.fulfillment_platform_service import FulfillmentSyncService
from stockroom.services.returns_service import ReturnsService


router = APIRouter()


@router.post("", response_model=ReturnDetailResponse)
async def create_return(
    data: ReturnCreate,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        return_order = await ReturnsService(db, notifications).create_return(
            data.order_id,
            [item.model_dump() for item in data.items],
            data.reason,
            reason_details=data.reason_details,
            customer_email=data.customer_email,
            user_id=current_user.id,
        )
    return ReturnDetailResponse.model_validate(return_order)


@router.get("/{rma_number}", response_model=ReturnDetailResponse)
async def get_return(
    rma_number: str,
    db: DB,
    current_user: CurrentUser,
):
    return_order = await ReturnsService(db).get_by_rma(rma_number)
    return ReturnDetailResponse.model_validate(return_order)


@router.post("/{rma_number}/approve", response_model=ReturnDetailResponse)
async def approve_return(
    rma_number: str,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
    data: ReturnApproveRequest = ReturnApproveRequest(),
):
    async with unit_of_work(db, notifications):
        return_order = await ReturnsService(db, notifications).approve(rma_number, current_user.id, data.notes)
    return ReturnDetailResponse.model_validate(return_order)


@router.post("/{rma_number}/reject", response_model=ReturnDetailResponse)
async def reject_return(
    rma_number: str,
    data: ReturnRejectRequest,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        return_order = await ReturnsService(db, notifications).reject(rma_number, current_user.id, data.reason)
    return ReturnDetailResponse.model_validate(return_order)


@router.post("/{rma_number}/receive", response_model=ReturnDetailResponse)
async def receive_return(
    rma_number: str,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
    data: ReturnReceiveRequest = ReturnReceiveRequest(),
):
    async with unit_of_work(db, notifications):
        return_order = await ReturnsService(db, notifications).receive(
            rma_number, current_user.id, data.tracking_number
        )
    return ReturnDetailResponse.model_validate(return_order)


@router.post("/{rma_number}/items/{item_id}/inspect", response_model=ReturnItemResponse)
async def inspect_return_item(
    rma_number: str,
    item_id: uuid.UUID,
    data: InspectItemRequest,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        item = await ReturnsService(db, notifications).inspect_item(
            rma_number,
            item_id,
            data.quantity_received,
            data.condition,
            data.disposition,
            current_user.id,
            restock_location_id=data.restock_location_id,
            condition_notes=data.condition_notes,
            disposition_notes=data.disposition_notes,
        )
    return ReturnItemResponse.model_validate(item)


@router.post("/{rma_number}/restock")
async def restock_return(
    rma_number: str,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        result = await ReturnsService(db, notifications).restock(rma_number, current_user.id)
    return {"success": True, **result}


@router.post("/{rma_number}/calculate-refund", response_model=RefundCalculationResponse)
async def calculate_refund(
    rma_number: str,
    db: DB,
    current_user: CurrentUser,
):
    """Preview the refund breakdown without changing anything."""
    return await ReturnsService(db).calculate_refund(rma_number)


@router.post("/{rma_number}/process-refund", response_model=ReturnDetailResponse)
async def process_refund(
    rma_number: str,
    db: DB,
    notifications: Notifications,
    current_user: Supervisor,
):
    """
    Complete the refund, then tell the fulfillment platform. A platform
    failure is queued for retry and does not undo the refund.
    """
    async with unit_of_work(db, notifications):
        return_order = await ReturnsService(db, notifications).process_refund(rma_number, current_user.id)

    async with unit_of_work(db):
        order = await db.get(Order, return_order.order_id)
        if order is not None:
            await FulfillmentSyncService(db).push(
                order,
                SyncType.REFUND,
                {"amount": str(return_order.refund_amount), "note": return_order.rma_number},
            )
    return ReturnDetailResponse.model_validate(return_order)

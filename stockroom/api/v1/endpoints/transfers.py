"""Stock transfer API endpoints."""
from typing import List
import uuid

from fastapi import APIRouter

from stockroom.api.deps import DB, CurrentUser, Notifications
from stockroom.database import unit_of_work
from stockroom.schemas.inventory import TransferCreate, TransferRejectRequest, TransferResponse
from stockroom.services.transfer_service import TransferService


router = APIRouter()


@router.post("", response_model=TransferResponse)
async def request_transfer(
    data: TransferCreate,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        transfer = await TransferService(db, notifications).request_transfer(
            data.variant_id,
            data.from_location_id,
            data.to_location_id,
            data.quantity,
            current_user.id,
            data.reason,
        )
    return TransferResponse.model_validate(transfer)


@router.get("/pending", response_model=List[TransferResponse])
async def list_pending_transfers(
    db: DB,
    current_user: CurrentUser,
):
    transfers = await TransferService(db).list_pending()
    return [TransferResponse.model_validate(t) for t in transfers]


@router.post("/pending/{transfer_id}/approve", response_model=TransferResponse)
async def approve_transfer(
    transfer_id: uuid.UUID,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        transfer = await TransferService(db, notifications).approve(transfer_id, current_user)
    return TransferResponse.model_validate(transfer)


@router.post("/pending/{transfer_id}/reject", response_model=TransferResponse)
async def reject_transfer(
    transfer_id: uuid.UUID,
    data: TransferRejectRequest,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        transfer = await TransferService(db, notifications).reject(transfer_id, current_user, data.reason)
    return TransferResponse.model_validate(transfer)

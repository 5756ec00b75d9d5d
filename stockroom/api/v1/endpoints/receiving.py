"""Purchase order receiving API endpoints."""
import uuid

from fastapi import APIRouter

from stockroom.api.deps import DB, CurrentUser, Notifications
from stockroom.database import unit_of_work
from stockroom.schemas.inventory import (
    ReceivingCreate,
    ReceivingCountRequest,
    ReceivingRejectRequest,
    ReceivingResponse,
)
from stockroom.services.receiving_service import ReceivingService


router = APIRouter()


@router.post("", response_model=ReceivingResponse)
async def create_receiving_session(
    data: ReceivingCreate,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        session = await ReceivingService(db, notifications).create_session(
            data.po_id,
            [line.model_dump() for line in data.items],
            current_user.id,
            location_id=data.location_id,
            po_reference=data.po_reference,
            vendor=data.vendor,
        )
    return ReceivingResponse.model_validate(session)


@router.get("/{session_id}", response_model=ReceivingResponse)
async def get_receiving_session(
    session_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
):
    session = await ReceivingService(db).get_session(session_id)
    return ReceivingResponse.model_validate(session)


@router.post("/{session_id}/count", response_model=ReceivingResponse)
async def record_receiving_counts(
    session_id: uuid.UUID,
    data: ReceivingCountRequest,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        session = await ReceivingService(db, notifications).record_counts(
            session_id,
            [count.model_dump() for count in data.counts],
            current_user.id,
        )
    return ReceivingResponse.model_validate(session)


@router.post("/{session_id}/submit", response_model=ReceivingResponse)
async def submit_receiving_session(
    session_id: uuid.UUID,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        session = await ReceivingService(db, notifications).submit(session_id, current_user.id)
    return ReceivingResponse.model_validate(session)


@router.post("/{session_id}/approve", response_model=ReceivingResponse)
async def approve_receiving_session(
    session_id: uuid.UUID,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        session = await ReceivingService(db, notifications).approve(session_id, current_user)
    return ReceivingResponse.model_validate(session)


@router.post("/{session_id}/reject", response_model=ReceivingResponse)
async def reject_receiving_session(
    session_id: uuid.UUID,
    data: ReceivingRejectRequest,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        session = await ReceivingService(db, notifications).reject(session_id, current_user, data.reason)
    return ReceivingResponse.model_validate(session)

"""API endpoints for the notification inbox."""
from uuid import UUID

from fastapi import APIRouter, Query

from stockroom.api.deps import DB, CurrentUser
from stockroom.database import unit_of_work
from stockroom.schemas.notification import NotificationListResponse, NotificationResponse
from stockroom.services.notification_service import NotificationService


router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    db: DB,
    current_user: CurrentUser,
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(50, ge=1, le=200),
):
    items, unread = await NotificationService(db).list_for_user(current_user.id, unread_only, limit)
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in items],
        unread_count=unread,
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    db: DB,
    current_user: CurrentUser,
):
    async with unit_of_work(db):
        notification = await NotificationService(db).mark_read(notification_id, current_user.id)
    return NotificationResponse.model_validate(notification)

"""
Notification Service

Writes in-app notification rows as part of the caller's transaction and
queues a matching real-time push. The queue is flushed by ``dispatch()``
after the transaction commits (see ``database.unit_of_work``); a push
failure is logged and never propagates.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.core.enum_utils import get_enum_value
from stockroom.core.exceptions import NotFoundError
from stockroom.models.notification import Notification, NotificationType
from stockroom.services.push_service import PushService


logger = logging.getLogger(__name__)


class NotificationService:

    def __init__(self, db: AsyncSession, push: Optional[PushService] = None):
        self.db = db
        self.push = push or PushService()
        self._outbox: List[Notification] = []

    async def notify(
        self,
        user_id: uuid.UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=get_enum_value(notification_type),
            title=title,
            message=message,
            link=link,
            data=data or {},
        )
        self.db.add(notification)
        self._outbox.append(notification)
        return notification

    @property
    def pending(self) -> List[Notification]:
        return list(self._outbox)

    def discard(self) -> None:
        """Drop queued pushes, used when the transaction rolled back."""
        self._outbox.clear()

    async def dispatch(self) -> int:
        """Deliver queued pushes. Returns the number delivered."""
        queued, self._outbox = self._outbox, []
        delivered = 0
        for notification in queued:
            try:
                await self.push.send(
                    str(notification.user_id),
                    "notification",
                    {
                        "id": str(notification.id),
                        "type": notification.type,
                        "title": notification.title,
                        "message": notification.message,
                        "link": notification.link,
                    },
                )
                delivered += 1
            except Exception as e:
                logger.warning(
                    f"Push delivery failed for notification {notification.id} "
                    f"to user {notification.user_id}: {e}"
                )
        return delivered

    # ==================== INBOX ====================

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> tuple[List[Notification], int]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        count_stmt = select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.read == False,  # noqa: E712
        )
        if unread_only:
            stmt = stmt.where(Notification.read == False)  # noqa: E712

        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        items = list((await self.db.execute(stmt)).scalars().all())
        unread = (await self.db.execute(count_stmt)).scalar() or 0
        return items, unread

    async def mark_read(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification not found")

        if not notification.read:
            notification.read = True
            notification.read_at = datetime.now(timezone.utc)
        return notification

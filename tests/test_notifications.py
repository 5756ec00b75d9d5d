import json

import httpx
import pytest

from stockroom.database import unit_of_work
from stockroom.models.notification import NotificationType
from stockroom.models.user import UserRole
from stockroom.services.notification_service import NotificationService
from stockroom.services.push_service import PushService


def push_with(handler) -> PushService:
    return PushService(base_url="https://push.test", api_key="k", transport=httpx.MockTransport(handler))


async def test_push_is_delivered_after_commit(db, seed):
    user = await seed.user(UserRole.STAFF)
    sent = []

    def handler(request):
        sent.append(request)
        return httpx.Response(201, json={})

    notifications = NotificationService(db, push=push_with(handler))
    async with unit_of_work(db, notifications):
        await notifications.notify(user.id, NotificationType.TASK_ASSIGNED, "Task assigned", "PACK-1 is yours")
        assert sent == []

    [request] = sent
    assert str(request.url) == f"https://push.test/channels/user-{user.id}/messages"
    body = json.loads(request.content)
    assert body["name"] == "notification"
    assert body["data"]["title"] == "Task assigned"
    assert notifications.pending == []


async def test_push_failure_does_not_raise(db, seed):
    user = await seed.user(UserRole.STAFF)
    notifications = NotificationService(db, push=push_with(lambda request: httpx.Response(500)))

    async with unit_of_work(db, notifications):
        notification = await notifications.notify(user.id, NotificationType.TASK_ASSIGNED, "t", "m")

    items, unread = await notifications.list_for_user(user.id)
    assert [n.id for n in items] == [notification.id]
    assert unread == 1


async def test_dispatch_counts_deliveries(db, seed):
    user = await seed.user(UserRole.STAFF)
    calls = iter([httpx.Response(200), httpx.Response(503)])
    notifications = NotificationService(db, push=push_with(lambda request: next(calls)))

    await notifications.notify(user.id, NotificationType.TASK_ASSIGNED, "a", "a")
    await notifications.notify(user.id, NotificationType.TASK_ASSIGNED, "b", "b")
    await db.commit()

    assert await notifications.dispatch() == 1


async def test_rollback_discards_queued_pushes(db, seed):
    user = await seed.user(UserRole.STAFF)
    user_id = user.id
    sent = []
    notifications = NotificationService(db, push=push_with(lambda request: sent.append(request) or httpx.Response(200)))

    with pytest.raises(RuntimeError):
        async with unit_of_work(db, notifications):
            await notifications.notify(user_id, NotificationType.TASK_ASSIGNED, "t", "m")
            raise RuntimeError("boom")

    assert notifications.pending == []
    assert sent == []
    items, unread = await notifications.list_for_user(user_id)
    assert items == [] and unread == 0


async def test_disabled_push_only_logs(db, seed):
    user = await seed.user(UserRole.STAFF)
    notifications = NotificationService(db, push=PushService(base_url=""))
    await notifications.notify(user.id, NotificationType.TASK_ASSIGNED, "t", "m")
    await db.commit()

    assert await notifications.dispatch() == 1


async def test_mark_read_is_scoped_to_owner(db, seed):
    from stockroom.core.exceptions import NotFoundError

    owner = await seed.user(UserRole.STAFF)
    other = await seed.user(UserRole.STAFF)
    notifications = NotificationService(db)
    notification = await notifications.notify(owner.id, NotificationType.TASK_ASSIGNED, "t", "m")
    await db.commit()

    with pytest.raises(NotFoundError):
        await notifications.mark_read(notification.id, other.id)

    notification = await notifications.mark_read(notification.id, owner.id)
    assert notification.read is True
    await db.commit()

    items, unread = await notifications.list_for_user(owner.id, unread_only=True)
    assert items == [] and unread == 0

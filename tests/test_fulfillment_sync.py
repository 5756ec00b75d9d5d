import json

import httpx
import pytest
from sqlalchemy import select

from stockroom.core.exceptions import ConflictError
from stockroom.jobs import sync_jobs
from stockroom.models.fulfillment_sync import FulfillmentSync, SyncStatus, SyncType
from stockroom.models.order import OrderStatus
from stockroom.models.user import UserRole
from stockroom.services.fulfillment_platform_service import (
    FulfillmentPlatformError,
    FulfillmentPlatformService,
    FulfillmentSyncService,
)
from stockroom.services.order_service import OrderService


class Recorder:
    """MockTransport handler that records requests and answers with a fixed status."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, text="platform unavailable")
        return httpx.Response(self.status_code, json={"ok": True})


def platform_with(recorder: Recorder) -> FulfillmentPlatformService:
    return FulfillmentPlatformService(
        base_url="https://platform.test/api",
        token="secret",
        transport=httpx.MockTransport(recorder),
    )


async def test_mark_fulfilled_request():
    recorder = Recorder()
    await platform_with(recorder).mark_fulfilled("ext-1", tracking_number="1Z999")

    [request] = recorder.requests
    assert request.method == "POST"
    assert str(request.url) == "https://platform.test/api/orders/ext-1/fulfillments"
    assert request.headers["Authorization"] == "Bearer secret"
    assert json.loads(request.content) == {"tracking_number": "1Z999", "notify_customer": True}


async def test_platform_error_carries_status():
    with pytest.raises(FulfillmentPlatformError) as exc:
        await platform_with(Recorder(502)).issue_refund("ext-1", "10.00")
    assert exc.value.status_code == 502


async def test_unconfigured_platform_fails():
    with pytest.raises(FulfillmentPlatformError):
        await FulfillmentPlatformService(base_url="").mark_fulfilled("ext-1")


async def test_push_without_external_id_is_skipped(db, seed):
    variant = await seed.variant()
    order = await seed.order([(variant, 1)], status=OrderStatus.SHIPPED, shipped_days_ago=1)
    recorder = Recorder()

    assert await FulfillmentSyncService(db, platform_with(recorder)).sync_fulfillment(order) is None
    assert recorder.requests == []


async def test_failed_push_queues_pending_sync(db, seed):
    variant = await seed.variant()
    order = await seed.order([(variant, 1)], status=OrderStatus.SHIPPED, shipped_days_ago=1, external_order_id="ext-9")

    sync = await FulfillmentSyncService(db, platform_with(Recorder(503))).sync_fulfillment(order)
    await db.commit()

    assert sync.status == SyncStatus.PENDING.value
    assert sync.attempts == 1
    assert sync.sync_type == SyncType.FULFILLMENT.value
    assert sync.payload == {"external_order_id": "ext-9", "tracking_number": "1Z999"}
    assert "503" in sync.last_error


async def test_retry_pending_completes_and_gives_up(db, seed):
    variant = await seed.variant()
    order = await seed.order([(variant, 1)], status=OrderStatus.SHIPPED, shipped_days_ago=1, external_order_id="ext-5")
    failing = FulfillmentSyncService(db, platform_with(Recorder(500)))
    first = await failing.push(order, SyncType.FULFILLMENT, {"tracking_number": "1Z999"})
    second = await failing.push(order, SyncType.REFUND, {"amount": "12.50"})
    await db.commit()

    stats = await failing.retry_pending(max_attempts=2)
    assert stats == {"processed": 2, "completed": 0, "failed": 2, "pending": 0}
    assert {first.status, second.status} == {SyncStatus.FAILED.value}

    first.status = SyncStatus.PENDING.value
    await db.flush()
    recorder = Recorder()
    stats = await FulfillmentSyncService(db, platform_with(recorder)).retry_pending(max_attempts=5)
    assert stats["completed"] == 1
    assert first.status == SyncStatus.COMPLETED.value
    assert first.completed_at is not None
    assert first.last_error is None
    assert str(recorder.requests[0].url).endswith("/orders/ext-5/fulfillments")


async def test_mark_fulfilled_action_delivers_and_records_failure(db, seed):
    variant = await seed.variant()
    user = await seed.user(UserRole.MANAGER)
    order = await seed.order([(variant, 1)], status=OrderStatus.SHIPPED, shipped_days_ago=1, external_order_id="ext-7")

    result = await OrderService(db, platform=platform_with(Recorder(503))).execute_action(
        "MARK_FULFILLED", user.id, order_id=order.id
    )
    assert result["status"] == OrderStatus.DELIVERED.value
    assert result["sync_pending"] is True

    [row] = (await db.execute(select(FulfillmentSync))).scalars().all()
    assert row.order_id == order.id

    with pytest.raises(ConflictError):
        await OrderService(db).execute_action("MARK_FULFILLED", user.id, order_id=order.id)


async def test_scheduled_retry_uses_its_own_session(db, seed, session_factory, monkeypatch):
    from contextlib import asynccontextmanager

    variant = await seed.variant()
    order = await seed.order([(variant, 1)], status=OrderStatus.SHIPPED, shipped_days_ago=1, external_order_id="ext-3")
    await FulfillmentSyncService(db, platform_with(Recorder(500))).sync_fulfillment(order)
    await db.commit()

    @asynccontextmanager
    async def scoped_session():
        async with session_factory() as session:
            yield session
            await session.commit()

    monkeypatch.setattr(sync_jobs, "get_db_session", scoped_session)
    stats = await sync_jobs.retry_pending_syncs(platform_with(Recorder()))
    assert stats["completed"] == 1

    row = (await db.execute(
        select(FulfillmentSync).execution_options(populate_existing=True)
    )).scalar_one()
    assert row.status == SyncStatus.COMPLETED.value

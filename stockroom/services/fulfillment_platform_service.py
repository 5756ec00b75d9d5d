"""
External Fulfillment Platform Integration.

Thin client for the e-commerce platform that owns customer orders:
- Marking an order fulfilled (with tracking number)
- Issuing a refund for a processed return

Calls are best-effort. Callers catch FulfillmentPlatformError and record a
PENDING FulfillmentSync row that the scheduler retries later
(see jobs/scheduler.py).
"""
import logging
from typing import Optional, Dict, Any
from datetime import datetime, timezone

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.config import settings
from stockroom.core.enum_utils import get_enum_value
from stockroom.models.fulfillment_sync import FulfillmentSync, SyncType, SyncStatus
from stockroom.models.order import Order


logger = logging.getLogger(__name__)


class FulfillmentPlatformError(Exception):
    """Fulfillment platform API error."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Fulfillment platform error ({status_code}): {message}")


class FulfillmentPlatformService:
    """
    Usage:
        platform = FulfillmentPlatformService()
        await platform.mark_fulfilled("gid-123", tracking_number="1Z999")
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url if base_url is not None else settings.FULFILLMENT_API_URL
        self.token = token if token is not None else settings.FULFILLMENT_API_TOKEN
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def _request(self, method: str, endpoint: str, data: Optional[Dict] = None) -> Dict:
        """Make authenticated request to the platform API."""
        if not self.enabled:
            raise FulfillmentPlatformError(0, "FULFILLMENT_API_URL is not configured")

        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }
        url = f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

        try:
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=settings.HTTP_TIMEOUT_SECONDS,
            ) as client:
                response = await client.request(method.upper(), url, headers=headers, json=data)
        except httpx.HTTPError as e:
            raise FulfillmentPlatformError(0, str(e)) from e

        if response.status_code >= 400:
            logger.error(f"Fulfillment platform error: {response.status_code} - {response.text}")
            raise FulfillmentPlatformError(response.status_code, response.text or response.reason_phrase)

        return response.json() if response.text else {}

    # ==================== OPERATIONS ====================

    async def mark_fulfilled(self, external_order_id: str, tracking_number: Optional[str] = None) -> Dict:
        return await self._request(
            "POST",
            f"/orders/{external_order_id}/fulfillments",
            {"tracking_number": tracking_number, "notify_customer": True},
        )

    async def issue_refund(self, external_order_id: str, amount: str, note: Optional[str] = None) -> Dict:
        return await self._request(
            "POST",
            f"/orders/{external_order_id}/refunds",
            {"amount": amount, "note": note},
        )

    async def send(self, sync_type: str, payload: Dict[str, Any]) -> Dict:
        """Replay a stored sync payload."""
        sync_type = get_enum_value(sync_type)
        if sync_type == SyncType.FULFILLMENT.value:
            return await self.mark_fulfilled(payload["external_order_id"], payload.get("tracking_number"))
        if sync_type == SyncType.REFUND.value:
            return await self.issue_refund(payload["external_order_id"], payload["amount"], payload.get("note"))
        raise ValueError(f"Unknown sync type: {sync_type}")


class FulfillmentSyncService:
    """Best-effort sync of warehouse events to the platform, with a retry queue."""

    def __init__(self, db: AsyncSession, platform: Optional[FulfillmentPlatformService] = None):
        self.db = db
        self.platform = platform or FulfillmentPlatformService()

    async def push(self, order: Order, sync_type: SyncType, payload: Dict[str, Any]) -> Optional[FulfillmentSync]:
        """
        Try the platform call once. On failure queue a PENDING sync row and
        return it; the caller commits it. Returns None when delivered.
        """
        if not order.external_order_id:
            logger.debug(f"Order {order.order_number} has no external id, skipping {get_enum_value(sync_type)} sync")
            return None

        payload = {"external_order_id": order.external_order_id, **payload}
        try:
            await self.platform.send(sync_type, payload)
            logger.info(f"Synced {get_enum_value(sync_type)} for order {order.order_number}")
            return None
        except (FulfillmentPlatformError, ValueError) as e:
            logger.warning(f"{get_enum_value(sync_type)} sync failed for order {order.order_number}: {e}")
            sync = FulfillmentSync(
                order_id=order.id,
                sync_type=get_enum_value(sync_type),
                status=SyncStatus.PENDING.value,
                payload=payload,
                attempts=1,
                last_error=str(e),
                last_attempt_at=datetime.now(timezone.utc),
            )
            self.db.add(sync)
            return sync

    async def sync_fulfillment(self, order: Order) -> Optional[FulfillmentSync]:
        return await self.push(order, SyncType.FULFILLMENT, {"tracking_number": order.tracking_number})

    async def retry_pending(self, max_attempts: Optional[int] = None) -> Dict[str, int]:
        """Replay every PENDING sync row once. Rows reaching max_attempts become FAILED."""
        max_attempts = max_attempts or settings.PENDING_SYNC_MAX_ATTEMPTS
        stmt = (
            select(FulfillmentSync)
            .where(FulfillmentSync.status == SyncStatus.PENDING.value)
            .order_by(FulfillmentSync.created_at)
        )
        rows = (await self.db.execute(stmt)).scalars().all()

        stats = {"processed": 0, "completed": 0, "failed": 0, "pending": 0}
        for sync in rows:
            stats["processed"] += 1
            sync.attempts = (sync.attempts or 0) + 1
            sync.last_attempt_at = datetime.now(timezone.utc)
            try:
                await self.platform.send(sync.sync_type, sync.payload or {})
            except (FulfillmentPlatformError, ValueError, KeyError) as e:
                sync.last_error = str(e)
                if sync.attempts >= max_attempts:
                    sync.status = SyncStatus.FAILED.value
                    stats["failed"] += 1
                    logger.error(f"Giving up on sync {sync.id} after {sync.attempts} attempts: {e}")
                else:
                    stats["pending"] += 1
                continue

            sync.status = SyncStatus.COMPLETED.value
            sync.completed_at = datetime.now(timezone.utc)
            sync.last_error = None
            stats["completed"] += 1

        await self.db.flush()
        return stats

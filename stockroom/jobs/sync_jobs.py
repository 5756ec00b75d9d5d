"""
Fulfillment Sync Jobs

Replays PENDING FulfillmentSync rows left behind when the platform was
unreachable during MARK_FULFILLED or a refund.
"""

import logging
from typing import Dict, Optional
from datetime import datetime, timezone

from stockroom.database import get_db_session
from stockroom.services.fulfillment_platform_service import FulfillmentSyncService, FulfillmentPlatformService

logger = logging.getLogger(__name__)


async def retry_pending_syncs(platform: Optional[FulfillmentPlatformService] = None) -> Dict[str, int]:
    logger.info("Starting pending fulfillment sync retry...")
    start_time = datetime.now(timezone.utc)

    async with get_db_session() as session:
        stats = await FulfillmentSyncService(session, platform).retry_pending()

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(
        f"Pending sync retry completed in {duration:.2f}s: "
        f"{stats['completed']} completed, {stats['pending']} still pending, {stats['failed']} failed"
    )
    return stats

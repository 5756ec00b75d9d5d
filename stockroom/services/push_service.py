"""
Real-time push transport.

Fire-and-forget delivery of a notification payload to a user channel over
HTTP. When PUSH_API_URL is not configured the message is only logged.
"""
import logging
from typing import Optional, Dict, Any

import httpx

from stockroom.config import settings


logger = logging.getLogger(__name__)


class PushService:
    """
    Usage:
        push = PushService()
        await push.send(user_id, "notification", {"title": "..."})
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url if base_url is not None else settings.PUSH_API_URL
        self.api_key = api_key if api_key is not None else settings.PUSH_API_KEY
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def send(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        if not self.enabled:
            logger.debug(f"Push disabled, dropping '{event}' for user {user_id}")
            return

        url = f"{self.base_url.rstrip('/')}/channels/user-{user_id}/messages"
        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(
            transport=self.transport,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        ) as client:
            response = await client.post(
                url,
                headers=headers,
                json={"name": event, "data": payload},
            )
            response.raise_for_status()

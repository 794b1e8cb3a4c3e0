"""
Downstream notifications.

Clock events and sweep summaries go to collaborators whose failure must
never affect attendance results:

    - BestEffortDispatcher: runs coroutines as detached tasks, logs failures
    - MapWebhookNotifier: POSTs {action, data, timestamp} to the map renderer
    - LineNotifier: pushes text to an admin LINE user or group
"""

import asyncio
import logging
from datetime import datetime, tzinfo
from typing import Any, Awaitable, Dict, List, Optional, Set

import httpx

logger = logging.getLogger(__name__)


class BestEffortDispatcher:
    """
    Fire-and-forget task runner.

    dispatch() never blocks and never raises; each task has its own error
    boundary. References to pending tasks are kept so they are not garbage
    collected mid-flight and so drain() can wait for them on shutdown.
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _guard(self, name: str, work: Awaitable[Any], delay: float) -> None:
        try:
            if delay > 0:
                await asyncio.sleep(delay)
            await work
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Best-effort task '{name}' failed: {e}")

    def dispatch(self, name: str, work: Awaitable[Any], delay: float = 0.0) -> None:
        """Schedule work on the running loop, optionally after a delay."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, dropping best-effort task '{name}'")
            if asyncio.iscoroutine(work):
                work.close()
            return

        task = loop.create_task(self._guard(name, work, delay), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for pending tasks; cancel whatever is left after timeout."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        done, not_done = await asyncio.wait(tasks, timeout=timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            await asyncio.gather(*not_done, return_exceptions=True)


class MapWebhookNotifier:
    """
    Notifies the external map renderer about clock events.

    Args:
        http_client: Shared httpx.AsyncClient.
        url: Webhook URL. Notifications are skipped when empty.
        secret: Sent as X-Webhook-Secret.
        tz: Zone used for the payload timestamp.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        url: str,
        secret: str,
        tz: tzinfo,
        timeout: float = 10.0,
    ) -> None:
        self._client = http_client
        self._url = url
        self._secret = secret
        self._tz = tz
        self._timeout = timeout

    def is_configured(self) -> bool:
        return bool(self._url)

    async def notify(self, action: str, data: Dict[str, Any]) -> bool:
        """
        POST one event.

        Returns:
            True if the renderer accepted it. Failures are logged, not raised.
        """
        if not self.is_configured():
            logger.debug("Map webhook URL not configured")
            return False

        payload = {
            "action": action,
            "data": data,
            "timestamp": datetime.now(self._tz).isoformat(),
        }
        try:
            response = await self._client.post(
                self._url,
                json=payload,
                headers={"X-Webhook-Secret": self._secret},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"Map webhook failed for {action}: {e}")
            return False

        if response.status_code >= 400:
            logger.error(f"Map webhook rejected {action}: {response.status_code}")
            return False

        logger.info(f"Map generation triggered for {action}: {data.get('employee', '')}")
        return True


class LineNotifier:
    """
    LINE Messaging API push client for admin summaries.

    Args:
        http_client: Shared httpx.AsyncClient.
        access_token: Channel access token.
        target: User, group or room id receiving the pushes.
    """

    API_BASE = "https://api.line.me/v2/bot"
    MAX_TEXT_LENGTH = 5000

    def __init__(self, http_client: httpx.AsyncClient, access_token: str, target: str) -> None:
        self._client = http_client
        self._access_token = access_token
        self._target = target

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }

    def is_configured(self) -> bool:
        """Check if credentials and target are set."""
        return bool(self._access_token and self._target)

    async def post_push(self, messages: List[Dict[str, Any]]) -> bool:
        """POST to /message/push (at most 5 messages per call)."""
        if not self.is_configured():
            logger.warning("LINE notifier not configured")
            return False

        try:
            resp = await self._client.post(
                f"{self.API_BASE}/message/push",
                headers=self._headers(),
                json={"to": self._target, "messages": messages[:5]},
            )
        except httpx.HTTPError as e:
            logger.error(f"Push failed: {e}")
            return False

        if resp.status_code != 200:
            logger.error(f"Push rejected: {resp.status_code} - {resp.text[:200]}")
            return False
        return True

    async def send_text(self, text: str) -> bool:
        return await self.post_push([{"type": "text", "text": text[: self.MAX_TEXT_LENGTH]}])

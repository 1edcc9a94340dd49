"""Best-effort push fan-out of round events.

Delivery runs in background tasks so the engine never waits on it, and
every failure is logged and swallowed.
"""

import asyncio
import logging
from typing import Dict, Iterable, Optional, Set

import httpx

from .errors import NotificationError

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        enabled: bool = False,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.enabled = enabled
        self.timeout = timeout
        self._transport = transport
        self.subscriptions: Dict[str, str] = {}  # participant id -> endpoint URL
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, participant_id: str, endpoint: str):
        self.subscriptions[participant_id] = endpoint

    def unsubscribe(self, participant_id: str):
        self.subscriptions.pop(participant_id, None)

    def dispatch(self, event: str, payload: dict, participant_ids: Iterable[str]) -> Optional[asyncio.Task]:
        """Schedule delivery and return immediately."""
        if not self.enabled:
            return None
        endpoints = [
            self.subscriptions[pid] for pid in participant_ids if pid in self.subscriptions
        ]
        if not endpoints:
            return None

        task = asyncio.create_task(self._deliver(event, payload, endpoints))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, event: str, payload: dict, endpoints):
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for endpoint in endpoints:
                try:
                    await self._post(client, endpoint, event, payload)
                except NotificationError as e:
                    logger.warning(f"Push of {event} failed: {e.reason}")

    async def _post(self, client: httpx.AsyncClient, endpoint: str, event: str, payload: dict):
        try:
            response = await client.post(endpoint, json={"event": event, "data": payload})
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"{endpoint}: {e}") from e

    async def drain(self):
        """Wait for in-flight deliveries."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self):
        for task in list(self._tasks):
            task.cancel()
        await self.drain()

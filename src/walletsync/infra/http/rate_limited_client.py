import asyncio
import logging
import time
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class RateLimitedClient:
    """Async JSON POST client that spaces requests to a node's rate limit.

    Each request reserves the next free slot under a lock and then sleeps
    outside it, so concurrent block fetches queue up in order without one
    caller holding the lock for the whole wait.
    """

    def __init__(
        self,
        rate_per_second: float = 5.0,
        timeout: float = 30.0,
        max_connections: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be > 0")
        self._min_interval = 1.0 / rate_per_second
        self._next_slot = 0.0
        self._lock = asyncio.Lock()
        self._sent = 0
        self._client = httpx.AsyncClient(
            timeout=timeout,
            limits=httpx.Limits(max_connections=max_connections),
            transport=transport,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    @property
    def requests_sent(self) -> int:
        return self._sent

    async def _reserve_slot(self) -> float:
        """Claim the next send time and return how long the caller must wait for it."""
        async with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self._min_interval
            return slot - now

    async def post(self, url: str, json: dict | list | None = None) -> httpx.Response:
        delay = await self._reserve_slot()
        if delay > 0:
            await asyncio.sleep(delay)
        started = time.monotonic()
        response = await self._client.post(url, json=json)
        self._sent += 1
        logger.debug(
            "POST %s -> %d in %.3fs (waited %.3fs)",
            url, response.status_code, time.monotonic() - started, delay,
        )
        return response

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RateLimitedClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

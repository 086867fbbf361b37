"""
Minimum-interval pacing for sequential listing-page requests.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from urllib.parse import urlparse


class PageRateLimiter:
    """
    Enforces a minimum interval between requests to the same domain.
    """

    def __init__(
        self,
        *,
        min_interval_seconds: float,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._min_interval_seconds = max(0.0, min_interval_seconds)
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._last_request_by_domain: dict[str, float] = {}

    async def wait(self, url: str) -> None:
        """
        Sleep as needed so consecutive requests keep their spacing.
        """

        parsed = urlparse(url)
        domain = parsed.netloc.lower() or parsed.path.lower()
        if not domain or self._min_interval_seconds <= 0:
            return

        last_time = self._last_request_by_domain.get(domain)
        if last_time is not None:
            wait_seconds = self._min_interval_seconds - (self._clock() - last_time)
            if wait_seconds > 0:
                await self._sleep(wait_seconds)
        self._last_request_by_domain[domain] = self._clock()

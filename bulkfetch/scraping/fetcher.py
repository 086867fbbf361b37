"""
Async page fetch collaborator shared by the brand and product scrapers.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import httpx
from bs4 import BeautifulSoup

from bulkfetch.config import HTTPSettings, get_http_settings
from bulkfetch.errors import FetchTimeoutError, HttpStatusError, NetworkError, ScrapeError
from bulkfetch.logging_utils import log_event

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class PageSource(Protocol):
    """
    Anything that can turn a URL into parsed markup.
    """

    async def fetch_soup(self, url: str) -> BeautifulSoup:
        ...


class PageFetcher:
    """
    Fetches HTML pages over one pooled `httpx.AsyncClient`.

    The pool's connection limit is the only bound on concurrent detail-page
    enrichment.
    """

    def __init__(
        self,
        *,
        settings: HTTPSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_http_settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.timeout_seconds, pool=None),
            limits=httpx.Limits(
                max_connections=self.settings.max_connections,
                max_keepalive_connections=self.settings.max_keepalive_connections,
            ),
            headers=self._default_headers(),
            follow_redirects=True,
            verify=self.settings.verify_ssl,
        )

    async def __aenter__(self) -> PageFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_text(self, url: str) -> str:
        response = await self._request_with_retry(url)
        return response.text

    async def fetch_soup(self, url: str) -> BeautifulSoup:
        html = await self.fetch_text(url)
        return BeautifulSoup(html, "html.parser")

    def _default_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.settings.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }

    async def _request_with_retry(self, url: str) -> httpx.Response:
        last_error: ScrapeError = NetworkError(f"No request attempted for {url}")

        for attempt in range(self.settings.max_retries + 1):
            try:
                response = await self._client.get(url)
            except httpx.TimeoutException as exc:
                last_error = FetchTimeoutError(f"Timed out fetching {url}: {exc}")
            except httpx.TransportError as exc:
                last_error = NetworkError(f"Transport error fetching {url}: {exc}")
            else:
                if response.status_code < 400:
                    return response
                last_error = HttpStatusError(response.status_code, url)
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    raise last_error

            if attempt >= self.settings.max_retries:
                break

            backoff_seconds = self.settings.backoff_initial_seconds * (
                self.settings.backoff_multiplier**attempt
            )
            log_event(
                logger,
                logging.DEBUG,
                "fetch_retry_scheduled",
                url=url,
                attempt=attempt + 1,
                backoff_seconds=backoff_seconds,
                error=str(last_error),
            )
            await asyncio.sleep(backoff_seconds)

        raise last_error

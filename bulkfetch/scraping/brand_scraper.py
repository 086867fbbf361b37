"""
Brand directory scraper with a TTL-cached aggregate.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from bulkfetch.config import ScraperSettings, get_http_settings, get_scraper_settings
from bulkfetch.domain.catalog import Brand, BrandPage
from bulkfetch.logging_utils import log_event
from bulkfetch.scraping.fetcher import PageSource
from bulkfetch.scraping.parsing.brands import BrandDirectoryParser
from bulkfetch.scraping.store import InMemoryKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)

BRAND_CACHE_KEY = "brands:all"


class BrandScraper:
    """
    Discovers every brand listed in the site's paginated brand directory.
    """

    def __init__(
        self,
        *,
        source: PageSource,
        store: KeyValueStore | None = None,
        settings: ScraperSettings | None = None,
        base_url: str | None = None,
    ) -> None:
        self.source = source
        self.store = store or InMemoryKeyValueStore()
        self.settings = settings or get_scraper_settings()
        self.base_url = (base_url or get_http_settings().base_url).rstrip("/")
        self.parser = BrandDirectoryParser(
            base_url=self.base_url,
            brand_link_marker=self.settings.brand_link_marker,
            page_param=self.settings.page_param,
        )

    @property
    def brands_url(self) -> str:
        return f"{self.base_url}{self.settings.brands_path}"

    def page_url(self, page: int) -> str:
        if page <= 1:
            return self.brands_url
        return f"{self.brands_url}?{self.settings.page_param}={page}"

    async def get_total_pages(self) -> int:
        try:
            soup = await self.source.fetch_soup(self.brands_url)
        except Exception as exc:
            log_event(
                logger,
                logging.WARNING,
                "brand_total_pages_fallback",
                url=self.brands_url,
                fallback_pages=self.settings.fallback_total_pages,
                error=str(exc),
            )
            return self.settings.fallback_total_pages
        return self.parser.total_pages(soup) or 1

    async def scrape_all_brands(self) -> list[Brand]:
        """
        Return every brand, deduplicated by name, from cache when fresh.
        """

        cached = self.store.get(BRAND_CACHE_KEY)
        if cached is not None:
            log_event(logger, logging.DEBUG, "brand_cache_hit", brands=len(cached))
            return list(cached)

        total_pages = await self.get_total_pages()
        batch_size = self.settings.brand_page_batch_size
        pages = list(range(1, total_pages + 1))
        collected: list[Brand] = []

        for start in range(0, len(pages), batch_size):
            batch = pages[start : start + batch_size]
            results = await asyncio.gather(*(self._scrape_page_safely(page) for page in batch))
            for page_brands in results:
                collected.extend(page_brands)

        unique: list[Brand] = []
        seen_names: set[str] = set()
        for brand in collected:
            if brand.name in seen_names:
                continue
            seen_names.add(brand.name)
            unique.append(brand)

        self.store.set(BRAND_CACHE_KEY, unique, ttl_seconds=self.settings.brand_cache_ttl_seconds)
        log_event(
            logger,
            logging.INFO,
            "brand_directory_scraped",
            total_pages=total_pages,
            brands=len(unique),
        )
        return list(unique)

    async def scrape_brands(self, page: int = 1, limit: int | None = None) -> BrandPage:
        """
        Scrape one directory page without touching the aggregate cache.
        """

        page = max(1, page)
        soup = await self.source.fetch_soup(self.page_url(page))
        brands = self.parser.parse_brands(soup, page=page)
        if limit is not None:
            brands = brands[: max(0, limit)]
        total_pages = self.parser.total_pages(soup) or page
        return BrandPage(brands=brands, current_page=page, has_more=total_pages > page)

    def clear_cache(self) -> None:
        self.store.delete(BRAND_CACHE_KEY)

    async def get_brand_stats(self) -> dict[str, Any]:
        brands = await self.scrape_all_brands()
        return {
            "total_brands": len(brands),
            "last_scraped": datetime.now(timezone.utc),
            "brands": brands,
        }

    async def find_brand(self, identifier: str) -> Brand | None:
        """
        Look a brand up by name (case-insensitive), id, or slug.
        """

        needle = identifier.strip()
        if not needle:
            return None
        lowered = needle.lower()
        for brand in await self.scrape_all_brands():
            if brand.name.lower() == lowered or brand.id == needle or brand.slug == needle:
                return brand
        return None

    async def _scrape_page_safely(self, page: int) -> list[Brand]:
        url = self.page_url(page)
        try:
            soup = await self.source.fetch_soup(url)
        except Exception as exc:
            log_event(
                logger,
                logging.WARNING,
                "brand_page_failed",
                page=page,
                url=url,
                error=str(exc),
            )
            return []
        return self.parser.parse_brands(soup, page=page)

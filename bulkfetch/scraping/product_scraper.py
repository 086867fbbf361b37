"""
Per-brand product scraper: listing pagination plus detail-page enrichment.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from bs4 import BeautifulSoup

from bulkfetch.config import ScraperSettings, get_http_settings, get_scraper_settings
from bulkfetch.domain.catalog import Availability, Product, Size
from bulkfetch.logging_utils import log_event
from bulkfetch.scraping.fetcher import PageSource
from bulkfetch.scraping.parsing.detail import DetailPageParser
from bulkfetch.scraping.parsing.listing import ListingPageParser
from bulkfetch.scraping.rate_limiter import PageRateLimiter

logger = logging.getLogger(__name__)


class ProductScraper:
    """
    Scrapes every product listed under one brand URL.

    A failing listing page is skipped rather than aborting the brand. When
    every attempted page fails, the last error is raised so the caller's
    retry policy applies.
    """

    def __init__(
        self,
        *,
        source: PageSource,
        settings: ScraperSettings | None = None,
        base_url: str | None = None,
        rate_limiter: PageRateLimiter | None = None,
    ) -> None:
        self.source = source
        self.settings = settings or get_scraper_settings()
        self.base_url = (base_url or get_http_settings().base_url).rstrip("/")
        self.rate_limiter = rate_limiter or PageRateLimiter(
            min_interval_seconds=self.settings.page_delay_seconds
        )
        self.listing_parser = ListingPageParser(
            base_url=self.base_url,
            product_link_marker=self.settings.product_link_marker,
            currency=self.settings.currency,
            page_param=self.settings.page_param,
        )
        self.detail_parser = DetailPageParser(
            base_url=self.base_url,
            max_additional_images=self.settings.max_additional_images,
        )

    def page_url(self, brand_url: str, page: int) -> str:
        if page <= 1:
            return brand_url
        separator = "&" if "?" in brand_url else "?"
        return f"{brand_url}{separator}{self.settings.page_param}={page}"

    async def scrape_products(self, brand_url: str, brand_name: str) -> list[Product]:
        products: list[Product] = []
        seen_urls: set[str] = set()
        attempted_pages = 0
        failed_pages = 0
        consecutive_failures = 0
        last_error: Exception | None = None
        page = 1

        while page <= self.settings.max_listing_pages:
            url = self.page_url(brand_url, page)
            await self.rate_limiter.wait(url)
            attempted_pages += 1
            try:
                soup = await self.source.fetch_soup(url)
                page_products = self.listing_parser.parse_products(
                    soup,
                    brand_name=brand_name,
                    page=page,
                )
            except Exception as exc:
                failed_pages += 1
                consecutive_failures += 1
                last_error = exc
                log_event(
                    logger,
                    logging.WARNING,
                    "listing_page_failed",
                    brand=brand_name,
                    page=page,
                    url=url,
                    error=str(exc),
                )
                if consecutive_failures >= self.settings.max_consecutive_page_failures:
                    break
                page += 1
                continue

            consecutive_failures = 0
            if not page_products:
                break

            fresh: list[Product] = []
            for product in page_products:
                if product.source_url is not None:
                    if product.source_url in seen_urls:
                        continue
                    seen_urls.add(product.source_url)
                fresh.append(product)

            products.extend(await self.enrich_products(fresh))
            log_event(
                logger,
                logging.INFO,
                "listing_page_scraped",
                brand=brand_name,
                page=page,
                products=len(fresh),
            )
            if not self.listing_parser.has_next_page(soup, page):
                break
            page += 1

        if last_error is not None and failed_pages == attempted_pages:
            raise last_error
        return products

    async def enrich_products(self, products: list[Product]) -> list[Product]:
        """
        Enrich all products concurrently; order is preserved.
        """

        if not products:
            return []
        return list(await asyncio.gather(*(self._enrich_product(product) for product in products)))

    async def scrape_product_sizes(self, product_url: str) -> list[Size]:
        soup = await self.source.fetch_soup(product_url)
        return self._sizes_from_soup(soup, product_url)

    async def scrape_additional_images(self, product_url: str, main_image: str | None = None) -> list[str]:
        soup = await self.source.fetch_soup(product_url)
        return self.detail_parser.parse_additional_images(soup, main_image=main_image)

    async def _enrich_product(self, product: Product) -> Product:
        if not product.source_url:
            return product
        try:
            soup = await self.source.fetch_soup(product.source_url)
        except Exception as exc:
            self._log_enrichment_failure(product, "detail_page", exc)
            return product

        additional_images: list[str] = []
        try:
            additional_images = self.detail_parser.parse_additional_images(
                soup,
                main_image=product.main_image,
            )
        except Exception as exc:
            self._log_enrichment_failure(product, "images", exc)

        sizes: list[Size] = []
        try:
            sizes = self._sizes_from_soup(soup, product.source_url)
        except Exception as exc:
            self._log_enrichment_failure(product, "sizes", exc)

        availability = product.availability
        if availability == Availability.UNKNOWN and sizes:
            availability = (
                Availability.IN_STOCK
                if any(size.is_available for size in sizes)
                else Availability.OUT_OF_STOCK
            )
        log_event(
            logger,
            logging.DEBUG,
            "product_enriched",
            product=product.name,
            images=len(additional_images),
            sizes=len(sizes),
        )
        return replace(
            product,
            additional_images=additional_images,
            sizes=sizes,
            availability=availability,
        )

    def _sizes_from_soup(self, soup: BeautifulSoup, product_url: str) -> list[Size]:
        product_id = self.detail_parser.resolve_product_id(soup, url=product_url)
        return self.detail_parser.parse_sizes(soup, product_id=product_id)

    @staticmethod
    def _log_enrichment_failure(product: Product, stage: str, exc: Exception) -> None:
        log_event(
            logger,
            logging.WARNING,
            "enrichment_failed",
            product=product.name,
            url=product.source_url,
            stage=stage,
            error=str(exc),
        )

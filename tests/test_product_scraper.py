"""
tests/test_product_scraper.py

Listing pagination, page-level degradation, and concurrent enrichment.
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import BASE_URL, FakePageSource, detail_page, listing_page, product_card, stock_input

from bulkfetch.config import ScraperSettings
from bulkfetch.domain.catalog import Availability
from bulkfetch.errors import FetchTimeoutError, NetworkError, ParseError
from bulkfetch.scraping.product_scraper import ProductScraper

BRAND_URL = f"{BASE_URL}/brand/nike-21"


def _scraper(source: FakePageSource, **overrides) -> ProductScraper:
    settings = ScraperSettings(page_delay_seconds=0.0, **overrides)
    return ProductScraper(source=source, settings=settings, base_url=BASE_URL)


def _three_page_brand() -> dict[str, object]:
    return {
        BRAND_URL: listing_page(
            product_card("Shoe A", "/product/shoe-a-1", price="50"),
            product_card("Shoe B", "/product/shoe-b-2", price="60"),
            next_page=2,
        ),
        f"{BRAND_URL}?page=2": listing_page(
            product_card("Shoe B", "/product/shoe-b-2", price="60"),
            product_card("Shoe C", "/product/shoe-c-3", price="70"),
            next_page=3,
        ),
        f"{BRAND_URL}?page=3": listing_page(next_page=4),
    }


class TestPagination:
    def test_stops_at_first_empty_page_and_dedupes(self) -> None:
        source = FakePageSource(_three_page_brand())

        products = asyncio.run(_scraper(source).scrape_products(BRAND_URL, "Nike"))

        urls = [product.source_url for product in products]
        assert urls == [
            f"{BASE_URL}/product/shoe-a-1",
            f"{BASE_URL}/product/shoe-b-2",
            f"{BASE_URL}/product/shoe-c-3",
        ]
        assert len(set(urls)) == len(urls)
        assert source.count(f"{BRAND_URL}?page=4") == 0
        assert [product.page for product in products] == [1, 1, 2]

    def test_stops_when_next_page_probe_is_negative(self) -> None:
        source = FakePageSource(
            {BRAND_URL: listing_page(product_card("Solo", "/product/solo-1", price="10"))}
        )

        products = asyncio.run(_scraper(source).scrape_products(BRAND_URL, "Nike"))

        assert len(products) == 1
        assert source.count(f"{BRAND_URL}?page=2") == 0

    def test_failing_page_is_skipped(self) -> None:
        pages = _three_page_brand()
        pages[f"{BRAND_URL}?page=2"] = FetchTimeoutError("slow")
        pages[f"{BRAND_URL}?page=3"] = listing_page(
            product_card("Shoe D", "/product/shoe-d-4", price="80"),
        )
        source = FakePageSource(pages)

        products = asyncio.run(_scraper(source).scrape_products(BRAND_URL, "Nike"))

        assert [product.name for product in products] == ["Shoe A", "Shoe B", "Shoe D"]

    def test_safety_ceiling_bounds_page_count(self) -> None:
        pages = {
            (BRAND_URL if page == 1 else f"{BRAND_URL}?page={page}"): listing_page(
                product_card(f"P{page}", f"/product/p-{page}", price="5"),
                next_page=page + 1,
            )
            for page in range(1, 10)
        }
        source = FakePageSource(pages)

        products = asyncio.run(_scraper(source, max_listing_pages=3).scrape_products(BRAND_URL, "Nike"))

        assert [product.name for product in products] == ["P1", "P2", "P3"]

    def test_every_page_failing_raises_last_error(self) -> None:
        source = FakePageSource(
            {
                BRAND_URL: NetworkError("unreachable"),
                f"{BRAND_URL}?page=2": NetworkError("still unreachable"),
            }
        )

        with pytest.raises(NetworkError, match="still unreachable"):
            asyncio.run(_scraper(source, max_consecutive_page_failures=2).scrape_products(BRAND_URL, "Nike"))

        assert len(source.calls) == 2

    def test_page_url_respects_existing_query(self) -> None:
        scraper = _scraper(FakePageSource())

        assert scraper.page_url(f"{BRAND_URL}?sort=new", 3) == f"{BRAND_URL}?sort=new&page=3"
        assert scraper.page_url(BRAND_URL, 1) == BRAND_URL


class TestEnrichment:
    def test_sizes_and_images_are_attached(self) -> None:
        pages = {
            BRAND_URL: listing_page(product_card("Runner", "/product/runner-101", price="99", image="/img/r.jpg")),
            f"{BASE_URL}/product/runner-101": detail_page(
                sizes=stock_input("40", product_id=101, count=2) + stock_input("41", product_id=101, count=0, size_id=2),
                gallery=["/img/r.jpg", "/img/r-side.jpg"],
            ),
        }
        source = FakePageSource(pages)

        product = asyncio.run(_scraper(source).scrape_products(BRAND_URL, "Nike"))[0]

        assert product.main_image == f"{BASE_URL}/img/r.jpg"
        assert product.additional_images == [f"{BASE_URL}/img/r-side.jpg"]
        assert [(size.size_name, size.is_available) for size in product.sizes] == [("40", True), ("41", False)]

    def test_detail_failure_degrades_to_empty_enrichment(self) -> None:
        pages = {
            BRAND_URL: listing_page(
                product_card("Broken", "/product/broken-1", price="10"),
                product_card("Fine", "/product/fine-2", price="20"),
            ),
            f"{BASE_URL}/product/broken-1": ParseError("garbage"),
            f"{BASE_URL}/product/fine-2": detail_page(sizes=stock_input("M", product_id=2, count=1)),
        }
        source = FakePageSource(pages)

        products = asyncio.run(_scraper(source).scrape_products(BRAND_URL, "Nike"))

        assert [product.name for product in products] == ["Broken", "Fine"]
        assert products[0].sizes == [] and products[0].additional_images == []
        assert len(products[1].sizes) == 1

    def test_detail_pages_are_fetched_concurrently(self) -> None:
        cards = [product_card(f"P{i}", f"/product/p-{i}", price="5") for i in range(4)]
        pages: dict[str, object] = {BRAND_URL: listing_page(*cards)}
        source = FakePageSource(pages)
        for i in range(4):
            url = f"{BASE_URL}/product/p-{i}"
            pages[url] = detail_page()
            source.delays[url] = 0.05
        source.pages = pages
        in_flight = 0
        peak = 0
        original = source.fetch_soup

        async def tracking_fetch(url: str):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            try:
                return await original(url)
            finally:
                in_flight -= 1

        source.fetch_soup = tracking_fetch

        asyncio.run(_scraper(source).scrape_products(BRAND_URL, "Nike"))

        assert peak == 4

    def test_unknown_availability_is_resolved_from_sizes(self) -> None:
        pages = {
            BRAND_URL: '<div><a href="/product/x-5">X</a></div>',
            f"{BASE_URL}/product/x-5": detail_page(sizes=stock_input("S", product_id=5, count=0)),
        }

        product = asyncio.run(_scraper(FakePageSource(pages)).scrape_products(BRAND_URL, "Nike"))[0]

        assert product.availability == Availability.OUT_OF_STOCK

    def test_public_size_and_image_helpers(self) -> None:
        url = f"{BASE_URL}/product/runner-101"
        source = FakePageSource(
            {url: detail_page(sizes=stock_input("40", product_id=101, count=3), gallery=["/img/1.jpg"])}
        )
        scraper = _scraper(source)

        sizes = asyncio.run(scraper.scrape_product_sizes(url))
        images = asyncio.run(scraper.scrape_additional_images(url, main_image=None))

        assert [size.stock_quantity for size in sizes] == [3]
        assert images == [f"{BASE_URL}/img/1.jpg"]

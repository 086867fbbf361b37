"""
Shared fixtures: an in-memory page source, markup builders, and fast settings.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest
from bs4 import BeautifulSoup

from bulkfetch.config import QueueSettings, ScraperSettings, WorkerSettings
from bulkfetch.errors import HttpStatusError

BASE_URL = "https://shop.test"


class FakePageSource:
    """
    Serves fixture markup by URL and records every request.

    A page entry may be HTML, an exception instance to raise, or a list of
    either, consumed one per request (the last entry repeats).
    """

    def __init__(self, pages: dict[str, object] | None = None) -> None:
        self.pages: dict[str, object] = dict(pages or {})
        self.delays: dict[str, float] = {}
        self.calls: list[str] = []

    async def fetch_soup(self, url: str) -> BeautifulSoup:
        self.calls.append(url)
        delay = self.delays.get(url)
        if delay:
            await asyncio.sleep(delay)

        entry = self.pages.get(url)
        if isinstance(entry, list):
            position = min(self.calls.count(url) - 1, len(entry) - 1)
            entry = entry[position]
        if entry is None:
            raise HttpStatusError(404, url)
        if isinstance(entry, BaseException):
            raise entry
        return BeautifulSoup(str(entry), "html.parser")

    def count(self, url: str) -> int:
        return self.calls.count(url)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateTimeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


def product_card(
    name: str,
    href: str,
    *,
    price: str | None = None,
    old_price: str | None = None,
    image: str | None = None,
    badge: str | None = None,
) -> str:
    image_html = f'<img src="{image}" alt="{name}">' if image else ""
    badge_html = f'<div class="badge-ribbon"><span>{badge}</span></div>' if badge else ""
    old_html = f"<del>{old_price} AZN</del>" if old_price else ""
    price_html = f'<span class="text-primary">{price} AZN</span>' if price else ""
    return (
        '<div class="col-6 col-md-3">'
        '<div class="card">'
        f"{badge_html}"
        f'<a href="{href}">{image_html}</a>'
        '<div class="card-body">'
        f'<a href="{href}" title="{name}">{name}</a>'
        f'<div class="prices">{price_html} {old_html}</div>'
        "</div></div></div>"
    )


def listing_page(*cards: str, next_page: int | None = None) -> str:
    pagination = ""
    if next_page is not None:
        pagination = f'<ul class="pagination"><li><a href="?page={next_page}">{next_page}</a></li></ul>'
    return f"<html><body><div class='row'>{''.join(cards)}</div>{pagination}</body></html>"


def stock_input(size: str, *, product_id: int, count: int, size_id: int = 1, price: float = 100.0) -> str:
    payload = json.dumps(
        {
            "size": size,
            "size_id": size_id,
            "product_id": product_id,
            "count": count,
            "price": price,
            "discounted_price": price * 0.8,
            "barcode": f"BC{product_id}{size_id}",
        }
    )
    return (
        '<div class="form-check radio-text form-check-inline">'
        f"<input type=\"radio\" name=\"stock_{product_id}\" value='{payload}'>"
        f'<label class="radio-text-label">{size}</label>'
        "</div>"
    )


def detail_page(*, sizes: str = "", gallery: list[str] | None = None) -> str:
    images = "".join(f'<div class="swiper-slide"><img src="{src}"></div>' for src in gallery or [])
    return (
        "<html><body>"
        f'<div class="product-gallery-wrapper">{images}</div>'
        f'<div class="nav-thumbs nav mb-3">{sizes}</div>'
        "</body></html>"
    )


@pytest.fixture()
def page_source() -> FakePageSource:
    return FakePageSource()


@pytest.fixture()
def scraper_settings() -> ScraperSettings:
    return ScraperSettings(page_delay_seconds=0.0)


@pytest.fixture()
def queue_settings() -> QueueSettings:
    return QueueSettings(task_delay_seconds=0.0)


@pytest.fixture()
def worker_settings() -> WorkerSettings:
    return WorkerSettings(
        task_timeout_seconds=5.0,
        max_retries=5,
        backoff_initial_seconds=0.0,
        backoff_multiplier=2.0,
        backoff_max_seconds=0.0,
    )

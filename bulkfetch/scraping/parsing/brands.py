"""
BeautifulSoup parser for the brand directory.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from bulkfetch.domain.catalog import Brand
from bulkfetch.scraping.parsing.listing import pick_image_url
from bulkfetch.scraping.parsing.text import clean_text, resolve_url

PAGINATION_SELECTOR = ".pagination a, .page-numbers a, [class*=page] a"
LAST_PAGE_LABELS = ("son", "last", "»")
NAVIGATION_LABELS = {"brendlər", "brands", "brendler"}
_BRAND_ID_RE = re.compile(r"-(\d+)$")


class BrandDirectoryParser:
    def __init__(self, *, base_url: str, brand_link_marker: str = "/brand/", page_param: str = "page") -> None:
        self.base_url = base_url.rstrip("/")
        self.brand_link_marker = brand_link_marker
        self._page_href_re = re.compile(rf"[?&]{re.escape(page_param)}=(\d+)")

    def parse_brands(self, soup: BeautifulSoup, *, page: int) -> list[Brand]:
        """
        Extract brand entries from one directory page, unique by URL.
        """

        brands: list[Brand] = []
        seen_urls: set[str] = set()
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"]
            if self.brand_link_marker not in href:
                continue
            name = clean_text(anchor.get_text(" ", strip=True))
            if not name or name.lower() in NAVIGATION_LABELS:
                continue
            url = resolve_url(self.base_url, href)
            if url is None or url in seen_urls:
                continue
            seen_urls.add(url)

            slug = href.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
            id_match = _BRAND_ID_RE.search(slug)
            image = anchor.find("img")
            brands.append(
                Brand(
                    id=id_match.group(1) if id_match else slug,
                    name=name,
                    url=url,
                    slug=slug,
                    image_url=(
                        pick_image_url(image, base_url=self.base_url, attributes=("src", "data-src"))
                        if image is not None
                        else None
                    ),
                    discovered_on_page=page,
                )
            )
        return brands

    def total_pages(self, soup: BeautifulSoup) -> int | None:
        """
        Return the larger of the numeric-label and last-link signals.
        """

        max_label = 0
        for anchor in soup.select(PAGINATION_SELECTOR):
            label = clean_text(anchor.get_text(" ", strip=True))
            if label.isdigit():
                max_label = max(max_label, int(label))

        max_link = 0
        for anchor in soup.find_all("a", href=True):
            label = clean_text(anchor.get_text(" ", strip=True)).lower()
            if not any(marker in label for marker in LAST_PAGE_LABELS):
                continue
            match = self._page_href_re.search(anchor["href"])
            if match is not None:
                max_link = max(max_link, int(match.group(1)))

        detected = max(max_label, max_link)
        return detected or None

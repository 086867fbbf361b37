"""
BeautifulSoup parser for brand listing pages.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Comment, Tag

from bulkfetch.domain.catalog import Availability, Product
from bulkfetch.scraping.parsing.containers import nearest_marked_ancestor, text_contains
from bulkfetch.scraping.parsing.text import (
    class_string,
    clean_text,
    first_line,
    is_template_placeholder,
    parse_price,
    price_with_currency_regex,
    resolve_url,
)

STRIKETHROUGH_TAGS = ("del", "s", "strike")
STRIKETHROUGH_CLASS_MARKERS = ("line-through", "old-price", "price-old")
BRAND_PRICE_SELECTORS = [".brand-price"]
HIGHLIGHT_PRICE_SELECTORS = [".text-primary"]
GENERIC_PRICE_SELECTORS = [".product-price", ".price", "[class*=price]", ".cost", ".amount"]
IMAGE_ATTRIBUTES = ("src", "data-src", "data-original")
PLACEHOLDER_IMAGE_MARKERS = ("product-loader.svg", "placeholder", "loader.gif")
NEXT_PAGE_LABELS = {"»", "›", ">", "next", "növbəti", "sonrakı"}

IN_STOCK_KEYWORDS = ("stokda", "mövcud", "in stock", "available")
OUT_OF_STOCK_KEYWORDS = ("yoxdur", "bitib", "tükənib", "out of stock", "sold out")
OUT_OF_STOCK_CLASS_MARKERS = ("out-of-stock", "outofstock", "sold-out", "unavailable", "no-stock")
IN_STOCK_CLASS_MARKERS = ("in-stock", "instock", "available")
SIZE_OPTION_SELECTORS = [
    "input[type=radio]",
    ".size-option",
    "[class*=size] li",
    "[class*=size] button",
]


def _keyword_pattern(keywords: tuple[str, ...]) -> re.Pattern[str]:
    joined = "|".join(re.escape(keyword) for keyword in keywords)
    return re.compile(rf"(?<!\w)(?:{joined})(?!\w)", flags=re.IGNORECASE)


_IN_STOCK_RE = _keyword_pattern(IN_STOCK_KEYWORDS)
_OUT_OF_STOCK_RE = _keyword_pattern(OUT_OF_STOCK_KEYWORDS)


def classify_stock_text(text: str) -> str | None:
    """
    Map free text to an availability value; negative phrases win.
    """

    if not text:
        return None
    if _OUT_OF_STOCK_RE.search(text):
        return Availability.OUT_OF_STOCK
    if _IN_STOCK_RE.search(text):
        return Availability.IN_STOCK
    return None


def pick_image_url(node: Tag, *, base_url: str, attributes: tuple[str, ...] = IMAGE_ATTRIBUTES) -> str | None:
    for attribute in attributes:
        value = node.get(attribute)
        if not value or not isinstance(value, str):
            continue
        if any(marker in value for marker in PLACEHOLDER_IMAGE_MARKERS):
            continue
        return resolve_url(base_url, value)
    return None


def _is_strikethrough(node: Tag) -> bool:
    if node.name in STRIKETHROUGH_TAGS:
        return True
    classes = class_string(node)
    if any(marker in classes for marker in STRIKETHROUGH_CLASS_MARKERS):
        return True
    style = node.get("style") or ""
    return "line-through" in style.replace(" ", "")


def _inside_strikethrough(node: Tag, *, stop: Tag | None = None) -> bool:
    current: Tag | None = node
    while isinstance(current, Tag) and current is not stop:
        if _is_strikethrough(current):
            return True
        current = current.parent
    return False


class ListingPageParser:
    """
    Extracts product summaries from one listing page.

    Output depends only on the markup, so parsing the same page twice yields
    equal records apart from `scraped_at`.
    """

    def __init__(
        self,
        *,
        base_url: str,
        product_link_marker: str = "/product/",
        currency: str = "AZN",
        page_param: str = "page",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.product_link_marker = product_link_marker
        self.currency = currency
        self.page_param = page_param
        self._currency_price_re = price_with_currency_regex(currency)
        self._page_href_re = re.compile(rf"[?&]{re.escape(page_param)}=(\d+)")

    def product_anchors(self, soup: BeautifulSoup) -> list[Tag]:
        return [
            anchor
            for anchor in soup.find_all("a", href=True)
            if self.product_link_marker in anchor["href"]
        ]

    def parse_products(self, soup: BeautifulSoup, *, brand_name: str, page: int) -> list[Product]:
        products: list[Product] = []
        seen_urls: set[str] = set()
        anchors = self.product_anchors(soup)

        # Cards often wrap the image and the title in separate links.
        images_by_url: dict[str, str] = {}
        for anchor in anchors:
            href = resolve_url(self.base_url, anchor.get("href"))
            image = self.extract_image(anchor)
            if href is not None and image is not None:
                images_by_url.setdefault(href, image)

        for anchor in anchors:
            name = self.extract_name(anchor)
            if not name:
                continue
            source_url = resolve_url(self.base_url, anchor.get("href"))
            if source_url is not None:
                if source_url in seen_urls:
                    continue
                seen_urls.add(source_url)

            card = self.find_card(anchor)
            current_price, original_price = self.extract_prices(card if card is not None else anchor)
            products.append(
                Product(
                    name=name,
                    brand_name=brand_name,
                    source_url=source_url,
                    current_price=current_price,
                    original_price=original_price,
                    is_discounted=(
                        current_price is not None
                        and original_price is not None
                        and original_price > current_price
                    ),
                    currency=self.currency,
                    main_image=self.extract_image(anchor) or images_by_url.get(source_url or ""),
                    availability=self.extract_availability(
                        anchor,
                        card,
                        has_price=current_price is not None,
                    ),
                    page=page,
                )
            )
        return products

    def extract_name(self, anchor: Tag) -> str:
        title = clean_text(anchor.get("title"))
        if title and not is_template_placeholder(title):
            return title

        text = first_line(anchor.get_text("\n", strip=True))
        if text and not is_template_placeholder(text):
            return clean_text(text)
        return ""

    def extract_image(self, anchor: Tag) -> str | None:
        for image in anchor.find_all("img"):
            url = pick_image_url(image, base_url=self.base_url)
            if url:
                return url
        return None

    def find_card(self, anchor: Tag) -> Tag | None:
        return nearest_marked_ancestor(anchor, text_contains(self.currency))

    def extract_prices(self, container: Tag) -> tuple[float | None, float | None]:
        """
        Return `(current_price, original_price)` for one product card.
        """

        original_price = self._strikethrough_price(container)
        current_price = self._selector_price(container, BRAND_PRICE_SELECTORS)
        if current_price is None:
            current_price = self._selector_price(container, HIGHLIGHT_PRICE_SELECTORS)
        if current_price is None:
            current_price = self._selector_price(container, GENERIC_PRICE_SELECTORS)
        if current_price is None:
            current_price = self._regex_price(container)

        if current_price is None:
            current_price = original_price
        if original_price is None:
            original_price = current_price
        return current_price, original_price

    def extract_availability(self, anchor: Tag, card: Tag | None, *, has_price: bool) -> str:
        scope = card if card is not None else anchor

        for badge in scope.select(".badge-ribbon"):
            verdict = classify_stock_text(clean_text(badge.get_text(" ", strip=True)))
            if verdict is not None:
                return verdict

        for node in scope.select(".availability, .stock, [class*=stock], [class*=available]"):
            verdict = classify_stock_text(clean_text(node.get_text(" ", strip=True)))
            if verdict is not None:
                return verdict

        verdict = classify_stock_text(clean_text(scope.get_text(" ", strip=True)))
        if verdict is not None:
            return verdict

        for node in [scope, *scope.find_all(True)]:
            classes = class_string(node)
            if not classes:
                continue
            if any(marker in classes for marker in OUT_OF_STOCK_CLASS_MARKERS):
                return Availability.OUT_OF_STOCK
            if any(marker in classes for marker in IN_STOCK_CLASS_MARKERS):
                return Availability.IN_STOCK

        if any(scope.select(selector) for selector in SIZE_OPTION_SELECTORS):
            return Availability.IN_STOCK
        if has_price:
            return Availability.IN_STOCK
        return Availability.UNKNOWN

    def has_next_page(self, soup: BeautifulSoup, current_page: int) -> bool:
        """
        Probe already-fetched markup for a link beyond `current_page`.
        """

        if soup.select_one("a[rel~=next], link[rel~=next]") is not None:
            return True

        for anchor in soup.find_all("a", href=True):
            match = self._page_href_re.search(anchor["href"])
            if match is not None and int(match.group(1)) > current_page:
                return True
            label = clean_text(anchor.get_text(" ", strip=True)).lower()
            if label in NEXT_PAGE_LABELS and anchor["href"] not in {"#", ""}:
                return True
        return False

    def _strikethrough_price(self, container: Tag) -> float | None:
        for node in container.find_all(True):
            if _is_strikethrough(node):
                price = parse_price(node.get_text(" ", strip=True))
                if price is not None:
                    return price
        return None

    def _selector_price(self, container: Tag, selectors: list[str]) -> float | None:
        for selector in selectors:
            for node in container.select(selector):
                if _inside_strikethrough(node, stop=container):
                    continue
                text = self._text_outside_strikethrough(node)
                if not self._looks_like_price(text):
                    continue
                price = parse_price(text)
                if price is not None:
                    return price
        return None

    def _regex_price(self, container: Tag) -> float | None:
        match = self._currency_price_re.search(self._text_outside_strikethrough(container))
        if match is None:
            return None
        return parse_price(match.group(1))

    def _looks_like_price(self, text: str) -> bool:
        if not text:
            return False
        if self._currency_price_re.search(text):
            return True
        return re.fullmatch(r"\d+(?:[.,]\d+)?", text.replace(" ", "")) is not None

    @staticmethod
    def _text_outside_strikethrough(node: Tag) -> str:
        parts: list[str] = []
        for fragment in node.find_all(string=True):
            if isinstance(fragment, Comment):
                continue
            parent = fragment.parent
            if parent is None or parent.name in {"script", "style"}:
                continue
            if parent is not node and _inside_strikethrough(parent, stop=node):
                continue
            parts.append(str(fragment))
        return clean_text(" ".join(parts))

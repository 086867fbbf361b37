"""
BeautifulSoup parser for product detail pages: gallery images and sizes.
"""

from __future__ import annotations

import json
import re
from typing import Any

from bs4 import BeautifulSoup, Tag

from bulkfetch.domain.catalog import Size
from bulkfetch.scraping.parsing.listing import pick_image_url
from bulkfetch.scraping.parsing.text import class_string, clean_text

GALLERY_SELECTORS = [
    ".product-gallery img",
    ".product-images img",
    ".product-slider img",
    ".swiper-slide img",
    ".carousel-item img",
    ".nav-thumbs img",
    ".thumbnails img",
    "[class*=gallery] img",
]
GALLERY_IMAGE_ATTRIBUTES = ("data-zoom-image", "data-large", "src", "data-src", "data-original")
NON_PRODUCT_IMAGE_MARKERS = ("logo", "icon", "favicon", "sprite")
STOCK_INPUT_PREFIX = "stock_"
SIZE_OPTION_SELECTORS = [
    ".nav-thumbs .form-check.radio-text",
    ".size-option",
    "[class*=size] option",
    "[class*=size] li",
    "[class*=size] button",
    "select option",
]
SIZE_VOCABULARY_RE = re.compile(
    r"^(?:XXS|XS|S|M|L|XL|XXL|XXXL|[2-5]XL|\d{1,3}(?:[.,]5)?|\d{1,2}-\d{1,2}|\d{2}/\d{2})$",
    flags=re.IGNORECASE,
)
_PRODUCT_ID_FROM_URL_RE = re.compile(r"-(\d+)/?$")
_PRODUCT_ID_FROM_NAME_RE = re.compile(r"(\d+)$")


def product_id_from_url(url: str | None) -> str | None:
    if not url:
        return None
    path = url.split("?", 1)[0].split("#", 1)[0]
    match = _PRODUCT_ID_FROM_URL_RE.search(path)
    return match.group(1) if match else None


def _to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(str(value).replace(",", "."))
    except ValueError:
        return None


def _to_int(value: Any) -> int | None:
    number = _to_float(value)
    return int(number) if number is not None else None


def _to_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value).strip()


class DetailPageParser:
    """
    Extracts enrichment data from one product detail page.
    """

    def __init__(self, *, base_url: str, max_additional_images: int = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_additional_images = max_additional_images

    def parse_additional_images(self, soup: BeautifulSoup, *, main_image: str | None = None) -> list[str]:
        candidates: list[str] = []
        for selector in GALLERY_SELECTORS:
            candidates = self._image_urls(soup.select(selector))
            if candidates:
                break
        if not candidates:
            candidates = self._image_urls(
                [image for image in soup.find_all("img") if self._looks_like_product_image(image)]
            )

        images: list[str] = []
        seen = {main_image} if main_image else set()
        for url in candidates:
            if url in seen:
                continue
            seen.add(url)
            images.append(url)
            if len(images) >= self.max_additional_images:
                break
        return images

    def parse_sizes(self, soup: BeautifulSoup, *, product_id: str | None = None) -> list[Size]:
        """
        Return size variants for `product_id`.

        Structured `stock_*` radio inputs are authoritative; option-like
        markup is only consulted when no structured input exists.
        """

        structured = self._structured_inputs(soup)
        if not structured:
            return self._fallback_sizes(soup)

        sizes: list[Size] = []
        for node, payload in structured:
            owner_id = _to_str(payload.get("product_id")) or self._product_id_from_input_name(node)
            if product_id is not None and owner_id is not None and owner_id != product_id:
                continue

            stock = _to_int(payload.get("count", payload.get("stock")))
            size_name = _to_str(payload.get("size")) or _to_str(payload.get("size_name")) or self._label_for(node)
            if not size_name:
                continue
            sizes.append(
                Size(
                    size_name=size_name,
                    size_id=_to_str(payload.get("size_id")),
                    product_id=owner_id,
                    is_available=stock > 0 if stock is not None else not node.has_attr("disabled"),
                    stock_quantity=stock,
                    price=_to_float(payload.get("price")),
                    discounted_price=_to_float(payload.get("discounted_price")),
                    barcode=_to_str(payload.get("barcode")),
                )
            )
        return sizes

    def resolve_product_id(self, soup: BeautifulSoup, *, url: str | None) -> str | None:
        from_url = product_id_from_url(url)
        if from_url is not None:
            return from_url
        hidden = soup.select_one("input[name=product_id]")
        if hidden is not None:
            return _to_str(hidden.get("value"))
        return None

    def _structured_inputs(self, soup: BeautifulSoup) -> list[tuple[Tag, dict[str, Any]]]:
        found: list[tuple[Tag, dict[str, Any]]] = []
        for node in soup.find_all("input"):
            name = node.get("name") or ""
            if not name.startswith(STOCK_INPUT_PREFIX):
                continue
            if (node.get("type") or "radio").lower() != "radio":
                continue
            try:
                payload = json.loads(node.get("value") or "")
            except ValueError:
                continue
            if isinstance(payload, dict):
                found.append((node, payload))
        return found

    def _fallback_sizes(self, soup: BeautifulSoup) -> list[Size]:
        sizes: list[Size] = []
        seen: set[str] = set()
        for selector in SIZE_OPTION_SELECTORS:
            for node in soup.select(selector):
                label = clean_text(node.get_text(" ", strip=True))
                if not SIZE_VOCABULARY_RE.match(label) or label.upper() in seen:
                    continue
                seen.add(label.upper())
                sizes.append(Size(size_name=label, is_available=not self._is_disabled(node)))
        return sizes

    def _image_urls(self, images: list[Tag]) -> list[str]:
        urls: list[str] = []
        for image in images:
            url = pick_image_url(image, base_url=self.base_url, attributes=GALLERY_IMAGE_ATTRIBUTES)
            if url and url not in urls and not self._is_non_product_asset(image, url):
                urls.append(url)
        return urls

    @staticmethod
    def _is_non_product_asset(image: Tag, url: str) -> bool:
        haystack = " ".join([url.lower(), (image.get("alt") or "").lower(), class_string(image)])
        return any(marker in haystack for marker in NON_PRODUCT_IMAGE_MARKERS)

    @staticmethod
    def _looks_like_product_image(image: Tag) -> bool:
        if "product" in (image.get("alt") or "").lower():
            return True
        for parent in image.parents:
            if isinstance(parent, Tag) and "product" in class_string(parent):
                return True
        return False

    @staticmethod
    def _product_id_from_input_name(node: Tag) -> str | None:
        suffix = (node.get("name") or "")[len(STOCK_INPUT_PREFIX):]
        match = _PRODUCT_ID_FROM_NAME_RE.search(suffix)
        return match.group(1) if match else None

    @staticmethod
    def _label_for(node: Tag) -> str:
        input_id = node.get("id")
        if input_id:
            root = node
            while root.parent is not None:
                root = root.parent
            label = root.find("label", attrs={"for": input_id})
            if label is not None:
                return clean_text(label.get_text(" ", strip=True))
        wrapper = node.find_parent(class_="form-check")
        if wrapper is not None:
            label = wrapper.select_one("label.radio-text-label") or wrapper.find("label")
            if label is not None:
                return clean_text(label.get_text(" ", strip=True))
        return ""

    @staticmethod
    def _is_disabled(node: Tag) -> bool:
        if node.has_attr("disabled"):
            return True
        control = node.find(["input", "button", "option"])
        if control is not None and control.has_attr("disabled"):
            return True
        classes = class_string(node)
        return "disabled" in classes or "out-of-stock" in classes

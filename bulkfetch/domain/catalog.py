"""
bulkfetch/domain/catalog.py

Catalog records produced by the brand and product scrapers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Availability:
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Brand:
    """
    One brand entry from the site's brand directory.
    """

    id: str
    name: str
    url: str
    slug: str
    image_url: str | None = None
    discovered_on_page: int = 1
    scraped_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class Size:
    """
    One size/stock variant of a product.
    """

    size_name: str
    is_available: bool
    size_id: str | None = None
    product_id: str | None = None
    stock_quantity: int | None = None
    price: float | None = None
    discounted_price: float | None = None
    barcode: str | None = None


@dataclass(frozen=True)
class Product:
    """
    Normalized product record; listing fields plus detail-page enrichment.
    """

    name: str
    brand_name: str
    source_url: str | None
    current_price: float | None = None
    original_price: float | None = None
    is_discounted: bool = False
    currency: str = "AZN"
    main_image: str | None = None
    additional_images: list[str] = field(default_factory=list)
    sizes: list[Size] = field(default_factory=list)
    availability: str = Availability.UNKNOWN
    page: int = 1
    scraped_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class BrandPage:
    """
    One page of the brand directory.
    """

    brands: list[Brand]
    current_page: int
    has_more: bool

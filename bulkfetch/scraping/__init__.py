from bulkfetch.scraping.brand_scraper import BrandScraper
from bulkfetch.scraping.fetcher import PageFetcher, PageSource
from bulkfetch.scraping.product_scraper import ProductScraper
from bulkfetch.scraping.store import InMemoryKeyValueStore, KeyValueStore

__all__ = [
    "BrandScraper",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "PageFetcher",
    "PageSource",
    "ProductScraper",
]

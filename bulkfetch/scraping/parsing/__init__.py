from bulkfetch.scraping.parsing.brands import BrandDirectoryParser
from bulkfetch.scraping.parsing.containers import (
    DEFAULT_CONTAINER_SIGNATURES,
    ContainerSignature,
    nearest_marked_ancestor,
)
from bulkfetch.scraping.parsing.detail import DetailPageParser
from bulkfetch.scraping.parsing.listing import ListingPageParser

__all__ = [
    "BrandDirectoryParser",
    "ContainerSignature",
    "DEFAULT_CONTAINER_SIGNATURES",
    "DetailPageParser",
    "ListingPageParser",
    "nearest_marked_ancestor",
]

"""
bulkfetch/config.py

Environment-driven runtime settings for scraping, queueing, and job orchestration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    project_root = Path(__file__).resolve().parents[1]
    for filename in (".env", ".env.local"):
        env_path = project_root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class HTTPSettings:
    """
    Shared HTTP client behavior for the target site.
    """

    base_url: str = "https://www.gosport.az"
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: float = 30.0
    max_connections: int = 10
    max_keepalive_connections: int = 10
    max_retries: int = 1
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    verify_ssl: bool = False


@dataclass(frozen=True)
class ScraperSettings:
    """
    Site conventions and ceilings for brand and product scraping.
    """

    brands_path: str = "/brands"
    brand_link_marker: str = "/brand/"
    product_link_marker: str = "/product/"
    page_param: str = "page"
    currency: str = "AZN"
    brand_page_batch_size: int = 3
    fallback_total_pages: int = 5
    brand_cache_ttl_seconds: float = 1800.0
    max_listing_pages: int = 200
    max_consecutive_page_failures: int = 5
    page_delay_seconds: float = 0.3
    max_additional_images: int = 10


@dataclass(frozen=True)
class QueueSettings:
    """
    In-process task queue behavior.
    """

    queue_name: str = "bulk_fetch_queue"
    max_attempts: int = 3
    task_delay_seconds: float = 0.1


@dataclass(frozen=True)
class WorkerSettings:
    """
    Brand task timeout and retry behavior.
    """

    task_timeout_seconds: float = 240.0
    max_retries: int = 5
    backoff_initial_seconds: float = 10.0
    backoff_multiplier: float = 2.0
    backoff_max_seconds: float = 120.0


@dataclass(frozen=True)
class JobSettings:
    """
    Job bookkeeping behavior.
    """

    retention_hours: float = 24.0


@lru_cache(maxsize=1)
def get_http_settings() -> HTTPSettings:
    """
    Return cached HTTP settings from environment variables.
    """

    return HTTPSettings(
        base_url=_get_str_env("BULKFETCH_HTTP_BASE_URL", "https://www.gosport.az").rstrip("/"),
        user_agent=_get_str_env("BULKFETCH_HTTP_USER_AGENT", DEFAULT_USER_AGENT),
        timeout_seconds=max(1.0, _get_float_env("BULKFETCH_HTTP_TIMEOUT_SECONDS", 30.0)),
        max_connections=max(1, _get_int_env("BULKFETCH_HTTP_MAX_CONNECTIONS", 10)),
        max_keepalive_connections=max(
            1,
            _get_int_env("BULKFETCH_HTTP_MAX_KEEPALIVE_CONNECTIONS", 10),
        ),
        max_retries=max(0, _get_int_env("BULKFETCH_HTTP_MAX_RETRIES", 1)),
        backoff_initial_seconds=max(
            0.0,
            _get_float_env("BULKFETCH_HTTP_BACKOFF_INITIAL_SECONDS", 0.5),
        ),
        backoff_multiplier=max(1.0, _get_float_env("BULKFETCH_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        verify_ssl=_get_bool_env("BULKFETCH_HTTP_VERIFY_SSL", False),
    )


@lru_cache(maxsize=1)
def get_scraper_settings() -> ScraperSettings:
    """
    Return cached scraper settings from environment variables.
    """

    return ScraperSettings(
        brands_path=_get_str_env("BULKFETCH_SCRAPER_BRANDS_PATH", "/brands"),
        brand_link_marker=_get_str_env("BULKFETCH_SCRAPER_BRAND_LINK_MARKER", "/brand/"),
        product_link_marker=_get_str_env("BULKFETCH_SCRAPER_PRODUCT_LINK_MARKER", "/product/"),
        page_param=_get_str_env("BULKFETCH_SCRAPER_PAGE_PARAM", "page"),
        currency=_get_str_env("BULKFETCH_SCRAPER_CURRENCY", "AZN"),
        brand_page_batch_size=max(1, _get_int_env("BULKFETCH_SCRAPER_BRAND_PAGE_BATCH_SIZE", 3)),
        fallback_total_pages=max(1, _get_int_env("BULKFETCH_SCRAPER_FALLBACK_TOTAL_PAGES", 5)),
        brand_cache_ttl_seconds=max(
            0.0,
            _get_float_env("BULKFETCH_SCRAPER_BRAND_CACHE_TTL_SECONDS", 1800.0),
        ),
        max_listing_pages=max(1, _get_int_env("BULKFETCH_SCRAPER_MAX_LISTING_PAGES", 200)),
        max_consecutive_page_failures=max(
            1,
            _get_int_env("BULKFETCH_SCRAPER_MAX_CONSECUTIVE_PAGE_FAILURES", 5),
        ),
        page_delay_seconds=max(0.0, _get_float_env("BULKFETCH_SCRAPER_PAGE_DELAY_SECONDS", 0.3)),
        max_additional_images=max(0, _get_int_env("BULKFETCH_SCRAPER_MAX_ADDITIONAL_IMAGES", 10)),
    )


@lru_cache(maxsize=1)
def get_queue_settings() -> QueueSettings:
    """
    Return cached task queue settings from environment variables.
    """

    return QueueSettings(
        queue_name=_get_str_env("BULKFETCH_QUEUE_NAME", "bulk_fetch_queue"),
        max_attempts=max(1, _get_int_env("BULKFETCH_QUEUE_MAX_ATTEMPTS", 3)),
        task_delay_seconds=max(0.0, _get_float_env("BULKFETCH_QUEUE_TASK_DELAY_SECONDS", 0.1)),
    )


@lru_cache(maxsize=1)
def get_worker_settings() -> WorkerSettings:
    """
    Return cached worker settings from environment variables.
    """

    return WorkerSettings(
        task_timeout_seconds=max(
            1.0,
            _get_float_env("BULKFETCH_WORKER_TASK_TIMEOUT_SECONDS", 240.0),
        ),
        max_retries=max(0, _get_int_env("BULKFETCH_WORKER_MAX_RETRIES", 5)),
        backoff_initial_seconds=max(
            0.0,
            _get_float_env("BULKFETCH_WORKER_BACKOFF_INITIAL_SECONDS", 10.0),
        ),
        backoff_multiplier=max(1.0, _get_float_env("BULKFETCH_WORKER_BACKOFF_MULTIPLIER", 2.0)),
        backoff_max_seconds=max(
            0.0,
            _get_float_env("BULKFETCH_WORKER_BACKOFF_MAX_SECONDS", 120.0),
        ),
    )


@lru_cache(maxsize=1)
def get_job_settings() -> JobSettings:
    """
    Return cached job bookkeeping settings from environment variables.
    """

    return JobSettings(
        retention_hours=max(0.0, _get_float_env("BULKFETCH_JOB_RETENTION_HOURS", 24.0)),
    )

"""Ad crawler: visit pages, record their ads and follow ad clickthroughs."""

from .config import ChromeOptions, CrawlerConfig, CrawlOptions, ScrapeOptions, Timeouts, parse_args
from .errors import (
    BrowserSessionError,
    ClickFailedError,
    ClickthroughError,
    ClickthroughTimeoutError,
    ClickTimeoutError,
    ConfigurationError,
    CrawlerError,
    SiteTimeoutError,
)
from .logging import adlog, jlog, pagelog
from .models import ClickAdsMode, ClickOutcome, PageType
from .versioning import get_crawler_version

__all__ = [
    "BrowserSessionError",
    "ChromeOptions",
    "ClickAdsMode",
    "ClickFailedError",
    "ClickOutcome",
    "ClickTimeoutError",
    "ClickthroughError",
    "ClickthroughTimeoutError",
    "ConfigurationError",
    "CrawlOptions",
    "CrawlerConfig",
    "CrawlerError",
    "PageType",
    "ScrapeOptions",
    "SiteTimeoutError",
    "Timeouts",
    "adlog",
    "get_crawler_version",
    "jlog",
    "pagelog",
    "parse_args",
]

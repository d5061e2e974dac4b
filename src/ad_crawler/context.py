"""Per-run state handed to every component instead of module globals."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Optional, Protocol

from playwright.async_api import Page

from .config import CrawlerConfig
from .models import PageType

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from .browser import BrowserSession


class ScrapePage(Protocol):
    def __call__(
        self,
        ctx: "CrawlContext",
        page: Page,
        *,
        crawl_list_url: str,
        page_type: PageType,
        referrer_page_id: Optional[int] = None,
        referrer_page_url: Optional[str] = None,
        referrer_ad_id: Optional[int] = None,
    ) -> Awaitable[int]: ...


class ScrapeAds(Protocol):
    def __call__(
        self,
        ctx: "CrawlContext",
        page: Page,
        *,
        crawl_list_url: str,
        page_type: PageType,
        parent_page_id: int,
    ) -> Awaitable[None]: ...


class InjectDomListener(Protocol):
    def __call__(self, page: Page) -> Awaitable[None]: ...


@dataclass
class CrawlContext:
    config: CrawlerConfig
    con: Any
    session: "BrowserSession"
    crawl_id: int
    scrape_page: ScrapePage
    scrape_ads: ScrapeAds
    inject_dom_listener: InjectDomListener


__all__ = ["CrawlContext", "InjectDomListener", "ScrapeAds", "ScrapePage"]

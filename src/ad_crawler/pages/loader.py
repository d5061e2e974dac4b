"""Open a URL in a tab, behave like a reader, record the page, hand off to ads."""

from __future__ import annotations

import random
from typing import Optional

from playwright.async_api import Page

from ..context import CrawlContext
from ..db import archive_page
from ..logging import pagelog
from ..models import PageType
from ..timeout import sleep

MAX_SCROLL_ITERATIONS = 20
SCROLL_DELTA_RANGE = (200, 400)
CURSOR_RANGE = (50, 100)

_MEASURE_JS = """
() => ({
  innerHeight: window.innerHeight,
  scrollTop: window.scrollY || document.documentElement.scrollTop || document.body.scrollTop || 0,
  scrollHeight: Math.max(document.body ? document.body.scrollHeight : 0, document.documentElement.scrollHeight),
})
"""


def _randrange(low: float, high: float) -> float:
    return random.random() * (high - low) + low


async def scroll_down_page(page: Page, *, interval_s: float = 1.0) -> int:
    """Wheel down the page until near the bottom or the iteration cap.

    Returns the number of scroll steps taken.
    """

    m = await page.evaluate(_MEASURE_JS)
    steps = 0
    while m["scrollTop"] + m["innerHeight"] < m["scrollHeight"] and steps < MAX_SCROLL_ITERATIONS:
        await page.mouse.move(_randrange(*CURSOR_RANGE), _randrange(*CURSOR_RANGE))
        await page.mouse.wheel(0, _randrange(*SCROLL_DELTA_RANGE))
        await sleep(interval_s)
        m = await page.evaluate(_MEASURE_JS)
        steps += 1
    return steps


async def load_and_handle_page(
    ctx: CrawlContext,
    url: str,
    page: Page,
    page_type: PageType,
    *,
    crawl_list_url: Optional[str] = None,
    referrer_page_id: Optional[int] = None,
    referrer_page_url: Optional[str] = None,
    referrer_ad_id: Optional[int] = None,
    referer: Optional[str] = None,
) -> int:
    """Navigate ``page`` to ``url`` and handle it. Returns the page id."""

    pagelog("page_loading", url=url, page_type=page_type.value)
    if ctx.config.scrape.scrape_ads and page_type is not PageType.LANDING:
        # Must precede navigation to see ads inserted while the page loads.
        await ctx.inject_dom_listener(page)
    await page.goto(url, timeout=ctx.config.timeouts.navigation_ms, referer=referer)

    return await handle_loaded_page(
        ctx,
        page,
        crawl_list_url or url,
        page_type,
        referrer_page_id=referrer_page_id,
        referrer_page_url=referrer_page_url,
        referrer_ad_id=referrer_ad_id,
    )


async def handle_loaded_page(
    ctx: CrawlContext,
    page: Page,
    crawl_list_url: str,
    page_type: PageType,
    *,
    referrer_page_id: Optional[int] = None,
    referrer_page_url: Optional[str] = None,
    referrer_ad_id: Optional[int] = None,
) -> int:
    """Everything after navigation; also the entry point for popups that loaded themselves."""

    config = ctx.config
    if page_type is PageType.LANDING:
        await sleep(config.timeouts.landing_settle_s)
    else:
        steps = await scroll_down_page(page, interval_s=config.timeouts.scroll_interval_s)
        pagelog("page_scrolled", url=page.url, steps=steps)

    if config.scrape.scrape_site:
        page_id = await ctx.scrape_page(
            ctx,
            page,
            crawl_list_url=crawl_list_url,
            page_type=page_type,
            referrer_page_id=referrer_page_id,
            referrer_page_url=referrer_page_url,
            referrer_ad_id=referrer_ad_id,
        )
    else:
        page_id = archive_page(
            ctx.con,
            job_id=config.job_id,
            crawl_id=ctx.crawl_id,
            url=page.url,
            crawl_list_url=crawl_list_url,
            page_type=page_type,
            referrer_page_id=referrer_page_id,
            referrer_page_url=referrer_page_url,
            referrer_ad_id=referrer_ad_id,
        )
    pagelog("page_recorded", url=page.url, page_id=page_id, page_type=page_type.value, referrer_ad_id=referrer_ad_id)

    if config.scrape.scrape_ads and page_type is not PageType.LANDING:
        await ctx.scrape_ads(
            ctx,
            page,
            crawl_list_url=crawl_list_url,
            page_type=page_type,
            parent_page_id=page_id,
        )
    return page_id


__all__ = ["MAX_SCROLL_ITERATIONS", "handle_loaded_page", "load_and_handle_page", "scroll_down_page"]

"""Default ad scraper: find ads, record them, optionally click each one."""

from __future__ import annotations

from typing import Any

from playwright.async_api import ElementHandle, Page
from playwright.async_api import Error as PlaywrightError

from ..browser import element_is_visibly_displayed
from ..context import CrawlContext
from ..db import insert_ad
from ..errors import ClickthroughError, CrawlerError
from ..logging import adlog, logging_context, pagelog
from ..models import ClickAdsMode, PageType
from ..timeout import deadline, sleep
from .click import click_ad
from .dom_monitor import DYNAMIC_AD_ATTR
from .screenshots import crop_with_context, save_png

AD_ID_ATTR = "data-ad-crawler-id"
MAX_AD_HTML_CHARS = 200_000
MIN_AD_SIDE_PX = 30

AD_SELECTORS = [
    f"[{DYNAMIC_AD_ATTR}]",
    "iframe[src*='doubleclick.net']",
    "iframe[src*='googlesyndication.com']",
    "iframe[id^='google_ads_iframe']",
    "ins.adsbygoogle",
    "div[id^='div-gpt-ad']",
    "[data-google-query-id]",
    "div[id*='taboola']",
    "div.OUTBRAIN",
    "[aria-label='Advertisement']",
]

# Tag the outermost visible matches with a stable index and return the indexes.
_MARK_ADS_JS = """
([selectors, attr, minSide]) => {
  const found = new Set();
  for (const sel of selectors) {
    try { document.querySelectorAll(sel).forEach(el => found.add(el)); } catch (e) {}
  }
  const all = Array.from(found);
  const outer = all.filter(el => !all.some(other => other !== el && other.contains(el)));
  const out = [];
  outer.forEach((el, i) => {
    const r = el.getBoundingClientRect();
    if (r.width < minSide || r.height < minSide) return;
    el.setAttribute(attr, String(i));
    out.push(String(i));
  });
  return out;
}
"""


async def find_ads(page: Page) -> list[tuple[str, ElementHandle]]:
    """Return ``(selector, handle)`` pairs for the visible ads on ``page``."""

    marks: list[str] = await page.evaluate(_MARK_ADS_JS, [AD_SELECTORS, AD_ID_ATTR, MIN_AD_SIDE_PX])
    ads: list[tuple[str, ElementHandle]] = []
    for mark in marks:
        selector = f"[{AD_ID_ATTR}='{mark}']"
        handle = await page.query_selector(selector)
        if handle and await element_is_visibly_displayed(handle):
            ads.append((selector, handle))
    return ads


async def _capture_ad(ctx: CrawlContext, page: Page, ad: ElementHandle) -> dict[str, Any]:
    config = ctx.config
    await ad.scroll_into_view_if_needed()
    await sleep(config.timeouts.ad_settle_s)
    html = await ad.evaluate("el => el.outerHTML")
    bbox = await ad.bounding_box()
    screenshot_path = None
    if config.scrape.screenshot_ads_with_context and bbox:
        png = await page.screenshot(type="png")
        scale = await page.evaluate("() => window.devicePixelRatio || 1")
        screenshot_path = save_png(config.output_dir, ctx.crawl_id, crop_with_context(png, bbox, scale=scale))
    elif bbox:
        screenshot_path = save_png(config.output_dir, ctx.crawl_id, await ad.screenshot(type="png"))
    return {
        "html": (html or "")[:MAX_AD_HTML_CHARS],
        "bbox": bbox,
        "screenshot_path": screenshot_path,
    }


async def scrape_ads_on_page(
    ctx: CrawlContext,
    page: Page,
    *,
    crawl_list_url: str,
    page_type: PageType,
    parent_page_id: int,
) -> None:
    """Record every ad on ``page``; click each one when configured to.

    A failure on one ad is logged and the next ad is tried.
    """

    config = ctx.config
    origin_url = page.url
    ads = await find_ads(page)
    pagelog("ads_found", url=origin_url, count=len(ads), page_type=page_type.value, page_id=parent_page_id)

    for selector, handle in ads:
        try:
            async with deadline(
                config.timeouts.ad_scrape_s,
                lambda: CrawlerError(f"{origin_url}: ad scrape timed out - {config.timeouts.ad_scrape_s}s"),
            ):
                captured = await _capture_ad(ctx, page, handle)
        except (CrawlerError, PlaywrightError) as exc:
            pagelog("ad_scrape_failed", url=origin_url, level="warning", selector=selector, error=str(exc))
            continue

        ad_id = insert_ad(
            ctx.con,
            job_id=config.job_id,
            crawl_id=ctx.crawl_id,
            parent_page_id=parent_page_id,
            selector=selector,
            html=captured["html"],
            bbox=captured["bbox"],
            screenshot_path=captured["screenshot_path"],
        )
        adlog("ad_recorded", ad_id=ad_id, page_url=origin_url, selector=selector)

        if config.scrape.click_ads is ClickAdsMode.NO_CLICK:
            continue
        with logging_context(ad_id=ad_id):
            try:
                await click_ad(ctx, handle, page, ad_id=ad_id, page_id=parent_page_id, crawl_list_url=crawl_list_url)
            except ClickthroughError as exc:
                adlog("ad_clickthrough_failed", ad_id=ad_id, page_url=origin_url, level="warning", outcome=exc.outcome.value, error=str(exc))
            except PlaywrightError as exc:
                adlog("ad_clickthrough_failed", ad_id=ad_id, page_url=origin_url, level="warning", error=str(exc))


__all__ = ["AD_SELECTORS", "find_ads", "scrape_ads_on_page"]

"""Default page-content scraper: HTML snapshot on disk plus a ``page`` row."""

from __future__ import annotations

import hashlib
import os
from typing import Optional

from playwright.async_api import Page

from ..context import CrawlContext
from ..db import insert_page
from ..errors import CrawlerError
from ..logging import pagelog
from ..models import PageType
from ..timeout import deadline


def snapshot_path(output_dir: str, crawl_id: int, url: str, html: str) -> str:
    """Content-addressed location for a page snapshot."""

    digest = hashlib.sha256(f"{url}\n{html}".encode("utf-8")).hexdigest()
    return os.path.join(output_dir, f"crawl_{crawl_id}", "pages", digest[:2], f"{digest}.html")


def _write_snapshot(path: str, html: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(html)


async def scrape_page(
    ctx: CrawlContext,
    page: Page,
    *,
    crawl_list_url: str,
    page_type: PageType,
    referrer_page_id: Optional[int] = None,
    referrer_page_url: Optional[str] = None,
    referrer_ad_id: Optional[int] = None,
) -> int:
    timeouts = ctx.config.timeouts
    url = page.url
    async with deadline(timeouts.page_scrape_s, lambda: CrawlerError(f"{url}: page scrape timed out - {timeouts.page_scrape_s}s")):
        html = await page.content()
        title = await page.title()

    path = snapshot_path(ctx.config.output_dir, ctx.crawl_id, url, html)
    _write_snapshot(path, html)
    page_id = insert_page(
        ctx.con,
        job_id=ctx.config.job_id,
        crawl_id=ctx.crawl_id,
        url=url,
        crawl_list_url=crawl_list_url,
        page_type=page_type,
        referrer_page_id=referrer_page_id,
        referrer_page_url=referrer_page_url,
        referrer_ad_id=referrer_ad_id,
        html_path=path,
        title=title,
    )
    pagelog("page_scraped", url=url, page_id=page_id, html_bytes=len(html), html_path=path)
    return page_id


__all__ = ["scrape_page", "snapshot_path"]

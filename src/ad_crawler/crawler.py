"""Crawl loop: one browser, one tab per crawl-list item, a checkpoint after each.

Every item runs under its own overall deadline. Whatever happens to the item
(success, failure, timeout) its tab is closed and the crawl row's
``crawl_list_current_index`` is advanced before the next URL is touched, so a
crashed run can be resumed with ``--crawl-id``.
"""

from __future__ import annotations

import asyncio
import signal
from typing import Awaitable, Callable

from playwright.async_api import Page

from .ads import inject_dom_listener, scrape_ads_on_page
from .browser import BrowserSession, close_page
from .config import CrawlerConfig, load_crawl_list, validate_output_dir
from .context import CrawlContext
from .db import complete_crawl, fetch_crawl, insert_crawl, sql_connect, update_crawl_index
from .errors import BrowserSessionError, ConfigurationError, SiteTimeoutError
from .host import get_public_ip
from .logging import jlog, logging_context, pagelog
from .models import PageType
from .pages.find_page import find_article, find_page_with_ads
from .pages.loader import load_and_handle_page
from .pages.scraper import scrape_page
from .timeout import deadline

LaunchSession = Callable[[CrawlerConfig], Awaitable[BrowserSession]]


def open_crawl(con, config: CrawlerConfig, crawl_list: list[str]) -> tuple[int, int]:
    """Create a crawl row, or validate a resumed one. Returns ``(crawl_id, start_index)``.

    Resume validation happens before any write.
    """

    if config.crawl_id is None:
        crawl_id = insert_crawl(
            con,
            job_id=config.job_id,
            name=config.name,
            crawl_list=config.crawl_list_name,
            crawl_list_length=len(crawl_list),
            profile_dir=config.chrome.profile_dir,
            crawler_hostname=config.crawler_hostname,
            crawler_ip=get_public_ip(),
        )
        return crawl_id, 0

    prev = fetch_crawl(con, config.crawl_id)
    if prev is None:
        raise ConfigurationError(f"Invalid crawl_id: {config.crawl_id}")
    if prev["crawl_list"] != config.crawl_list_name:
        raise ConfigurationError(
            "Crawl list file provided does not have the same name as the original crawl. "
            f"Expected: {prev['crawl_list']}, actual: {config.crawl_list_name}"
        )
    if prev["crawl_list_length"] != len(crawl_list):
        raise ConfigurationError(
            "Crawl list file provided does not have the same number of URLs as the original crawl. "
            f"Expected: {prev['crawl_list_length']}, actual: {len(crawl_list)}"
        )
    if prev.get("completed"):
        raise ConfigurationError(f"Crawl {config.crawl_id} is already completed")
    start = int(prev["crawl_list_current_index"] or 0)
    jlog("info", event="crawl_resumed", crawl_id=config.crawl_id, start_index=start)
    return config.crawl_id, start


async def _crawl_follow_up(
    ctx: CrawlContext,
    seed_page: Page,
    seed_page_id: int,
    crawl_list_url: str,
    target: str | None,
    kind: str,
) -> None:
    if not target:
        pagelog("follow_up_not_found", url=crawl_list_url, level="warning", kind=kind)
        return
    sub_page = await ctx.session.new_page()
    try:
        await load_and_handle_page(
            ctx,
            target,
            sub_page,
            PageType.SUBPAGE,
            crawl_list_url=crawl_list_url,
            referrer_page_id=seed_page_id,
            referrer_page_url=seed_page.url,
        )
    finally:
        await close_page(sub_page)


async def crawl_item(ctx: CrawlContext, url: str, seed_page: Page) -> None:
    """Seed page, then the optional article and page-with-ads follow-ups."""

    page_id = await load_and_handle_page(ctx, url, seed_page, PageType.MAIN)
    options = ctx.config.crawl
    if options.crawl_additional_article_page:
        await _crawl_follow_up(ctx, seed_page, page_id, url, await find_article(seed_page), "article")
    if options.crawl_additional_page_with_ads:
        await _crawl_follow_up(ctx, seed_page, page_id, url, await find_page_with_ads(seed_page), "page_with_ads")


async def crawl(
    config: CrawlerConfig,
    *,
    con=None,
    launch_session: LaunchSession = BrowserSession.launch,
) -> int:
    """Run (or resume) a crawl over the configured list. Returns the crawl id."""

    validate_output_dir(config.output_dir)
    crawl_list = load_crawl_list(config.crawl_list_file)

    own_con = con is None
    if own_con:
        con = sql_connect(config.pg_conf)
    try:
        crawl_id, start = open_crawl(con, config, crawl_list)
        with logging_context(crawl_id=crawl_id):
            jlog("info", event="browser_launching")
            session = await launch_session(config)
            ctx = CrawlContext(
                config=config,
                con=con,
                session=session,
                crawl_id=crawl_id,
                scrape_page=scrape_page,
                scrape_ads=scrape_ads_on_page,
                inject_dom_listener=inject_dom_listener,
            )
            try:
                await _crawl_loop(ctx, crawl_list, start)
                complete_crawl(con, crawl_id=crawl_id)
            finally:
                await session.close()
    finally:
        if own_con:
            con.close()
    return crawl_id


async def _crawl_loop(ctx: CrawlContext, crawl_list: list[str], start: int) -> None:
    timeouts = ctx.config.timeouts
    for index in range(start, len(crawl_list)):
        url = crawl_list[index]
        seed_page = await ctx.session.new_page()
        with logging_context(crawl_index=index, crawl_list_url=url):
            try:
                async with deadline(timeouts.item_s, lambda: SiteTimeoutError(f"{url}: overall site timeout reached")):
                    await crawl_item(ctx, url, seed_page)
                pagelog("crawl_item_done", url=url, index=index)
            except Exception as exc:
                pagelog("crawl_item_failed", url=url, level="error", index=index, error=str(exc), error_type=type(exc).__name__)
                if not ctx.session.is_connected():
                    raise BrowserSessionError(f"Browser disconnected while crawling {url}") from exc
            finally:
                await close_page(seed_page)
                update_crawl_index(ctx.con, crawl_id=ctx.crawl_id, index=index)


async def run(config: CrawlerConfig) -> int:
    """Entry point used by the CLI shim; SIGINT cancels the crawl cleanly."""

    loop = asyncio.get_running_loop()
    task = asyncio.current_task()

    def _on_sigint() -> None:
        jlog("warning", event="sigint_received", message="closing browser and exiting")
        if task is not None:
            task.cancel()

    try:
        loop.add_signal_handler(signal.SIGINT, _on_sigint)
    except NotImplementedError:  # pragma: no cover - non-Unix event loops
        pass
    try:
        return await crawl(config)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:  # pragma: no cover
            pass


__all__ = ["crawl", "crawl_item", "open_crawl", "run"]

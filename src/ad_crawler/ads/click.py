"""Click an ad and follow (or block) wherever it goes.

A click can end in three physically different ways, each reported on its own
channel and in no particular order:

1. the ad's tab tries to navigate away (seen by a route handler on the tab);
2. a new tab opens and the tab's ``popup`` event fires;
3. a new tab issues its first request and the context-level interceptor sees
   it before anything has rendered.

All three race to commit a single ``Detection`` future. The first one wins;
the others become local no-ops (continue an unrelated request, abort a late
navigation, close a late popup). The click itself and the wait for the first
detection run under the short click deadline; everything, including the
landing page, runs under the longer clickthrough deadline. Cleanup runs once,
on every exit path.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import psycopg2
from playwright.async_api import ElementHandle, Page, Request, Route
from playwright.async_api import Error as PlaywrightError

from ..browser import close_page
from ..context import CrawlContext
from ..db import persist_ad_url
from ..errors import ClickFailedError, ClickthroughTimeoutError, ClickTimeoutError
from ..interception import TargetInterceptor
from ..logging import adlog
from ..models import ClickAdsMode, ClickOutcome, PageType
from ..pages.loader import handle_loaded_page, load_and_handle_page
from ..timeout import deadline

ROUTE_PATTERN = "**/*"
CLICK_DELAY_MS = 10
_BLANK_URLS = ("", "about:blank")


class DetectionPath(str, Enum):
    NAVIGATION = "navigation"
    POPUP = "popup"
    POPUP_REQUEST = "popup_request"


@dataclass(frozen=True)
class Detection:
    path: DetectionPath
    url: str
    referer: Optional[str] = None
    popup: Optional[Page] = None


class AdClickthrough:
    """State for one clickthrough attempt. Not reusable."""

    def __init__(self, ctx: CrawlContext, page: Page, *, ad_id: int, page_id: int, crawl_list_url: str) -> None:
        self._ctx = ctx
        self._page = page
        self._ad_id = ad_id
        self._page_id = page_id
        self._crawl_list_url = crawl_list_url
        self._origin_url = page.url
        self._mode = ctx.config.scrape.click_ads
        self._detected: asyncio.Future[Detection] = asyncio.get_running_loop().create_future()
        self._interceptor: TargetInterceptor | None = None
        self._routed = False
        self._popup_listening = False
        self._opened: Page | None = None
        self._ad_url: str | None = None
        self._record_error: Exception | None = None
        self._cleaned = False

    @property
    def following(self) -> bool:
        return self._mode is ClickAdsMode.CLICK_AND_SCRAPE_LANDING_PAGE

    @property
    def ad_url(self) -> str | None:
        return self._ad_url

    # ---- arbitration ---------------------------------------------------

    def _commit(self, detection: Detection) -> bool:
        if self._detected.done():
            return False
        self._detected.set_result(detection)
        adlog("ad_click_detected", ad_id=self._ad_id, page_url=self._origin_url, path=detection.path.value, ad_url=detection.url)
        return True

    def _record_ad_url(self, url: str) -> None:
        if self._ad_url is not None or url in _BLANK_URLS:
            return
        self._ad_url = url
        try:
            persist_ad_url(self._ctx.con, ad_id=self._ad_id, url=url)
        except psycopg2.Error as exc:
            adlog("ad_url_persist_failed", ad_id=self._ad_id, page_url=self._origin_url, level="error", ad_url=url, error=str(exc))
            # Surfaces from run() whether or not a detection already won.
            if self._detected.done():
                self._record_error = self._record_error or exc
            else:
                self._detected.set_exception(exc)

    # ---- detection paths -------------------------------------------------

    async def _on_route(self, route: Route, request: Request) -> None:
        if not (request.is_navigation_request() and request.frame == self._page.main_frame):
            try:
                await route.continue_()
            except PlaywrightError as exc:
                adlog("route_continue_failed", ad_id=self._ad_id, page_url=self._origin_url, level="warning", error=str(exc))
            return

        # The tab must never leave the ad's page, whoever wins.
        try:
            await route.abort("aborted")
        except PlaywrightError as exc:
            adlog("navigation_abort_failed", ad_id=self._ad_id, page_url=self._origin_url, level="warning", error=str(exc))
        detection = Detection(DetectionPath.NAVIGATION, request.url, referer=request.headers.get("referer"))
        if self._commit(detection):
            self._record_ad_url(request.url)

    async def _on_popup(self, popup: Page) -> None:
        if not self._commit(Detection(DetectionPath.POPUP, popup.url, popup=popup)):
            adlog("late_popup_closed", ad_id=self._ad_id, page_url=self._origin_url, popup_url=popup.url)
            await close_page(popup)

    async def _on_popup_request(self, url: str, popup_id: str) -> bool:
        self._record_ad_url(url)
        if self.following:
            # Let it load; the tab-level popup path takes over.
            return False
        self._commit(Detection(DetectionPath.POPUP_REQUEST, url))
        return True

    # ---- lifecycle -------------------------------------------------------

    async def _arm(self) -> None:
        await self._page.route(ROUTE_PATTERN, self._on_route)
        self._routed = True
        self._interceptor = await self._ctx.session.open_target_interceptor()
        if self._interceptor is not None:
            await self._interceptor.arm(self._on_popup_request)
        if self.following or self._interceptor is None:
            self._page.on("popup", self._on_popup)
            self._popup_listening = True

    async def _cleanup(self) -> None:
        if self._cleaned:
            return
        self._cleaned = True
        if not self._detected.done():
            self._detected.cancel()

        if self._opened is not None:
            await close_page(self._opened)
        if self._interceptor is not None:
            try:
                await self._interceptor.disarm()
            except Exception as exc:
                adlog("interceptor_disarm_failed", ad_id=self._ad_id, page_url=self._origin_url, level="warning", error=str(exc))
        if self._popup_listening:
            self._popup_listening = False
            try:
                self._page.remove_listener("popup", self._on_popup)
            except Exception as exc:
                adlog("popup_listener_remove_failed", ad_id=self._ad_id, page_url=self._origin_url, level="warning", error=str(exc))
        if self._routed:
            self._routed = False
            try:
                await self._page.unroute(ROUTE_PATTERN, self._on_route)
            except Exception as exc:
                adlog("unroute_failed", ad_id=self._ad_id, page_url=self._origin_url, level="warning", error=str(exc))

    async def _click(self, ad: ElementHandle) -> None:
        adlog("ad_clicking", ad_id=self._ad_id, page_url=self._origin_url, mode=self._mode.value)
        try:
            await ad.click(delay=CLICK_DELAY_MS, no_wait_after=True)
        except PlaywrightError as exc:
            raise ClickFailedError(f"{self._origin_url}: Ad click failed - {exc}") from exc

    async def run(self, ad: ElementHandle) -> ClickOutcome:
        timeouts = self._ctx.config.timeouts
        try:
            async with deadline(
                timeouts.clickthrough_s,
                lambda: ClickthroughTimeoutError(f"{self._origin_url}: Clickthrough timed out - {timeouts.clickthrough_s}s"),
            ):
                await self._arm()
                async with deadline(
                    timeouts.ad_click_s,
                    lambda: ClickTimeoutError(f"{self._origin_url}: Ad click timed out - {timeouts.ad_click_s}s"),
                ):
                    await self._click(ad)
                    detection = await self._detected
                outcome = await self._follow_through(detection)
            if self._record_error is not None:
                raise self._record_error
        finally:
            await self._cleanup()
        adlog("ad_clickthrough_done", ad_id=self._ad_id, page_url=self._origin_url, outcome=outcome.value, ad_url=self._ad_url)
        return outcome

    # ---- outcomes --------------------------------------------------------

    async def _follow_through(self, detection: Detection) -> ClickOutcome:
        if detection.path is DetectionPath.POPUP_REQUEST:
            return ClickOutcome.POPUP_BLOCKED

        if detection.path is DetectionPath.NAVIGATION:
            if not self.following:
                return ClickOutcome.BLOCKED_AND_STOPPED
            adlog("ad_navigation_reopened", ad_id=self._ad_id, page_url=self._origin_url, ad_url=detection.url)
            self._opened = await self._ctx.session.new_page()
            await load_and_handle_page(
                self._ctx,
                detection.url,
                self._opened,
                PageType.LANDING,
                crawl_list_url=self._crawl_list_url,
                referrer_page_id=self._page_id,
                referrer_page_url=self._origin_url,
                referrer_ad_id=self._ad_id,
                referer=detection.referer,
            )
            return ClickOutcome.BLOCKED_AND_FOLLOWED

        popup = detection.popup
        if popup is None:
            raise ClickFailedError(f"{self._origin_url}: popup detected without a tab")
        self._opened = popup
        if not self.following:
            # No interceptor: read the destination from the tab, then drop it.
            url = popup.url
            if url in _BLANK_URLS:
                request = await popup.wait_for_event("request")
                url = request.url
            self._record_ad_url(url)
            return ClickOutcome.POPUP_BLOCKED

        await popup.wait_for_load_state("load")
        self._record_ad_url(popup.url)
        await handle_loaded_page(
            self._ctx,
            popup,
            self._crawl_list_url,
            PageType.LANDING,
            referrer_page_id=self._page_id,
            referrer_page_url=self._origin_url,
            referrer_ad_id=self._ad_id,
        )
        return ClickOutcome.POPUP_FOLLOWED


async def click_ad(
    ctx: CrawlContext,
    ad: ElementHandle,
    page: Page,
    *,
    ad_id: int,
    page_id: int,
    crawl_list_url: str,
) -> ClickOutcome:
    """Click ``ad`` on ``page`` and handle whatever it does.

    Returns once the outcome (and any landing page) is fully handled. Raises a
    :class:`~ad_crawler.errors.ClickthroughError` subclass on timeout or when
    the click fails; the tab's interception state is reverted either way.
    """

    return await AdClickthrough(ctx, page, ad_id=ad_id, page_id=page_id, crawl_list_url=crawl_list_url).run(ad)


__all__ = ["AdClickthrough", "Detection", "DetectionPath", "click_ad"]

"""Catch a popup's first request before it renders.

Clicking an ad can open a new tab. A route installed on the browser context
sees that tab's initial navigation before anything has loaded, so the request
can be reported and then aborted (the tab is closed) or let through.

Tabs that already existed when the interceptor was armed are passed through
untouched; the ad's own tab is covered by its page-level route, which takes
precedence over this one.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Awaitable, Callable, Protocol

from playwright.async_api import BrowserContext, Page, Request, Route
from playwright.async_api import Error as PlaywrightError

from .logging import jlog

ROUTE_PATTERN = "**/*"
BLOCK_ERROR_CODE = "blockedbyclient"
DISARM_WAIT_S = 5.0

# (url, popup_id) -> True to block the popup, False to let it load.
PopupRequestCallback = Callable[[str, str], Awaitable[bool]]


class TargetInterceptor(Protocol):
    async def arm(self, on_popup_request: PopupRequestCallback) -> None: ...

    async def disarm(self) -> None: ...


class ContextPopupInterceptor:
    """One-shot interceptor bound to a single clickthrough attempt."""

    def __init__(self, context: BrowserContext) -> None:
        self._context = context
        self._callback: PopupRequestCallback | None = None
        self._existing: list[Page] = []
        self._reported: list[Page] = []
        self._ids = itertools.count(1)
        # Blocked before the tab object was available; closed when it shows up.
        self._unclosed_blocks = 0
        self._in_flight: set[asyncio.Future] = set()
        self._listening = False
        self._routed = False

    @property
    def armed(self) -> bool:
        return self._callback is not None

    async def arm(self, on_popup_request: PopupRequestCallback) -> None:
        self._callback = on_popup_request
        self._existing = list(self._context.pages)
        self._context.on("page", self._on_page)
        self._listening = True
        await self._context.route(ROUTE_PATTERN, self._on_route)
        self._routed = True

    async def disarm(self) -> None:
        """Stop reporting; waits for popups being blocked to be closed."""

        self._callback = None
        if self._in_flight:
            await asyncio.wait(list(self._in_flight), timeout=DISARM_WAIT_S)
        if self._unclosed_blocks:
            for page in list(self._context.pages):
                if page not in self._existing and self._unclosed_blocks:
                    self._unclosed_blocks -= 1
                    await self._close(page)
        if self._listening:
            self._listening = False
            self._context.remove_listener("page", self._on_page)
        if self._routed:
            self._routed = False
            await self._context.unroute(ROUTE_PATTERN, self._on_route)

    def _popup_navigation(self, request: Request) -> tuple[bool, Page | None]:
        """Whether ``request`` is a new tab's top-level navigation, and that tab when known."""

        if not request.is_navigation_request():
            return False, None
        try:
            frame = request.frame
        except PlaywrightError:
            # Navigation issued before the popup's frame exists.
            return True, None
        if frame.parent_frame is not None:
            return False, None
        page = frame.page
        if page in self._existing or page in self._reported:
            return False, None
        return True, page

    async def _on_route(self, route: Route, request: Request) -> None:
        callback = self._callback
        is_popup, popup = self._popup_navigation(request)
        if callback is None or not is_popup:
            await self._continue(route)
            return

        done: asyncio.Future = asyncio.get_running_loop().create_future()
        self._in_flight.add(done)
        try:
            popup_id = f"popup-{next(self._ids)}"
            if popup is not None:
                self._reported.append(popup)
            if await callback(request.url, popup_id):
                await self._block(route, popup, popup_id, request.url)
            else:
                await self._continue(route)
        finally:
            self._in_flight.discard(done)
            done.set_result(None)

    async def _on_page(self, page: Page) -> None:
        if self._unclosed_blocks and page not in self._existing:
            self._unclosed_blocks -= 1
            await self._close(page)

    async def _block(self, route: Route, popup: Page | None, popup_id: str, url: str) -> None:
        try:
            await route.abort(BLOCK_ERROR_CODE)
        except PlaywrightError as exc:
            jlog("warning", event="popup_abort_failed", popup_id=popup_id, popup_url=url, error=str(exc))
        if popup is None:
            self._unclosed_blocks += 1
        else:
            await self._close(popup)
        jlog("info", event="popup_request_blocked", popup_id=popup_id, popup_url=url)

    async def _continue(self, route: Route) -> None:
        try:
            await route.continue_()
        except PlaywrightError as exc:
            jlog("warning", event="popup_route_continue_failed", error=str(exc))

    async def _close(self, page: Page) -> None:
        if page.is_closed():
            return
        try:
            await page.close()
        except PlaywrightError as exc:
            jlog("warning", event="popup_close_failed", error=str(exc))


__all__ = ["ContextPopupInterceptor", "PopupRequestCallback", "TargetInterceptor"]

"""The process-wide Playwright browser session and small page helpers."""

from __future__ import annotations

from playwright.async_api import Browser, BrowserContext, ElementHandle, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from .config import VIEWPORT, CrawlerConfig
from .interception import ContextPopupInterceptor, TargetInterceptor
from .logging import jlog

CHROMIUM_LAUNCH_ARGS = [
    "--disable-dev-shm-usage",
]


class BrowserSession:
    """Owns the browser, its single context and therefore every open tab."""

    def __init__(self, playwright: Playwright, context: BrowserContext, browser: Browser | None = None) -> None:
        self._playwright = playwright
        self._context = context
        self._browser = browser
        self._closed = False
        self._context.on("close", self._on_context_close)

    @classmethod
    async def launch(cls, config: CrawlerConfig) -> "BrowserSession":
        pw = await async_playwright().start()
        chrome = config.chrome
        try:
            if chrome.profile_dir:
                context = await pw.chromium.launch_persistent_context(
                    chrome.profile_dir,
                    headless=chrome.headless,
                    viewport=VIEWPORT,
                    args=CHROMIUM_LAUNCH_ARGS,
                    handle_sigint=False,
                )
                browser = None
            else:
                browser = await pw.chromium.launch(headless=chrome.headless, args=CHROMIUM_LAUNCH_ARGS, handle_sigint=False)
                context = await browser.new_context(viewport=VIEWPORT)
        except Exception:
            await pw.stop()
            raise
        session = cls(pw, context, browser)
        jlog(
            "info",
            event="browser_launched",
            version=browser.version if browser else "persistent-context",
            headless=chrome.headless,
            profile_dir=chrome.profile_dir,
        )
        return session

    def _on_context_close(self, _context: BrowserContext) -> None:
        self._closed = True

    def is_connected(self) -> bool:
        if self._closed:
            return False
        return self._browser.is_connected() if self._browser else True

    async def new_page(self) -> Page:
        return await self._context.new_page()

    async def open_target_interceptor(self) -> TargetInterceptor | None:
        return ContextPopupInterceptor(self._context)

    async def close(self) -> None:
        """Close context, browser and driver. Safe to call more than once."""

        if self._closed and self._playwright is None:
            return
        self._closed = True
        try:
            await self._context.close()
        except PlaywrightError as exc:
            jlog("warning", event="context_close_failed", error=str(exc))
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as exc:
                jlog("warning", event="browser_close_failed", error=str(exc))
        pw, self._playwright = self._playwright, None
        if pw is not None:
            await pw.stop()
        jlog("info", event="browser_closed")


async def close_page(page: Page | None) -> None:
    """Close a tab if it is still open; failures are logged."""

    if page is None or page.is_closed():
        return
    try:
        await page.close()
    except PlaywrightError as exc:
        jlog("warning", event="page_close_failed", error=str(exc))


async def element_is_visibly_displayed(handle: ElementHandle | None) -> bool:
    if not handle:
        return False
    try:
        return await handle.evaluate(
            """
            (el) => {
                if (!el) return false;
                const rect = el.getBoundingClientRect();
                if (rect.width <= 1 || rect.height <= 1) return false;
                let node = el;
                while (node) {
                    if (node instanceof HTMLElement) {
                        if (node.hidden || node.getAttribute('aria-hidden') === 'true') {
                            return false;
                        }
                        const ns = window.getComputedStyle(node);
                        if (ns.display === 'none' || ns.visibility === 'hidden' || ns.opacity === '0') {
                            return false;
                        }
                    }
                    node = node.parentElement;
                }
                return true;
            }
            """
        )
    except PlaywrightError:
        return False


__all__ = ["CHROMIUM_LAUNCH_ARGS", "BrowserSession", "close_page", "element_is_visibly_displayed"]

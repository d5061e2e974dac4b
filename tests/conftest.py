"""In-memory stand-ins for the browser, the session and the job store."""

from __future__ import annotations

import asyncio
import importlib
import inspect
from collections import defaultdict
from typing import Any, Callable

import pytest
from playwright.async_api import Error as PlaywrightError

from ad_crawler.config import CrawlerConfig, ScrapeOptions, Timeouts
from ad_crawler.context import CrawlContext
from ad_crawler.models import ClickAdsMode

FAST_TIMEOUTS = Timeouts(
    item_s=1.0,
    clickthrough_s=1.0,
    ad_click_s=0.2,
    page_scrape_s=1.0,
    ad_scrape_s=1.0,
    navigation_ms=1_000,
    landing_settle_s=0,
    ad_settle_s=0,
    scroll_interval_s=0,
)


class FakeFrame:
    def __init__(self, page: "FakePage | None" = None, parent_frame: "FakeFrame | None" = None) -> None:
        self.page = page
        self.parent_frame = parent_frame


class FakeRequest:
    def __init__(self, url: str, *, frame: FakeFrame | None, navigation: bool = True, headers: dict | None = None) -> None:
        self.url = url
        self._frame = frame
        self.headers = headers or {}
        self._navigation = navigation

    @property
    def frame(self) -> FakeFrame:
        if self._frame is None:
            raise PlaywrightError("Frame for this navigation request is not available")
        return self._frame

    def is_navigation_request(self) -> bool:
        return self._navigation


class FakeRoute:
    def __init__(self, request: FakeRequest, *, delay: float = 0.0) -> None:
        self.request = request
        self.delay = delay
        self.aborted: str | None = None
        self.continued = False

    async def abort(self, error_code: str | None = None) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.aborted = error_code or "failed"

    async def continue_(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.continued = True


class FakeMouse:
    def __init__(self) -> None:
        self.moves: list[tuple[float, float]] = []
        self.wheels: list[tuple[float, float]] = []

    async def move(self, x: float, y: float) -> None:
        self.moves.append((x, y))

    async def wheel(self, delta_x: float, delta_y: float) -> None:
        self.wheels.append((delta_x, delta_y))


class FakeEmitter:
    def __init__(self) -> None:
        self.listeners: dict[str, list[Callable]] = defaultdict(list)
        self.routes: list[tuple[str, Callable]] = []

    def on(self, event: str, handler: Callable) -> None:
        self.listeners[event].append(handler)

    def remove_listener(self, event: str, handler: Callable) -> None:
        self.listeners[event].remove(handler)

    def listener_count(self) -> int:
        return sum(len(handlers) for handlers in self.listeners.values())

    async def emit(self, event: str, *args: Any) -> None:
        for handler in list(self.listeners[event]):
            result = handler(*args)
            if inspect.isawaitable(result):
                await result

    async def route(self, pattern: str, handler: Callable) -> None:
        self.routes.append((pattern, handler))

    async def unroute(self, pattern: str, handler: Callable) -> None:
        self.routes.remove((pattern, handler))


class FakePage(FakeEmitter):
    def __init__(self, url: str = "about:blank", *, metrics: list[dict] | None = None) -> None:
        super().__init__()
        self.url = url
        self.main_frame = FakeFrame(page=self)
        self.mouse = FakeMouse()
        # Successive scroll measurements; the last one repeats.
        self.metrics = metrics or [{"innerHeight": 768, "scrollTop": 0, "scrollHeight": 500}]
        self.closed = False
        self.close_delay = 0.0
        self.gotos: list[tuple[str, str | None]] = []
        self.events: list[str] = []
        self.load_gate: asyncio.Event | None = None

    async def request(self, url: str, *, navigation: bool = True, main_frame: bool = True, headers: dict | None = None) -> FakeRoute:
        """Simulate the page issuing a request through any installed routes."""
        request = FakeRequest(url, frame=self.main_frame if main_frame else FakeFrame(page=self, parent_frame=self.main_frame), navigation=navigation, headers=headers)
        route = FakeRoute(request)
        for _, handler in list(self.routes):
            await handler(route, request)
        return route

    # page API
    async def goto(self, url: str, timeout: float | None = None, referer: str | None = None) -> None:
        self.events.append("goto")
        self.gotos.append((url, referer))
        self.url = url

    async def add_init_script(self, script: str | None = None) -> None:
        self.events.append("init_script")

    async def wait_for_load_state(self, state: str = "load") -> None:
        if self.load_gate is not None:
            await self.load_gate.wait()

    async def evaluate(self, script: str, arg: Any = None) -> dict:
        if len(self.metrics) > 1:
            return dict(self.metrics.pop(0))
        return dict(self.metrics[0])

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        self.closed = True


class FakeContext(FakeEmitter):
    """Browser context whose route and close calls take a round trip of ``delay`` seconds."""

    def __init__(self, pages: list[FakePage] | None = None, *, delay: float = 0.0) -> None:
        super().__init__()
        self.pages = list(pages or [])
        self.delay = delay
        self.handled: list[FakeRoute] = []

    def add_popup(self, url: str = "about:blank") -> FakePage:
        popup = FakePage(url)
        popup.close_delay = self.delay
        self.pages.append(popup)
        return popup

    async def request(self, url: str, *, page: FakePage | None = None, navigation: bool = True, subframe: bool = False) -> FakeRoute:
        """Simulate a tab issuing a request; ``page=None`` is a popup whose frame is not created yet."""
        frame = None
        if page is not None:
            frame = FakeFrame(page=page, parent_frame=page.main_frame) if subframe else page.main_frame
        request = FakeRequest(url, frame=frame, navigation=navigation)
        route = FakeRoute(request, delay=self.delay)
        self.handled.append(route)
        for _, handler in list(self.routes):
            await handler(route, request)
        return route


class FakeAd:
    def __init__(self, on_click: Callable | None = None, *, error: Exception | None = None) -> None:
        self.on_click = on_click
        self.error = error
        self.clicks: list[dict] = []
        self.tasks: list[asyncio.Task] = []

    async def click(self, **kwargs: Any) -> None:
        self.clicks.append(kwargs)
        if self.error is not None:
            raise self.error
        if self.on_click is not None:
            # Browser notifications arrive after the click call returns.
            self.tasks.append(asyncio.get_running_loop().create_task(self.on_click()))


class FakeInterceptor:
    def __init__(self) -> None:
        self.callback: Callable | None = None
        self.arm_count = 0
        self.disarm_count = 0
        self.blocked: list[str] = []
        self.continued: list[str] = []

    @property
    def armed(self) -> bool:
        return self.callback is not None

    async def arm(self, on_popup_request: Callable) -> None:
        self.callback = on_popup_request
        self.arm_count += 1

    async def disarm(self) -> None:
        self.callback = None
        self.disarm_count += 1

    async def popup_request(self, url: str, popup_id: str = "popup-1") -> None:
        if self.callback is None:
            self.continued.append(url)
            return
        if await self.callback(url, popup_id):
            self.blocked.append(url)
        else:
            self.continued.append(url)


class FakeSession:
    def __init__(self, interceptor: Any = None) -> None:
        self.interceptor = interceptor
        self.pages: list[FakePage] = []
        self.connected = True
        self.closed = False

    async def new_page(self) -> FakePage:
        page = FakePage()
        self.pages.append(page)
        return page

    async def open_target_interceptor(self) -> Any:
        return self.interceptor

    def is_connected(self) -> bool:
        return self.connected

    async def close(self) -> None:
        self.closed = True


class FakeStore:
    """Records every job-store call made by the crawler."""

    def __init__(self) -> None:
        self._next_id = 100
        self.pages: list[dict] = []
        self.ads: list[dict] = []
        self.ad_urls: list[tuple[int, str]] = []
        self.crawls: dict[int, dict] = {}
        self.inserted_crawls: list[dict] = []
        self.index_updates: list[int] = []
        self.completed: list[int] = []

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id

    @property
    def writes(self) -> int:
        return len(self.pages) + len(self.ads) + len(self.ad_urls) + len(self.inserted_crawls) + len(self.index_updates) + len(self.completed)

    def insert_page(self, con, **kw) -> int:
        kw["recorded_at"] = asyncio.get_running_loop().time()
        kw["id"] = self._id()
        self.pages.append(kw)
        return kw["id"]

    def archive_page(self, con, **kw) -> int:
        return self.insert_page(con, **kw)

    def insert_ad(self, con, **kw) -> int:
        kw["id"] = self._id()
        self.ads.append(kw)
        return kw["id"]

    def persist_ad_url(self, con, *, ad_id: int, url: str) -> bool:
        self.ad_urls.append((ad_id, url))
        return True

    def insert_crawl(self, con, **kw) -> int:
        crawl_id = self._id()
        self.inserted_crawls.append(kw)
        self.crawls[crawl_id] = {
            "id": crawl_id,
            "crawl_list": kw["crawl_list"],
            "crawl_list_length": kw["crawl_list_length"],
            "crawl_list_current_index": 0,
            "completed": False,
        }
        return crawl_id

    def fetch_crawl(self, con, crawl_id: int) -> dict | None:
        return self.crawls.get(crawl_id)

    def update_crawl_index(self, con, *, crawl_id: int, index: int) -> None:
        self.index_updates.append(index)
        self.crawls[crawl_id]["crawl_list_current_index"] = index

    def complete_crawl(self, con, *, crawl_id: int) -> None:
        self.completed.append(crawl_id)
        self.crawls[crawl_id]["completed"] = True


_STORE_FUNCS = (
    "archive_page",
    "complete_crawl",
    "fetch_crawl",
    "insert_ad",
    "insert_crawl",
    "insert_page",
    "persist_ad_url",
    "update_crawl_index",
)
_STORE_USERS = (
    "ad_crawler.ads.click",
    "ad_crawler.ads.scraper",
    "ad_crawler.crawler",
    "ad_crawler.pages.loader",
    "ad_crawler.pages.scraper",
)


@pytest.fixture
def store(monkeypatch) -> FakeStore:
    fake = FakeStore()
    for module_name in _STORE_USERS:
        module = importlib.import_module(module_name)
        for name in _STORE_FUNCS:
            if hasattr(module, name):
                monkeypatch.setattr(module, name, getattr(fake, name))
    return fake


@pytest.fixture
def make_ctx(tmp_path):
    """Build a CrawlContext around fakes; collaborator calls are recorded on ``ctx.calls``."""

    def _make(
        session: FakeSession,
        *,
        click_ads: ClickAdsMode = ClickAdsMode.NO_CLICK,
        scrape_site: bool = False,
        scrape_ads: bool = False,
        timeouts: Timeouts = FAST_TIMEOUTS,
    ) -> CrawlContext:
        calls: dict[str, list] = defaultdict(list)

        async def scrape_page(ctx, page, **kw):
            calls["scrape_page"].append(kw)
            return 555

        async def record_scrape_ads(ctx, page, **kw):
            calls["scrape_ads"].append(kw)

        async def inject_dom_listener(page):
            calls["inject_dom_listener"].append(page)
            await page.add_init_script(script="/* monitor */")

        config = CrawlerConfig(
            output_dir=str(tmp_path),
            crawl_list_file=str(tmp_path / "list.txt"),
            crawler_hostname="test-host",
            scrape=ScrapeOptions(scrape_site=scrape_site, scrape_ads=scrape_ads, click_ads=click_ads),
            timeouts=timeouts,
        )
        ctx = CrawlContext(
            config=config,
            con=None,
            session=session,
            crawl_id=7,
            scrape_page=scrape_page,
            scrape_ads=record_scrape_ads,
            inject_dom_listener=inject_dom_listener,
        )
        ctx.calls = calls  # type: ignore[attr-defined]
        return ctx

    return _make

"""Run configuration: built once from the CLI and passed explicitly everywhere."""

from __future__ import annotations

import argparse
import json
import os
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from .errors import ConfigurationError
from .logging import jlog
from .models import ClickAdsMode
from .urls import is_absolute_url

# ============================
# Constants & defaults
# ============================
VIEWPORT = {"width": 1366, "height": 768}
DEFAULT_CRAWL_NAME = "crawl"
DEFAULT_JOB_ID = 1

# Timing defaults (seconds unless noted; overridable via env)
DEFAULT_ITEM_TIMEOUT_S = float(os.getenv("CRAWLER_ITEM_TIMEOUT_S", str(15 * 60)))  # per crawl-list item
DEFAULT_CLICKTHROUGH_TIMEOUT_S = float(os.getenv("CRAWLER_CLICKTHROUGH_TIMEOUT_S", "30"))
DEFAULT_AD_CLICK_TIMEOUT_S = float(os.getenv("CRAWLER_AD_CLICK_TIMEOUT_S", "10"))
DEFAULT_PAGE_SCRAPE_TIMEOUT_S = float(os.getenv("CRAWLER_PAGE_SCRAPE_TIMEOUT_S", "60"))
DEFAULT_AD_SCRAPE_TIMEOUT_S = float(os.getenv("CRAWLER_AD_SCRAPE_TIMEOUT_S", "20"))
DEFAULT_NAVIGATION_TIMEOUT_MS = 120_000
DEFAULT_LANDING_SETTLE_S = 5.0
DEFAULT_AD_SETTLE_S = 1.0
DEFAULT_SCROLL_INTERVAL_S = 1.0


@dataclass(frozen=True)
class Timeouts:
    item_s: float = DEFAULT_ITEM_TIMEOUT_S
    clickthrough_s: float = DEFAULT_CLICKTHROUGH_TIMEOUT_S
    ad_click_s: float = DEFAULT_AD_CLICK_TIMEOUT_S
    page_scrape_s: float = DEFAULT_PAGE_SCRAPE_TIMEOUT_S
    ad_scrape_s: float = DEFAULT_AD_SCRAPE_TIMEOUT_S
    navigation_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    landing_settle_s: float = DEFAULT_LANDING_SETTLE_S
    ad_settle_s: float = DEFAULT_AD_SETTLE_S
    scroll_interval_s: float = DEFAULT_SCROLL_INTERVAL_S


@dataclass(frozen=True)
class ChromeOptions:
    profile_dir: str | None = None
    headless: bool = True


@dataclass(frozen=True)
class CrawlOptions:
    crawl_additional_article_page: bool = False
    crawl_additional_page_with_ads: bool = False


@dataclass(frozen=True)
class ScrapeOptions:
    scrape_site: bool = False
    scrape_ads: bool = False
    click_ads: ClickAdsMode = ClickAdsMode.NO_CLICK
    screenshot_ads_with_context: bool = False


@dataclass(frozen=True)
class CrawlerConfig:
    output_dir: str
    crawl_list_file: str
    name: str = DEFAULT_CRAWL_NAME
    job_id: int = DEFAULT_JOB_ID
    crawl_id: int | None = None  # resume an existing crawl
    pg_conf: dict[str, Any] | None = None
    crawler_hostname: str = field(default_factory=socket.gethostname)
    chrome: ChromeOptions = field(default_factory=ChromeOptions)
    crawl: CrawlOptions = field(default_factory=CrawlOptions)
    scrape: ScrapeOptions = field(default_factory=ScrapeOptions)
    timeouts: Timeouts = field(default_factory=Timeouts)

    @property
    def crawl_list_name(self) -> str:
        """Identity of the crawl list stored on the crawl row."""
        return os.path.basename(self.crawl_list_file)


# ============================
# Validation
# ============================


def validate_output_dir(path: str) -> None:
    if not os.path.isdir(path):
        raise ConfigurationError(f"{path} is not a valid directory")


def load_crawl_list(path: str) -> list[str]:
    """Read and validate the newline-delimited crawl list."""

    if not os.path.isfile(path):
        raise ConfigurationError(f"{path} does not exist.")
    urls = Path(path).read_text(encoding="utf-8").rstrip().split("\n")
    for lineno, url in enumerate(urls, start=1):
        if not is_absolute_url(url.strip()):
            raise ConfigurationError(f"Invalid URL in {path}, line {lineno}: {url}")
    return [url.strip() for url in urls]


def load_pg_conf(path: str | None) -> dict[str, Any] | None:
    if not path:
        return None
    try:
        with open(path, encoding="utf-8") as fh:
            conf = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Could not read Postgres config {path}: {exc}") from exc
    if not isinstance(conf, dict):
        raise ConfigurationError(f"Postgres config {path} must be a JSON object")
    return conf


# ============================
# Argument parsing
# ============================


def _bool_flag(p: argparse.ArgumentParser, name: str, help: str, default: bool = False) -> None:
    p.add_argument(f"--{name}", action=argparse.BooleanOptionalAction, default=default, help=help)


def parse_args(argv: Sequence[str] | None = None) -> CrawlerConfig:
    p = argparse.ArgumentParser(description="Crawl a list of sites, scrape their ads and optionally click them")
    p.add_argument("--name", default=DEFAULT_CRAWL_NAME, help="Human-readable crawl name")
    p.add_argument("--job-id", type=int, default=DEFAULT_JOB_ID)
    p.add_argument("--output-dir", required=True, help="Directory for HTML snapshots and screenshots")
    p.add_argument("--crawl-list", required=True, help="Newline-delimited file of absolute URLs")
    p.add_argument("--pg-conf-file", help="JSON file with psycopg2 connection parameters")
    p.add_argument("--crawl-id", type=int, help="Resume the crawl with this id")
    p.add_argument("--crawler-hostname", default=socket.gethostname())
    p.add_argument("--profile-dir", help="Chrome profile directory (persistent context)")
    _bool_flag(p, "headless", "Run Chromium headless", default=True)
    _bool_flag(p, "scrape-site", "Scrape page content (otherwise only archive the visit)")
    _bool_flag(p, "scrape-ads", "Find and record ads on crawled pages")
    p.add_argument(
        "--click-ads",
        choices=[m.value for m in ClickAdsMode],
        default=ClickAdsMode.NO_CLICK.value,
        help="noClick | clickAndBlockLoad | clickAndScrapeLandingPage",
    )
    _bool_flag(p, "screenshot-ads-with-context", "Screenshot ads with surrounding page context")
    _bool_flag(p, "crawl-article", "Also crawl one article linked from each seed page")
    _bool_flag(p, "crawl-page-with-ads", "Also crawl one section page likely to carry ads")
    p.add_argument("--item-timeout-s", type=float, default=DEFAULT_ITEM_TIMEOUT_S)

    ns = p.parse_args(argv)

    click_ads = ClickAdsMode(ns.click_ads)
    if click_ads is not ClickAdsMode.NO_CLICK and not ns.scrape_ads:
        jlog("warning", event="click_ads_without_scrape_ads", message="--click-ads has no effect without --scrape-ads")

    return CrawlerConfig(
        name=ns.name,
        job_id=ns.job_id,
        output_dir=ns.output_dir,
        crawl_list_file=ns.crawl_list,
        crawl_id=ns.crawl_id,
        pg_conf=load_pg_conf(ns.pg_conf_file),
        crawler_hostname=ns.crawler_hostname,
        chrome=ChromeOptions(profile_dir=ns.profile_dir, headless=ns.headless),
        crawl=CrawlOptions(
            crawl_additional_article_page=ns.crawl_article,
            crawl_additional_page_with_ads=ns.crawl_page_with_ads,
        ),
        scrape=ScrapeOptions(
            scrape_site=ns.scrape_site,
            scrape_ads=ns.scrape_ads,
            click_ads=click_ads,
            screenshot_ads_with_context=ns.screenshot_ads_with_context,
        ),
        timeouts=Timeouts(item_s=ns.item_timeout_s),
    )


__all__ = [
    "VIEWPORT",
    "ChromeOptions",
    "CrawlOptions",
    "CrawlerConfig",
    "ScrapeOptions",
    "Timeouts",
    "load_crawl_list",
    "load_pg_conf",
    "parse_args",
    "validate_output_dir",
]

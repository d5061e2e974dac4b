#!/usr/bin/env python3
"""CLI shim for the ad crawler.

Example:
  python scripts/run_crawl.py \
    --crawl-list ./crawlList.txt --output-dir ./output_dir/ --name test \
    --pg-conf-file ./pg_login.json --scrape-ads --click-ads clickAndScrapeLandingPage
"""
from __future__ import annotations

import asyncio

from ad_crawler import ConfigurationError, CrawlerConfig, get_crawler_version, parse_args
from ad_crawler.crawler import run
from ad_crawler.logging import configure_logging, jlog, logging_context, set_global_context

SCRIPT_NAME = "crawl"


def main() -> None:
    configure_logging()
    set_global_context(app="ad_crawler", crawler_version=get_crawler_version())
    with logging_context(script=SCRIPT_NAME):
        try:
            config: CrawlerConfig = parse_args()
            jlog(
                "info",
                event="crawl_config",
                name=config.name,
                crawl_list=config.crawl_list_file,
                resume_crawl_id=config.crawl_id,
                scrape_site=config.scrape.scrape_site,
                scrape_ads=config.scrape.scrape_ads,
                click_ads=config.scrape.click_ads.value,
                headless=config.chrome.headless,
            )
            asyncio.run(run(config))
        except ConfigurationError as exc:
            jlog("error", event="configuration_error", error=str(exc))
            raise SystemExit(1) from exc
        except asyncio.CancelledError:
            raise SystemExit(130)


if __name__ == "__main__":
    main()

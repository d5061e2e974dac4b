"""Ad discovery, screenshots and clickthrough handling."""

from .click import AdClickthrough, click_ad
from .dom_monitor import inject_dom_listener
from .scraper import find_ads, scrape_ads_on_page

__all__ = ["AdClickthrough", "click_ad", "find_ads", "inject_dom_listener", "scrape_ads_on_page"]

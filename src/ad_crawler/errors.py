"""Exception types raised by the crawler."""

from __future__ import annotations

from .models import ClickOutcome


class CrawlerError(RuntimeError):
    """Base class for crawler failures."""


class ConfigurationError(CrawlerError):
    """Bad paths, malformed crawl list or mismatched resume. Fatal."""


class SiteTimeoutError(CrawlerError):
    """The whole crawl-list item exceeded its overall budget."""


class BrowserSessionError(CrawlerError):
    """The shared browser went away; the run cannot continue."""


class ClickthroughError(CrawlerError):
    """A single ad's clickthrough was abandoned."""

    outcome: ClickOutcome = ClickOutcome.CLICK_FAILED


class ClickTimeoutError(ClickthroughError):
    """Nothing happened within the click window after clicking the ad."""

    outcome = ClickOutcome.TIMED_OUT


class ClickthroughTimeoutError(ClickthroughError):
    """Something happened, but following it through took too long."""

    outcome = ClickOutcome.TIMED_OUT


class ClickFailedError(ClickthroughError):
    """The click action itself raised."""

    outcome = ClickOutcome.CLICK_FAILED


__all__ = [
    "BrowserSessionError",
    "ClickFailedError",
    "ClickTimeoutError",
    "ClickthroughError",
    "ClickthroughTimeoutError",
    "ConfigurationError",
    "CrawlerError",
    "SiteTimeoutError",
]

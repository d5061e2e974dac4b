"""Enumerations shared across the crawler."""

from __future__ import annotations

from enum import Enum


class PageType(str, Enum):
    MAIN = "main"
    SUBPAGE = "subpage"
    LANDING = "landing"


class ClickAdsMode(str, Enum):
    """What to do with ads once they are found. The set is closed."""

    NO_CLICK = "noClick"
    CLICK_AND_BLOCK_LOAD = "clickAndBlockLoad"
    CLICK_AND_SCRAPE_LANDING_PAGE = "clickAndScrapeLandingPage"


class ClickOutcome(str, Enum):
    """Terminal state of one clickthrough attempt. Never persisted."""

    BLOCKED_AND_STOPPED = "blocked_and_stopped"
    BLOCKED_AND_FOLLOWED = "blocked_and_followed"
    POPUP_BLOCKED = "popup_blocked"
    POPUP_FOLLOWED = "popup_followed"
    TIMED_OUT = "timed_out"
    CLICK_FAILED = "click_failed"


__all__ = ["ClickAdsMode", "ClickOutcome", "PageType"]

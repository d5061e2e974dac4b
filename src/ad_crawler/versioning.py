"""Crawler version resolution."""

from __future__ import annotations

import os

CRAWLER_VERSION = "2026.10.1"


def get_crawler_version() -> str:
    """Return the crawler version, overridable with ``AD_CRAWLER_VERSION``."""

    return os.getenv("AD_CRAWLER_VERSION", CRAWLER_VERSION)


__all__ = ["CRAWLER_VERSION", "get_crawler_version"]

"""Pick one follow-up page (an article, or a section likely to carry ads)."""

from __future__ import annotations

import random
from typing import Iterable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from ..logging import jlog
from ..urls import is_candidate_link, looks_like_article, looks_like_section, strip_fragment


def _candidates(links: Iterable[str], base_url: str) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for link in links:
        link = strip_fragment(link or "")
        if link in seen or not is_candidate_link(link, base_url):
            continue
        seen.add(link)
        out.append(link)
    return out


def pick_article_url(links: Iterable[str], base_url: str, rng: random.Random | None = None) -> str | None:
    articles = [u for u in _candidates(links, base_url) if looks_like_article(u)]
    if not articles:
        return None
    return (rng or random).choice(articles)


def pick_ads_page_url(links: Iterable[str], base_url: str, rng: random.Random | None = None) -> str | None:
    sections = [u for u in _candidates(links, base_url) if looks_like_section(u)]
    if not sections:
        return None
    return (rng or random).choice(sections)


async def _page_links(page: Page) -> list[str]:
    try:
        return await page.eval_on_selector_all("a[href]", "els => els.map(e => e.href)")
    except PlaywrightError as exc:
        jlog("warning", event="link_collection_failed", url=page.url, error=str(exc))
        return []


async def find_article(page: Page) -> str | None:
    return pick_article_url(await _page_links(page), page.url)


async def find_page_with_ads(page: Page) -> str | None:
    return pick_ads_page_url(await _page_links(page), page.url)


__all__ = ["find_article", "find_page_with_ads", "pick_ads_page_url", "pick_article_url"]

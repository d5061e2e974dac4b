"""URL helpers for crawl lists and follow-up page discovery."""

from __future__ import annotations

import re
import urllib.parse

ARTICLE_SLUG_RE = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+){3,}")
DATE_PATH_RE = re.compile(r"/(?:19|20)\d{2}/\d{1,2}/")
NON_CONTENT_PATH_RE = re.compile(
    r"/(?:login|signin|sign-in|register|subscribe|account|privacy|terms|contact|about|cookie|search|tag|author)(?:/|$)"
)
IGNORED_EXTENSIONS = (".pdf", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".zip", ".mp3", ".mp4", ".xml", ".rss")


def is_absolute_url(url: str) -> bool:
    try:
        parsed = urllib.parse.urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _site(host: str) -> str:
    host = host.lower().split(":", 1)[0]
    return host[4:] if host.startswith("www.") else host


def same_site(url: str, other: str) -> bool:
    """True when both URLs share a host, ignoring a leading ``www.``."""

    try:
        a = urllib.parse.urlparse(url).netloc
        b = urllib.parse.urlparse(other).netloc
    except ValueError:
        return False
    return bool(a) and _site(a) == _site(b)


def strip_fragment(url: str) -> str:
    return urllib.parse.urldefrag(url)[0]


def is_candidate_link(url: str, base_url: str) -> bool:
    """A same-site http(s) link that is not the base page and not a file."""

    if not is_absolute_url(url) or not same_site(url, base_url):
        return False
    if strip_fragment(url).rstrip("/") == strip_fragment(base_url).rstrip("/"):
        return False
    path = urllib.parse.urlparse(url).path.lower()
    if path.endswith(IGNORED_EXTENSIONS):
        return False
    return not NON_CONTENT_PATH_RE.search(path)


def looks_like_article(url: str) -> bool:
    path = urllib.parse.urlparse(url).path.lower()
    if DATE_PATH_RE.search(path):
        return True
    last = [seg for seg in path.split("/") if seg]
    return bool(last) and bool(ARTICLE_SLUG_RE.fullmatch(last[-1].removesuffix(".html")))


def looks_like_section(url: str) -> bool:
    """Short, non-article paths such as ``/politics`` or ``/sports/``."""

    path = urllib.parse.urlparse(url).path
    segments = [seg for seg in path.split("/") if seg]
    return 1 <= len(segments) <= 2 and not looks_like_article(url)


__all__ = [
    "is_absolute_url",
    "is_candidate_link",
    "looks_like_article",
    "looks_like_section",
    "same_site",
    "strip_fragment",
]

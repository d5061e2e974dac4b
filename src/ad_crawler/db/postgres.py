"""Postgres persistence helpers for crawls, pages and ads."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any, Optional

import psycopg2
import psycopg2.extras

from ..errors import ConfigurationError
from ..logging import jlog
from ..models import PageType

UTC = getattr(datetime, "UTC", timezone.utc)


def sql_connect(pg_conf: dict[str, Any] | None = None):
    """Return a psycopg2 connection from a config mapping or ``DB_*`` env vars."""

    if pg_conf:
        return psycopg2.connect(connect_timeout=10, **pg_conf)

    password = os.getenv("DB_PASSWORD")
    if not password:
        raise ConfigurationError("DB_PASSWORD environment variable is required when no --pg-conf-file is given")
    return psycopg2.connect(
        host=os.getenv("DB_HOST", "127.0.0.1"),
        port=int(os.getenv("DB_PORT", "5432")),
        dbname=os.getenv("DB_NAME", "adscraper"),
        user=os.getenv("DB_USER", "postgres"),
        password=password,
        connect_timeout=10,
        sslmode=os.getenv("DB_SSLMODE", "prefer"),
    )


# ============================
# crawl
# ============================


def insert_crawl(
    con,
    *,
    job_id: int,
    name: str,
    crawl_list: str,
    crawl_list_length: int,
    profile_dir: Optional[str],
    crawler_hostname: str,
    crawler_ip: Optional[str],
) -> int:
    """Create the crawl row for a fresh run and return its id."""

    with con.cursor() as cur:
        cur.execute(
            """
            INSERT INTO crawl(job_id, name, start_time, completed, crawl_list,
                              crawl_list_current_index, crawl_list_length,
                              profile_dir, crawler_hostname, crawler_ip)
            VALUES (%s, %s, %s, FALSE, %s, 0, %s, %s, %s, %s)
            RETURNING id
            """,
            (job_id, name, datetime.now(UTC), crawl_list, crawl_list_length, profile_dir, crawler_hostname, crawler_ip),
        )
        crawl_id = cur.fetchone()[0]
    con.commit()
    jlog("info", event="crawl_created", crawl_id=crawl_id, crawl_list=crawl_list, crawl_list_length=crawl_list_length)
    return crawl_id


def fetch_crawl(con, crawl_id: int) -> dict[str, Any] | None:
    with con.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
        cur.execute("SELECT * FROM crawl WHERE id=%s", (crawl_id,))
        row = cur.fetchone()
    return dict(row) if row else None


def update_crawl_index(con, *, crawl_id: int, index: int) -> None:
    """Persist the resume checkpoint."""

    with con.cursor() as cur:
        cur.execute("UPDATE crawl SET crawl_list_current_index=%s WHERE id=%s", (index, crawl_id))
    con.commit()


def complete_crawl(con, *, crawl_id: int) -> None:
    with con.cursor() as cur:
        cur.execute(
            "UPDATE crawl SET completed=TRUE, completed_time=%s WHERE id=%s",
            (datetime.now(UTC), crawl_id),
        )
    con.commit()
    jlog("info", event="crawl_completed", crawl_id=crawl_id)


# ============================
# page
# ============================


def insert_page(
    con,
    *,
    job_id: int,
    crawl_id: int,
    url: str,
    crawl_list_url: str,
    page_type: PageType,
    referrer_page_id: Optional[int] = None,
    referrer_page_url: Optional[str] = None,
    referrer_ad_id: Optional[int] = None,
    html_path: Optional[str] = None,
    title: Optional[str] = None,
) -> int:
    """Insert a ``page`` row and return its id."""

    with con.cursor() as cur:
        cur.execute(
            """
            INSERT INTO page(job_id, crawl_id, timestamp, url, crawl_list_url, page_type,
                             referrer_page, referrer_page_url, referrer_ad, html, title)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id
            """,
            (
                job_id,
                crawl_id,
                datetime.now(UTC),
                url,
                crawl_list_url,
                PageType(page_type).value,
                referrer_page_id,
                referrer_page_url,
                referrer_ad_id,
                html_path,
                title,
            ),
        )
        page_id = cur.fetchone()[0]
    con.commit()
    return page_id


def archive_page(
    con,
    *,
    job_id: int,
    crawl_id: int,
    url: str,
    crawl_list_url: str,
    page_type: PageType,
    referrer_page_id: Optional[int] = None,
    referrer_page_url: Optional[str] = None,
    referrer_ad_id: Optional[int] = None,
) -> int:
    """Record a visit without any scraped content."""

    return insert_page(
        con,
        job_id=job_id,
        crawl_id=crawl_id,
        url=url,
        crawl_list_url=crawl_list_url,
        page_type=page_type,
        referrer_page_id=referrer_page_id,
        referrer_page_url=referrer_page_url,
        referrer_ad_id=referrer_ad_id,
    )


# ============================
# ad
# ============================


def insert_ad(
    con,
    *,
    job_id: int,
    crawl_id: int,
    parent_page_id: int,
    selector: str,
    html: Optional[str],
    bbox: Optional[dict[str, float]],
    screenshot_path: Optional[str] = None,
) -> int:
    """Insert an ``ad`` row. ``url`` stays NULL until a click resolves it."""

    bbox = bbox or {}
    with con.cursor() as cur:
        cur.execute(
            """
            INSERT INTO ad(job_id, crawl_id, parent_page, timestamp, selector, html,
                           x, y, width, height, screenshot)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id
            """,
            (
                job_id,
                crawl_id,
                parent_page_id,
                datetime.now(UTC),
                selector,
                html,
                bbox.get("x"),
                bbox.get("y"),
                bbox.get("width"),
                bbox.get("height"),
                screenshot_path,
            ),
        )
        ad_id = cur.fetchone()[0]
    con.commit()
    return ad_id


def persist_ad_url(con, *, ad_id: int, url: str) -> bool:
    """Set ``ad.url`` unless it is already set. Returns whether a row changed."""

    if not url:
        return False
    with con.cursor() as cur:
        cur.execute("UPDATE ad SET url=%s WHERE id=%s AND url IS NULL", (url, ad_id))
        changed = cur.rowcount == 1
    con.commit()
    if changed:
        jlog("info", event="ad_url_saved", ad_id=ad_id, ad_url=url)
    else:
        jlog("warning", event="ad_url_already_set", ad_id=ad_id, ad_url=url)
    return changed


__all__ = [
    "archive_page",
    "complete_crawl",
    "fetch_crawl",
    "insert_ad",
    "insert_crawl",
    "insert_page",
    "persist_ad_url",
    "sql_connect",
    "update_crawl_index",
]

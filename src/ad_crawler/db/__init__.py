"""Database helpers for the crawler."""

from .postgres import (
    archive_page,
    complete_crawl,
    fetch_crawl,
    insert_ad,
    insert_crawl,
    insert_page,
    persist_ad_url,
    sql_connect,
    update_crawl_index,
)

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

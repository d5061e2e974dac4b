"""Structured logging helpers shared by the crawler entrypoints."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator

UTC = getattr(datetime, "UTC", timezone.utc)
_LOGGER_NAME = "crawler"
_configured = False
_base_context: dict[str, Any] = {}
# Scoped fields live in a contextvar so that event-handler tasks spawned by
# Playwright keep the scope they were created under.
_scoped_context: ContextVar[dict[str, Any]] = ContextVar("crawler_log_context", default={})


def configure_logging(level: int = logging.INFO) -> None:
    """Configure the global logging formatter once."""

    global _configured
    if _configured:
        return
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")
    _configured = True


def set_global_context(**fields: Any) -> None:
    """Add persistent context fields that appear on every structured log."""

    _base_context.update({k: v for k, v in fields.items() if v is not None})


@contextmanager
def logging_context(**fields: Any) -> Iterator[None]:
    """Layer extra fields onto every log emitted inside the ``with`` block."""

    merged = {**_scoped_context.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _scoped_context.set(merged)
    try:
        yield
    finally:
        _scoped_context.reset(token)


def _utcnow_iso() -> str:
    return datetime.now(UTC).isoformat()


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    return str(value)


def jlog(level: str, /, **fields: Any) -> None:
    """Emit a structured JSON log payload under the ``crawler`` logger."""

    log = logging.getLogger(_LOGGER_NAME)
    record = {"ts": _utcnow_iso(), **_base_context, **_scoped_context.get(), **fields}
    getattr(log, level.lower())(json.dumps(record, ensure_ascii=False, sort_keys=True, default=_jsonable))


def pagelog(event: str, *, url: str, level: str = "info", **kw: Any) -> None:
    """Shortcut for page-scoped records."""

    jlog(level, event=event, url=url, **kw)


def adlog(event: str, *, ad_id: int, page_url: str, level: str = "info", **kw: Any) -> None:
    """Shortcut for ad-scoped records."""

    jlog(level, event=event, ad_id=ad_id, page_url=page_url, **kw)


__all__ = ["adlog", "configure_logging", "jlog", "logging_context", "pagelog", "set_global_context"]

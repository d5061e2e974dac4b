"""Scoped deadlines and sleeps."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable


async def sleep(seconds: float) -> None:
    if seconds > 0:
        await asyncio.sleep(seconds)
    else:
        await asyncio.sleep(0)


@asynccontextmanager
async def deadline(seconds: float, make_error: Callable[[], BaseException]) -> AsyncIterator[None]:
    """Cancel the enclosed block after ``seconds`` and raise ``make_error()``.

    Only expiry of *this* scope is translated; a ``TimeoutError`` raised by
    inner code (or by a nested deadline) propagates untouched.
    """

    scope = asyncio.timeout(seconds)
    try:
        async with scope:
            yield
    except TimeoutError as exc:
        if scope.expired():
            raise make_error() from exc
        raise


__all__ = ["deadline", "sleep"]

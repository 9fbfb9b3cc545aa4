from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from relay.errors import DeadlineExceeded


T = TypeVar("T")


async def with_deadline(aw: Awaitable[T], seconds: float) -> T:
    """Wait for `aw` for at most `seconds`.

    Raises DeadlineExceeded when the timer wins. The wrapped work is shielded,
    so it is never cancelled and keeps running after the deadline passes.
    """
    fut = asyncio.ensure_future(aw)
    try:
        return await asyncio.wait_for(asyncio.shield(fut), timeout=seconds)
    except asyncio.TimeoutError as exc:
        if fut.done():
            # The work itself raised a timeout; report it as-is.
            raise
        raise DeadlineExceeded(seconds) from exc

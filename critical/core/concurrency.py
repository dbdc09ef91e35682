"""Fan-out helpers for asyncio tasks."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, List


async def gather_or_cancel(*awaitables: Awaitable[Any]) -> List[Any]:
    """Run awaitables concurrently and return their results in order.

    The first exception cancels every sibling that is still running and is
    re-raised on its own, so callers see one error rather than a group.
    """

    tasks = [asyncio.ensure_future(item) for item in awaitables]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

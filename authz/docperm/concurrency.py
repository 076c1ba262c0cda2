"""
Fan-out / fan-in helper shared by the engine components.

Invariants:
    - Results come back in submission order, whatever the completion order
    - The first failure wins: pending siblings are cancelled and the error
      is re-raised, so no partial result escapes
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Iterable, List


async def gather_all(aws: Iterable[Awaitable[Any]]) -> List[Any]:
    """Run awaitables concurrently and return their results in order."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

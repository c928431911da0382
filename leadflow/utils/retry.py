from __future__ import annotations

import asyncio
from typing import Sequence


def retry_delay_ms(attempt: int, delays_ms: Sequence[int]) -> int:
    """Return the delay for ``attempt`` from an escalating delay table.

    Attempts beyond the end of the table reuse the last entry.
    """
    if not delays_ms:
        return 0
    index = min(max(attempt, 1) - 1, len(delays_ms) - 1)
    return delays_ms[index]


async def schedule_retry(delay_ms: int) -> None:
    """Sleep for the given delay before retrying."""
    await asyncio.sleep(delay_ms / 1000)

"""Fixed-rate asyncio tick loop for running elements without a host scheduler."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

__all__ = ["Tickable", "run_ticks"]

logger = logging.getLogger("tickbridge.scheduler")


class Tickable(Protocol):
    def tick(self) -> None: ...


async def run_ticks(
    target: Tickable,
    *,
    rate: float = 60.0,
    stop: asyncio.Event | None = None,
) -> int:
    """Call ``target.tick()`` every ``1 / rate`` seconds.

    Runs until *stop* is set or the task is cancelled. A tick that raises is
    logged and the loop carries on with the next one.

    Parameters
    ----------
    target : Tickable
        Element or ``ElementHost`` to drive.
    rate : float
        Ticks per second.
    stop : asyncio.Event | None
        Optional event ending the loop after the current tick.

    Returns
    -------
    int
        Number of ticks executed.

    Examples
    --------
    >>> stop = asyncio.Event()
    >>> task = asyncio.create_task(run_ticks(host, rate=60, stop=stop))
    >>> stop.set()
    >>> await task
    """
    if rate <= 0:
        msg = f"rate must be positive, got {rate}"
        raise ValueError(msg)

    loop = asyncio.get_running_loop()
    interval = 1.0 / rate
    deadline = loop.time()
    count = 0
    try:
        while stop is None or not stop.is_set():
            try:
                target.tick()
            except Exception:
                logger.exception("Tick %d failed", count)
            count += 1
            deadline += interval
            delay = deadline - loop.time()
            if delay < 0:
                # fell behind; restart the cadence instead of bursting
                deadline = loop.time()
                delay = 0
            await asyncio.sleep(delay)
    except asyncio.CancelledError:
        logger.debug("Tick loop cancelled after %d ticks", count)
        raise
    return count

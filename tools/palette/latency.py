"""Simulated network latency.

Services await a ``Delay`` before doing any work. Production code uses
``asyncio.sleep``; tests and the CLI's ``--no-latency`` mode pass ``no_delay``.
"""

import asyncio
from typing import Awaitable, Callable

Delay = Callable[[float], Awaitable[None]]

AUTH_DELAY = 0.5
SAVE_DELAY = 0.3
LOAD_DELAY = 0.3
DELETE_DELAY = 0.2
GET_DELAY = 0.2


async def no_delay(seconds: float) -> None:
    """Resolve immediately, still yielding once to the event loop."""
    await asyncio.sleep(0)


def default_delay(simulate: bool = True) -> Delay:
    return asyncio.sleep if simulate else no_delay

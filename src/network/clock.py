"""
LOT 3: Network - Clock

Horloge système (temps monotone + asyncio.sleep).
"""

import asyncio
import time

from .interfaces import IClock


class SystemClock(IClock):
    """Horloge de production basée sur time.monotonic."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(max(delay, 0.0))

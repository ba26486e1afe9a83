"""Bounded render slots for the synthesis service rate limit"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator


class RenderSlotLimiter:
    """
    At most `max_slots` renders hold a slot at once.

    With the default of one slot, scenes render strictly one after another.
    `in_flight` and `peak_in_flight` make the policy observable in tests and logs.
    """

    def __init__(self, max_slots: int = 1):
        if max_slots < 1:
            raise ValueError(f"max_slots must be >= 1, got {max_slots}")
        self.max_slots = max_slots
        self._semaphore = asyncio.Semaphore(max_slots)
        self.in_flight = 0
        self.peak_in_flight = 0
        self.completed = 0
        self.logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def slot(self, label: str = "render") -> AsyncIterator[None]:
        async with self._semaphore:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            self.logger.debug(f"{label} acquired slot ({self.in_flight}/{self.max_slots})")
            try:
                yield
            finally:
                self.in_flight -= 1
                self.completed += 1

    @property
    def available(self) -> int:
        return self.max_slots - self.in_flight

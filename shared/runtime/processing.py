"""
In-flight message registry.

Every pipeline claims a message id before doing any work so that
overlapping deliveries of the same message (or two replies racing on
the same bot message) never run twice at once.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Set

from shared.logging.logger import get_logger

log = get_logger("runtime.processing")


class ProcessingRegistry:
    """
    Concurrent set of message ids currently inside a pipeline.

    - try_begin() is an atomic check-and-insert
    - end() is idempotent
    - claim() binds release to a scope; pipelines use it exclusively
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._in_flight: Set[int] = set()

    # --------------------------------------------------

    async def try_begin(self, message_id: int) -> bool:
        async with self._lock:
            if message_id in self._in_flight:
                return False
            self._in_flight.add(message_id)
            return True

    async def end(self, message_id: int) -> None:
        async with self._lock:
            self._in_flight.discard(message_id)

    @asynccontextmanager
    async def claim(self, message_id: int) -> AsyncIterator[bool]:
        """
        Yield True if the id was claimed, False if already in flight.

        A successful claim is released on every exit, including errors
        and task cancellation.
        """
        acquired = await self.try_begin(message_id)
        if not acquired:
            log.info(f"Message {message_id} already processing")
        try:
            yield acquired
        finally:
            if acquired:
                await self.end(message_id)
                log.debug(f"Message {message_id} released")

    # --------------------------------------------------
    # Read-only introspection
    # --------------------------------------------------

    def in_flight(self, message_id: int) -> bool:
        return message_id in self._in_flight

    def __len__(self) -> int:
        return len(self._in_flight)

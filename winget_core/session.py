"""
Keeps at most one winget invocation in flight per UI surface.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

from . import logger as app_logger

_LOGGER = app_logger.get_logger()

T = TypeVar("T")


class OperationSession:
    """
    Runs operations one at a time.

    Starting an operation cancels the previous one and waits until it has torn
    down (its process tree killed) before the new one begins. Overlapping
    ``run`` calls are serialised on a lock, so each one only starts after the
    operation before it has been stopped.
    """

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self._current: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._current is not None and not self._current.done()

    async def run(self, operation: Awaitable[T]) -> T:
        task: Optional[asyncio.Task] = None
        try:
            async with self._lock:
                await self._stop_current()
                task = asyncio.ensure_future(operation)
                self._current = task
        finally:
            if task is None and asyncio.iscoroutine(operation):
                # Never started; close it so it is not reported as unawaited.
                operation.close()

        try:
            return await task
        finally:
            if self._current is task:
                self._current = None

    async def cancel(self) -> None:
        """Cancel the in-flight operation, if any, and wait for it to finish."""
        async with self._lock:
            await self._stop_current()
            self._current = None

    async def _stop_current(self) -> None:
        previous = self._current
        if previous is None or previous.done():
            return

        _LOGGER.info("Session {}: cancelling previous operation.", self.name)
        previous.cancel()
        try:
            await previous
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        except Exception as exc:
            _LOGGER.debug("Session {}: previous operation ended with {!r}", self.name, exc)

"""
Qt adapter that runs a winget operation off the GUI thread and reports progress as signals.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Awaitable, Callable, Optional

from PySide6.QtCore import QObject, Signal

from . import logger as app_logger
from .output_phase import PhaseTracker
from .process_runner import LineCallback

_LOGGER = app_logger.get_logger()

OperationFactory = Callable[[LineCallback], Awaitable[int]]
NO_PERCENT = -1


class OperationWorker(QObject):
    """
    Runs one streaming operation on a private event loop in a worker thread.

    Signals are emitted from the worker thread; Qt queues them to receivers
    living on the GUI thread. ``phaseChanged`` carries the status text and the
    percent, or ``NO_PERCENT`` when no percentage is known.
    """

    lineReceived = Signal(str)
    phaseChanged = Signal(str, int)
    finished = Signal(int)
    failed = Signal(str)
    cancelled = Signal()

    def __init__(self, operation: OperationFactory, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._operation = operation
        self._tracker = PhaseTracker()
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None
        self._lock = threading.Lock()
        self._cancel_requested = False

    @property
    def tracker(self) -> PhaseTracker:
        return self._tracker

    def start(self) -> None:
        """Start the operation; a second call while running is ignored."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._tracker = PhaseTracker()
        self._thread = threading.Thread(target=self._run, name="winget-operation", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        """Request cancellation; safe to call from any thread, before or after start."""
        with self._lock:
            self._cancel_requested = True
            loop, task = self._loop, self._task
        if loop is None or task is None or task.done():
            return
        try:
            loop.call_soon_threadsafe(task.cancel)
        except RuntimeError:
            # Loop already closed: the operation has finished.
            pass

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the worker thread ends; returns False on timeout."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run(self) -> None:
        asyncio.run(self._main())

    async def _main(self) -> None:
        with self._lock:
            self._loop = asyncio.get_running_loop()
            self._task = asyncio.current_task()
            cancel_now = self._cancel_requested
        try:
            if cancel_now:
                raise asyncio.CancelledError()
            exit_code = await self._operation(self._on_line)
        except asyncio.CancelledError:
            _LOGGER.info("winget operation cancelled.")
            self.cancelled.emit()
            return
        except Exception as exc:
            _LOGGER.exception("winget operation failed.")
            self.failed.emit(str(exc))
            return
        finally:
            with self._lock:
                self._loop = None
                self._task = None
                self._cancel_requested = False

        self.finished.emit(exit_code)

    def _on_line(self, line: str) -> None:
        self.lineReceived.emit(line)
        signal = self._tracker.feed(line)
        if signal is None:
            return
        percent = self._tracker.percent if self._tracker.percent is not None else NO_PERCENT
        self.phaseChanged.emit(self._tracker.status, percent)

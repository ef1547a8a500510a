"""
Tests for the Qt worker that runs operations off the GUI thread.
"""

import asyncio
import threading

import pytest

QtCore = pytest.importorskip("PySide6.QtCore")

from winget_core.qt_bridge import NO_PERCENT, OperationWorker  # noqa: E402


@pytest.fixture(scope="module")
def app():
    return QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])


def record(worker):
    events = []
    worker.lineReceived.connect(lambda line: events.append(("line", line)))
    worker.phaseChanged.connect(lambda status, percent: events.append(("phase", status, percent)))
    worker.finished.connect(lambda code: events.append(("finished", code)))
    worker.failed.connect(lambda message: events.append(("failed", message)))
    worker.cancelled.connect(lambda: events.append(("cancelled",)))
    return events


def finish(app, worker):
    assert worker.wait(10)
    app.processEvents()


def test_lines_phases_and_exit_code(app):
    async def operation(on_line):
        on_line("Found Git [Git.Git]")
        on_line("Downloading 50%")
        on_line("")
        on_line("Successfully installed")
        return 0

    worker = OperationWorker(operation)
    events = record(worker)

    worker.start()
    finish(app, worker)

    assert events == [
        ("line", "Found Git [Git.Git]"),
        ("phase", "Found Git [Git.Git]", NO_PERCENT),
        ("line", "Downloading 50%"),
        ("phase", "Downloading", 50),
        ("line", ""),
        ("line", "Successfully installed"),
        ("phase", "Done", 100),
        ("finished", 0),
    ]


def test_failure_is_reported(app):
    async def operation(on_line):
        raise RuntimeError("boom")

    worker = OperationWorker(operation)
    events = record(worker)

    worker.start()
    finish(app, worker)

    assert events == [("failed", "boom")]


def test_cancel_while_running(app):
    started = threading.Event()

    async def operation(on_line):
        started.set()
        await asyncio.sleep(60)
        return 0

    worker = OperationWorker(operation)
    events = record(worker)

    worker.start()
    assert started.wait(10)
    worker.cancel()
    finish(app, worker)

    assert events == [("cancelled",)]


def test_cancel_before_start(app):
    calls = []

    async def operation(on_line):
        calls.append("ran")
        return 0

    worker = OperationWorker(operation)
    events = record(worker)

    worker.cancel()
    worker.start()
    finish(app, worker)

    assert calls == []
    assert events == [("cancelled",)]


def test_restart_begins_with_fresh_progress_state(app):
    batches = [["Downloading 50%"], ["Found Git [Git.Git]"]]

    async def operation(on_line):
        for line in batches.pop(0):
            on_line(line)
        return 0

    worker = OperationWorker(operation)
    worker.start()
    finish(app, worker)
    events = record(worker)

    worker.start()
    finish(app, worker)

    assert events == [
        ("line", "Found Git [Git.Git]"),
        ("phase", "Found Git [Git.Git]", NO_PERCENT),
        ("finished", 0),
    ]
    assert worker.tracker.percent is None


def test_restart_after_cancel_runs_the_operation(app):
    calls = []

    async def operation(on_line):
        calls.append("ran")
        return 0

    worker = OperationWorker(operation)
    worker.cancel()
    worker.start()
    finish(app, worker)
    events = record(worker)

    worker.start()
    finish(app, worker)

    assert calls == ["ran"]
    assert events == [("finished", 0)]

"""
Logging setup for the winget integration core.

Console output goes to stderr at ``WINGET_CORE_LOG_LEVEL`` (INFO unless set);
the rotating file under ``%LOCALAPPDATA%\\WingetCore`` always keeps DEBUG so
command lines and swallowed errors can be inspected after the fact.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger as _logger

_LOG_INITIALISED = False
_LEVEL_ENV = "WINGET_CORE_LOG_LEVEL"
LOG_DIR = Path(os.environ.get("LOCALAPPDATA", str(Path.home() / "AppData" / "Local"))) / "WingetCore"
DEFAULT_LOG_PATH = LOG_DIR / "core.log"


def configure(log_path: Optional[Path] = None, console_level: Optional[str] = None) -> None:
    """
    Install the stderr and file sinks.

    Runs once per process; later calls are ignored so every module can call
    ``get_logger()`` at import time without re-adding sinks. An unwritable log
    directory only disables the file sink.
    """
    global _LOG_INITIALISED
    if _LOG_INITIALISED:
        return
    target = log_path or DEFAULT_LOG_PATH
    level = (console_level or os.environ.get(_LEVEL_ENV) or "INFO").upper()

    _logger.remove()
    if sys.stderr is not None:
        try:
            _logger.add(sys.stderr, level=level, enqueue=True)
        except ValueError:
            _logger.add(sys.stderr, level="INFO", enqueue=True)
            _logger.warning("Unknown log level {!r} in {}; using INFO.", level, _LEVEL_ENV)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        _logger.warning("Log directory {} is not writable ({}); file logging disabled.", target.parent, exc)
    else:
        _logger.add(
            target,
            level="DEBUG",
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )
    _LOG_INITIALISED = True


def get_logger():
    """Return the shared logger instance."""
    configure()
    return _logger

"""
Error types raised by the winget integration core.
"""

from __future__ import annotations


class WingetError(RuntimeError):
    """Base class for recoverable winget failures."""


class WingetCommandError(WingetError):
    """Raised when a read-only winget command (list, search) exits non-zero."""

    def __init__(self, message: str, *, command: str, exit_code: int) -> None:
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code


def failure_message(stdout: str, stderr: str, *, command: str, exit_code: int) -> str:
    """Pick stderr, then stdout, then a generic message describing the failure."""
    message = stderr if stderr and stderr.strip() else stdout
    if not message or not message.strip():
        return f"{command} failed with exit code {exit_code}."
    return message.strip()

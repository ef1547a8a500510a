"""
Classification of streamed winget output lines into operation phases.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

_PERCENT_RE = re.compile(r"(?<!\d)(\d{1,3})%")
MAX_STATUS_LENGTH = 80
ELLIPSIS = "…"


class OperationPhase(Enum):
    DOWNLOADING = "Downloading"
    INSTALLING = "Installing"
    UNINSTALLING = "Uninstalling"
    DONE = "Done"
    OTHER = "Other"


@dataclass(frozen=True, slots=True)
class PhaseSignal:
    phase: OperationPhase
    percent: Optional[int] = None
    text: Optional[str] = None


def classify_line(line: Optional[str]) -> Optional[PhaseSignal]:
    """
    Map one line of winget output to a phase signal.

    Rules are checked in order and the first match wins. Blank lines produce
    ``None``.
    """
    text = (line or "").strip()
    if not text:
        return None

    match = _PERCENT_RE.search(text)
    if match:
        percent = max(0, min(100, int(match.group(1))))
        return PhaseSignal(OperationPhase.DOWNLOADING, percent=percent)

    lowered = text.lower()
    if "download" in lowered:
        return PhaseSignal(OperationPhase.DOWNLOADING)
    if "installing" in lowered or "starting package" in lowered:
        return PhaseSignal(OperationPhase.INSTALLING)
    if "uninstalling" in lowered:
        return PhaseSignal(OperationPhase.UNINSTALLING)
    if "successfully" in lowered:
        return PhaseSignal(OperationPhase.DONE)

    return PhaseSignal(OperationPhase.OTHER, text=truncate_status(text))


def truncate_status(text: str, limit: int = MAX_STATUS_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


class PhaseTracker:
    """
    Display state for one running operation.

    Once a download has been seen the phase stays at Downloading when an
    unrecognised line arrives; only the detail text changes.
    """

    def __init__(self) -> None:
        self.phase: Optional[OperationPhase] = None
        self.percent: Optional[int] = None
        self.detail = ""
        self.download_seen = False

    def feed(self, line: str) -> Optional[PhaseSignal]:
        """Apply one output line; returns the signal that was applied, if any."""
        signal = classify_line(line)
        if signal is None:
            return None

        if signal.phase is OperationPhase.DOWNLOADING:
            self.download_seen = True
            if signal.percent is not None:
                self.percent = signal.percent
            self.phase = signal.phase
        elif signal.phase is OperationPhase.OTHER:
            self.detail = signal.text or ""
            if not self.download_seen:
                self.phase = signal.phase
        else:
            self.phase = signal.phase
            if signal.phase is OperationPhase.DONE:
                self.percent = 100
        return signal

    @property
    def status(self) -> str:
        if self.phase is None:
            return ""
        if self.phase is OperationPhase.OTHER:
            return self.detail
        return self.phase.value

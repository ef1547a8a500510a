"""
Runs external commands either buffered or with live line streaming.

Cancellation is asyncio task cancellation: a cancelled run kills the whole
process tree and re-raises ``asyncio.CancelledError`` instead of returning a
result.
"""

from __future__ import annotations

import asyncio
import codecs
import os
import re
import signal
import subprocess
import sys
from dataclasses import dataclass
from typing import Callable, List, Optional

from . import logger as app_logger

_LOGGER = app_logger.get_logger()

START_FAILURE_EXIT_CODE = -1
CANCELLING_LINE = "(cancelling…)"

_READ_CHUNK_SIZE = 4096
_KILL_WAIT_SECONDS = 5
_LINE_BREAK = re.compile(r"\r\n|\r|\n")

LineCallback = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class LineAssembler:
    """
    Turns a byte stream into complete text lines.

    Decoding is incremental so a UTF-8 sequence split across reads survives.
    ``\\r\\n``, ``\\n`` and a lone ``\\r`` all end a line, including a
    ``\\r\\n`` pair split across two chunks.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""
        self._skip_lf = False

    def feed(self, data: bytes) -> List[str]:
        return self._split(self._decoder.decode(data))

    def flush(self) -> List[str]:
        lines = self._split(self._decoder.decode(b"", final=True))
        if self._pending:
            lines.append(self._pending)
            self._pending = ""
        return lines

    def _split(self, text: str) -> List[str]:
        if not text:
            return []
        if self._skip_lf and text.startswith("\n"):
            text = text[1:]
        self._skip_lf = False
        if not text:
            return []

        buffer = self._pending + text
        self._skip_lf = buffer.endswith("\r")
        *lines, self._pending = _LINE_BREAK.split(buffer)
        return lines


async def run_capture(program: str, arguments: str) -> CommandResult:
    """
    Run ``program`` to completion and capture both output streams.

    A process that cannot be started yields exit code ``START_FAILURE_EXIT_CODE``
    with the reason in ``stderr``.
    """
    try:
        process = await _start(program, arguments)
    except OSError as exc:
        _LOGGER.warning("Could not start '{} {}': {}", program, arguments, exc)
        return CommandResult(START_FAILURE_EXIT_CODE, "", str(exc))

    try:
        stdout, stderr, exit_code = await asyncio.gather(
            process.stdout.read(),
            process.stderr.read(),
            process.wait(),
        )
    except asyncio.CancelledError:
        _LOGGER.info("Cancelled '{} {}'; killing process tree {}.", program, arguments, process.pid)
        await _terminate(process)
        raise

    _LOGGER.debug("'{} {}' exited with code {}", program, arguments, exit_code)
    return CommandResult(exit_code, _decode(stdout), _decode(stderr))


async def run_streaming(program: str, arguments: str, on_line: LineCallback) -> CommandResult:
    """
    Run ``program`` and hand every output line to ``on_line`` as it arrives.

    stdout and stderr are read by two independent tasks: lines keep their order
    within a stream, but the two streams interleave arbitrarily. The returned
    result carries only the exit code (output has already been delivered),
    except for start failures, which report the reason in ``stderr``.
    """
    try:
        process = await _start(program, arguments)
    except OSError as exc:
        _LOGGER.warning("Could not start '{} {}': {}", program, arguments, exc)
        return CommandResult(START_FAILURE_EXIT_CODE, "", str(exc))

    readers = [
        asyncio.ensure_future(_pump(process.stdout, on_line)),
        asyncio.ensure_future(_pump(process.stderr, on_line)),
    ]
    try:
        await asyncio.gather(*readers)
        exit_code = await process.wait()
    except asyncio.CancelledError:
        _LOGGER.info("Cancelled '{} {}'; killing process tree {}.", program, arguments, process.pid)
        on_line(CANCELLING_LINE)
        await _terminate(process)
        raise
    except Exception:
        await _terminate(process)
        raise
    finally:
        for reader in readers:
            reader.cancel()

    _LOGGER.debug("'{} {}' exited with code {}", program, arguments, exit_code)
    return CommandResult(exit_code, "", "")


def split_arguments(arguments: Optional[str]) -> List[str]:
    """
    Split a command-line string the way the Microsoft C runtime does.

    Backslashes are literal unless they precede a double quote: 2n backslashes
    plus a quote give n backslashes and toggle quoting, 2n+1 give n backslashes
    and a literal quote. ``"C:\\Program Files\\App"`` and UNC paths survive.
    """
    text = arguments or ""
    args: List[str] = []
    current: List[str] = []
    in_quotes = False
    has_token = False
    index = 0
    while index < len(text):
        char = text[index]
        if char == "\\":
            end = index
            while end < len(text) and text[end] == "\\":
                end += 1
            count = end - index
            if end < len(text) and text[end] == '"':
                current.append("\\" * (count // 2))
                if count % 2:
                    current.append('"')
                    end += 1
            else:
                current.append("\\" * count)
            has_token = True
            index = end
            continue

        if char == '"':
            in_quotes = not in_quotes
            has_token = True
        elif char in " \t" and not in_quotes:
            if has_token:
                args.append("".join(current))
                current = []
                has_token = False
        else:
            current.append(char)
            has_token = True
        index += 1

    if has_token:
        args.append("".join(current))
    return args


def kill_process_tree(pid: int) -> None:
    """Best-effort kill of ``pid`` and every process it spawned."""
    try:
        if sys.platform == "win32":
            subprocess.run(
                ["taskkill", "/T", "/F", "/PID", str(pid)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                creationflags=getattr(subprocess, "CREATE_NO_WINDOW", 0),
                timeout=_KILL_WAIT_SECONDS,
                check=False,
            )
        else:
            # Children run in their own session, so the group id is the pid.
            os.killpg(pid, signal.SIGKILL)
    except (OSError, subprocess.SubprocessError) as exc:
        _LOGGER.debug("Ignoring failure to kill process tree {}: {}", pid, exc)


async def _start(program: str, arguments: str) -> asyncio.subprocess.Process:
    argv = [program, *split_arguments(arguments)]
    options = {}
    if sys.platform == "win32":
        options["creationflags"] = getattr(subprocess, "CREATE_NO_WINDOW", 0)
    else:
        options["start_new_session"] = True

    _LOGGER.debug("Starting {}", argv)
    return await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        **options,
    )


async def _pump(stream: Optional[asyncio.StreamReader], on_line: LineCallback) -> None:
    if stream is None:
        return
    assembler = LineAssembler()
    while True:
        chunk = await stream.read(_READ_CHUNK_SIZE)
        if not chunk:
            break
        for line in assembler.feed(chunk):
            on_line(line)
    for line in assembler.flush():
        on_line(line)


async def _terminate(process: asyncio.subprocess.Process) -> None:
    # Descendants can outlive the direct child and still hold the pipes open.
    kill_process_tree(process.pid)
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        except OSError as exc:
            _LOGGER.debug("Ignoring failure to kill process {}: {}", process.pid, exc)
    try:
        await asyncio.wait_for(process.wait(), _KILL_WAIT_SECONDS)
    except asyncio.TimeoutError:
        _LOGGER.debug("Process {} did not exit after kill.", process.pid)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")

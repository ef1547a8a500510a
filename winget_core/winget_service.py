"""
High-level winget operations built on the process runner and table parser.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from winget_shared.winget_package import Package, merge_upgrades, sort_packages

from . import logger as app_logger
from .errors import WingetCommandError, failure_message
from .flag_catalog import WingetOperation
from .process_runner import START_FAILURE_EXIT_CODE, CommandResult, LineCallback, run_capture, run_streaming
from .settings import CoreSettingsManager
from .table_parser import TableRow, parse_table

_LOGGER = app_logger.get_logger()

_ACCEPT_SOURCE = "--accept-source-agreements"
_ACCEPT_ALL = "--accept-source-agreements --accept-package-agreements"
_QUOTE_BACKSLASHES = re.compile(r'(\\*)"')
_TRAILING_BACKSLASHES = re.compile(r"(\\+)\Z")

CaptureRunner = Callable[[str, str], Awaitable[CommandResult]]
StreamRunner = Callable[[str, str, LineCallback], Awaitable[CommandResult]]


@dataclass(frozen=True, slots=True)
class Availability:
    available: bool
    detail: str


class WingetService:
    """
    Facade over the winget CLI.

    Read operations (list, search) raise ``WingetCommandError`` on a non-zero
    exit. Mutating operations stream their output and hand back winget's exit
    code untouched, since winget often exits non-zero for partial success.
    """

    def __init__(
        self,
        *,
        settings_manager: Optional[CoreSettingsManager] = None,
        capture: CaptureRunner = run_capture,
        stream: StreamRunner = run_streaming,
    ) -> None:
        self.settings_manager = settings_manager or CoreSettingsManager()
        settings = self.settings_manager.read_settings()
        self.executable = settings.executable
        self.availability_timeout = settings.availability_timeout_seconds
        self._capture = capture
        self._stream = stream

    async def check_available(self) -> Availability:
        """Probe ``winget --version``; never raises."""
        try:
            result = await asyncio.wait_for(
                self._capture(self.executable, "--version"),
                self.availability_timeout,
            )
        except asyncio.TimeoutError:
            _LOGGER.warning("winget --version did not answer within {}s.", self.availability_timeout)
            return Availability(False, "Timed out while checking winget")

        if result.succeeded:
            version = result.stdout.strip()
            return Availability(True, f"winget {version}" if version else "winget available")

        detail = failure_message(result.stdout, result.stderr, command="winget", exit_code=result.exit_code)
        _LOGGER.warning("winget unavailable: {}", detail)
        return Availability(False, detail)

    async def get_installed(self) -> List[Package]:
        result = await self._capture(self.executable, "list")
        self._raise_if_failed(result, "winget list")

        packages: List[Package] = []
        for row in parse_table(result.stdout):
            package = _package_from_row(row, with_available=True)
            if package is not None:
                packages.append(package)
        _LOGGER.info("winget list returned {} packages.", len(packages))
        return packages

    async def get_upgrades_by_id(self) -> Dict[str, Package]:
        """
        Packages with an available upgrade, keyed by case-folded id.

        Listing upgrades is best-effort: winget may fail on source agreement
        prompts, so a second attempt accepts them and a second failure yields
        an empty map.
        """
        result = await self._capture(self.executable, "upgrade --include-unknown")
        if not result.succeeded:
            _LOGGER.info("winget upgrade failed with {}; retrying with {}.", result.exit_code, _ACCEPT_SOURCE)
            result = await self._capture(self.executable, f"upgrade --include-unknown {_ACCEPT_SOURCE}")
        if not result.succeeded:
            _LOGGER.warning("winget upgrade failed with {}; assuming no upgrades.", result.exit_code)
            return {}

        upgrades: Dict[str, Package] = {}
        for row in parse_table(result.stdout):
            package_id = row.value("Id")
            if not package_id.strip():
                continue
            name = row.value("Name")
            upgrades[package_id.casefold()] = Package(
                name=name if name.strip() else package_id,
                id=package_id,
                version=row.value("Version"),
                available_version=row.value("Available"),
                source=row.value("Source"),
            )
        return upgrades

    async def get_installed_with_upgrades(self) -> List[Package]:
        """Installed packages with available versions filled in, sorted by name then id."""
        installed = await self.get_installed()
        upgrades = await self.get_upgrades_by_id()
        return sort_packages(merge_upgrades(installed, upgrades))

    async def search(self, query: str) -> List[Package]:
        query = (query or "").strip()
        if not query:
            return []

        result = await self._capture(self.executable, f"search {quote(query)} {_ACCEPT_SOURCE}")
        self._raise_if_failed(result, "winget search")

        packages: List[Package] = []
        for row in parse_table(result.stdout):
            package = _package_from_row(row, with_available=False)
            if package is not None:
                packages.append(package)
        return packages

    async def get_description(self, package_id: str) -> str:
        package_id = (package_id or "").strip()
        if not package_id:
            return ""

        result = await self._capture(self.executable, f"show --id {quote(package_id)} {_ACCEPT_SOURCE}")
        if not result.succeeded:
            _LOGGER.debug("winget show for {} failed with {}.", package_id, result.exit_code)
            return ""
        return parse_description(result.stdout)

    async def install(
        self,
        package_id: str,
        on_line: Optional[LineCallback] = None,
        *,
        location: Optional[str] = None,
        extra_args: Optional[str] = None,
    ) -> int:
        args = f"install --id {quote(_required(package_id, 'Package Id'))} {_ACCEPT_ALL}"
        if location and location.strip():
            args += f" --location {quote(location.strip())}"
        return await self._run_streaming(args, self._extra(WingetOperation.INSTALL, extra_args), on_line)

    async def upgrade(self, package_id: str, on_line: Optional[LineCallback] = None, *, extra_args: Optional[str] = None) -> int:
        args = f"upgrade --id {quote(_required(package_id, 'Package Id'))} {_ACCEPT_ALL}"
        return await self._run_streaming(args, self._extra(WingetOperation.UPGRADE, extra_args), on_line)

    async def upgrade_all(self, on_line: Optional[LineCallback] = None, *, extra_args: Optional[str] = None) -> int:
        return await self._run_streaming(
            f"upgrade --all {_ACCEPT_ALL}",
            self._extra(WingetOperation.UPGRADE, extra_args),
            on_line,
        )

    async def uninstall(self, package_id: str, on_line: Optional[LineCallback] = None, *, extra_args: Optional[str] = None) -> int:
        args = f"uninstall --id {quote(_required(package_id, 'Package Id'))}"
        return await self._run_streaming(args, self._extra(WingetOperation.UNINSTALL, extra_args), on_line)

    async def export(self, output_path: str, on_line: Optional[LineCallback] = None, *, extra_args: Optional[str] = None) -> int:
        args = f"export -o {quote(_required(output_path, 'Output path'))} {_ACCEPT_SOURCE}"
        return await self._run_streaming(args, extra_args, on_line)

    async def import_packages(self, import_file: str, on_line: Optional[LineCallback] = None, *, extra_args: Optional[str] = None) -> int:
        args = f"import -i {quote(_required(import_file, 'Import file path'))} {_ACCEPT_ALL}"
        return await self._run_streaming(args, extra_args, on_line)

    async def repair_by_id(self, package_id: str, on_line: Optional[LineCallback] = None, *, extra_args: Optional[str] = None) -> int:
        # --exact keeps winget from repairing a partial id match.
        args = f"repair --id {quote(_required(package_id, 'Package Id'))} --exact {_ACCEPT_ALL}"
        return await self._run_streaming(args, extra_args, on_line)

    async def repair_by_query(self, query: str, on_line: Optional[LineCallback] = None, *, extra_args: Optional[str] = None) -> int:
        args = f"repair -q {quote(_required(query, 'Query'))} {_ACCEPT_ALL}"
        return await self._run_streaming(args, extra_args, on_line)

    async def repair_by_manifest(self, manifest_path: str, on_line: Optional[LineCallback] = None, *, extra_args: Optional[str] = None) -> int:
        args = f"repair -m {quote(_required(manifest_path, 'Manifest path'))} {_ACCEPT_ALL}"
        return await self._run_streaming(args, extra_args, on_line)

    def _extra(self, operation: WingetOperation, extra_args: Optional[str]) -> str:
        if extra_args is not None:
            return extra_args
        return self.settings_manager.extra_args(operation)

    async def _run_streaming(self, args: str, extra_args: Optional[str], on_line: Optional[LineCallback]) -> int:
        if extra_args and extra_args.strip():
            args = f"{args} {extra_args.strip()}"
        callback = on_line or _discard

        _LOGGER.info("Running winget {}", args)
        result = await self._stream(self.executable, args, callback)
        if result.exit_code == START_FAILURE_EXIT_CODE and result.stderr:
            callback(result.stderr)
        _LOGGER.info("winget {} exited with code {}", args.split(" ", 1)[0], result.exit_code)
        return result.exit_code

    @staticmethod
    def _raise_if_failed(result: CommandResult, command: str) -> None:
        if result.succeeded:
            return
        message = failure_message(result.stdout, result.stderr, command=command, exit_code=result.exit_code)
        _LOGGER.error("{} failed ({}): {}", command, result.exit_code, message)
        raise WingetCommandError(message, command=command, exit_code=result.exit_code)


def quote(value: str) -> str:
    """
    Wrap an operand in double quotes, escaping embedded quotes.

    Backslashes in front of a quote (or the closing quote) are doubled so the
    operand reads back unchanged under C runtime argument rules.
    """
    escaped = _QUOTE_BACKSLASHES.sub(r'\1\1\\"', value)
    escaped = _TRAILING_BACKSLASHES.sub(r"\1\1", escaped)
    return f'"{escaped}"'


def parse_description(output: str) -> str:
    """
    Extract the ``Description:`` field from ``winget show`` output.

    Indented continuation lines are included until a blank line or a line
    that starts a new ``Label:`` field.
    """
    lines = (output or "").replace("\r\n", "\n").split("\n")
    for index, line in enumerate(lines):
        if not line.lstrip().lower().startswith("description:"):
            continue

        parts: List[str] = []
        first = line.split(":", 1)[1].strip()
        if first:
            parts.append(first)

        for following in lines[index + 1 :]:
            if not following.strip():
                break
            trimmed = following.rstrip()
            if not following[0].isspace() and ":" in trimmed:
                break
            parts.append(trimmed.strip())

        return "\n".join(parts).strip()

    return ""


def _package_from_row(row: TableRow, *, with_available: bool) -> Optional[Package]:
    name = row.value("Name")
    package_id = row.value("Id")
    if not name.strip() or not package_id.strip():
        return None
    return Package(
        name=name,
        id=package_id,
        version=row.value("Version"),
        available_version=row.value("Available") if with_available else "",
        source=row.value("Source"),
    )


def _required(value: Optional[str], label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError(f"{label} is required.")
    return cleaned


def _discard(_line: str) -> None:
    return None

"""
Read access to the Windows uninstall records (the "Apps & features" list).
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import PureWindowsPath
from typing import Dict, Iterator, Mapping, Optional, Protocol, Tuple

try:
    import winreg
except ModuleNotFoundError:  # pragma: no cover - non-Windows environments
    winreg = None

from . import logger as app_logger

_LOGGER = app_logger.get_logger()

UNINSTALL_SUBKEY = r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall"
UNINSTALL_SUBKEY_WOW64 = r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall"


class UninstallRoot(Enum):
    MACHINE = "machine"
    MACHINE_WOW64 = "machine-wow64"
    USER = "user"
    USER_WOW64 = "user-wow64"


@dataclass(frozen=True, slots=True)
class InstallRecord:
    display_name: str = ""
    display_version: str = ""
    install_location: str = ""
    display_icon: str = ""
    uninstall_command: str = ""

    @property
    def icon_path(self) -> str:
        """DisplayIcon without surrounding quotes or a trailing ``,index``."""
        value = self.display_icon.strip()
        if not value:
            return ""
        if value.startswith('"'):
            end = value.find('"', 1)
            if end > 1:
                return value[1:end]
        comma = value.find(",")
        if comma > 0:
            value = value[:comma]
        return value.strip()

    @property
    def best_folder(self) -> str:
        """InstallLocation, or the folder holding the DisplayIcon executable."""
        if self.install_location.strip():
            return self.install_location.strip()
        icon = self.icon_path
        if not icon:
            return ""
        parent = str(PureWindowsPath(icon).parent)
        return "" if parent == "." else parent


class UninstallStore(Protocol):
    def read_record(self, root: UninstallRoot, subkey_path: str) -> Optional[InstallRecord]:
        """Return the record stored at ``subkey_path`` under ``root``, if the key exists."""

    def iter_records(self, root: UninstallRoot) -> Iterator[Tuple[str, InstallRecord]]:
        """Yield ``(subkey_name, record)`` for every readable entry under ``root``."""


class RegistryUninstallStore:
    """Uninstall records read through winreg; ``winreg_module`` can be swapped for tests."""

    _FIELDS = (
        ("display_name", "DisplayName"),
        ("display_version", "DisplayVersion"),
        ("install_location", "InstallLocation"),
        ("display_icon", "DisplayIcon"),
        ("uninstall_command", "UninstallString"),
    )

    def __init__(self, *, winreg_module=winreg) -> None:
        if winreg_module is None:
            raise RuntimeError("The Windows registry is not available on this platform.")
        self._winreg = winreg_module

    def read_record(self, root: UninstallRoot, subkey_path: str) -> Optional[InstallRecord]:
        hive, base = self._locate(root)
        try:
            with self._open_key(hive, f"{base}\\{subkey_path}") as key:
                return self._read_values(key)
        except FileNotFoundError:
            return None

    def iter_records(self, root: UninstallRoot) -> Iterator[Tuple[str, InstallRecord]]:
        hive, base = self._locate(root)
        try:
            with self._open_key(hive, base) as root_key:
                for name in self._subkey_names(root_key):
                    try:
                        with self._open_key(root_key, name) as key:
                            record = self._read_values(key)
                    except OSError as exc:
                        _LOGGER.debug("Skipping unreadable uninstall key {}\\{}: {}", base, name, exc)
                        continue
                    yield name, record
        except FileNotFoundError:
            return
        except OSError as exc:
            _LOGGER.debug("Cannot enumerate uninstall root {}: {}", root.value, exc)

    def _locate(self, root: UninstallRoot) -> Tuple[int, str]:
        if root is UninstallRoot.MACHINE:
            return self._winreg.HKEY_LOCAL_MACHINE, UNINSTALL_SUBKEY
        if root is UninstallRoot.MACHINE_WOW64:
            return self._winreg.HKEY_LOCAL_MACHINE, UNINSTALL_SUBKEY_WOW64
        if root is UninstallRoot.USER:
            return self._winreg.HKEY_CURRENT_USER, UNINSTALL_SUBKEY
        return self._winreg.HKEY_CURRENT_USER, UNINSTALL_SUBKEY_WOW64

    @contextmanager
    def _open_key(self, parent, subkey: str) -> Iterator:
        # Always read the native view; WOW6432Node is addressed by path instead.
        access = self._winreg.KEY_READ | getattr(self._winreg, "KEY_WOW64_64KEY", 0)
        key = self._winreg.OpenKey(parent, subkey, 0, access)
        try:
            yield key
        finally:
            self._winreg.CloseKey(key)

    def _subkey_names(self, key) -> Iterator[str]:
        index = 0
        while True:
            try:
                name = self._winreg.EnumKey(key, index)
            except OSError:
                return
            yield name
            index += 1

    def _read_values(self, key) -> InstallRecord:
        values = {attr: self._query_string(key, name) for attr, name in self._FIELDS}
        return InstallRecord(**values)

    def _query_string(self, key, value_name: str) -> str:
        try:
            value, _ = self._winreg.QueryValueEx(key, value_name)
        except OSError:
            return ""
        return value if isinstance(value, str) else ""


class MemoryUninstallStore:
    """In-memory store keyed by root and subkey path; enumeration follows insertion order."""

    def __init__(self, records: Optional[Mapping[UninstallRoot, Mapping[str, InstallRecord]]] = None) -> None:
        self._records: Dict[UninstallRoot, Dict[str, InstallRecord]] = {
            root: dict(entries) for root, entries in (records or {}).items()
        }

    def add(self, root: UninstallRoot, subkey_path: str, record: InstallRecord) -> None:
        self._records.setdefault(root, {})[subkey_path] = record

    def read_record(self, root: UninstallRoot, subkey_path: str) -> Optional[InstallRecord]:
        entries = self._records.get(root, {})
        wanted = subkey_path.casefold()
        for name, record in entries.items():
            if name.casefold() == wanted:
                return record
        return None

    def iter_records(self, root: UninstallRoot) -> Iterator[Tuple[str, InstallRecord]]:
        yield from list(self._records.get(root, {}).items())

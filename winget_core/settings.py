"""
Persisted configuration for the winget core.

Values live under ``HKCU\\Software\\WingetCore`` by default; any key/value
backend with string and integer values can stand in for the registry.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Protocol, Set, Union

try:
    import winreg
except ModuleNotFoundError:  # pragma: no cover - non-Windows environments
    winreg = None

from . import logger as app_logger
from .flag_catalog import WingetOperation, build_args, default_selected_keys

_LOGGER = app_logger.get_logger()

_BASE_SUBKEY = r"Software\WingetCore"
_EXECUTABLE_ENV = "WINGET_CORE_EXECUTABLE"
DEFAULT_EXECUTABLE = "winget"
DEFAULT_AVAILABILITY_TIMEOUT_SECONDS = 5
_MIN_TIMEOUT = 1
_MAX_TIMEOUT = 60
_KEY_LIST_SPLIT = re.compile(r"[;\s]+")

_FLAG_VALUE_NAMES: Dict[WingetOperation, str] = {
    WingetOperation.INSTALL: "InstallFlagKeys",
    WingetOperation.UPGRADE: "UpgradeFlagKeys",
    WingetOperation.UNINSTALL: "UninstallFlagKeys",
}

SettingValue = Union[str, int]


class SettingsBackend(Protocol):
    def read(self, name: str) -> Optional[SettingValue]:
        """Return the stored value, or ``None`` if it is missing or unreadable."""

    def write(self, name: str, value: SettingValue) -> None:
        """Persist ``value`` under ``name``."""


class RegistrySettingsBackend:
    """Settings stored as REG_SZ / REG_DWORD values of one registry key."""

    def __init__(self, *, hive: Optional[int] = None, subkey: str = _BASE_SUBKEY, winreg_module=winreg) -> None:
        if winreg_module is None:
            raise RuntimeError("The Windows registry is not available on this platform.")
        self._winreg = winreg_module
        self.hive = hive or winreg_module.HKEY_CURRENT_USER
        self.subkey = subkey

    def read(self, name: str) -> Optional[SettingValue]:
        try:
            key = self._winreg.OpenKey(self.hive, self.subkey, 0, self._winreg.KEY_READ)
        except OSError:
            return None
        try:
            value, value_type = self._winreg.QueryValueEx(key, name)
        except OSError:
            return None
        finally:
            self._winreg.CloseKey(key)

        if value_type == self._winreg.REG_DWORD:
            return int(value)
        if value_type == self._winreg.REG_SZ:
            return value
        _LOGGER.warning("Registry value {} has unexpected type {}.", name, value_type)
        return None

    def write(self, name: str, value: SettingValue) -> None:
        key = self._winreg.CreateKey(self.hive, self.subkey)
        try:
            if isinstance(value, int):
                self._winreg.SetValueEx(key, name, 0, self._winreg.REG_DWORD, value)
            else:
                self._winreg.SetValueEx(key, name, 0, self._winreg.REG_SZ, value)
        finally:
            self._winreg.CloseKey(key)


class MemorySettingsBackend:
    def __init__(self, values: Optional[Dict[str, SettingValue]] = None) -> None:
        self.values: Dict[str, SettingValue] = dict(values or {})

    def read(self, name: str) -> Optional[SettingValue]:
        return self.values.get(name)

    def write(self, name: str, value: SettingValue) -> None:
        self.values[name] = value


@dataclass(eq=True)
class CoreSettings:
    executable: str = DEFAULT_EXECUTABLE
    availability_timeout_seconds: int = DEFAULT_AVAILABILITY_TIMEOUT_SECONDS
    selected_flags: Dict[WingetOperation, Set[str]] = field(
        default_factory=lambda: {op: default_selected_keys(op) for op in WingetOperation}
    )

    def extra_args(self, operation: WingetOperation) -> str:
        return build_args(operation, self.selected_flags.get(operation, set()))


class CoreSettingsManager:
    """Loads persisted settings and clamps invalid data."""

    def __init__(self, backend: Optional[SettingsBackend] = None) -> None:
        self._backend = backend if backend is not None else _default_backend()

    def read_settings(self) -> CoreSettings:
        return CoreSettings(
            executable=self._read_executable(),
            availability_timeout_seconds=self._read_timeout(),
            selected_flags={op: self.get_selected_flag_keys(op) for op in WingetOperation},
        )

    def get_selected_flag_keys(self, operation: WingetOperation) -> Set[str]:
        raw = self._read_string(_FLAG_VALUE_NAMES[operation])
        if raw is None:
            return default_selected_keys(operation)
        return parse_key_list(raw)

    def set_selected_flag_keys(self, operation: WingetOperation, keys: Iterable[str]) -> None:
        unique: Dict[str, str] = {}
        for key in keys:
            cleaned = key.strip()
            if cleaned:
                unique.setdefault(cleaned.casefold(), cleaned)
        value = ";".join(sorted(unique.values(), key=str.casefold))
        try:
            self._backend.write(_FLAG_VALUE_NAMES[operation], value)
        except OSError as exc:
            _LOGGER.warning("Could not persist {} flag selection: {}", operation.value, exc)

    def extra_args(self, operation: WingetOperation) -> str:
        return build_args(operation, self.get_selected_flag_keys(operation))

    def _read_executable(self) -> str:
        override = os.environ.get(_EXECUTABLE_ENV, "").strip()
        if override:
            return override
        stored = self._read_string("WingetExecutable")
        return stored.strip() if stored and stored.strip() else DEFAULT_EXECUTABLE

    def _read_timeout(self) -> int:
        raw = self._backend.read("AvailabilityTimeoutSeconds")
        if not isinstance(raw, int):
            return DEFAULT_AVAILABILITY_TIMEOUT_SECONDS
        if raw < _MIN_TIMEOUT or raw > _MAX_TIMEOUT:
            _LOGGER.warning(
                "Invalid availability timeout {} found in settings. Clamping to safe bounds.",
                raw,
            )
        return max(_MIN_TIMEOUT, min(_MAX_TIMEOUT, raw))

    def _read_string(self, name: str) -> Optional[str]:
        value = self._backend.read(name)
        return value if isinstance(value, str) else None


def parse_key_list(raw: str) -> Set[str]:
    """Split a persisted flag list on ``;`` and whitespace, dropping empties."""
    return {part for part in _KEY_LIST_SPLIT.split(raw or "") if part}


def _default_backend() -> SettingsBackend:
    if winreg is None:
        _LOGGER.debug("Registry unavailable; settings are kept in memory only.")
        return MemorySettingsBackend()
    return RegistrySettingsBackend()

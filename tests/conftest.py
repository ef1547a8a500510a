"""
Shared fixtures: an in-memory stand-in for the winreg module.
"""

from __future__ import annotations

from typing import Dict, Optional, Set, Tuple

import pytest


class FakeKey:
    def __init__(self, name: str) -> None:
        self.name = name
        self.subkeys: Dict[str, "FakeKey"] = {}
        self.values: Dict[str, Tuple[object, int]] = {}
        self.denied = False

    def child(self, name: str) -> Optional["FakeKey"]:
        for key_name, key in self.subkeys.items():
            if key_name.casefold() == name.casefold():
                return key
        return None


class FakeWinreg:
    """Implements the slice of winreg used by the registry-backed classes."""

    HKEY_CURRENT_USER = 0x80000001
    HKEY_LOCAL_MACHINE = 0x80000002
    KEY_READ = 0x20019
    KEY_WRITE = 0x20006
    KEY_WOW64_64KEY = 0x0100
    REG_SZ = 1
    REG_DWORD = 4

    def __init__(self) -> None:
        self.hives = {
            self.HKEY_CURRENT_USER: FakeKey("HKCU"),
            self.HKEY_LOCAL_MACHINE: FakeKey("HKLM"),
        }
        self.opened_access: Set[int] = set()

    # test helpers

    def set_value(self, hive: int, path: str, name: str, value: object, value_type: int = REG_SZ) -> None:
        key = self._create(self.hives[hive], path)
        key.values[name] = (value, value_type)

    def add_key(self, hive: int, path: str) -> FakeKey:
        return self._create(self.hives[hive], path)

    # winreg API

    def OpenKey(self, parent, subkey: str, reserved: int = 0, access: int = KEY_READ) -> FakeKey:
        self.opened_access.add(access)
        node = self.hives[parent] if isinstance(parent, int) else parent
        for part in [p for p in subkey.split("\\") if p]:
            child = node.child(part)
            if child is None:
                raise FileNotFoundError(2, "The system cannot find the file specified", subkey)
            node = child
        if node.denied:
            raise PermissionError(5, "Access is denied", subkey)
        return node

    def CreateKey(self, parent, subkey: str) -> FakeKey:
        node = self.hives[parent] if isinstance(parent, int) else parent
        return self._create(node, subkey)

    def CloseKey(self, key: FakeKey) -> None:
        return None

    def EnumKey(self, key: FakeKey, index: int) -> str:
        names = list(key.subkeys)
        if index >= len(names):
            raise OSError(259, "No more data is available")
        return names[index]

    def QueryValueEx(self, key: FakeKey, name: str):
        if name not in key.values:
            raise FileNotFoundError(2, "The system cannot find the file specified", name)
        return key.values[name]

    def SetValueEx(self, key: FakeKey, name: str, reserved: int, value_type: int, value: object) -> None:
        key.values[name] = (value, value_type)

    def _create(self, node: FakeKey, path: str) -> FakeKey:
        for part in [p for p in path.split("\\") if p]:
            child = node.child(part)
            if child is None:
                child = FakeKey(part)
                node.subkeys[part] = child
            node = child
        return node


@pytest.fixture
def fake_winreg() -> FakeWinreg:
    return FakeWinreg()

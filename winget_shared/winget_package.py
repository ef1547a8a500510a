"""
Shared representation of a winget package as reported by list, upgrade and search.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Tuple

_VERSION_RE = re.compile(r"^\d+(\.\d+){0,3}$")


@dataclass(slots=True)
class Package:
    """
    One package row merged across winget list/upgrade/search results.

    ``id`` is the identity key; it is compared case-insensitively and cannot be
    reassigned once the instance exists.
    """

    name: str
    id: str
    version: str = ""
    available_version: str = ""
    source: str = ""
    description: str = ""

    def __setattr__(self, name: str, value) -> None:
        if name == "id" and hasattr(self, "id"):
            raise AttributeError("Package id cannot be changed after creation.")
        object.__setattr__(self, name, value)

    @property
    def key(self) -> str:
        return self.id.casefold()

    @property
    def has_upgrade_available(self) -> bool:
        return bool(self.available_version.strip())


def merge_upgrades(installed: Iterable[Package], upgrades_by_id: Mapping[str, Package]) -> List[Package]:
    """
    Copy available versions from an upgrade listing onto installed packages.

    ``upgrades_by_id`` may use any key casing; lookups are case-insensitive.
    """
    lookup: Dict[str, Package] = {key.casefold(): pkg for key, pkg in upgrades_by_id.items()}
    merged: List[Package] = []
    for package in installed:
        upgrade = lookup.get(package.key)
        if upgrade is not None and upgrade.available_version.strip():
            package.available_version = upgrade.available_version
        merged.append(package)
    return merged


def sort_packages(packages: Iterable[Package]) -> List[Package]:
    return sorted(packages, key=lambda p: (p.name.casefold(), p.key))


def version_sort_key(value: str) -> Tuple[int, Tuple[int, ...], str]:
    """
    Sort key ordering version strings as empty < unparsable < numeric.

    Numeric versions compare component-wise; ``v1.2`` is read as ``1.2``.
    Equal numeric values fall back to a case-insensitive text comparison.
    """
    text = (value or "").strip()
    if not text:
        return (0, (), "")

    candidate = text
    if candidate[0] in "vV" and _VERSION_RE.match(candidate[1:]):
        candidate = candidate[1:]

    if _VERSION_RE.match(candidate):
        parts = tuple(int(part) for part in candidate.split("."))
        return (2, parts, text.casefold())
    return (1, (), text.casefold())

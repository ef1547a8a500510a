"""
Resolves where an installed package lives on disk.

winget reports packages that it did not install itself with ``ARP\\...``
identifiers that point straight at an uninstall registry key. Everything else
is matched by scoring display names and versions of all uninstall records.
Enumeration can be slow on machines with many entries; callers that need a
responsive UI should run ``resolve`` off their main thread.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from . import logger as app_logger
from .uninstall_store import InstallRecord, UninstallRoot, UninstallStore

_LOGGER = app_logger.get_logger()

_ARP_PREFIX = "ARP\\"
_MACHINE_SCOPES = {"machine"}
_USER_SCOPES = {"user", "currentuser"}
_ARCHITECTURES = {"x86", "x64"}

FUZZY_ROOTS: Tuple[UninstallRoot, ...] = (
    UninstallRoot.MACHINE,
    UninstallRoot.MACHINE_WOW64,
    UninstallRoot.USER,
)


@dataclass(frozen=True, slots=True)
class _Candidate:
    score: int
    record: InstallRecord
    root_index: int
    subkey: str

    @property
    def order(self) -> Tuple[int, str, int, str]:
        return (-self.score, self.record.display_name.casefold(), self.root_index, self.subkey.casefold())


def score_candidate(wanted_name: str, wanted_version: str, candidate_name: str, candidate_version: str) -> int:
    """
    Score how well an uninstall record matches a package name and version.

    A name that neither equals nor contains (nor is contained in) the wanted
    name scores 0 whatever the version says.
    """
    wanted = (wanted_name or "").strip().casefold()
    candidate = (candidate_name or "").strip().casefold()
    if not wanted or not candidate:
        return 0

    if candidate == wanted:
        score = 100
    elif wanted in candidate:
        score = 60
    elif candidate in wanted:
        score = 40
    else:
        return 0

    wanted_ver = (wanted_version or "").strip().casefold()
    candidate_ver = (candidate_version or "").strip().casefold()
    if wanted_ver and candidate_ver:
        if candidate_ver == wanted_ver:
            score += 25
        elif candidate_ver.startswith(wanted_ver) or wanted_ver.startswith(candidate_ver):
            score += 10

    return score


def parse_arp_identifier(package_id: str) -> Optional[Tuple[List[UninstallRoot], str]]:
    """
    Split ``ARP\\<Scope>\\<Arch>\\<SubkeyPath...>`` into roots to try and the subkey path.

    Returns ``None`` for anything that is not a well-formed ARP identifier.
    """
    value = (package_id or "").strip()
    if value[: len(_ARP_PREFIX)].casefold() != _ARP_PREFIX.casefold():
        return None

    parts = value.split("\\")
    if len(parts) < 4:
        return None

    scope, arch = parts[1].casefold(), parts[2].casefold()
    subkey_path = "\\".join(parts[3:])
    if not subkey_path.strip():
        return None
    if arch not in _ARCHITECTURES:
        return None

    if scope in _MACHINE_SCOPES:
        native, wow64 = UninstallRoot.MACHINE, UninstallRoot.MACHINE_WOW64
    elif scope in _USER_SCOPES:
        native, wow64 = UninstallRoot.USER, UninstallRoot.USER_WOW64
    else:
        return None

    roots = [wow64, native] if arch == "x86" else [native, wow64]
    return roots, subkey_path


class InstallLocationResolver:
    """Looks up uninstall records for packages in an injected store."""

    def __init__(self, store: UninstallStore, *, fuzzy_roots: Sequence[UninstallRoot] = FUZZY_ROOTS) -> None:
        self._store = store
        self._fuzzy_roots = tuple(fuzzy_roots)

    def resolve(self, package_id: str, display_name: str, version: str = "") -> Optional[InstallRecord]:
        """Try the ARP identifier first, then fall back to fuzzy name/version matching."""
        record = self.resolve_by_identifier(package_id)
        if record is not None:
            return record
        return self.resolve_by_name(display_name, version)

    def resolve_by_identifier(self, package_id: str) -> Optional[InstallRecord]:
        parsed = parse_arp_identifier(package_id)
        if parsed is None:
            return None

        roots, subkey_path = parsed
        for root in roots:
            try:
                record = self._store.read_record(root, subkey_path)
            except OSError as exc:
                _LOGGER.debug("Lookup of {} in {} failed: {}", subkey_path, root.value, exc)
                continue
            if record is None:
                continue
            if not record.display_name.strip():
                record = replace(record, display_name=subkey_path)
            _LOGGER.debug("Resolved {} via {} root.", package_id, root.value)
            return record

        return None

    def resolve_by_name(self, display_name: str, version: str = "") -> Optional[InstallRecord]:
        """
        Return the best scoring record for ``display_name``/``version``.

        Equal scores are ordered by display name, then store root order, then
        subkey name, so the result does not depend on registry enumeration order.
        """
        wanted = (display_name or "").strip()
        if not wanted:
            return None

        best: Optional[_Candidate] = None
        for root_index, root in enumerate(self._fuzzy_roots):
            try:
                entries = list(self._store.iter_records(root))
            except OSError as exc:
                _LOGGER.debug("Enumeration of {} failed: {}", root.value, exc)
                continue

            for subkey, record in entries:
                if not record.display_name.strip():
                    continue
                score = score_candidate(wanted, version, record.display_name, record.display_version)
                if score <= 0:
                    continue
                candidate = _Candidate(score, record, root_index, subkey)
                if best is None or candidate.order < best.order:
                    best = candidate

        if best is None:
            _LOGGER.debug("No uninstall record matches '{}' {}", wanted, version)
            return None
        return best.record

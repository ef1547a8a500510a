"""
Static catalog of optional winget flags offered for install, upgrade and uninstall.

Only flags that take no extra value are listed. Flags sharing an
``exclusive_group`` cannot be combined.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple


class WingetOperation(Enum):
    INSTALL = "install"
    UPGRADE = "upgrade"
    UNINSTALL = "uninstall"


@dataclass(frozen=True, slots=True)
class WingetFlag:
    key: str
    argument: str
    display_name: str
    category: str
    exclusive_group: Optional[str] = None
    default_on: bool = False


_INSTALL_FLAGS: Tuple[WingetFlag, ...] = (
    WingetFlag("install.silent", "--silent", "Silent", "Mode", exclusive_group="mode"),
    WingetFlag("install.interactive", "--interactive", "Interactive", "Mode", exclusive_group="mode"),
    WingetFlag("install.scope.user", "--scope user", "Scope: User", "Scope", exclusive_group="scope"),
    WingetFlag("install.scope.machine", "--scope machine", "Scope: Machine", "Scope", exclusive_group="scope"),
    WingetFlag("install.force", "--force", "Force", "Behavior"),
    WingetFlag("install.skipDependencies", "--skip-dependencies", "Skip dependencies", "Behavior"),
    WingetFlag("install.allowReboot", "--allow-reboot", "Allow reboot", "Behavior"),
    WingetFlag("install.ignoreSecurityHash", "--ignore-security-hash", "Ignore security hash", "Behavior"),
    WingetFlag("install.disableInteractivity", "--disable-interactivity", "Disable interactivity", "Diagnostics"),
    WingetFlag("install.verboseLogs", "--verbose-logs", "Verbose logs", "Diagnostics"),
    WingetFlag("install.openLogs", "--open-logs", "Open logs after", "Diagnostics"),
)

_UPGRADE_FLAGS: Tuple[WingetFlag, ...] = (
    WingetFlag("upgrade.includeUnknown", "--include-unknown", "Include unknown versions", "Selection", default_on=True),
    WingetFlag("upgrade.includePinned", "--include-pinned", "Include pinned", "Selection"),
    WingetFlag("upgrade.silent", "--silent", "Silent", "Mode", exclusive_group="mode"),
    WingetFlag("upgrade.interactive", "--interactive", "Interactive", "Mode", exclusive_group="mode"),
    WingetFlag("upgrade.scope.user", "--scope user", "Scope: User", "Scope", exclusive_group="scope"),
    WingetFlag("upgrade.scope.machine", "--scope machine", "Scope: Machine", "Scope", exclusive_group="scope"),
    WingetFlag("upgrade.uninstallPrevious", "--uninstall-previous", "Uninstall previous", "Behavior"),
    WingetFlag("upgrade.force", "--force", "Force", "Behavior"),
    WingetFlag("upgrade.skipDependencies", "--skip-dependencies", "Skip dependencies", "Behavior"),
    WingetFlag("upgrade.allowReboot", "--allow-reboot", "Allow reboot", "Behavior"),
    WingetFlag("upgrade.ignoreSecurityHash", "--ignore-security-hash", "Ignore security hash", "Behavior"),
    WingetFlag("upgrade.disableInteractivity", "--disable-interactivity", "Disable interactivity", "Diagnostics"),
    WingetFlag("upgrade.verboseLogs", "--verbose-logs", "Verbose logs", "Diagnostics"),
    WingetFlag("upgrade.openLogs", "--open-logs", "Open logs after", "Diagnostics"),
)

_UNINSTALL_FLAGS: Tuple[WingetFlag, ...] = (
    WingetFlag("uninstall.silent", "--silent", "Silent", "Mode", exclusive_group="mode"),
    WingetFlag("uninstall.interactive", "--interactive", "Interactive", "Mode", exclusive_group="mode"),
    WingetFlag("uninstall.scope.user", "--scope user", "Scope: User", "Scope", exclusive_group="scope"),
    WingetFlag("uninstall.scope.machine", "--scope machine", "Scope: Machine", "Scope", exclusive_group="scope"),
    WingetFlag("uninstall.force", "--force", "Force", "Behavior"),
    WingetFlag("uninstall.purge", "--purge", "Purge (portable)", "Behavior", exclusive_group="portable"),
    WingetFlag("uninstall.preserve", "--preserve", "Preserve (portable)", "Behavior", exclusive_group="portable"),
    WingetFlag("uninstall.acceptSourceAgreements", "--accept-source-agreements", "Accept source agreements", "Behavior"),
    WingetFlag("uninstall.disableInteractivity", "--disable-interactivity", "Disable interactivity", "Diagnostics"),
    WingetFlag("uninstall.verboseLogs", "--verbose-logs", "Verbose logs", "Diagnostics"),
    WingetFlag("uninstall.openLogs", "--open-logs", "Open logs after", "Diagnostics"),
)

_CATALOG: Dict[WingetOperation, Tuple[WingetFlag, ...]] = {
    WingetOperation.INSTALL: _INSTALL_FLAGS,
    WingetOperation.UPGRADE: _UPGRADE_FLAGS,
    WingetOperation.UNINSTALL: _UNINSTALL_FLAGS,
}


def get_flags(operation: WingetOperation) -> Tuple[WingetFlag, ...]:
    return _CATALOG.get(operation, ())


def default_selected_keys(operation: WingetOperation) -> Set[str]:
    return {flag.key for flag in get_flags(operation) if flag.default_on}


def build_args(operation: WingetOperation, selected_keys: Optional[Iterable[str]]) -> str:
    """Join the arguments of the selected flags in catalog order."""
    selected = {key.casefold() for key in selected_keys or ()}
    arguments = [
        flag.argument
        for flag in get_flags(operation)
        if flag.key.casefold() in selected and flag.argument.strip()
    ]
    return " ".join(arguments)


def enforce_exclusive(operation: WingetOperation, selected_keys: Iterable[str]) -> List[str]:
    """
    Drop conflicting selections, keeping the last selected flag of each exclusive group.

    Unknown keys are dropped as well. Surviving keys are returned in the order
    they were last selected.
    """
    flags = {flag.key.casefold(): flag for flag in get_flags(operation)}
    chosen: List[WingetFlag] = []
    for key in selected_keys:
        flag = flags.get(key.casefold())
        if flag is None:
            continue
        chosen = [
            existing
            for existing in chosen
            if existing.key != flag.key
            and (flag.exclusive_group is None or existing.exclusive_group != flag.exclusive_group)
        ]
        chosen.append(flag)
    return [flag.key for flag in chosen]

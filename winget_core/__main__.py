"""
Entry point printing winget availability and the installed packages with pending upgrades.
"""

from __future__ import annotations

import asyncio
import sys

from winget_core import logger as app_logger
from winget_core.errors import WingetError
from winget_core.winget_service import WingetService

_LOGGER = app_logger.get_logger()


async def _report(service: WingetService) -> int:
    availability = await service.check_available()
    print(availability.detail)
    if not availability.available:
        return 1

    try:
        packages = await service.get_installed_with_upgrades()
    except WingetError as exc:
        _LOGGER.error("Could not list packages: {}", exc)
        return 1

    for package in packages:
        if package.has_upgrade_available:
            print(f"{package.name}\t{package.id}\t{package.version} -> {package.available_version}")
    return 0


def main() -> int:
    return asyncio.run(_report(WingetService()))


if __name__ == "__main__":
    sys.exit(main())

"""
Data definitions shared by every winget front end.
"""

from .winget_package import Package, merge_upgrades, sort_packages, version_sort_key  # noqa: F401

"""
Tests for the shared package model.
"""

import pytest

from winget_shared.winget_package import Package, merge_upgrades, sort_packages, version_sort_key


class TestPackage:
    def test_id_cannot_be_reassigned(self):
        package = Package(name="Git", id="Git.Git")

        with pytest.raises(AttributeError):
            package.id = "Other.Id"
        assert package.id == "Git.Git"

    def test_other_fields_are_mutable(self):
        package = Package(name="Git", id="Git.Git", version="2.44.0")

        package.available_version = "2.45.1"

        assert package.has_upgrade_available

    def test_blank_available_version_is_no_upgrade(self):
        assert not Package(name="Git", id="Git.Git", available_version="  ").has_upgrade_available


def test_merge_upgrades_is_case_insensitive():
    installed = [
        Package(name="Git", id="Git.Git", version="2.44.0"),
        Package(name="Edge", id="Microsoft.Edge", version="124.0"),
    ]
    upgrades = {"git.git": Package(name="Git", id="GIT.GIT", available_version="2.45.1")}

    merged = merge_upgrades(installed, upgrades)

    assert merged[0].available_version == "2.45.1"
    assert merged[1].available_version == ""


def test_merge_ignores_blank_available_versions():
    installed = [Package(name="Git", id="Git.Git", available_version="2.45.0")]
    upgrades = {"Git.Git": Package(name="Git", id="Git.Git", available_version="")}

    assert merge_upgrades(installed, upgrades)[0].available_version == "2.45.0"


def test_sort_packages_by_name_then_id():
    packages = [
        Package(name="zip", id="b"),
        Package(name="Alpha", id="Z.Alpha"),
        Package(name="alpha", id="A.Alpha"),
    ]

    assert [p.id for p in sort_packages(packages)] == ["A.Alpha", "Z.Alpha", "b"]


def test_version_sort_key_orders_numerically():
    versions = ["10.0", "", "Unknown", "v2.1", "2.0.10", "2.0.9"]

    ordered = sorted(versions, key=version_sort_key)

    assert ordered == ["", "Unknown", "2.0.9", "2.0.10", "v2.1", "10.0"]

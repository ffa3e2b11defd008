"""!
@brief Discovery tests against a synthetic vendor tree.
@details Verifies finding classification, exclusive path ownership,
application-over-shared precedence and tolerance of unreadable folders.
"""
from __future__ import annotations

from pathlib import Path

from google_janitor import blocker, detect
from google_janitor.models import Category

from conftest import FakeSystemControl, write_file


def _by_name(findings):
    return {finding.name: finding for finding in findings}


def _populate(layout) -> None:
    write_file(layout.user_agent)
    write_file(layout.system_daemon)
    write_file(layout.app_x / "Contents" / "Info.plist", 1000)
    write_file(layout.caches / "com.vendor.X" / "cache.db", 200)
    write_file(layout.preferences / "com.vendor.X.plist", 10)
    write_file(layout.preferences / "com.vendor.shared.plist", 5)
    write_file(layout.group_containers / "ABCDE12345.com.vendor.X" / "data", 30)
    write_file(layout.system_data / "Keystone" / "blob", 400)
    write_file(layout.user_data / "state", 20)


def test_discover_classifies_example_tree(layout, vendor_catalog) -> None:
    """!
    @brief One service finding, one per app, then system and user data.
    """

    _populate(layout)
    system = FakeSystemControl(loaded=["com.vendor.agent", "com.apple.Finder"])

    findings = detect.discover(vendor_catalog, system)

    assert [finding.name for finding in findings] == [
        "Background services",
        "X",
        "Y",
        "System directories",
        "Caches & preferences",
    ]
    named = _by_name(findings)

    services = named["Background services"]
    assert services.category is Category.SERVICE
    assert services.loaded_services == ["com.vendor.agent"]
    assert services.detail == "1 loaded · 2 plists"
    assert services.requires_elevation

    app_x = named["X"]
    assert app_x.exists and app_x.selected
    assert app_x.paths[0] == layout.app_x
    assert set(app_x.paths[1:]) == {
        layout.caches / "com.vendor.X",
        layout.preferences / "com.vendor.X.plist",
        layout.group_containers / "ABCDE12345.com.vendor.X",
    }
    assert app_x.size_estimate == 1240
    assert app_x.detail == "1 KB + 240 bytes data"

    app_y = named["Y"]
    assert not app_y.exists
    assert app_y.selected is False
    assert app_y.paths == []
    assert app_y.detail == "not installed"

    assert named["System directories"].paths == [layout.system_data]
    assert named["System directories"].requires_elevation
    user_data = named["Caches & preferences"]
    assert user_data.paths == [layout.user_data, layout.preferences / "com.vendor.shared.plist"]
    assert not user_data.requires_elevation
    assert user_data.detail == "2 items · 25 bytes"


def test_no_path_is_owned_by_two_findings(layout, vendor_catalog) -> None:
    _populate(layout)
    findings = detect.discover(vendor_catalog, FakeSystemControl())

    seen = []
    for finding in findings:
        for path in finding.paths:
            for other in seen:
                assert path != other
                assert other not in path.parents
                assert path not in other.parents
            seen.append(path)


def test_application_data_wins_over_shared_prefix(layout, vendor_catalog) -> None:
    write_file(layout.preferences / "com.vendor.X.plist")
    findings = _by_name(detect.discover(vendor_catalog, FakeSystemControl()))

    assert findings["X"].paths == [layout.preferences / "com.vendor.X.plist"]
    assert "Caches & preferences" not in findings


def test_orphaned_application_data_is_reported_without_elevation(layout, vendor_catalog) -> None:
    write_file(layout.caches / "com.vendor.Y", 3_000)
    write_file(layout.app_y_extra / "settings.json", 1_000)

    app_y = _by_name(detect.discover(vendor_catalog, FakeSystemControl()))["Y"]

    assert app_y.exists and app_y.orphaned
    assert app_y.selected
    assert not app_y.requires_elevation
    assert layout.app_y not in app_y.paths
    assert app_y.detail == "app removed, 4 KB data remains"


def test_loaded_jobs_without_plists_still_produce_service_finding(layout, vendor_catalog) -> None:
    findings = detect.discover(vendor_catalog, FakeSystemControl(loaded=["com.vendor.ghost"]))
    services = _by_name(findings)["Background services"]

    assert services.paths == []
    assert services.loaded_services == ["com.vendor.ghost"]
    assert services.detail == "1 loaded"
    assert not services.requires_elevation


def test_nothing_installed_yields_only_application_rows(layout, vendor_catalog) -> None:
    findings = detect.discover(vendor_catalog, FakeSystemControl())
    assert [finding.name for finding in findings] == ["X", "Y"]
    assert not any(finding.exists for finding in findings)


def test_unreadable_library_folder_counts_as_empty(layout, vendor_catalog, monkeypatch) -> None:
    """!
    @brief A permission error while listing a folder must not abort discovery.
    """

    write_file(layout.caches / "com.vendor.X")
    write_file(layout.preferences / "com.vendor.X.plist")
    original_iterdir = Path.iterdir

    def guarded_iterdir(self):
        if self == layout.caches:
            raise PermissionError(13, "Operation not permitted", str(self))
        return original_iterdir(self)

    monkeypatch.setattr(Path, "iterdir", guarded_iterdir)

    app_x = _by_name(detect.discover(vendor_catalog, FakeSystemControl()))["X"]

    assert app_x.orphaned
    assert app_x.paths == [layout.preferences / "com.vendor.X.plist"]


def test_planted_blocker_is_not_reported_as_data(layout, vendor_catalog, stub_loggers) -> None:
    assert blocker.plant_blocker(layout.user_data)

    findings = detect.discover(vendor_catalog, FakeSystemControl())

    assert "Caches & preferences" not in _by_name(findings)


def test_claimed_path_set_refuses_ancestors_and_descendants(tmp_path) -> None:
    claimed = detect.ClaimedPathSet()
    assert claimed.claim(tmp_path / "a" / "b")
    assert not claimed.claim(tmp_path / "a" / "b")
    assert not claimed.claim(tmp_path / "a")
    assert not claimed.claim(tmp_path / "a" / "b" / "c")
    assert claimed.claim(tmp_path / "a" / "c")
    assert len(claimed) == 2

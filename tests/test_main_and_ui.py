"""Integration tests for CLI and UI layers."""
from __future__ import annotations

import argparse
import json
import logging
from typing import List

import pytest

from google_janitor import confirm, main, ui, version
from google_janitor.models import Category, Finding, RemovalResult, RestoreResult
from google_janitor.session import JanitorSession

from conftest import FakeSystemControl, StubLogger, write_file


@pytest.fixture(autouse=True)
def _reset_logging_state():
    yield
    for name in ("google_janitor.human", "google_janitor.machine"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        for flt in list(logger.filters):
            logger.removeFilter(flt)


@pytest.fixture
def cli_env(monkeypatch, tmp_path, layout, vendor_catalog):
    """!
    @brief Point :func:`main.main` at the synthetic catalog and a fake host.
    """

    system = FakeSystemControl()
    monkeypatch.setattr(main, "_resolve_log_directory", lambda candidate: tmp_path / "logs")
    monkeypatch.setattr(main.platform, "system", lambda: "Darwin")
    monkeypatch.setattr(main.elevation, "is_admin", lambda: False)
    monkeypatch.setattr(main.catalog_module, "build_default_catalog", lambda trash_dir=None: vendor_catalog)
    monkeypatch.setattr(main, "SystemControl", lambda **kwargs: system)
    write_file(layout.app_x / "Contents" / "Info.plist", 2_000)
    write_file(layout.preferences / "com.vendor.X.plist")
    write_file(layout.caches / "com.vendor.other")
    return system


def _json_output(capsys) -> dict:
    lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
    return json.loads(lines[-1])


def test_version_flag_prints_metadata(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main.main(["--version"])
    assert excinfo.value.code == 0
    assert version.__version__ in capsys.readouterr().out


def test_scan_json_lists_findings(cli_env, capsys) -> None:
    assert main.main(["--scan", "--json"]) == main.EXIT_OK

    payload = _json_output(capsys)
    names = [finding["name"] for finding in payload["findings"]]
    assert names == ["X", "Y", "Caches & preferences"]
    assert payload["findings"][0]["detail"] == "2 KB + 16 bytes data"


def test_scan_text_output(cli_env, capsys) -> None:
    assert main.main(["--scan"]) == main.EXIT_OK
    out = capsys.readouterr().out
    assert "Found 2 Google item(s):" in out
    assert "[x] X" in out
    assert "not installed" in out


def test_remove_with_yes_moves_everything(cli_env, layout, capsys) -> None:
    assert main.main(["--remove", "--yes", "--json"]) == main.EXIT_OK

    payload = _json_output(capsys)
    assert payload["succeeded"] == 3
    assert payload["elevated_invocations"] == 1
    assert payload["blocker_planted"] is True
    assert payload["run_id"]
    assert not layout.app_x.exists()
    assert len(cli_env.elevated_batches) == 1


def test_remove_only_and_skip_limit_selection(cli_env, layout, capsys) -> None:
    assert main.main(["--remove", "--yes", "--no-blocker", "--only", "x", "--only", "Caches & preferences",
                      "--skip", "caches & preferences", "--json"]) == main.EXIT_OK

    payload = _json_output(capsys)
    assert payload["succeeded"] == 2
    assert payload["blocker_planted"] is False
    assert (layout.caches / "com.vendor.other").exists()
    assert not layout.app_x.exists()


def test_remove_dry_run_changes_nothing(cli_env, layout, capsys) -> None:
    cli_env.dry_run = True
    assert main.main(["--remove", "--dry-run", "--json"]) == main.EXIT_OK

    payload = _json_output(capsys)
    assert payload["dry_run"] is True
    assert payload["succeeded"] == 3
    assert layout.app_x.exists()


def test_failed_batch_exits_with_error_code(cli_env, capsys) -> None:
    cli_env.elevated_ok = False
    assert main.main(["--remove", "--yes", "--quiet"]) == main.EXIT_ERRORS
    assert capsys.readouterr().out == ""


def test_unknown_only_name_selects_nothing(cli_env, layout, capsys) -> None:
    assert main.main(["--remove", "--yes", "--only", "Nope"]) == main.EXIT_OK
    assert "Nothing selected to remove." in capsys.readouterr().out
    assert layout.app_x.exists()


def test_restore_round_trip_through_cli(cli_env, layout, capsys) -> None:
    main.main(["--remove", "--yes", "--quiet"])

    assert main.main(["--restore-preview", "--json"]) == main.EXIT_OK
    rows = _json_output(capsys)["restore_preview"]
    assert len(rows) == 3

    assert main.main(["--restore", "--yes", "--json"]) == main.EXIT_OK
    payload = _json_output(capsys)
    assert payload["restored_count"] == 3
    assert payload["blocker_removed"] is True
    assert layout.app_x.exists()


def test_restore_asks_before_moving_anything(cli_env, layout, monkeypatch, capsys) -> None:
    main.main(["--remove", "--yes", "--quiet"])
    prompts: List[str] = []
    monkeypatch.setattr(confirm, "_is_interactive", lambda: True)
    monkeypatch.setattr("builtins.input", lambda prompt: prompts.append(prompt) or "n")

    assert main.main(["--restore"]) == main.EXIT_OK

    assert prompts == [confirm.RESTORE_PROMPT + " "]
    assert "Vendor X.app" in capsys.readouterr().out
    assert not layout.app_x.exists()
    assert (layout.trash / "Vendor X.app").exists()


def test_guard_refuses_unsupported_platform(cli_env, monkeypatch) -> None:
    monkeypatch.setattr(main.platform, "system", lambda: "Linux")
    assert main.main(["--remove", "--yes"]) == main.EXIT_GUARD


def test_guard_refuses_root_for_destructive_modes(cli_env, monkeypatch) -> None:
    monkeypatch.setattr(main.elevation, "is_admin", lambda: True)
    assert main.main(["--remove", "--yes"]) == main.EXIT_GUARD
    assert main.main(["--scan", "--quiet"]) == main.EXIT_OK
    assert main.main(["--remove", "--yes", "--force", "--quiet"]) == main.EXIT_OK


def _session_state(vendor_catalog, system, inputs: List[str], outputs: List[str]):
    args = argparse.Namespace(quiet=False, json=False, no_blocker=False, dry_run=False)
    session = JanitorSession(vendor_catalog, system)
    state = main._build_app_state(args, session, StubLogger(), StubLogger())
    iterator = iter(inputs)
    state["input"] = lambda prompt: next(iterator)
    state["output"] = outputs.append
    return state


def test_menu_dry_run_then_quit(cli_env, vendor_catalog, layout) -> None:
    outputs: List[str] = []
    state = _session_state(vendor_catalog, cli_env, ["2", "4"], outputs)

    ui.run_cli(state)

    assert "1. Remove selected items" in outputs
    assert any(line.startswith("Dry run: would move 3 item(s)") for line in outputs)
    assert layout.app_x.exists()
    assert state["machine_logger"].events() == ["ui_scan", "ui_remove"]


def test_menu_remove_confirms_each_application(cli_env, vendor_catalog, layout) -> None:
    outputs: List[str] = []
    state = _session_state(vendor_catalog, cli_env, ["9", "1", "n", "4"], outputs)
    state["confirm"] = lambda **kwargs: True

    ui.run_cli(state)

    assert "Please enter a number between 1 and 4." in outputs
    assert layout.app_x.exists()
    assert not (layout.caches / "com.vendor.other").exists()
    assert any(line.startswith("Moved 1 item(s)") for line in outputs)


def test_menu_without_findings_offers_restore_only(vendor_catalog) -> None:
    outputs: List[str] = []
    state = _session_state(vendor_catalog, FakeSystemControl(), ["1", "y", "2"], outputs)

    ui.run_cli(state)

    assert "1. Restore from Trash" in outputs
    assert "2. Quit" in outputs
    assert "Nothing in the Trash to restore." in outputs
    assert any(line.startswith("Restored 0 item(s)") for line in outputs)


def test_menu_restore_can_be_declined(vendor_catalog, layout) -> None:
    write_file(layout.trash / "com.vendor.shared.plist")
    outputs: List[str] = []
    state = _session_state(vendor_catalog, FakeSystemControl(), ["1", "", "2"], outputs)

    ui.run_cli(state)

    assert "Restore cancelled." in outputs
    assert any("com.vendor.shared.plist ->" in line for line in outputs)
    assert (layout.trash / "com.vendor.shared.plist").exists()
    assert not (layout.preferences / "com.vendor.shared.plist").exists()


def test_menu_is_suppressed_in_json_mode(vendor_catalog) -> None:
    calls = []
    state = {
        "args": argparse.Namespace(json=True, quiet=False),
        "human_logger": None,
        "scanner": lambda: calls.append("scan") or [],
    }
    ui.run_cli(state)
    assert calls == []


def test_print_helpers_render_results() -> None:
    outputs: List[str] = []
    removal = RemovalResult(dry_run=False)
    removal.summary.success(count=2)
    removal.summary.error("privileged move failed for /Applications/Google Chrome.app")
    removal.remaining["processes"] = ["GoogleUpdater"]
    removal.blocker_planted = True
    ui.print_removal(removal, outputs.append)

    restore_result = RestoreResult(restored_count=1)
    restore_result.summary.skip("destination exists")
    ui.print_restore(restore_result, outputs.append)

    assert outputs == [
        "Moved 2 item(s) to the Trash (0 skipped, 1 errors).",
        "  ! privileged move failed for /Applications/Google Chrome.app",
        "  Still running: GoogleUpdater",
        "Reinstall blocker planted.",
        "Restored 1 item(s) (1 skipped, 0 errors).",
    ]


def test_request_removal_confirmation_paths() -> None:
    assert confirm.request_removal_confirmation(dry_run=True, force=False)
    assert confirm.request_removal_confirmation(dry_run=False, force=True)
    assert confirm.request_removal_confirmation(dry_run=False, force=False, interactive=False)
    assert confirm.request_removal_confirmation(
        dry_run=False, force=False, interactive=True, input_func=lambda prompt: ""
    )
    assert not confirm.request_removal_confirmation(
        dry_run=False, force=False, interactive=True, input_func=lambda prompt: "no"
    )

    def eof(prompt):
        raise EOFError

    assert not confirm.request_removal_confirmation(dry_run=False, force=False, interactive=True, input_func=eof)


def test_request_restore_confirmation_defaults_to_no() -> None:
    assert confirm.request_restore_confirmation(dry_run=True, force=False)
    assert confirm.request_restore_confirmation(dry_run=False, force=False, interactive=False)
    assert not confirm.request_restore_confirmation(
        dry_run=False, force=False, interactive=True, input_func=lambda prompt: ""
    )
    assert confirm.request_restore_confirmation(
        dry_run=False, force=False, interactive=True, input_func=lambda prompt: "yes"
    )


def test_confirm_finding_shows_size() -> None:
    prompts = []
    finding = Finding("Google Chrome", Category.APPLICATION, exists=True, size_estimate=1_500_000_000)

    assert confirm.confirm_finding(finding, input_func=lambda prompt: prompts.append(prompt) or "Y")
    assert prompts == ["Remove Google Chrome (1.5 GB)? (Y/n) "]

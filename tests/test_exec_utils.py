"""!
@brief Exec utils behaviour tests.
@details Validates environment sanitisation, dry-run flows, and subprocess
logging behaviour for :mod:`google_janitor.exec_utils`.
"""

from __future__ import annotations

import subprocess
from types import SimpleNamespace
from typing import Dict, List

import pytest

from google_janitor import exec_utils


@pytest.fixture(autouse=True)
def _reset_timeout():
    yield
    exec_utils.set_global_timeout(None)


def test_sanitize_environment_strips_blocklist_and_overrides() -> None:
    """!
    @brief Ensure sanitisation removes Python-specific variables and applies overrides.
    """

    base_env = {"PYTHONPATH": "should_remove", "VIRTUAL_ENV": "/venv", "LANG": "C"}

    sanitized = exec_utils.sanitize_environment(base_env=base_env, extra={"NEW": "value"})

    assert "PYTHONPATH" not in sanitized
    assert "VIRTUAL_ENV" not in sanitized
    assert sanitized["LANG"] == "C"
    assert sanitized["NEW"] == "value"


def test_run_command_dry_run_logs_without_invocation(monkeypatch: pytest.MonkeyPatch, stub_loggers) -> None:
    """!
    @brief Dry-run execution should skip subprocess invocation while logging intent.
    """

    human_logger, machine_logger = stub_loggers
    calls: List[List[str]] = []

    def fake_run(*args: object, **kwargs: object) -> None:  # pragma: no cover - should not be called
        calls.append(list(args[0]))
        raise AssertionError("subprocess.run should not be invoked in dry-run mode")

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)

    result = exec_utils.run_command(
        ["killall", "GoogleUpdater"],
        event="sample",
        dry_run=True,
        human_message="Stopping GoogleUpdater",
    )

    assert result.skipped is True
    assert result.returncode == 0
    assert not calls
    assert machine_logger.records[0][1] == "sample_plan"
    assert machine_logger.records[0][2]["extra"]["command"] == ["killall", "GoogleUpdater"]
    assert machine_logger.records[0][2]["extra"]["dry_run"] is True
    assert "[dry-run]" in human_logger.records[0][1]


def test_run_command_executes_with_sanitized_environment(monkeypatch: pytest.MonkeyPatch, stub_loggers) -> None:
    """!
    @brief Execute path should sanitise the environment before invoking subprocesses.
    """

    _, machine_logger = stub_loggers
    captured_env: Dict[str, str] = {}
    monkeypatch.setenv("PYTHONPATH", "value")

    def fake_run(command, *, capture_output, text, timeout, check, env):
        captured_env.update(env)
        return SimpleNamespace(returncode=0, stdout="ok", stderr="")

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)

    result = exec_utils.run_command(["pgrep", "-f", "Google"], event="sanity", env_overrides={"EXTRA": "2"})

    assert result.ok
    assert result.stdout == "ok"
    assert captured_env.get("PYTHONPATH") is None
    assert captured_env["EXTRA"] == "2"
    assert machine_logger.records[-1][1] == "sanity_result"
    assert machine_logger.records[-1][2]["extra"]["return_code"] == 0


def test_run_command_reports_missing_executable(monkeypatch: pytest.MonkeyPatch, stub_loggers) -> None:
    _, machine_logger = stub_loggers

    def missing(*args, **kwargs):
        raise FileNotFoundError("launchctl")

    monkeypatch.setattr(exec_utils.subprocess, "run", missing)

    result = exec_utils.run_command(["launchctl", "list"], event="service_list")

    assert result.returncode == exec_utils.MISSING_RETURN_CODE
    assert not result.ok
    assert machine_logger.records[-1][1] == "service_list_missing"


def test_run_command_reports_timeout(monkeypatch: pytest.MonkeyPatch, stub_loggers) -> None:
    _, machine_logger = stub_loggers
    seen = {}

    def slow(command, **kwargs):
        seen["timeout"] = kwargs["timeout"]
        raise subprocess.TimeoutExpired(command, kwargs["timeout"])

    monkeypatch.setattr(exec_utils.subprocess, "run", slow)
    exec_utils.set_global_timeout(5)

    result = exec_utils.run_command(["osascript", "-e", "delay 100"], event="slow", timeout=600)

    assert result.timed_out
    assert not result.ok
    assert seen["timeout"] == 5
    assert machine_logger.records[-1][1] == "slow_timeout"


def test_run_command_reports_os_error(monkeypatch: pytest.MonkeyPatch, stub_loggers) -> None:
    human_logger, machine_logger = stub_loggers

    def broken(*args, **kwargs):
        raise PermissionError("denied")

    monkeypatch.setattr(exec_utils.subprocess, "run", broken)

    result = exec_utils.run_command(["killall", "Google Chrome"], event="terminate_process")

    assert result.returncode == 1
    assert result.error == "denied"
    assert machine_logger.records[-1][1] == "terminate_process_error"
    assert human_logger.records[-1][0] == "warning"


@pytest.mark.parametrize("value, expected", [(None, 60), (0, 60), ("junk", 60), (30, 30), (90, 60)])
def test_global_timeout_caps_requested_timeout(value, expected) -> None:
    exec_utils.set_global_timeout(value)
    assert exec_utils._resolve_timeout(60) == expected

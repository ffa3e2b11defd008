"""!
@brief Subprocess execution helpers with sanitised environments.
@details Every external tool the janitor touches (``pgrep``, ``killall``,
``launchctl``, ``osascript``) goes through :func:`run_command` so telemetry is
uniform: a ``<event>_plan`` record before the call and a ``_result``,
``_missing``, ``_timeout`` or ``_error`` record after it. Failures are
reported through :class:`CommandResult` rather than raised so best-effort
callers can simply inspect ``returncode``.
"""

from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass

from . import logging_ext

_SANITIZE_BLOCKLIST = frozenset(
    {
        "PYTHONPATH",
        "PYTHONHOME",
        "PYTHONWARNINGS",
        "VIRTUAL_ENV",
        "PIP_REQUIRE_VIRTUALENV",
        "CONDA_PREFIX",
        "CONDA_DEFAULT_ENV",
        "PYENV_VERSION",
        "POETRY_ACTIVE",
        "__PYVENV_LAUNCHER__",
    }
)

MISSING_RETURN_CODE = 127
"""!
@brief Return code reported when the executable could not be found.
"""


@dataclass
class CommandResult:
    """!
    @brief Outcome of :func:`run_command`.
    @details ``skipped`` marks dry-run results, ``timed_out`` marks commands
    that exceeded their timeout, and ``error`` carries the launch failure text
    when the process never produced a return code of its own.
    """

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    duration: float
    skipped: bool = False
    timed_out: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.error and not self.timed_out


_GLOBAL_TIMEOUT: float | None = None


def set_global_timeout(timeout_seconds: float | int | None) -> None:
    """!
    @brief Cap every subprocess call at ``timeout_seconds``.
    @details Backs the ``--timeout`` flag. Non-positive or unparsable values
    clear the cap.
    """

    global _GLOBAL_TIMEOUT
    try:
        parsed = float(timeout_seconds) if timeout_seconds is not None else 0.0
    except (TypeError, ValueError):
        parsed = 0.0
    _GLOBAL_TIMEOUT = parsed if parsed > 0 else None


def _resolve_timeout(requested: float | int | None) -> float | int | None:
    if _GLOBAL_TIMEOUT is None:
        return requested
    if requested is None:
        return _GLOBAL_TIMEOUT
    return min(_GLOBAL_TIMEOUT, requested)


def sanitize_environment(
    *,
    base_env: Mapping[str, str] | None = None,
    extra: Mapping[str, str] | None = None,
) -> MutableMapping[str, str]:
    """!
    @brief Copy ``base_env`` (default :data:`os.environ`) minus virtualenv
    variables, then overlay ``extra``.
    """

    source = os.environ if base_env is None else base_env
    environment: MutableMapping[str, str] = {
        str(key): str(value)
        for key, value in source.items()
        if value is not None and key not in _SANITIZE_BLOCKLIST
    }
    if extra:
        environment.update({str(key): str(value) for key, value in extra.items()})
    return environment


def run_command(
    command: Sequence[str],
    *,
    event: str,
    timeout: int | float | None = 60,
    dry_run: bool = False,
    human_message: str | None = None,
    extra: Mapping[str, object] | None = None,
    env_overrides: Mapping[str, str] | None = None,
) -> CommandResult:
    """!
    @brief Execute ``command`` with consistent logging and environment hygiene.
    @param command Argument vector; never passed through a shell.
    @param event Base name for the structured log events.
    @param timeout Seconds before the child is abandoned, capped by
    :func:`set_global_timeout`.
    @param dry_run Log the command and return a ``skipped`` result instead.
    @param human_message Optional line for the human log before execution.
    @param extra Additional fields merged into every machine log record.
    @param env_overrides Variables applied after sanitisation.
    @returns :class:`CommandResult` describing what happened.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    command_list = [str(part) for part in command]
    effective_timeout = _resolve_timeout(timeout)
    fields = dict(extra or {})

    machine_logger.info(
        f"{event}_plan",
        extra=logging_ext.build_event_extra(
            f"{event}_plan",
            command=command_list,
            timeout=effective_timeout,
            dry_run=dry_run,
            **fields,
        ),
    )

    if dry_run:
        human_logger.info("%s [dry-run]", human_message or "Would execute " + " ".join(command_list))
        return CommandResult(command_list, 0, "", "", 0.0, skipped=True)

    if human_message:
        human_logger.info(human_message)

    start = time.monotonic()
    try:
        completed = subprocess.run(  # noqa: S603 - argv list, no shell
            command_list,
            capture_output=True,
            text=True,
            timeout=effective_timeout,
            check=False,
            env=sanitize_environment(extra=env_overrides),
        )
    except FileNotFoundError as exc:
        duration = time.monotonic() - start
        human_logger.debug("Command not found: %s", command_list[0])
        machine_logger.warning(
            f"{event}_missing",
            extra=logging_ext.build_event_extra(
                f"{event}_missing", command=command_list, error=str(exc), **fields
            ),
        )
        return CommandResult(command_list, MISSING_RETURN_CODE, "", "", duration, error=str(exc))
    except subprocess.TimeoutExpired as exc:
        duration = time.monotonic() - start
        human_logger.warning("Command timed out after %.1fs: %s", duration, command_list[0])
        stdout = exc.stdout if isinstance(exc.stdout, str) else ""
        stderr = exc.stderr if isinstance(exc.stderr, str) else ""
        machine_logger.warning(
            f"{event}_timeout",
            extra=logging_ext.build_event_extra(
                f"{event}_timeout", command=command_list, duration=duration, **fields
            ),
        )
        return CommandResult(
            command_list, 1, stdout, stderr, duration, timed_out=True, error="timeout"
        )
    except OSError as exc:
        duration = time.monotonic() - start
        human_logger.warning("Failed to execute %s: %s", command_list[0], exc)
        machine_logger.warning(
            f"{event}_error",
            extra=logging_ext.build_event_extra(
                f"{event}_error", command=command_list, error=str(exc), **fields
            ),
        )
        return CommandResult(command_list, 1, "", "", duration, error=str(exc))

    duration = time.monotonic() - start
    machine_logger.info(
        f"{event}_result",
        extra=logging_ext.build_event_extra(
            f"{event}_result",
            command=command_list,
            return_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            duration_ms=round(duration * 1000, 3),
            **fields,
        ),
    )

    return CommandResult(
        command=command_list,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
        duration=duration,
    )

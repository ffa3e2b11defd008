"""!
@brief Elevation helpers and the single-prompt batch runner.
@details The engine queues privileged work as structured
:class:`~google_janitor.models.BatchCommand` entries. This module is the only
place that turns them into shell text: every argument is quoted with
:func:`shlex.quote`, best-effort commands are wrapped so their failure does not
break the ``&&`` chain, and the whole script is handed to ``osascript`` with
``administrator privileges`` so the operator sees one password prompt.
"""
from __future__ import annotations

import getpass
import os
import shlex
from typing import Iterable, Sequence

from . import exec_utils, logging_ext
from .models import BatchCommand

ELEVATED_TIMEOUT = 600
"""!
@brief Seconds allowed for the operator to answer the prompt and the batch to run.
"""


def is_admin() -> bool:
    """!
    @brief Return ``True`` when the process already runs as root.
    """

    geteuid = getattr(os, "geteuid", None)
    return bool(geteuid is not None and geteuid() == 0)


def current_username() -> str:
    """!
    @brief Return the current user name best-effort.
    """

    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.environ.get("USER", "")


def applescript_string(text: str) -> str:
    """!
    @brief Escape ``text`` for use inside an AppleScript string literal.
    """

    return str(text).replace("\\", "\\\\").replace('"', '\\"')


def render_command(command: BatchCommand) -> str:
    rendered = " ".join(shlex.quote(part) for part in command.argv)
    if command.best_effort:
        return f"{{ {rendered}; }} 2>/dev/null || true"
    return rendered


def render_batch(commands: Iterable[BatchCommand]) -> str:
    """!
    @brief Join ``commands`` into one ``&&`` chained shell script.
    """

    return " && ".join(render_command(command) for command in commands)


def build_invocation(script: str, *, as_root: bool) -> list[str]:
    """!
    @brief Return the argv that runs ``script`` with administrator rights.
    @details Root processes run the script directly through ``/bin/sh``;
    everyone else goes through ``osascript`` so macOS shows its standard
    authentication dialog.
    """

    if as_root:
        return ["/bin/sh", "-c", script]
    applescript = f'do shell script "{applescript_string(script)}" with administrator privileges'
    return ["osascript", "-e", applescript]


def run_elevated(commands: Sequence[BatchCommand], *, dry_run: bool = False) -> bool:
    """!
    @brief Execute ``commands`` as one elevated invocation.
    @details An empty batch is a no-op success. A non-zero exit, including a
    dismissed prompt, fails the whole batch.
    @returns ``True`` when the batch completed.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    commands = list(commands)
    if not commands:
        return True

    script = render_batch(commands)
    as_root = is_admin()
    machine_logger.info(
        "elevated_batch",
        extra=logging_ext.build_event_extra(
            "elevated_batch",
            commands=[list(command.argv) for command in commands],
            descriptions=[command.description for command in commands],
            as_root=as_root,
            dry_run=dry_run,
        ),
    )

    result = exec_utils.run_command(
        build_invocation(script, as_root=as_root),
        event="elevated_run",
        timeout=ELEVATED_TIMEOUT,
        dry_run=dry_run,
        human_message=f"Requesting administrator rights for {len(commands)} command(s)",
        extra={"count": len(commands)},
    )
    if result.skipped:
        return True
    if result.returncode == exec_utils.MISSING_RETURN_CODE and result.error:
        human_logger.error("Elevation helper unavailable; %d privileged command(s) not run.", len(commands))
        return False
    if not result.ok:
        human_logger.error(
            "Privileged batch failed (exit %s): %s",
            result.returncode,
            (result.stderr or result.error or "").strip(),
        )
        return False
    human_logger.info("Privileged batch completed.")
    return True


__all__ = [
    "applescript_string",
    "build_invocation",
    "current_username",
    "is_admin",
    "render_batch",
    "render_command",
    "run_elevated",
]

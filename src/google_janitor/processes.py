"""!
@brief Process helpers for stopping Google binaries before files move.
@details Wraps ``pgrep -f`` and ``killall`` through :mod:`exec_utils`. A
process that is not running is not an error: ``pgrep`` and ``killall`` both
exit 1 in that case and the helpers report an empty result.
"""
from __future__ import annotations

from typing import List

from . import exec_utils, logging_ext


def list_processes(name: str, *, timeout: int = 15) -> List[int]:
    """!
    @brief Return PIDs whose command line matches ``name``.
    """

    human_logger = logging_ext.get_human_logger()

    result = exec_utils.run_command(
        ["pgrep", "-f", name],
        event="process_list",
        timeout=timeout,
        extra={"process_name": name},
    )
    if result.returncode == exec_utils.MISSING_RETURN_CODE:
        human_logger.debug("pgrep unavailable; cannot look for %s", name)
        return []
    if result.returncode != 0 or result.error:
        return []

    pids: List[int] = []
    for line in result.stdout.splitlines():
        token = line.strip()
        if token.isdigit():
            pids.append(int(token))
    return pids


def terminate(name: str, *, dry_run: bool = False, timeout: int = 15) -> bool:
    """!
    @brief Send ``SIGTERM`` to every process named ``name``.
    @returns ``True`` when ``killall`` signalled at least one process.
    """

    human_logger = logging_ext.get_human_logger()

    result = exec_utils.run_command(
        ["killall", name],
        event="terminate_process",
        timeout=timeout,
        dry_run=dry_run,
        extra={"process_name": name},
    )
    if result.skipped:
        return False
    if result.returncode == exec_utils.MISSING_RETURN_CODE:
        human_logger.debug("killall unavailable; cannot stop %s", name)
        return False
    if result.returncode == 0 and not result.error:
        human_logger.info("Terminated %s", name)
        return True
    human_logger.debug("%s was not running", name)
    return False


__all__ = ["list_processes", "terminate"]

"""!
@brief Shared confirmation helpers for removals and restores.
@details The command line and the text menu ask the same questions before
anything moves to the Trash: one overall confirmation and, in the menu, one
question per installed application. Restores ask once and default to no.
"""

from __future__ import annotations

import sys
from typing import Callable

from . import fs_tools
from .models import Finding

CONFIRM_PROMPT = (
    "This will stop Google services and move the selected items to the Trash. "
    "Continue? (Y/n)"
)


RESTORE_PROMPT = "Restore these items from the Trash? (y/N)"


def _is_interactive() -> bool:
    stdin = getattr(sys, "stdin", None)
    isatty = getattr(stdin, "isatty", None)
    return bool(isatty and isatty())


def _ask(
    prompt: str,
    *,
    dry_run: bool,
    force: bool,
    input_func: Callable[[str], str] | None,
    interactive: bool | None,
    default: bool,
) -> bool:
    if dry_run or force:
        return True

    if interactive is None:
        interactive = _is_interactive()
    if not interactive:
        return True

    if input_func is None:
        input_func = input

    try:
        response = input_func(f"{prompt} ").strip().lower()
    except EOFError:
        return False

    if not response:
        return default
    return response in ("y", "yes")


def request_removal_confirmation(
    *,
    dry_run: bool,
    force: bool,
    input_func: Callable[[str], str] | None = None,
    interactive: bool | None = None,
) -> bool:
    """!
    @brief Ask the user to confirm a removal.
    @details Dry runs and ``--yes`` skip the prompt. Non-interactive sessions
    also proceed so scripted runs are not blocked waiting for input.
    @param dry_run Whether the pending execution is a dry run.
    @param force Whether the caller supplied ``--yes``.
    @param input_func Optional input override for the menu and tests.
    @param interactive Optional override for the TTY check.
    @returns ``True`` when the removal should proceed.
    """

    return _ask(
        CONFIRM_PROMPT,
        dry_run=dry_run,
        force=force,
        input_func=input_func,
        interactive=interactive,
        default=True,
    )


def request_restore_confirmation(
    *,
    dry_run: bool,
    force: bool,
    input_func: Callable[[str], str] | None = None,
    interactive: bool | None = None,
) -> bool:
    """!
    @brief Ask the user to confirm a restore. An empty answer means no.
    """

    return _ask(
        RESTORE_PROMPT,
        dry_run=dry_run,
        force=force,
        input_func=input_func,
        interactive=interactive,
        default=False,
    )


def confirm_finding(finding: Finding, *, input_func: Callable[[str], str] | None = None) -> bool:
    """!
    @brief Ask whether one application should be removed. Defaults to yes.
    """

    if input_func is None:
        input_func = input
    size = fs_tools.format_bytes(finding.size_estimate)
    try:
        response = input_func(f"Remove {finding.name} ({size})? (Y/n) ")
    except EOFError:
        return False
    return response.strip().lower() in ("", "y", "yes")


__all__ = [
    "CONFIRM_PROMPT",
    "RESTORE_PROMPT",
    "confirm_finding",
    "request_removal_confirmation",
    "request_restore_confirmation",
]

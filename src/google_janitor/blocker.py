"""!
@brief Reinstall blocker for GoogleUpdater.
@details GoogleUpdater recreates ``~/Library/Google`` as a writable directory
on every launch. Occupying that name with an empty, mode ``000`` regular file
makes the recreation fail quietly so the updater cannot reinstall itself.
Restore must remove the placeholder before anything else is put back, because
the restored ``Google`` directory lands at the same path.
"""
from __future__ import annotations

import os
import stat
from pathlib import Path

from . import logging_ext

LOCKED_MODE = 0o000
UNLOCKED_MODE = 0o644


def blocker_present(path: Path) -> bool:
    """!
    @brief Return ``True`` when ``path`` is the empty locked placeholder.
    """

    try:
        info = os.lstat(path)
    except OSError:
        return False
    return stat.S_ISREG(info.st_mode) and stat.S_IMODE(info.st_mode) == LOCKED_MODE and info.st_size == 0


def plant_blocker(path: Path, *, dry_run: bool = False) -> bool:
    """!
    @brief Create the locked placeholder at ``path``.
    @details Refuses to touch an existing path, whatever it is.
    @returns ``True`` when the placeholder was planted (or would be, on a
    dry run).
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    path = Path(path)
    if os.path.lexists(path):
        human_logger.warning("Not planting reinstall blocker: %s already exists", path)
        machine_logger.warning(
            "blocker_skipped",
            extra=logging_ext.build_event_extra("blocker_skipped", path=path, reason="exists"),
        )
        return False

    if dry_run:
        human_logger.info("Dry-run: would plant reinstall blocker at %s", path)
        return True

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch(exist_ok=False)
        os.chmod(path, LOCKED_MODE)
    except OSError as exc:
        human_logger.warning("Unable to plant reinstall blocker at %s: %s", path, exc)
        machine_logger.warning(
            "blocker_error",
            extra=logging_ext.build_event_extra("blocker_error", path=path, error=str(exc)),
        )
        return False

    human_logger.info("Planted reinstall blocker at %s", path)
    machine_logger.info("blocker_planted", extra=logging_ext.build_event_extra("blocker_planted", path=path))
    return True


def remove_blocker(path: Path, *, dry_run: bool = False) -> bool:
    """!
    @brief Unlock and delete the placeholder at ``path``.
    @details Only an empty regular file is deleted. A real ``Google`` directory
    or a file with content at this path is left alone.
    @returns ``True`` when a placeholder was removed.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    path = Path(path)
    try:
        info = os.lstat(path)
    except OSError:
        return False
    if not stat.S_ISREG(info.st_mode):
        return False
    if info.st_size:
        human_logger.warning("Not removing %s: it is not an empty reinstall blocker", path)
        machine_logger.warning(
            "blocker_skipped",
            extra=logging_ext.build_event_extra("blocker_skipped", path=path, reason="not_empty"),
        )
        return False

    if dry_run:
        human_logger.info("Dry-run: would remove reinstall blocker at %s", path)
        return True

    try:
        os.chmod(path, UNLOCKED_MODE)
        path.unlink()
    except OSError as exc:
        human_logger.warning("Unable to remove reinstall blocker at %s: %s", path, exc)
        machine_logger.warning(
            "blocker_error",
            extra=logging_ext.build_event_extra("blocker_error", path=path, error=str(exc)),
        )
        return False

    human_logger.info("Removed reinstall blocker at %s", path)
    machine_logger.info("blocker_removed", extra=logging_ext.build_event_extra("blocker_removed", path=path))
    return True


__all__ = ["blocker_present", "plant_blocker", "remove_blocker"]

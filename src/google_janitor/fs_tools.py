"""!
@brief Filesystem utilities for probing, sizing and trashing Google residue.
@details Probes never raise: an ``OSError`` while checking existence or
walking a tree counts as "absent" or "zero bytes" so discovery always
completes. Moves into the Trash follow the Finder convention of keeping the
original basename when the slot is free and otherwise append ``_<n>``. ``n``
is a counter starting at the run's Unix timestamp followed by a two-digit
origin slot, so restore can tell apart same-named items that came from
different folders. :func:`split_collision_suffix` and :func:`origin_of` are
the inverse used by restore.
"""
from __future__ import annotations

import os
import platform
import re
import shutil
import stat
import time
from pathlib import Path
from typing import List, Optional, Sequence, Set, Tuple

from . import constants, elevation, exec_utils, logging_ext

_COLLISION_SUFFIX = re.compile(r"^(?P<base>.+)_(?P<stamp>\d+)$")


def is_under(path: Path, root: Path) -> bool:
    """!
    @brief Return ``True`` when ``path`` equals ``root`` or lives beneath it.
    """

    path = Path(path)
    root = Path(root)
    return path == root or path.is_relative_to(root)


def path_exists(path: Path) -> bool:
    """!
    @brief ``lexists`` that treats lookup failures as absence.
    """

    try:
        return os.path.lexists(path)
    except OSError:
        return False


def path_size(path: Path) -> int:
    """!
    @brief Sum regular file sizes beneath ``path`` without following symlinks.
    @details A file contributes its own size. Unreadable entries contribute
    zero instead of aborting the walk.
    """

    try:
        info = os.lstat(path)
    except OSError:
        return 0
    if stat.S_ISLNK(info.st_mode):
        return 0
    if not stat.S_ISDIR(info.st_mode):
        return info.st_size

    total = 0
    pending = [Path(path)]
    while pending:
        current = pending.pop()
        try:
            with os.scandir(current) as entries:
                for entry in entries:
                    try:
                        if entry.is_dir(follow_symlinks=False):
                            pending.append(Path(entry.path))
                        elif entry.is_file(follow_symlinks=False):
                            total += entry.stat(follow_symlinks=False).st_size
                    except OSError:
                        continue
        except OSError:
            continue
    return total


def format_bytes(size: int) -> str:
    """!
    @brief Render ``size`` in decimal units the way Finder does.
    @details ``512 bytes``, ``34 KB``, ``2 MB``, ``1.5 GB``.
    """

    size = max(int(size), 0)
    if size == 0:
        return "Zero KB"
    if size < 1000:
        return f"{size} byte" if size == 1 else f"{size} bytes"
    if size < 1_000_000:
        return f"{round(size / 1000)} KB"
    value = size / 1_000_000
    unit = "MB"
    for larger in ("GB", "TB"):
        if value < 1000.0:
            break
        value /= 1000.0
        unit = larger
    text = f"{value:.1f}"
    if text.endswith(".0"):
        text = text[:-2]
    return f"{text} {unit}"


def split_collision_suffix(name: str) -> Tuple[str, Optional[int]]:
    """!
    @brief Split ``name_<digits>`` into ``("name", digits)``.
    @returns ``(name, None)`` when no collision suffix is present.
    """

    match = _COLLISION_SUFFIX.match(name)
    if not match:
        return name, None
    return match.group("base"), int(match.group("stamp"))


def collision_name(basename: str, counter: int, origin: int = 0) -> str:
    return f"{basename}_{counter * constants.TRASH_ORIGIN_SLOTS + origin}"


def origin_of(stamp: Optional[int]) -> int:
    """!
    @brief Origin slot carried by a collision suffix; ``0`` for plain names.
    """

    return 0 if stamp is None else stamp % constants.TRASH_ORIGIN_SLOTS


def list_trash_entries(trash_dir: Path) -> List[Path]:
    """!
    @brief Return the entries of ``trash_dir`` sorted by name.
    """

    try:
        return sorted(Path(trash_dir).iterdir(), key=lambda item: item.name)
    except OSError:
        return []


def recency_key(name: str) -> int:
    """!
    @brief Sort key ranking trash entries newest first.
    @details The unsuffixed name was moved first, so it ranks oldest.
    """

    _, stamp = split_collision_suffix(name)
    return -1 if stamp is None else stamp


def find_trash_candidates(trash_dir: Path, name: str, entries: Optional[Sequence[Path]] = None) -> List[Path]:
    """!
    @brief Return trash entries named ``name`` or ``name_<digits>``, most recent
    first.
    @param entries Listing to search instead of reading ``trash_dir`` again.
    """

    if entries is None:
        entries = list_trash_entries(trash_dir)
    candidates = []
    for entry in entries:
        if entry.name == name:
            candidates.append(entry)
            continue
        base, stamp = split_collision_suffix(entry.name)
        if stamp is not None and base == name:
            candidates.append(entry)
    candidates.sort(key=lambda item: recency_key(item.name), reverse=True)
    return candidates


class TrashNamer:
    """!
    @brief Hand out collision-free destinations inside the Trash for one run.
    @details Reserved names are remembered so paths queued for the elevated
    batch, which have not been moved yet, never receive the same destination.
    """

    def __init__(self, trash_dir: Path, run_stamp: int | None = None) -> None:
        self.trash_dir = Path(trash_dir)
        self.run_stamp = int(time.time()) if run_stamp is None else int(run_stamp)
        self._reserved: Set[str] = set()
        self._counter = self.run_stamp

    def _taken(self, name: str) -> bool:
        return name in self._reserved or path_exists(self.trash_dir / name)

    def plain_slot_free(self, basename: str) -> bool:
        return not self._taken(basename)

    def reserve(self, basename: str, origin: int = 0) -> Path:
        """!
        @brief Reserve ``basename`` or the next free ``basename_<n>``.
        @param origin Origin slot of the item. Non-zero slots always take a
        suffixed name, since a plain name restores through slot ``0``.
        """

        candidate = None if origin else basename
        while candidate is None or self._taken(candidate):
            candidate = collision_name(basename, self._counter, origin)
            self._counter += 1
        self._reserved.add(candidate)
        return self.trash_dir / candidate

    def release(self, destination: Path) -> None:
        self._reserved.discard(Path(destination).name)


def move_path(source: Path, destination: Path) -> bool:
    """!
    @brief Move ``source`` to ``destination``, creating parent folders.
    @returns ``True`` on success. Failures are logged, never raised.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    source = Path(source)
    destination = Path(destination)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(destination))
    except OSError as exc:
        human_logger.warning("Unable to move %s to %s: %s", source, destination, exc)
        machine_logger.warning(
            "move_error",
            extra=logging_ext.build_event_extra(
                "move_error", source=source, destination=destination, error=str(exc)
            ),
        )
        return False

    human_logger.info("Moved %s -> %s", source, destination)
    machine_logger.info(
        "trash_move",
        extra=logging_ext.build_event_extra("trash_move", source=source, destination=destination),
    )
    return True


def native_trash(path: Path, trash_dir: Path) -> Optional[Path]:
    """!
    @brief Ask Finder to move ``path`` to the Trash.
    @details Callers only use this when ``trash_dir/<basename>`` is free, so a
    successful Finder move lands at that exact location.
    @returns The new location, or ``None`` when Finder refused or is missing.
    """

    path = Path(path)
    script = f'tell application "Finder" to delete POSIX file "{elevation.applescript_string(str(path))}"'
    result = exec_utils.run_command(
        ["osascript", "-e", script],
        event="native_trash",
        timeout=60,
        extra={"path": str(path)},
    )
    if not result.ok or path_exists(path):
        return None
    destination = Path(trash_dir) / path.name
    logging_ext.get_machine_logger().info(
        "trash_move",
        extra=logging_ext.build_event_extra("trash_move", source=path, destination=destination, native=True),
    )
    return destination


def resolve_trash_directory(home: Path, override: Path | str | None = None) -> Path:
    """!
    @brief Resolve the Trash folder: ``override``, ``$GOOGLE_JANITOR_TRASH``,
    then ``~/.Trash``.
    """

    if override:
        return Path(override).expanduser()
    env_value = os.environ.get(constants.ENV_TRASH)
    if env_value:
        return Path(env_value).expanduser()
    return Path(home) / constants.DEFAULT_TRASH_DIR


def get_default_log_directory() -> Path:
    """!
    @brief Return the default log directory for the current platform.
    """

    env_value = os.environ.get(constants.ENV_LOGDIR)
    if env_value:
        return Path(env_value).expanduser()
    if platform.system() == "Darwin":
        return Path.home() / "Library" / "Logs" / "GoogleJanitor"
    state_home = os.environ.get("XDG_STATE_HOME")
    base = Path(state_home).expanduser() if state_home else Path.home() / ".local" / "state"
    return base / "google-janitor" / "logs"

"""!
@brief The narrow boundary between the engine and the host.
@details :class:`SystemControl` bundles the process, launchd, elevation and
Trash helpers behind synchronous best-effort methods. The executors never
shell out on their own; tests substitute a recording fake with the same
surface.
"""
from __future__ import annotations

import platform
from pathlib import Path
from typing import List, Optional, Sequence

from . import elevation, fs_tools, launchd, logging_ext, processes
from .models import BatchCommand


class SystemControl:
    """!
    @brief Host implementation backed by ``pgrep``, ``killall``, ``launchctl``,
    ``osascript`` and :mod:`shutil`.
    @details ``dry_run`` turns every mutating call into a logged no-op that
    still reports success, so a dry run walks the same code paths and counts
    the same work as a real one. ``elevated_invocations`` counts non-empty
    batches handed to :func:`elevation.run_elevated`.
    """

    def __init__(self, *, dry_run: bool = False, use_native_trash: bool | None = None) -> None:
        self.dry_run = dry_run
        if use_native_trash is None:
            use_native_trash = platform.system() == "Darwin"
        self.use_native_trash = use_native_trash
        self.elevated_invocations = 0

    # processes -----------------------------------------------------------

    def list_processes(self, name: str) -> List[int]:
        return processes.list_processes(name)

    def terminate(self, name: str) -> bool:
        return processes.terminate(name, dry_run=self.dry_run)

    # launchd -------------------------------------------------------------

    def loaded_services(self, vendor_filter: str) -> List[str]:
        return launchd.list_loaded(vendor_filter)

    def read_label(self, config_path: Path) -> Optional[str]:
        return launchd.read_label(config_path)

    def deactivate(self, domain: str, label_or_path: str | Path) -> bool:
        return launchd.deactivate(domain, label_or_path, dry_run=self.dry_run)

    def remove_label(self, label: str) -> bool:
        return launchd.remove_label(label, dry_run=self.dry_run)

    def activate(self, config_path: Path) -> bool:
        return launchd.activate(config_path, dry_run=self.dry_run)

    def deactivation_command(self, domain: str, config_path: Path) -> BatchCommand:
        return BatchCommand.of(
            *launchd.deactivation_argv(domain, config_path),
            best_effort=True,
            description=f"deactivate {config_path}",
        )

    def activation_command(self, config_path: Path) -> BatchCommand:
        return BatchCommand.of(
            *launchd.activation_argv(config_path),
            best_effort=True,
            description=f"load {config_path}",
        )

    # elevation -----------------------------------------------------------

    def run_elevated(self, commands: Sequence[BatchCommand]) -> bool:
        if not commands:
            return True
        self.elevated_invocations += 1
        return elevation.run_elevated(commands, dry_run=self.dry_run)

    # filesystem ----------------------------------------------------------

    def move_to_trash(self, path: Path, namer: fs_tools.TrashNamer, origin: int = 0) -> Optional[Path]:
        """!
        @brief Move ``path`` into the Trash and return its new location.
        @details Finder is asked first when the plain basename is free in the
        Trash and ``origin`` is ``0``; a collision, a non-zero origin slot or a
        Finder failure falls back to a manual move to a ``<basename>_<n>`` name
        reserved through ``namer``.
        """

        path = Path(path)
        if self.dry_run:
            destination = namer.reserve(path.name, origin)
            logging_ext.get_human_logger().info("Dry-run: would move %s -> %s", path, destination)
            return destination

        if self.use_native_trash and not origin and namer.plain_slot_free(path.name):
            slot = namer.reserve(path.name)
            moved = fs_tools.native_trash(path, namer.trash_dir)
            if moved is not None:
                return moved
            if not fs_tools.path_exists(path):
                # Finder reported failure after moving the item anyway.
                return slot if fs_tools.path_exists(slot) else None
            namer.release(slot)

        destination = namer.reserve(path.name, origin)
        if fs_tools.move_path(path, destination):
            return destination
        namer.release(destination)
        return None

    def move(self, source: Path, destination: Path) -> bool:
        if self.dry_run:
            logging_ext.get_human_logger().info("Dry-run: would move %s -> %s", source, destination)
            return True
        return fs_tools.move_path(source, destination)


__all__ = ["SystemControl"]

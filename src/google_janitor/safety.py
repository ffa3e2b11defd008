"""!
@brief Safety and guardrail enforcement helpers.
@details Two layers of checks run before the host is modified. The runtime
guard in :func:`evaluate_runtime_environment` refuses to start on an
unsupported platform or as root unless ``--force`` is given. The per-path guard
in :func:`ensure_path_allowed` runs before every move and rejects anything
outside the known library and application roots, any protected folder itself,
and any name that does not carry the vendor marker.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Tuple

from . import fs_tools
from .catalog import Catalog

SUPPORTED_SYSTEMS = {"darwin"}

PROTECTED_PATHS: Tuple[Path, ...] = (
    Path("/"),
    Path("/Applications"),
    Path("/Library"),
    Path("/Library/Application Support"),
    Path("/Library/LaunchAgents"),
    Path("/Library/LaunchDaemons"),
    Path("/System"),
    Path("/Users"),
    Path("/usr"),
    Path("/bin"),
    Path("/sbin"),
    Path("/private"),
)


def evaluate_runtime_environment(
    *,
    os_system: str,
    is_root: bool,
    dry_run: bool,
    force: bool = False,
) -> None:
    """!
    @brief Validate runtime prerequisites before destructive execution.
    @param os_system Result of ``platform.system()``.
    @param is_root Whether the process already runs with euid 0.
    @param dry_run Dry runs only read the host, so the root guard is skipped.
    @param force Bypass both guards.
    @raises RuntimeError When a guard blocks execution.
    """

    if force:
        return

    system = str(os_system).strip().lower()
    if system not in SUPPORTED_SYSTEMS:
        raise RuntimeError(f"Unsupported operating system '{os_system}'. macOS is required.")

    if is_root and not dry_run:
        raise RuntimeError(
            "Refusing to run as root: the per-user Trash and LaunchAgents belong to your account. "
            "Run as your normal user (administrator rights are requested when needed) or pass --force."
        )


def _protected(catalog: Catalog) -> Iterable[Path]:
    yield from PROTECTED_PATHS
    yield catalog.home
    yield catalog.home / "Library"
    yield catalog.trash_dir
    yield catalog.group_containers_dir
    yield from catalog.library_subdirs
    yield from _allowed_roots(catalog)


def _allowed_roots(catalog: Catalog) -> Tuple[Path, ...]:
    roots = {catalog.home / "Library"}
    roots.update(path.parent for path in catalog.static_removable_paths())
    return tuple(sorted(roots))


def ensure_path_allowed(path: Path, catalog: Catalog) -> None:
    """!
    @brief Refuse paths the engine must never relocate.
    @raises ValueError With the reason the path was rejected.
    """

    path = Path(path)
    if not path.is_absolute():
        raise ValueError(f"Refusing relative path: {path}")
    if ".." in path.parts:
        raise ValueError(f"Refusing path with parent references: {path}")
    if any(path == protected for protected in _protected(catalog)):
        raise ValueError(f"Refusing protected location: {path}")

    if not any(fs_tools.is_under(path, root) for root in _allowed_roots(catalog)):
        raise ValueError(f"Refusing path outside the allowed roots: {path}")

    if catalog.vendor_marker.lower() not in path.name.lower():
        raise ValueError(f"Refusing path without the '{catalog.vendor_marker}' marker: {path}")


__all__ = [
    "PROTECTED_PATHS",
    "SUPPORTED_SYSTEMS",
    "ensure_path_allowed",
    "evaluate_runtime_environment",
]

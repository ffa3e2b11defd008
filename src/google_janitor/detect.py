"""!
@brief Discovery of Google services, applications and data.
@details Walks the :class:`~google_janitor.catalog.Catalog` against the live
filesystem and ``launchctl`` and returns fresh
:class:`~google_janitor.models.Finding` records. Discovery is read-only and
never aborts: unreadable locations count as absent or empty.

Ownership is exclusive. Every data path is claimed through a scan-scoped
:class:`ClaimedPathSet` before it is attached to a finding, and the order is
fixed: services, then each application in catalog order, then shared data.
Applications therefore always win over the generic ``com.google.`` bucket.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence, Set

from . import blocker, constants, fs_tools, logging_ext
from .catalog import ApplicationDescriptor, Catalog
from .models import Category, Finding
from .privilege import needs_elevation


class ServiceQuery(Protocol):
    def loaded_services(self, vendor_filter: str) -> List[str]:
        ...


class ClaimedPathSet:
    """!
    @brief Paths already attributed to a finding during one scan.
    @details A claim is refused when the path itself, one of its ancestors, or
    one of its descendants has been claimed, so no finding can own a folder
    whose contents another finding also owns.
    """

    def __init__(self) -> None:
        self._claimed: Set[Path] = set()

    def claim(self, path: Path) -> bool:
        path = Path(path)
        if path in self._claimed:
            return False
        if any(parent in self._claimed for parent in path.parents):
            return False
        if any(path in other.parents for other in self._claimed):
            return False
        self._claimed.add(path)
        return True

    def __contains__(self, path: object) -> bool:
        return Path(path) in self._claimed  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._claimed)


def _list_dir(directory: Path) -> List[Path]:
    try:
        return sorted(Path(directory).iterdir(), key=lambda item: item.name)
    except OSError:
        return []


def _sizes(paths: Iterable[Path]) -> int:
    return sum(fs_tools.path_size(path) for path in paths)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _discover_services(catalog: Catalog, system: ServiceQuery, claimed: ClaimedPathSet) -> Optional[Finding]:
    paths = [
        service.config_path
        for service in catalog.services
        if fs_tools.path_exists(service.config_path) and claimed.claim(service.config_path)
    ]
    loaded = list(system.loaded_services(catalog.vendor_marker))
    if not paths and not loaded:
        return None

    details = []
    if loaded:
        details.append(f"{len(loaded)} loaded")
    if paths:
        details.append(_plural(len(paths), "plist"))

    return Finding(
        name=constants.SERVICE_FINDING,
        category=Category.SERVICE,
        paths=paths,
        exists=True,
        size_estimate=_sizes(paths),
        detail=" · ".join(details),
        requires_elevation=any(needs_elevation(path, catalog.home) for path in paths),
        loaded_services=loaded,
    )


def _application_data(catalog: Catalog, app: ApplicationDescriptor) -> List[Path]:
    candidates: List[Path] = []
    for subdir in catalog.library_subdirs:
        for entry in _list_dir(subdir):
            if any(entry.name.startswith(prefix) for prefix in app.bundle_prefixes):
                candidates.append(entry)
    candidates.extend(path for path in app.extra_data_paths if fs_tools.path_exists(path))
    lowered = [prefix.lower() for prefix in app.bundle_prefixes]
    for entry in _list_dir(catalog.group_containers_dir):
        name = entry.name.lower()
        if any(prefix in name for prefix in lowered):
            candidates.append(entry)
    return candidates


def _discover_application(catalog: Catalog, app: ApplicationDescriptor, claimed: ClaimedPathSet) -> Finding:
    installed = fs_tools.path_exists(app.install_path) and claimed.claim(app.install_path)
    data = [path for path in _application_data(catalog, app) if claimed.claim(path)]

    app_size = fs_tools.path_size(app.install_path) if installed else 0
    data_size = _sizes(data)

    if installed:
        detail = fs_tools.format_bytes(app_size)
        if data:
            detail = f"{detail} + {fs_tools.format_bytes(data_size)} data"
        return Finding(
            name=app.display_name,
            category=Category.APPLICATION,
            paths=[app.install_path, *data],
            exists=True,
            size_estimate=app_size + data_size,
            detail=detail,
            requires_elevation=app.requires_elevation,
        )

    if data:
        return Finding(
            name=app.display_name,
            category=Category.APPLICATION,
            paths=data,
            exists=True,
            size_estimate=data_size,
            detail=f"app removed, {fs_tools.format_bytes(data_size)} data remains",
            requires_elevation=False,
            orphaned=True,
        )

    return Finding(
        name=app.display_name,
        category=Category.APPLICATION,
        exists=False,
        selected=False,
        detail="not installed",
        requires_elevation=app.requires_elevation,
    )


def _shared_candidates(catalog: Catalog) -> List[Path]:
    candidates: List[Path] = []
    for rule in catalog.shared_rules:
        if rule.is_prefix:
            continue
        path = rule.path
        if catalog.blocker_path is not None and path == catalog.blocker_path and blocker.blocker_present(path):
            continue
        if fs_tools.path_exists(path):
            candidates.append(path)

    prefixes = catalog.shared_prefixes
    for subdir in catalog.library_subdirs:
        for entry in _list_dir(subdir):
            if any(entry.name.startswith(prefix) for prefix in prefixes):
                candidates.append(entry)

    marker = catalog.vendor_marker.lower()
    for entry in _list_dir(catalog.group_containers_dir):
        if marker in entry.name.lower():
            candidates.append(entry)
    return candidates


def _shared_finding(name: str, paths: Sequence[Path], *, elevated: bool) -> Finding:
    size = _sizes(paths)
    return Finding(
        name=name,
        category=Category.DATA,
        paths=list(paths),
        exists=True,
        size_estimate=size,
        detail=f"{_plural(len(paths), 'item')} · {fs_tools.format_bytes(size)}",
        requires_elevation=elevated,
    )


def _discover_shared(catalog: Catalog, claimed: ClaimedPathSet) -> List[Finding]:
    elevated_rules = {rule.path for rule in catalog.shared_rules if not rule.is_prefix and rule.requires_elevation}

    system_paths: List[Path] = []
    user_paths: List[Path] = []
    for path in _shared_candidates(catalog):
        if not claimed.claim(path):
            continue
        if path in elevated_rules or needs_elevation(path, catalog.home):
            system_paths.append(path)
        else:
            user_paths.append(path)

    findings: List[Finding] = []
    if system_paths:
        findings.append(_shared_finding(constants.SHARED_SYSTEM_FINDING, system_paths, elevated=True))
    if user_paths:
        findings.append(_shared_finding(constants.SHARED_USER_FINDING, user_paths, elevated=False))
    return findings


def discover(catalog: Catalog, system: ServiceQuery) -> List[Finding]:
    """!
    @brief Produce a fresh list of findings for ``catalog``.
    @param catalog Validated catalog to walk.
    @param system Anything exposing ``loaded_services(vendor_filter)``,
    normally :class:`~google_janitor.system_control.SystemControl`.
    @returns Service finding (when present), one finding per application, then
    up to two shared data findings.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    claimed = ClaimedPathSet()
    findings: List[Finding] = []

    service_finding = _discover_services(catalog, system, claimed)
    if service_finding is not None:
        findings.append(service_finding)
    for app in catalog.applications:
        findings.append(_discover_application(catalog, app, claimed))
    findings.extend(_discover_shared(catalog, claimed))

    for finding in findings:
        machine_logger.info(
            "discover_finding",
            extra=logging_ext.build_event_extra("discover_finding", finding=finding.to_dict()),
        )
    found = [finding for finding in findings if finding.exists]
    human_logger.info("Discovery found %d of %d item(s).", len(found), len(findings))
    return findings


__all__ = ["ClaimedPathSet", "ServiceQuery", "discover"]

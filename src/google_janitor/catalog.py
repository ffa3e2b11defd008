"""!
@brief Static registry of Google services, applications and data locations.
@details The catalog is pure data: frozen descriptors for launchd services,
application bundles and shared data rules, plus the inverse restore map used to
put trashed items back. :class:`Catalog` validates itself on construction so a
removable path without a restore rule is a packaging error caught at start-up
rather than data silently stranded in the Trash.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from . import constants, fs_tools


class CatalogError(ValueError):
    """!
    @brief Raised when the catalog violates one of its construction invariants.
    """


class RuleKind(str, Enum):
    EXACT = "exact"
    PREFIX = "prefix"
    CONTAINS = "contains"


@dataclass(frozen=True)
class ServiceDescriptor:
    """!
    @brief A launchd agent or daemon definition.
    @details ``domain`` is the launchd activation domain, ``gui/<uid>`` for
    per-user agents and ``system`` for machine-wide services.
    """

    config_path: Path
    domain: str
    requires_elevation: bool


@dataclass(frozen=True)
class ApplicationDescriptor:
    """!
    @brief An application bundle plus the rules that find its data.
    """

    install_path: Path
    display_name: str
    bundle_prefixes: Tuple[str, ...]
    extra_data_paths: Tuple[Path, ...] = ()
    requires_elevation: bool = True


@dataclass(frozen=True)
class SharedDataRule:
    """!
    @brief Infrastructure data that no single application owns.
    @details Exact rules name one path. Prefix rules carry a name prefix that is
    matched inside every per-user library folder.
    """

    path_or_prefix: str
    is_prefix: bool = False
    requires_elevation: bool = False

    @property
    def path(self) -> Path:
        return Path(self.path_or_prefix)


@dataclass(frozen=True)
class RestoreRule:
    """!
    @brief Inverse mapping from a trashed name back to its canonical location.
    @details ``EXACT`` rules restore ``trash_basename`` (or a collision-suffixed
    copy of it) to ``destination``. ``PREFIX`` rules restore any entry whose
    original name starts with ``trash_basename`` and ends with ``suffix`` into
    the ``destination`` folder. ``CONTAINS`` rules match a case-insensitive
    token and, when ``name_pattern`` is set, a leading regular expression.
    """

    trash_basename: str
    destination: Path
    requires_elevation: bool = False
    kind: RuleKind = RuleKind.EXACT
    suffix: str = ""
    name_pattern: Optional[str] = None

    @property
    def is_prefix(self) -> bool:
        return self.kind is RuleKind.PREFIX

    def accepts(self, name: str) -> bool:
        """!
        @brief Return ``True`` when ``name`` (an original, unsuffixed basename)
        falls under this rule.
        """

        if self.kind is RuleKind.EXACT:
            return name == self.trash_basename
        if self.kind is RuleKind.PREFIX:
            return name.startswith(self.trash_basename) and name.endswith(self.suffix)
        if self.name_pattern and not re.match(self.name_pattern, name):
            return False
        return self.trash_basename.lower() in name.lower()

    def target_for(self, name: str) -> Path:
        if self.kind is RuleKind.EXACT:
            return self.destination
        return self.destination / name

    def covers(self, path: Path) -> bool:
        """!
        @brief Return ``True`` when restoring by this rule would recreate ``path``.
        """

        path = Path(path)
        if self.kind is RuleKind.EXACT:
            return path == self.destination
        return path.parent == self.destination and self.accepts(path.name)


def _evaluation_rank(rule: RestoreRule) -> int:
    if rule.kind is RuleKind.EXACT:
        return 0
    if rule.kind is RuleKind.PREFIX:
        return 1 if rule.suffix else 2
    return 3


@dataclass(frozen=True)
class Catalog:
    """!
    @brief Read-only configuration passed into discovery, removal and restore.
    """

    home: Path
    uid: int
    trash_dir: Path
    services: Tuple[ServiceDescriptor, ...]
    applications: Tuple[ApplicationDescriptor, ...]
    shared_rules: Tuple[SharedDataRule, ...]
    restore_rules: Tuple[RestoreRule, ...]
    process_names: Tuple[str, ...]
    library_subdirs: Tuple[Path, ...]
    group_containers_dir: Path
    vendor_marker: str = constants.VENDOR_MARKER
    blocker_path: Optional[Path] = None
    _ordered_rules: Tuple[RestoreRule, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.restore_rules, key=_evaluation_rank))
        object.__setattr__(self, "_ordered_rules", ordered)
        self.validate()

    @property
    def ordered_restore_rules(self) -> Tuple[RestoreRule, ...]:
        """!
        @brief Restore rules in evaluation order.
        @details Exact rules first, then suffix-filtered prefix rules, then bare
        prefix rules, then token rules. Catalog order is kept within each group.
        """

        return self._ordered_rules

    @property
    def shared_prefixes(self) -> Tuple[str, ...]:
        return tuple(rule.path_or_prefix for rule in self.shared_rules if rule.is_prefix)

    def restore_rule_for(self, path: Path) -> Optional[RestoreRule]:
        """!
        @brief Return the first rule, in evaluation order, that covers ``path``.
        """

        for rule in self._ordered_rules:
            if rule.covers(path):
                return rule
        return None

    def rules_accepting(self, name: str) -> Tuple[RestoreRule, ...]:
        return tuple(rule for rule in self._ordered_rules if rule.accepts(name))

    def origin_slot(self, path: Path) -> int:
        """!
        @brief Index of the rule covering ``path`` among :meth:`rules_accepting`
        its basename.
        @details Removal writes the slot into the Trash name so restore can
        pick the same rule back. ``0`` when the first accepting rule already
        covers ``path`` or nothing does.
        """

        path = Path(path)
        for index, rule in enumerate(self.rules_accepting(path.name)):
            if rule.covers(path):
                return index
        return 0

    def rule_for_trash_entry(self, entry_name: str) -> Optional[RestoreRule]:
        """!
        @brief Resolve a Trash entry name to the rule that restores it.
        @details The collision suffix is stripped and its origin slot selects
        among the rules accepting the original name. Plain names and slots out
        of range fall back to the first accepting rule.
        """

        name, stamp = fs_tools.split_collision_suffix(entry_name)
        rules = self.rules_accepting(name)
        if not rules:
            return None
        slot = fs_tools.origin_of(stamp)
        return rules[slot] if slot < len(rules) else rules[0]

    def static_removable_paths(self) -> Iterator[Path]:
        """!
        @brief Yield every path the catalog names explicitly.
        """

        for service in self.services:
            yield service.config_path
        for app in self.applications:
            yield app.install_path
            yield from app.extra_data_paths
        for rule in self.shared_rules:
            if not rule.is_prefix:
                yield rule.path

    def validate(self) -> None:
        """!
        @brief Enforce the catalog invariants.
        @raises CatalogError When a static path has no restore rule or its
        Trash name would restore elsewhere, a library folder lacks a prefix rule
        for a data prefix, the group container folder lacks a token rule, or an
        application's extra data nests inside an exact shared path.
        """

        missing = [str(path) for path in self.static_removable_paths() if self.restore_rule_for(path) is None]
        if missing:
            raise CatalogError("No restore rule for removable paths: " + ", ".join(missing))

        for path in self.static_removable_paths():
            slot = self.origin_slot(path)
            trash_name = fs_tools.collision_name(path.name, 1, slot) if slot else path.name
            rule = self.rule_for_trash_entry(trash_name)
            if slot >= constants.TRASH_ORIGIN_SLOTS or rule is None or not rule.covers(path):
                raise CatalogError(f"Restore would not return {path} to its location")

        prefixes = list(self.shared_prefixes)
        for app in self.applications:
            prefixes.extend(app.bundle_prefixes)
        for subdir in self.library_subdirs:
            for prefix in prefixes:
                if not any(
                    rule.kind is RuleKind.PREFIX
                    and rule.destination == subdir
                    and prefix.startswith(rule.trash_basename)
                    for rule in self.restore_rules
                ):
                    raise CatalogError(f"No prefix restore rule for {prefix}* in {subdir}")

        if not any(
            rule.kind is RuleKind.CONTAINS and rule.destination == self.group_containers_dir
            for rule in self.restore_rules
        ):
            raise CatalogError(f"No restore rule for entries in {self.group_containers_dir}")

        shared_roots = [rule.path for rule in self.shared_rules if not rule.is_prefix]
        for app in self.applications:
            for extra in app.extra_data_paths:
                for root in shared_roots:
                    if extra == root or extra.is_relative_to(root):
                        raise CatalogError(
                            f"{app.display_name} data path {extra} is nested under shared path {root}"
                        )


def _exact(path: Path, *, elevated: bool) -> RestoreRule:
    return RestoreRule(trash_basename=path.name, destination=path, requires_elevation=elevated)


def _build_restore_rules(
    home: Path,
    services: Sequence[ServiceDescriptor],
    applications: Sequence[ApplicationDescriptor],
    system_dirs: Sequence[Path],
    user_dirs: Sequence[Path],
    log_files: Sequence[Path],
    library_subdirs: Sequence[Path],
    group_containers_dir: Path,
) -> List[RestoreRule]:
    rules: List[RestoreRule] = []

    # Among same-name rules the first listed is the default for plain Trash
    # names; the others are reached through the origin slot.
    for service in services:
        rules.append(_exact(service.config_path, elevated=service.requires_elevation))
    for app in applications:
        rules.append(_exact(app.install_path, elevated=app.requires_elevation))
        for extra in app.extra_data_paths:
            rules.append(_exact(extra, elevated=not fs_tools.is_under(extra, home)))
    for path in system_dirs:
        rules.append(_exact(path, elevated=True))
    for path in user_dirs:
        rules.append(_exact(path, elevated=False))
    for path in log_files:
        rules.append(_exact(path, elevated=False))

    for subdir in library_subdirs:
        suffix = constants.LIBRARY_SUFFIXES.get(str(subdir.relative_to(home)), "")
        rules.append(
            RestoreRule(
                trash_basename=constants.BUNDLE_PREFIX,
                destination=subdir,
                kind=RuleKind.PREFIX,
                suffix=suffix,
            )
        )

    rules.append(
        RestoreRule(
            trash_basename=constants.VENDOR_MARKER,
            destination=group_containers_dir,
            kind=RuleKind.CONTAINS,
            name_pattern=constants.GROUP_CONTAINER_NAME_PATTERN,
        )
    )
    return rules


def build_default_catalog(
    home: Path | str | None = None,
    uid: int | None = None,
    trash_dir: Path | str | None = None,
) -> Catalog:
    """!
    @brief Assemble the Google catalog for ``home`` and ``uid``.
    @param home User home directory, defaulting to the current user's.
    @param uid Numeric user id for the ``gui/<uid>`` launchd domain.
    @param trash_dir Trash override; otherwise ``$GOOGLE_JANITOR_TRASH`` or
    ``~/.Trash``.
    """

    home_path = Path(home) if home is not None else Path.home()
    user_id = os.getuid() if uid is None else int(uid)
    user_domain = f"gui/{user_id}"

    services = tuple(
        ServiceDescriptor(home_path / rel, user_domain, False) for rel in constants.USER_LAUNCH_AGENTS
    ) + tuple(
        ServiceDescriptor(Path(path), constants.SYSTEM_DOMAIN, True) for path in constants.SYSTEM_SERVICES
    )

    applications = tuple(
        ApplicationDescriptor(
            install_path=Path(str(entry["install_path"])),
            display_name=str(entry["display_name"]),
            bundle_prefixes=tuple(entry["bundle_prefixes"]),  # type: ignore[arg-type]
        )
        for entry in constants.APPLICATIONS
    )

    system_dirs = [Path(path) for path in constants.SYSTEM_DATA_DIRS]
    user_dirs = [home_path / rel for rel in constants.USER_DATA_DIRS]
    log_files = [home_path / rel for rel in constants.USER_LOG_FILES]
    library_subdirs = tuple(home_path / rel for rel in constants.LIBRARY_SUBDIRS)
    group_containers_dir = home_path / constants.GROUP_CONTAINERS_DIR

    shared_rules: List[SharedDataRule] = []
    shared_rules.extend(SharedDataRule(str(path), requires_elevation=True) for path in system_dirs)
    shared_rules.extend(SharedDataRule(str(path)) for path in user_dirs)
    shared_rules.extend(SharedDataRule(str(path)) for path in log_files)
    shared_rules.append(SharedDataRule(constants.BUNDLE_PREFIX, is_prefix=True))

    restore_rules = _build_restore_rules(
        home_path,
        services,
        applications,
        system_dirs,
        user_dirs,
        log_files,
        library_subdirs,
        group_containers_dir,
    )

    return Catalog(
        home=home_path,
        uid=user_id,
        trash_dir=fs_tools.resolve_trash_directory(home_path, trash_dir),
        services=services,
        applications=applications,
        shared_rules=tuple(shared_rules),
        restore_rules=tuple(restore_rules),
        process_names=constants.GOOGLE_PROCESSES,
        library_subdirs=library_subdirs,
        group_containers_dir=group_containers_dir,
        vendor_marker=constants.VENDOR_MARKER,
        blocker_path=home_path / constants.BLOCKER_PATH,
    )


__all__ = [
    "ApplicationDescriptor",
    "Catalog",
    "CatalogError",
    "RestoreRule",
    "RuleKind",
    "ServiceDescriptor",
    "SharedDataRule",
    "build_default_catalog",
]

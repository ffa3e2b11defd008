"""!
@brief Restore executor: put trashed Google items back where they came from.
@details Every Trash entry resolves to exactly one restore rule through
:meth:`Catalog.rule_for_trash_entry`: the collision suffix written at removal
carries an origin slot naming the rule among those accepting the original
name, and plain names use the first of them. When several copies resolve to
the same rule the most recent one wins: the highest ``_<n>`` suffix first,
with the unsuffixed name counted as the oldest since it was moved first.

The reinstall blocker is always removed before anything moves, because the
``~/Library/Google`` directory is restored to the very path it occupies.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Set

from . import blocker, detect, fs_tools, logging_ext
from .catalog import Catalog, RestoreRule
from .models import RestoreResult
from .privilege import ElevatedBatch, mkdir_command, move_command, needs_elevation

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .system_control import SystemControl


@dataclass(frozen=True)
class RestoreMatch:
    rule: RestoreRule
    source: Path
    destination: Path
    privileged: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "source": str(self.source),
            "destination": str(self.destination),
            "privileged": self.privileged,
            "rule": self.rule.kind.value,
        }


def _original_name(entry: Path) -> str:
    base, stamp = fs_tools.split_collision_suffix(entry.name)
    return entry.name if stamp is None else base


def plan_restore(catalog: Catalog, entries: Optional[List[Path]] = None) -> List[RestoreMatch]:
    """!
    @brief Match Trash entries to restore rules without touching anything.
    @param catalog Catalog providing the rules and the Trash location.
    @param entries Trash listing override, defaulting to the live directory.
    @returns Matches in rule evaluation order.
    """

    if entries is None:
        entries = fs_tools.list_trash_entries(catalog.trash_dir)
    matches: List[RestoreMatch] = []

    for name in sorted({_original_name(entry) for entry in entries}):
        restored: Set[RestoreRule] = set()
        for entry in fs_tools.find_trash_candidates(catalog.trash_dir, name, entries):
            rule = catalog.rule_for_trash_entry(entry.name)
            if rule is None or rule in restored:
                continue
            restored.add(rule)
            destination = rule.target_for(name)
            privileged = rule.requires_elevation or needs_elevation(destination, catalog.home)
            matches.append(RestoreMatch(rule, entry, destination, privileged))

    rank = {rule: index for index, rule in enumerate(catalog.ordered_restore_rules)}
    matches.sort(key=lambda match: rank[match.rule])
    return matches


def _occupied(catalog: Catalog, path: Path) -> bool:
    if catalog.blocker_path is not None and path == catalog.blocker_path and blocker.blocker_present(path):
        return False
    return fs_tools.path_exists(path)


def preview(catalog: Catalog) -> List[Dict[str, object]]:
    """!
    @brief Describe what :meth:`RestoreExecutor.restore` would do.
    @details Each entry carries ``action`` set to ``restore`` or ``skip``.
    """

    rows: List[Dict[str, object]] = []
    for match in plan_restore(catalog):
        row = match.to_dict()
        row["action"] = "skip" if _occupied(catalog, match.destination) else "restore"
        rows.append(row)
    return rows


class RestoreExecutor:
    """!
    @brief Reverses removals for one catalog.
    """

    def __init__(self, catalog: Catalog, system: "SystemControl", *, dry_run: bool = False) -> None:
        self.catalog = catalog
        self.system = system
        self.dry_run = dry_run

    def _services_to_load(self, pending: Set[Path]):
        for service in self.catalog.services:
            if service.config_path in pending or fs_tools.path_exists(service.config_path):
                yield service

    def restore(self) -> RestoreResult:
        """!
        @brief Remove the blocker, move matched entries back, reload services
        and rescan.
        @returns :class:`~google_janitor.models.RestoreResult`; an empty Trash
        yields ``restored_count == 0`` and no side effects.
        """

        human_logger = logging_ext.get_human_logger()
        machine_logger = logging_ext.get_machine_logger()

        result = RestoreResult(dry_run=self.dry_run)
        summary = result.summary

        if self.catalog.blocker_path is not None:
            result.blocker_removed = blocker.remove_blocker(self.catalog.blocker_path, dry_run=self.dry_run)

        matches = plan_restore(self.catalog)
        if not matches and not result.blocker_removed:
            human_logger.info("Nothing to restore from %s.", self.catalog.trash_dir)
            result.findings = detect.discover(self.catalog, self.system)
            return result

        batch = ElevatedBatch()
        queued: List[RestoreMatch] = []
        pending: Set[Path] = set()

        for match in matches:
            machine_logger.info(
                "restore_match",
                extra=logging_ext.build_event_extra("restore_match", **match.to_dict()),
            )
            if _occupied(self.catalog, match.destination):
                human_logger.info("Skipping %s: %s already exists", match.source.name, match.destination)
                summary.skip(f"destination exists: {match.destination}")
                continue
            if match.privileged:
                batch.add(mkdir_command(match.destination.parent))
                batch.add(move_command(match.source, match.destination))
                queued.append(match)
                pending.add(match.destination)
                continue
            if self.system.move(match.source, match.destination):
                result.restored[str(match.source)] = str(match.destination)
                pending.add(match.destination)
                summary.success()
            else:
                summary.error(f"could not restore {match.destination}")

        direct_loads = []
        for service in self._services_to_load(pending):
            if service.requires_elevation:
                batch.add(self.system.activation_command(service.config_path))
            else:
                direct_loads.append(service)

        if batch:
            result.elevated_invocations += 1
            succeeded = self.system.run_elevated(batch.commands)
            for match in queued:
                if succeeded and (self.dry_run or fs_tools.path_exists(match.destination)):
                    result.restored[str(match.source)] = str(match.destination)
                    summary.success()
                else:
                    summary.error(f"privileged restore failed for {match.destination}")
            if not succeeded and not queued:
                summary.error("privileged service reload batch failed")

        for service in direct_loads:
            self.system.activate(service.config_path)

        result.restored_count = summary.succeeded
        machine_logger.info(
            "restore_summary",
            extra=logging_ext.build_event_extra(
                "restore_summary",
                restored_count=result.restored_count,
                **summary.as_counts(),
                elevated_invocations=result.elevated_invocations,
                dry_run=self.dry_run,
            ),
        )
        human_logger.info(
            "Restore finished: %d restored, %d skipped, %d errors.",
            result.restored_count,
            summary.skipped,
            summary.errored,
        )
        result.findings = detect.discover(self.catalog, self.system)
        return result


__all__ = ["RestoreExecutor", "RestoreMatch", "plan_restore", "preview"]

"""!
@brief Removal executor: stop, unload and move selected findings to the Trash.
@details A run walks a fixed state machine::

    READY -> STOPPING_PROCESSES -> UNLOADING_SERVICES -> REQUESTING_PRIVILEGE
          -> MOVING_FILES -> VERIFYING -> DONE

Every step is best-effort. A process that is not running, a job that is
already unloaded or a path that vanished is logged and counted, and the run
moves on. Privileged service deactivations and privileged moves share one
:class:`~google_janitor.privilege.ElevatedBatch`, so the operator is asked for
a password at most once.
"""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Sequence, Set

from . import blocker, fs_tools, logging_ext, safety
from .catalog import Catalog
from .models import Category, Finding, RemovalResult, RunSummary
from .privilege import ElevatedBatch, move_command, partition

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .system_control import SystemControl


class RemovalState(str, Enum):
    READY = "ready"
    STOPPING_PROCESSES = "stopping_processes"
    UNLOADING_SERVICES = "unloading_services"
    REQUESTING_PRIVILEGE = "requesting_privilege"
    MOVING_FILES = "moving_files"
    VERIFYING = "verifying"
    DONE = "done"


class RemovalExecutor:
    """!
    @brief Orchestrates one removal run over a selection of findings.
    @param catalog Catalog the findings were discovered from.
    @param system :class:`~google_janitor.system_control.SystemControl` or a
    compatible fake.
    @param dry_run Plan and count without touching processes, services or files.
    @param run_stamp Starting integer for ``_<n>`` Trash collision suffixes,
    defaulting to the current Unix time.
    """

    def __init__(
        self,
        catalog: Catalog,
        system: "SystemControl",
        *,
        dry_run: bool = False,
        run_stamp: int | None = None,
    ) -> None:
        self.catalog = catalog
        self.system = system
        self.dry_run = dry_run
        self.run_stamp = run_stamp
        self.state = RemovalState.READY

    def _transition(self, state: RemovalState) -> None:
        self.state = state
        logging_ext.get_machine_logger().info(
            "removal_state",
            extra=logging_ext.build_event_extra("removal_state", state=state.value, dry_run=self.dry_run),
        )

    def _admissible(self, path: Path, summary: RunSummary) -> bool:
        human_logger = logging_ext.get_human_logger()
        if self.catalog.restore_rule_for(path) is None:
            human_logger.warning("Skipping %s: no restore rule would bring it back", path)
            summary.skip(f"no restore rule: {path}")
            return False
        try:
            safety.ensure_path_allowed(path, self.catalog)
        except ValueError as exc:
            human_logger.warning("Skipping %s: %s", path, exc)
            summary.skip(str(exc))
            return False
        return True

    def _stop_processes(self, summary: RunSummary) -> None:
        stopped = [name for name in self.catalog.process_names if self.system.terminate(name)]
        if stopped:
            summary.messages.append("stopped: " + ", ".join(stopped))

    def _unload_services(self, finding: Finding, batch: ElevatedBatch, summary: RunSummary) -> None:
        human_logger = logging_ext.get_human_logger()

        known_labels: Set[str] = set()
        for service in self.catalog.services:
            if not fs_tools.path_exists(service.config_path):
                continue
            label = self.system.read_label(service.config_path)
            if label:
                known_labels.add(label)
            if service.requires_elevation:
                batch.add(self.system.deactivation_command(service.domain, service.config_path))
                continue
            if self.system.deactivate(service.domain, service.config_path):
                summary.messages.append(f"deactivated: {service.config_path}")
            else:
                human_logger.debug("Deactivation of %s reported failure; continuing", service.config_path)

        for label in finding.loaded_services:
            if label in known_labels:
                continue
            if self.system.remove_label(label):
                summary.messages.append(f"removed job: {label}")

    def _move_unprivileged(
        self,
        paths: Sequence[Path],
        namer: fs_tools.TrashNamer,
        result: RemovalResult,
    ) -> None:
        for path in paths:
            if not self._admissible(path, result.summary):
                continue
            destination = self.system.move_to_trash(path, namer, self.catalog.origin_slot(path))
            if destination is None:
                result.summary.error(f"could not move {path} to the Trash")
                continue
            result.moved[str(path)] = str(destination)
            result.summary.success()

    def _queue_privileged(
        self,
        paths: Sequence[Path],
        namer: fs_tools.TrashNamer,
        batch: ElevatedBatch,
        summary: RunSummary,
    ) -> Dict[Path, Path]:
        queued: Dict[Path, Path] = {}
        for path in paths:
            if not self._admissible(path, summary):
                continue
            destination = namer.reserve(path.name, self.catalog.origin_slot(path))
            batch.add(move_command(path, destination))
            queued[path] = destination
        return queued

    def _run_batch(self, batch: ElevatedBatch, queued: Dict[Path, Path], result: RemovalResult) -> None:
        if not batch:
            return
        result.elevated_invocations += 1
        succeeded = self.system.run_elevated(batch.commands)
        for path, destination in queued.items():
            if succeeded and (self.dry_run or not fs_tools.path_exists(path)):
                result.moved[str(path)] = str(destination)
                result.summary.success()
            else:
                result.summary.error(f"privileged move failed for {path}")
        if not succeeded and not queued:
            result.summary.error("privileged service deactivation batch failed")

    def _still_present(self, path: Path) -> bool:
        if path == self.catalog.blocker_path and blocker.blocker_present(path):
            return False
        return fs_tools.path_exists(path)

    def _verify(self, selected: Iterable[Finding], result: RemovalResult, services_selected: bool) -> None:
        if self.dry_run:
            return
        for finding in selected:
            finding.removed = not any(self._still_present(path) for path in finding.paths)

        running = [name for name in self.catalog.process_names if self.system.list_processes(name)]
        if running:
            result.remaining["processes"] = running
        if services_selected:
            loaded = list(self.system.loaded_services(self.catalog.vendor_marker))
            if loaded:
                result.remaining["services"] = loaded

    def remove_selected(self, findings: Sequence[Finding], *, blocker_enabled: bool = True) -> RemovalResult:
        """!
        @brief Remove every found, selected finding.
        @param findings Findings from the latest scan; ``removed`` is updated
        in place.
        @param blocker_enabled Plant the reinstall blocker afterwards.
        @returns :class:`~google_janitor.models.RemovalResult` with counters,
        the path-to-Trash mapping and anything still running or loaded.
        """

        human_logger = logging_ext.get_human_logger()
        machine_logger = logging_ext.get_machine_logger()

        self.state = RemovalState.READY
        result = RemovalResult(dry_run=self.dry_run)
        selected = [finding for finding in findings if finding.exists and finding.selected]
        result.findings = list(selected)
        if not selected:
            human_logger.info("Nothing selected for removal.")
            self._transition(RemovalState.DONE)
            return result

        batch = ElevatedBatch()
        namer = fs_tools.TrashNamer(self.catalog.trash_dir, self.run_stamp)

        self._transition(RemovalState.STOPPING_PROCESSES)
        self._stop_processes(result.summary)

        self._transition(RemovalState.UNLOADING_SERVICES)
        service_finding: Optional[Finding] = next(
            (finding for finding in selected if finding.category is Category.SERVICE), None
        )
        if service_finding is not None:
            self._unload_services(service_finding, batch, result.summary)

        self._transition(RemovalState.REQUESTING_PRIVILEGE)
        split = partition(selected, self.catalog.home)
        human_logger.info(
            "%d path(s) to move directly, %d through the privileged batch.",
            len(split.unprivileged),
            len(split.privileged),
        )

        self._transition(RemovalState.MOVING_FILES)
        self._move_unprivileged(split.unprivileged, namer, result)
        queued = self._queue_privileged(split.privileged, namer, batch, result.summary)
        self._run_batch(batch, queued, result)

        if blocker_enabled and self.catalog.blocker_path is not None:
            result.blocker_planted = blocker.plant_blocker(self.catalog.blocker_path, dry_run=self.dry_run)

        self._transition(RemovalState.VERIFYING)
        self._verify(selected, result, service_finding is not None)

        self._transition(RemovalState.DONE)
        machine_logger.info(
            "removal_summary",
            extra=logging_ext.build_event_extra(
                "removal_summary",
                **result.summary.as_counts(),
                elevated_invocations=result.elevated_invocations,
                dry_run=self.dry_run,
            ),
        )
        human_logger.info(
            "Removal finished: %d moved, %d skipped, %d errors.",
            result.summary.succeeded,
            result.summary.skipped,
            result.summary.errored,
        )
        return result


__all__ = ["RemovalExecutor", "RemovalState"]

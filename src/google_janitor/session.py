"""!
@brief Engine facade used by the command line and the text menu.
@details :class:`JanitorSession` owns the catalog, the system control and the
last published findings. Scans may run on a background worker, but the result
is swapped in under a lock in one step so readers never observe a partially
built list. Removal and restore are blocking and must not overlap; running them
concurrently (from two threads or two processes) is undefined and not guarded.
"""
from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterable, List, Optional, Tuple

from . import detect, logging_ext
from .catalog import Catalog
from .models import Finding, RemovalResult, RestoreResult
from .remove import RemovalExecutor
from .restore import RestoreExecutor, preview
from .system_control import SystemControl


class JanitorSession:
    def __init__(
        self,
        catalog: Catalog,
        system: Optional[SystemControl] = None,
        *,
        dry_run: bool = False,
        run_stamp: int | None = None,
    ) -> None:
        self.catalog = catalog
        self.system = system if system is not None else SystemControl(dry_run=dry_run)
        self.dry_run = dry_run
        self.run_stamp = run_stamp
        self._lock = threading.Lock()
        self._findings: Tuple[Finding, ...] = ()
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def findings(self) -> Tuple[Finding, ...]:
        with self._lock:
            return self._findings

    def _publish(self, findings: Iterable[Finding]) -> List[Finding]:
        snapshot = tuple(findings)
        with self._lock:
            self._findings = snapshot
        return list(snapshot)

    def scan(self) -> List[Finding]:
        """!
        @brief Run discovery and publish the result atomically.
        """

        return self._publish(detect.discover(self.catalog, self.system))

    def scan_async(self) -> "Future[List[Finding]]":
        """!
        @brief Run :meth:`scan` on a single background worker.
        """

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="google-janitor-scan")
        return self._executor.submit(self.scan)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _set_selection(self, names: Iterable[str], value: bool) -> List[str]:
        wanted = {name.casefold() for name in names}
        changed = []
        for finding in self.findings:
            if finding.name.casefold() in wanted and finding.exists:
                finding.selected = value
                changed.append(finding.name)
        return changed

    def select(self, names: Iterable[str]) -> List[str]:
        return self._set_selection(names, True)

    def deselect(self, names: Iterable[str]) -> List[str]:
        return self._set_selection(names, False)

    def select_only(self, names: Iterable[str]) -> List[str]:
        wanted = {name.casefold() for name in names}
        for finding in self.findings:
            finding.selected = finding.exists and finding.name.casefold() in wanted
        return [finding.name for finding in self.findings if finding.selected]

    def selected(self) -> List[Finding]:
        return [finding for finding in self.findings if finding.exists and finding.selected]

    def remove_selected(self, *, blocker_enabled: bool = True, dry_run: bool | None = None) -> RemovalResult:
        """!
        @brief Remove the currently selected findings from the last scan.
        @param dry_run Override the session setting for this run only; a
        dry run on a live session uses a separate dry-run system control.
        """

        if not self.findings:
            self.scan()
        system = self.system
        dry = self.dry_run if dry_run is None else dry_run
        if dry and not self.dry_run:
            system = SystemControl(dry_run=True, use_native_trash=False)
        executor = RemovalExecutor(self.catalog, system, dry_run=dry, run_stamp=self.run_stamp)
        return executor.remove_selected(list(self.findings), blocker_enabled=blocker_enabled)

    def restore(self) -> RestoreResult:
        """!
        @brief Restore from the Trash and publish the fresh findings.
        """

        result = RestoreExecutor(self.catalog, self.system, dry_run=self.dry_run).restore()
        self._publish(result.findings)
        logging_ext.get_human_logger().debug("Published %d finding(s) after restore", len(result.findings))
        return result

    def restore_preview(self):
        return preview(self.catalog)


__all__ = ["JanitorSession"]

"""!
@brief Data model shared by discovery, removal and restore.
@details Findings are rebuilt on every scan and never persisted. Run results
carry the aggregate ``succeeded``/``skipped``/``errored`` counters that the
executors report instead of raising.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Tuple


class Category(str, Enum):
    SERVICE = "service"
    APPLICATION = "application"
    DATA = "data"


@dataclass
class Finding:
    """!
    @brief One discovered, possibly removable item and its concrete paths.
    @details ``selected`` defaults to ``exists``. ``loaded_services`` lists the
    live ``launchctl`` labels for the service finding, which may outlive their
    plist files.
    """

    name: str
    category: Category
    paths: List[Path] = field(default_factory=list)
    exists: bool = False
    selected: bool | None = None
    removed: bool = False
    size_estimate: int = 0
    detail: str = ""
    requires_elevation: bool = False
    orphaned: bool = False
    loaded_services: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.selected is None:
            self.selected = self.exists
        self.paths = [Path(path) for path in self.paths]

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "category": self.category.value,
            "paths": [str(path) for path in self.paths],
            "exists": self.exists,
            "selected": bool(self.selected),
            "removed": self.removed,
            "size_estimate": self.size_estimate,
            "detail": self.detail,
            "requires_elevation": self.requires_elevation,
            "orphaned": self.orphaned,
            "loaded_services": list(self.loaded_services),
        }


@dataclass(frozen=True)
class BatchCommand:
    """!
    @brief One structured command destined for the elevated batch.
    @details ``best_effort`` commands may fail without failing the batch.
    Serialisation and quoting happen in :mod:`elevation`.
    """

    argv: Tuple[str, ...]
    best_effort: bool = False
    description: str = ""

    @classmethod
    def of(cls, *argv: object, best_effort: bool = False, description: str = "") -> "BatchCommand":
        return cls(tuple(str(part) for part in argv), best_effort, description)


@dataclass
class RunSummary:
    """!
    @brief Aggregate counters for one removal or restore run.
    """

    succeeded: int = 0
    skipped: int = 0
    errored: int = 0
    messages: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def success(self, message: str | None = None, count: int = 1) -> None:
        self.succeeded += count
        if message:
            self.messages.append(message)

    def skip(self, message: str | None = None, count: int = 1) -> None:
        self.skipped += count
        if message:
            self.messages.append(message)

    def error(self, message: str, count: int = 1) -> None:
        self.errored += count
        self.errors.append(message)

    def as_counts(self) -> Dict[str, int]:
        return {"succeeded": self.succeeded, "skipped": self.skipped, "errored": self.errored}


@dataclass
class RemovalResult:
    summary: RunSummary = field(default_factory=RunSummary)
    findings: List[Finding] = field(default_factory=list)
    moved: Dict[str, str] = field(default_factory=dict)
    elevated_invocations: int = 0
    blocker_planted: bool = False
    remaining: Dict[str, List[str]] = field(default_factory=dict)
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.summary.errored == 0

    def to_dict(self) -> Dict[str, object]:
        return {
            **self.summary.as_counts(),
            "errors": list(self.summary.errors),
            "moved": dict(self.moved),
            "elevated_invocations": self.elevated_invocations,
            "blocker_planted": self.blocker_planted,
            "remaining": {key: list(value) for key, value in self.remaining.items()},
            "dry_run": self.dry_run,
            "findings": [finding.to_dict() for finding in self.findings],
        }


@dataclass
class RestoreResult:
    restored_count: int = 0
    summary: RunSummary = field(default_factory=RunSummary)
    findings: List[Finding] = field(default_factory=list)
    restored: Dict[str, str] = field(default_factory=dict)
    elevated_invocations: int = 0
    blocker_removed: bool = False
    dry_run: bool = False

    @property
    def skipped(self) -> int:
        return self.summary.skipped

    @property
    def errors(self) -> List[str]:
        return self.summary.errors

    @property
    def ok(self) -> bool:
        return self.summary.errored == 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "restored_count": self.restored_count,
            **self.summary.as_counts(),
            "errors": list(self.summary.errors),
            "restored": dict(self.restored),
            "elevated_invocations": self.elevated_invocations,
            "blocker_removed": self.blocker_removed,
            "dry_run": self.dry_run,
            "findings": [finding.to_dict() for finding in self.findings],
        }

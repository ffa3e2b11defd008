"""!
@brief Split pending work into unprivileged and privileged sets.
@details Home-directory paths that belong to a finding not flagged for
elevation are moved directly. Everything else (system-rooted paths, or any path
of an elevated finding) is queued as a structured command in one
:class:`ElevatedBatch` so a run prompts for a password at most once.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Sequence

from . import fs_tools
from .models import BatchCommand, Finding


def needs_elevation(path: Path, home: Path) -> bool:
    """!
    @brief Return ``True`` when ``path`` lies outside ``home``.
    """

    return not fs_tools.is_under(Path(path), Path(home))


@dataclass
class Partition:
    unprivileged: List[Path] = field(default_factory=list)
    privileged: List[Path] = field(default_factory=list)
    owners: Dict[Path, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.unprivileged) + len(self.privileged)


def partition(findings: Iterable[Finding], home: Path) -> Partition:
    """!
    @brief Partition the existing paths of the found, selected findings.
    @details Paths are checked again here since the selection may be stale
    relative to the scan that produced it. Order follows the findings.
    """

    result = Partition()
    for finding in findings:
        if not (finding.exists and finding.selected):
            continue
        for path in finding.paths:
            if not fs_tools.path_exists(path):
                continue
            result.owners[path] = finding.name
            if finding.requires_elevation or needs_elevation(path, home):
                result.privileged.append(path)
            else:
                result.unprivileged.append(path)
    return result


def move_command(source: Path, destination: Path) -> BatchCommand:
    return BatchCommand.of("mv", source, destination, description=f"move {source}")


def mkdir_command(directory: Path) -> BatchCommand:
    return BatchCommand.of("mkdir", "-p", directory, description=f"create {directory}")


class ElevatedBatch:
    """!
    @brief Ordered list of commands executed in a single elevated invocation.
    """

    def __init__(self, commands: Sequence[BatchCommand] | None = None) -> None:
        self._commands: List[BatchCommand] = list(commands or [])

    def add(self, command: BatchCommand) -> None:
        self._commands.append(command)

    def extend(self, commands: Iterable[BatchCommand]) -> None:
        self._commands.extend(commands)

    @property
    def commands(self) -> List[BatchCommand]:
        return list(self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def __iter__(self) -> Iterator[BatchCommand]:
        return iter(self._commands)

    def __bool__(self) -> bool:
        return bool(self._commands)


__all__ = [
    "BatchCommand",
    "ElevatedBatch",
    "Partition",
    "mkdir_command",
    "move_command",
    "needs_elevation",
    "partition",
]

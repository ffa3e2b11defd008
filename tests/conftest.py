"""!
@brief Shared fixtures for the Google Janitor test-suite.
@details Provides a synthetic ``com.vendor.`` catalog rooted under
``tmp_path`` and a recording :class:`FakeSystemControl` so engine tests never
touch ``launchctl``, ``osascript`` or the real Trash. The fake executes the
``mv`` and ``mkdir`` commands of an elevated batch locally so round trips can
be asserted on the filesystem.
"""
from __future__ import annotations

import shutil
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from google_janitor import fs_tools, logging_ext  # noqa: E402
from google_janitor.catalog import (  # noqa: E402
    ApplicationDescriptor,
    Catalog,
    RestoreRule,
    RuleKind,
    ServiceDescriptor,
    SharedDataRule,
)
from google_janitor.models import BatchCommand  # noqa: E402

RUN_STAMP = 1_700_000_000


class StubLogger:
    """!
    @brief Lightweight logger capturing structured log calls.
    """

    def __init__(self) -> None:
        self.records: List[Tuple[str, str, Dict[str, object]]] = []

    def _record(self, level: str, message: str, args: Tuple[object, ...], kwargs: Dict[str, object]) -> None:
        text = message % args if args else message
        self.records.append((level, text, dict(kwargs)))

    def debug(self, message: str, *args: object, **kwargs: object) -> None:  # noqa: D401 - logging compatibility
        self._record("debug", message, args, kwargs)

    def info(self, message: str, *args: object, **kwargs: object) -> None:  # noqa: D401 - logging compatibility
        self._record("info", message, args, kwargs)

    def warning(self, message: str, *args: object, **kwargs: object) -> None:  # noqa: D401 - logging compatibility
        self._record("warning", message, args, kwargs)

    def error(self, message: str, *args: object, **kwargs: object) -> None:  # noqa: D401 - logging compatibility
        self._record("error", message, args, kwargs)

    def events(self) -> List[str]:
        return [record[1] for record in self.records]


class FakeSystemControl:
    """!
    @brief Records every boundary call made by the engine.
    """

    def __init__(
        self,
        *,
        loaded: Iterable[str] = (),
        running: Iterable[str] = (),
        labels: Optional[Dict[Path, str]] = None,
        elevated_ok: bool = True,
        dry_run: bool = False,
    ) -> None:
        self.loaded: List[str] = list(loaded)
        self.running = set(running)
        self.labels = dict(labels or {})
        self.elevated_ok = elevated_ok
        self.dry_run = dry_run
        self.calls: List[Tuple[str, Tuple[object, ...]]] = []
        self.elevated_batches: List[List[BatchCommand]] = []

    def _record(self, name: str, *args: object) -> None:
        self.calls.append((name, args))

    def called(self, name: str) -> List[Tuple[object, ...]]:
        return [args for method, args in self.calls if method == name]

    @property
    def elevated_invocations(self) -> int:
        return len(self.elevated_batches)

    def list_processes(self, name: str) -> List[int]:
        return [4242] if name in self.running else []

    def terminate(self, name: str) -> bool:
        self._record("terminate", name)
        if self.dry_run or name not in self.running:
            return False
        self.running.discard(name)
        return True

    def loaded_services(self, vendor_filter: str) -> List[str]:
        return [label for label in self.loaded if vendor_filter.lower() in label.lower()]

    def read_label(self, config_path: Path) -> Optional[str]:
        return self.labels.get(Path(config_path))

    def deactivate(self, domain: str, label_or_path) -> bool:
        self._record("deactivate", domain, label_or_path)
        return True

    def remove_label(self, label: str) -> bool:
        self._record("remove_label", label)
        if label in self.loaded:
            self.loaded.remove(label)
        return True

    def activate(self, config_path: Path) -> bool:
        self._record("activate", Path(config_path))
        return True

    def deactivation_command(self, domain: str, config_path: Path) -> BatchCommand:
        label = self.read_label(config_path)
        if label:
            return BatchCommand.of("launchctl", "bootout", f"{domain}/{label}", best_effort=True)
        return BatchCommand.of("launchctl", "unload", "-w", config_path, best_effort=True)

    def activation_command(self, config_path: Path) -> BatchCommand:
        return BatchCommand.of("launchctl", "load", "-w", config_path, best_effort=True)

    def run_elevated(self, commands) -> bool:
        commands = list(commands)
        if not commands:
            return True
        self.elevated_batches.append(commands)
        if not self.elevated_ok:
            return False
        if self.dry_run:
            return True
        for command in commands:
            argv = command.argv
            if argv[0] == "mv":
                shutil.move(argv[1], argv[2])
            elif argv[0] == "mkdir":
                Path(argv[2]).mkdir(parents=True, exist_ok=True)
            else:
                self._record("elevated", argv)
        return True

    def move_to_trash(self, path: Path, namer: fs_tools.TrashNamer, origin: int = 0) -> Optional[Path]:
        self._record("move_to_trash", Path(path), origin)
        destination = namer.reserve(Path(path).name, origin)
        if not self.dry_run:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(path), str(destination))
        return destination

    def move(self, source: Path, destination: Path) -> bool:
        self._record("move", Path(source), Path(destination))
        if self.dry_run:
            return True
        return fs_tools.move_path(source, destination)


class VendorLayout:
    """!
    @brief Paths of the synthetic vendor tree under ``tmp_path``.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.home = root / "home"
        self.system = root / "system"
        self.library = self.home / "Library"
        self.caches = self.library / "Caches"
        self.preferences = self.library / "Preferences"
        self.containers = self.library / "Containers"
        self.group_containers = self.library / "Group Containers"
        self.trash = self.home / ".Trash"
        self.user_agent = self.library / "LaunchAgents" / "com.vendor.agent.plist"
        self.system_daemon = self.system / "Library" / "LaunchDaemons" / "com.vendor.daemon.plist"
        self.app_x = self.system / "Applications" / "Vendor X.app"
        self.app_y = self.system / "Applications" / "Vendor Y.app"
        self.app_y_extra = self.library / "Application Support" / "VendorY"
        self.system_data = self.system / "Library" / "Vendor"
        self.user_data = self.library / "Vendor"


def write_file(path: Path, size: int = 16) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    return path


def build_vendor_catalog(layout: VendorLayout) -> Catalog:
    services = (
        ServiceDescriptor(layout.user_agent, "gui/501", False),
        ServiceDescriptor(layout.system_daemon, "system", True),
    )
    applications = (
        ApplicationDescriptor(layout.app_x, "X", ("com.vendor.X",)),
        ApplicationDescriptor(layout.app_y, "Y", ("com.vendor.Y",), extra_data_paths=(layout.app_y_extra,)),
    )
    shared_rules = (
        SharedDataRule(str(layout.system_data), requires_elevation=True),
        SharedDataRule(str(layout.user_data)),
        SharedDataRule("com.vendor.", is_prefix=True),
    )
    restore_rules = (
        RestoreRule(layout.system_daemon.name, layout.system_daemon, True),
        RestoreRule(layout.user_agent.name, layout.user_agent, False),
        RestoreRule(layout.app_x.name, layout.app_x, True),
        RestoreRule(layout.app_y.name, layout.app_y, True),
        RestoreRule(layout.app_y_extra.name, layout.app_y_extra, False),
        RestoreRule("Vendor", layout.system_data, True),
        RestoreRule("Vendor", layout.user_data, False),
        RestoreRule("com.vendor.", layout.caches, kind=RuleKind.PREFIX),
        RestoreRule("com.vendor.", layout.containers, kind=RuleKind.PREFIX),
        RestoreRule("com.vendor.", layout.preferences, kind=RuleKind.PREFIX, suffix=".plist"),
        RestoreRule(
            "vendor",
            layout.group_containers,
            kind=RuleKind.CONTAINS,
            name_pattern=r"[A-Z0-9]{10}\.",
        ),
    )
    return Catalog(
        home=layout.home,
        uid=501,
        trash_dir=layout.trash,
        services=services,
        applications=applications,
        shared_rules=shared_rules,
        restore_rules=restore_rules,
        process_names=("VendorUpdater", "Vendor X"),
        library_subdirs=(layout.caches, layout.preferences, layout.containers),
        group_containers_dir=layout.group_containers,
        vendor_marker="vendor",
        blocker_path=layout.user_data,
    )


@pytest.fixture
def layout(tmp_path: Path) -> VendorLayout:
    tree = VendorLayout(tmp_path)
    for directory in (tree.caches, tree.preferences, tree.containers, tree.group_containers, tree.trash):
        directory.mkdir(parents=True, exist_ok=True)
    return tree


@pytest.fixture
def vendor_catalog(layout: VendorLayout) -> Catalog:
    return build_vendor_catalog(layout)


@pytest.fixture
def fake_system() -> FakeSystemControl:
    return FakeSystemControl()


@pytest.fixture
def stub_loggers(monkeypatch: pytest.MonkeyPatch) -> Tuple[StubLogger, StubLogger]:
    """!
    @brief Route every module's human and machine logging into stubs.
    """

    human_logger = StubLogger()
    machine_logger = StubLogger()
    monkeypatch.setattr(logging_ext, "get_human_logger", lambda: human_logger)
    monkeypatch.setattr(logging_ext, "get_machine_logger", lambda: machine_logger)
    return human_logger, machine_logger

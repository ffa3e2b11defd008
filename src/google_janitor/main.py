"""!
@brief Primary entry point for the Google Janitor CLI.
@details Parses the command line, configures logging, enforces the runtime
guards and then either runs one mode (``--scan``, ``--remove``,
``--restore``, ``--restore-preview``) or hands over to the interactive menu
in :mod:`ui`. Exit codes: ``0`` success, ``1`` the run reported errors, ``2``
a guard refused to start.
"""
from __future__ import annotations

import argparse
import json
import logging
import pathlib
import platform
import sys
from typing import Iterable, List, Mapping, Optional, Sequence

from . import (
    app_state as app_state_module,
    catalog as catalog_module,
    confirm,
    elevation,
    exec_utils,
    fs_tools,
    logging_ext,
    safety,
    ui,
    version,
)
from .models import Finding
from .session import JanitorSession
from .system_control import SystemControl

EXIT_OK = 0
EXIT_ERRORS = 1
EXIT_GUARD = 2


def build_arg_parser() -> argparse.ArgumentParser:
    """!
    @brief Create the top-level argument parser.
    """

    parser = argparse.ArgumentParser(
        prog="google-janitor",
        description="Find Google services, apps and data on macOS, move them to the Trash, and restore them.",
    )
    metadata = version.build_info()
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"{metadata['version']} ({metadata['build']})",
    )

    modes = parser.add_mutually_exclusive_group()
    modes.add_argument("--scan", action="store_true", help="List what is installed and exit.")
    modes.add_argument("--remove", action="store_true", help="Remove the selected items to the Trash.")
    modes.add_argument("--restore", action="store_true", help="Restore previously removed items from the Trash.")
    modes.add_argument(
        "--restore-preview",
        action="store_true",
        help="Show which Trash entries would be restored, and where, without moving anything.",
    )

    parser.add_argument("--dry-run", action="store_true", help="Simulate actions without modifying the system.")
    parser.add_argument("--no-blocker", action="store_true", help="Do not plant the reinstall blocker.")
    parser.add_argument(
        "--only",
        metavar="NAME",
        action="append",
        default=[],
        help="Select only this item (repeatable), e.g. 'Google Chrome'.",
    )
    parser.add_argument(
        "--skip",
        metavar="NAME",
        action="append",
        default=[],
        help="Leave this item in place (repeatable).",
    )
    parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation.")
    parser.add_argument("--force", action="store_true", help="Bypass the macOS and non-root guards.")
    parser.add_argument("--trash-dir", metavar="DIR", help="Trash folder to move items into and restore from.")
    parser.add_argument("--logdir", metavar="DIR", help="Directory for human/JSONL log output.")
    parser.add_argument("--timeout", metavar="SEC", type=int, help="Upper bound for each external command.")
    parser.add_argument("--json", action="store_true", help="Mirror structured events to stdout and print JSON results.")
    parser.add_argument("--quiet", action="store_true", help="Minimal console output (errors only).")
    return parser


def _resolve_log_directory(candidate: Optional[str]) -> pathlib.Path:
    if candidate:
        return pathlib.Path(candidate).expanduser().resolve()
    default_dir = fs_tools.get_default_log_directory().expanduser()
    try:
        return default_dir.resolve()
    except OSError:
        return default_dir


def _bootstrap_logging(args: argparse.Namespace) -> tuple[logging.Logger, logging.Logger]:
    """!
    @brief Initialise human and machine loggers using :mod:`logging_ext`.
    @returns A tuple of configured human and machine loggers.
    """

    logdir = _resolve_log_directory(getattr(args, "logdir", None))
    setattr(args, "logdir", str(logdir))
    human_logger, machine_logger = logging_ext.setup_logging(
        logdir,
        json_to_stdout=getattr(args, "json", False),
        console=not getattr(args, "json", False),
    )
    if getattr(args, "quiet", False):
        human_logger.setLevel(logging.ERROR)
    return human_logger, machine_logger


def _determine_mode(args: argparse.Namespace) -> str:
    if getattr(args, "scan", False):
        return "scan"
    if getattr(args, "remove", False):
        return "remove"
    if getattr(args, "restore", False):
        return "restore"
    if getattr(args, "restore_preview", False):
        return "restore-preview"
    return "interactive"


def _apply_selection(session: JanitorSession, args: argparse.Namespace) -> List[str]:
    unknown = []
    names = {finding.name.casefold() for finding in session.findings}
    for name in list(args.only) + list(args.skip):
        if name.casefold() not in names:
            unknown.append(name)
    if args.only:
        session.select_only(args.only)
    if args.skip:
        session.deselect(args.skip)
    return unknown


def _emit(args: argparse.Namespace, payload: Mapping[str, object], text: Iterable[str]) -> None:
    if getattr(args, "json", False):
        run = logging_ext.get_run_metadata()
        document = dict(payload)
        if run is not None:
            document["run_id"] = run["run_id"]
        print(json.dumps(document, ensure_ascii=False))
        return
    if getattr(args, "quiet", False):
        return
    for line in text:
        print(line)


def _findings_payload(findings: Sequence[Finding]) -> dict:
    return {"findings": [finding.to_dict() for finding in findings]}


def _collect(printer, *items) -> List[str]:
    lines: List[str] = []
    printer(*items, lines.append)
    return lines


def _build_app_state(
    args: argparse.Namespace,
    session: JanitorSession,
    human_log: logging.Logger,
    machine_log: logging.Logger,
) -> app_state_module.AppState:
    """!
    @brief Assemble the dependency dictionary consumed by :func:`ui.run_cli`.
    """

    def emit_event(event: str, **payload: object) -> None:
        machine_log.info(event, extra=logging_ext.build_event_extra(event, source="ui", **payload))

    def scanner() -> List[Finding]:
        findings = session.scan()
        emit_event("ui_scan", count=len(findings))
        return findings

    def remover(*, dry_run: bool = False, blocker_enabled: bool = True):
        result = session.remove_selected(blocker_enabled=blocker_enabled, dry_run=dry_run or session.dry_run)
        emit_event("ui_remove", dry_run=dry_run, **result.summary.as_counts())
        return result

    def restorer():
        result = session.restore()
        emit_event("ui_restore", restored_count=result.restored_count)
        return result

    return {
        "args": args,
        "human_logger": human_log,
        "machine_logger": machine_log,
        "scanner": scanner,
        "remover": remover,
        "restorer": restorer,
        "restore_previewer": session.restore_preview,
        "confirm": confirm.request_removal_confirmation,
        "confirm_restore": confirm.request_restore_confirmation,
    }


def main(argv: Optional[Iterable[str]] = None) -> int:
    """!
    @brief Entry point for ``google-janitor`` and ``python -m google_janitor``.
    @returns Process exit code integer.
    """

    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    exec_utils.set_global_timeout(args.timeout)
    human_log, machine_log = _bootstrap_logging(args)

    mode = _determine_mode(args)
    dry_run = bool(args.dry_run)
    machine_log.info(
        "startup",
        extra=logging_ext.build_event_extra(
            "startup", mode=mode, dry_run=dry_run, user=elevation.current_username()
        ),
    )

    read_only = mode in {"scan", "restore-preview"}
    try:
        safety.evaluate_runtime_environment(
            os_system=platform.system(),
            is_root=elevation.is_admin(),
            dry_run=dry_run or read_only,
            force=bool(args.force),
        )
    except RuntimeError as exc:
        human_log.error("%s", exc)
        machine_log.error("guard_refused", extra=logging_ext.build_event_extra("guard_refused", reason=str(exc)))
        return EXIT_GUARD

    catalog = catalog_module.build_default_catalog(trash_dir=args.trash_dir)
    system = SystemControl(
        dry_run=dry_run,
        use_native_trash=platform.system() == "Darwin" and not args.trash_dir,
    )
    session = JanitorSession(catalog, system, dry_run=dry_run)

    if mode == "interactive":
        ui.run_cli(_build_app_state(args, session, human_log, machine_log))
        return EXIT_OK

    if mode == "restore-preview":
        rows = session.restore_preview()
        _emit(args, {"restore_preview": rows}, _collect(ui.print_restore_preview, rows))
        return EXIT_OK

    if mode == "restore":
        if not dry_run and not args.yes:
            if not args.json and not args.quiet:
                ui.print_restore_preview(session.restore_preview())
            if not confirm.request_restore_confirmation(dry_run=dry_run, force=False):
                human_log.info("Restore cancelled by user.")
                return EXIT_OK
        result = session.restore()
        _emit(args, result.to_dict(), _collect(ui.print_restore, result))
        human_log.info("Logs written to %s", logging_ext.get_log_directory())
        return EXIT_OK if result.ok else EXIT_ERRORS

    findings = session.scan()
    unknown = _apply_selection(session, args)
    for name in unknown:
        human_log.warning("No item named %r; see --scan for names.", name)

    if mode == "scan":
        _emit(args, _findings_payload(findings), _collect(ui.print_findings, findings))
        return EXIT_OK

    if not session.selected():
        _emit(args, {"removed": 0, **_findings_payload(findings)}, ["Nothing selected to remove."])
        return EXIT_OK

    if not confirm.request_removal_confirmation(dry_run=dry_run, force=bool(args.yes)):
        human_log.info("Removal cancelled by user.")
        return EXIT_OK

    result = session.remove_selected(blocker_enabled=not args.no_blocker)
    _emit(args, result.to_dict(), _collect(ui.print_removal, result))
    human_log.info("Logs written to %s", logging_ext.get_log_directory())
    return EXIT_OK if result.ok else EXIT_ERRORS


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())

"""!
@brief Plain console user interface helpers.
@details Interactive menu shown when ``google-janitor`` runs without a mode
flag. It scans first, lists what was found, and offers Remove, Dry run,
Restore and Quit, or only Restore and Quit when nothing is installed.
"""
from __future__ import annotations

from typing import Callable, List, Mapping, MutableMapping, Sequence

from . import confirm as confirm_module
from . import fs_tools
from .models import Category, Finding, RemovalResult, RestoreResult

MenuHandler = Callable[[MutableMapping[str, object]], None]


def format_finding(finding: Finding) -> str:
    marker = "x" if finding.selected else " "
    admin = "  (admin)" if finding.exists and finding.requires_elevation else ""
    return f"  [{marker}] {finding.name:<24} {finding.detail}{admin}"


def print_findings(findings: Sequence[Finding], output: Callable[[str], None] = print) -> None:
    found = [finding for finding in findings if finding.exists]
    output(f"Found {len(found)} Google item(s):")
    for finding in findings:
        output(format_finding(finding))
    total = sum(finding.size_estimate for finding in found)
    if found:
        output(f"  Total: {fs_tools.format_bytes(total)}")


def print_removal(result: RemovalResult, output: Callable[[str], None] = print) -> None:
    prefix = "Dry run: would move" if result.dry_run else "Moved"
    output(
        f"{prefix} {result.summary.succeeded} item(s) to the Trash "
        f"({result.summary.skipped} skipped, {result.summary.errored} errors)."
    )
    for error in result.summary.errors:
        output(f"  ! {error}")
    for kind, names in result.remaining.items():
        output(f"  Still {'running' if kind == 'processes' else 'loaded'}: {', '.join(names)}")
    if result.blocker_planted:
        output("Reinstall blocker planted.")


def print_restore(result: RestoreResult, output: Callable[[str], None] = print) -> None:
    output(
        f"Restored {result.restored_count} item(s) "
        f"({result.summary.skipped} skipped, {result.summary.errored} errors)."
    )
    for error in result.summary.errors:
        output(f"  ! {error}")


def print_restore_preview(rows: Sequence[Mapping[str, object]], output: Callable[[str], None] = print) -> None:
    if not rows:
        output("Nothing in the Trash to restore.")
        return
    for row in rows:
        output(f"  {row['action']:<8} {row['source']} -> {row['destination']}")


def _menu_for(findings: Sequence[Finding]) -> List[tuple[str, MenuHandler]]:
    if any(finding.exists for finding in findings):
        return [
            ("Remove selected items", _menu_remove),
            ("Dry run (show what would be removed)", _menu_dry_run),
            ("Restore from Trash", _menu_restore),
            ("Quit", _menu_exit),
        ]
    return [
        ("Restore from Trash", _menu_restore),
        ("Quit", _menu_exit),
    ]


def run_cli(app_state: Mapping[str, object]) -> None:
    """!
    @brief Launch the interactive console menu.
    """

    args = app_state.get("args")
    human_logger = app_state.get("human_logger")
    input_func: Callable[[str], str] = app_state.get("input", input)  # type: ignore[assignment]
    output: Callable[[str], None] = app_state.get("output", print)  # type: ignore[assignment]

    if getattr(args, "quiet", False) or getattr(args, "json", False):
        if human_logger:
            human_logger.warning(  # type: ignore[attr-defined]
                "Interactive menu suppressed because quiet/json output mode was requested."
            )
        return

    scanner: Callable[[], List[Finding]] = app_state["scanner"]  # type: ignore[assignment]

    context: MutableMapping[str, object] = {
        "args": args,
        "scanner": scanner,
        "remover": app_state["remover"],
        "restorer": app_state["restorer"],
        "restore_previewer": app_state["restore_previewer"],
        "confirm": app_state.get("confirm", confirm_module.request_removal_confirmation),
        "confirm_restore": app_state.get("confirm_restore", confirm_module.request_restore_confirmation),
        "human_logger": human_logger,
        "input": input_func,
        "output": output,
        "findings": scanner(),
        "running": True,
    }

    while context.get("running", True):
        findings: List[Finding] = context["findings"]  # type: ignore[assignment]
        output("")
        print_findings(findings, output)
        menu = _menu_for(findings)
        output("-" * 50)
        for index, (label, _) in enumerate(menu, start=1):
            output(f"{index}. {label}")
        selection = input_func(f"Select an option (1-{len(menu)}): ").strip()
        if not selection.isdigit() or not 1 <= int(selection) <= len(menu):
            output(f"Please enter a number between 1 and {len(menu)}.")
            continue
        handler = menu[int(selection) - 1][1]
        try:
            handler(context)
        except Exception as exc:  # pragma: no cover - defensive user feedback
            if human_logger:
                human_logger.error("Menu action failed: %s", exc)  # type: ignore[attr-defined]
            else:
                output(f"Error: {exc}")


def _confirm_applications(context: MutableMapping[str, object]) -> None:
    input_func: Callable[[str], str] = context["input"]  # type: ignore[assignment]
    findings: List[Finding] = context["findings"]  # type: ignore[assignment]
    for finding in findings:
        if finding.category is Category.APPLICATION and finding.exists and finding.selected:
            finding.selected = confirm_module.confirm_finding(finding, input_func=input_func)


def _menu_remove(context: MutableMapping[str, object]) -> None:
    args = context.get("args")
    output: Callable[[str], None] = context["output"]  # type: ignore[assignment]
    confirm: Callable[..., bool] = context["confirm"]  # type: ignore[assignment]

    _confirm_applications(context)
    if not confirm(dry_run=False, force=False, input_func=context["input"], interactive=True):
        output("Removal cancelled.")
        return

    remover: Callable[..., RemovalResult] = context["remover"]  # type: ignore[assignment]
    result = remover(dry_run=False, blocker_enabled=not getattr(args, "no_blocker", False))
    print_removal(result, output)
    context["findings"] = context["scanner"]()  # type: ignore[operator]


def _menu_dry_run(context: MutableMapping[str, object]) -> None:
    args = context.get("args")
    output: Callable[[str], None] = context["output"]  # type: ignore[assignment]
    remover: Callable[..., RemovalResult] = context["remover"]  # type: ignore[assignment]
    result = remover(dry_run=True, blocker_enabled=not getattr(args, "no_blocker", False))
    for source, destination in result.moved.items():
        output(f"  {source} -> {destination}")
    print_removal(result, output)


def _menu_restore(context: MutableMapping[str, object]) -> None:
    output: Callable[[str], None] = context["output"]  # type: ignore[assignment]
    confirm: Callable[..., bool] = context["confirm_restore"]  # type: ignore[assignment]

    print_restore_preview(context["restore_previewer"](), output)  # type: ignore[operator]
    if not confirm(dry_run=False, force=False, input_func=context["input"], interactive=True):
        output("Restore cancelled.")
        return

    restorer: Callable[[], RestoreResult] = context["restorer"]  # type: ignore[assignment]
    result = restorer()
    print_restore(result, output)
    context["findings"] = result.findings


def _menu_exit(context: MutableMapping[str, object]) -> None:
    context["running"] = False


__all__ = [
    "format_finding",
    "print_findings",
    "print_removal",
    "print_restore",
    "print_restore_preview",
    "run_cli",
]

"""!
@brief launchd service management utilities.
@details Wraps ``launchctl`` to list, boot out, unload, remove and load the
Keystone and GoogleUpdater jobs. Deactivation prefers the structured
``bootout <domain>/<label>`` form when the plist's ``Label`` can be read and
falls back to ``unload -w <path>`` otherwise. The ``*_argv`` builders return
the same commands as plain argument vectors so privileged variants can be
queued in the elevated batch instead of executed directly.
"""
from __future__ import annotations

import plistlib
from pathlib import Path
from typing import List, Optional

from . import exec_utils, logging_ext


def list_loaded(vendor_filter: str, *, timeout: int = 30) -> List[str]:
    """!
    @brief Return loaded job labels containing ``vendor_filter``.
    @details Matching is case-insensitive. Jobs whose plist has already been
    deleted still appear here until they are removed or the session ends.
    """

    human_logger = logging_ext.get_human_logger()

    result = exec_utils.run_command(
        ["launchctl", "list"],
        event="service_list",
        timeout=timeout,
    )
    if result.returncode == exec_utils.MISSING_RETURN_CODE:
        human_logger.debug("launchctl unavailable; assuming no loaded services")
        return []
    if result.returncode != 0 or result.error:
        human_logger.debug("launchctl list returned %s", result.returncode)
        return []

    needle = vendor_filter.lower()
    labels: List[str] = []
    for line in result.stdout.splitlines():
        parts = line.split(None, 2)
        if len(parts) < 3 or parts[0] == "PID":
            continue
        label = parts[2].strip()
        if needle in label.lower():
            labels.append(label)
    return labels


def read_label(config_path: Path) -> Optional[str]:
    """!
    @brief Read the ``Label`` key from a launchd plist.
    @returns ``None`` when the file is missing, unreadable or malformed.
    """

    try:
        with open(config_path, "rb") as handle:
            payload = plistlib.load(handle)
    except (OSError, plistlib.InvalidFileException, ValueError):
        return None
    if not isinstance(payload, dict):
        return None
    label = payload.get("Label")
    return str(label) if label else None


def deactivation_argv(domain: str, config_path: Path) -> List[str]:
    label = read_label(config_path)
    if label:
        return ["launchctl", "bootout", f"{domain}/{label}"]
    return ["launchctl", "unload", "-w", str(config_path)]


def activation_argv(config_path: Path) -> List[str]:
    return ["launchctl", "load", "-w", str(config_path)]


def remove_argv(label: str) -> List[str]:
    return ["launchctl", "remove", label]


def _run_best_effort(argv: List[str], *, event: str, message: str, dry_run: bool, **extra: object) -> bool:
    human_logger = logging_ext.get_human_logger()

    result = exec_utils.run_command(
        argv,
        event=event,
        timeout=30,
        dry_run=dry_run,
        human_message=message,
        extra=extra,
    )
    if result.skipped:
        return True
    if result.returncode == exec_utils.MISSING_RETURN_CODE:
        human_logger.debug("launchctl unavailable; %s skipped", event)
        return False
    if result.timed_out:
        human_logger.warning("Timed out running %s", " ".join(argv))
        return False
    if result.returncode == 0 and not result.error:
        return True
    human_logger.debug(
        "launchctl exited with %s for %s: %s",
        result.returncode,
        " ".join(argv[1:]),
        result.stderr.strip(),
    )
    return False


def deactivate(domain: str, label_or_path: str | Path, *, dry_run: bool = False) -> bool:
    """!
    @brief Stop a job given either its plist path or its label.
    """

    candidate = Path(label_or_path)
    if candidate.is_absolute():
        argv = deactivation_argv(domain, candidate)
    else:
        argv = ["launchctl", "bootout", f"{domain}/{label_or_path}"]
    return _run_best_effort(
        argv,
        event="service_deactivate",
        message=f"Deactivating {label_or_path}",
        dry_run=dry_run,
        domain=domain,
        target=str(label_or_path),
    )


def remove_label(label: str, *, dry_run: bool = False) -> bool:
    """!
    @brief Remove a loaded job that no longer has a plist on disk.
    """

    return _run_best_effort(
        remove_argv(label),
        event="service_remove",
        message=f"Removing loaded job {label}",
        dry_run=dry_run,
        label=label,
    )


def activate(config_path: Path, *, dry_run: bool = False) -> bool:
    """!
    @brief Load and enable the job defined by ``config_path``.
    """

    return _run_best_effort(
        activation_argv(config_path),
        event="service_activate",
        message=f"Loading {config_path}",
        dry_run=dry_run,
        path=str(config_path),
    )


__all__ = [
    "activate",
    "activation_argv",
    "deactivate",
    "deactivation_argv",
    "list_loaded",
    "read_label",
    "remove_argv",
    "remove_label",
]

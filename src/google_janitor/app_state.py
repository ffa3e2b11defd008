"""!
@brief Shared application state typing helpers for the menu layer.
@details Defines the mapping exchanged between :mod:`main` and :mod:`ui` so
the menu can drive scans, removals and restores through plain callables
without importing the engine modules itself.
"""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable
from typing import Dict, List, TypedDict

from .models import Finding, RemovalResult, RestoreResult


class _RequiredAppState(TypedDict):
    args: argparse.Namespace
    human_logger: logging.Logger
    machine_logger: logging.Logger
    scanner: Callable[[], List[Finding]]
    remover: Callable[..., RemovalResult]
    restorer: Callable[[], RestoreResult]
    restore_previewer: Callable[[], List[Dict[str, object]]]
    confirm: Callable[..., bool]
    confirm_restore: Callable[..., bool]


class AppState(_RequiredAppState, total=False):
    input: Callable[[str], str]
    output: Callable[[str], None]


__all__ = ["AppState"]

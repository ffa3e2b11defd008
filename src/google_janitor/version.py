"""!
@brief Version metadata for Google Janitor.
@details Keeps the version string in one packaged ``VERSION`` file so the
command line banner, the run metadata written by :mod:`logging_ext`, and the
build backend all agree.
"""
from __future__ import annotations

from importlib import resources
from typing import Dict

__all__ = ["__version__", "__build__", "build_info"]


def _load_version() -> str:
    """!
    @brief Read the version string shipped next to this module.
    @returns Semantic version string, or ``0.0.0`` for a source tree that lost
    its ``VERSION`` file.
    """

    version_path = resources.files(__package__).joinpath("VERSION")
    try:
        return version_path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:  # pragma: no cover - broken checkout
        return "0.0.0"


__version__ = _load_version()
__build__ = "dev"


def build_info() -> Dict[str, str]:
    """!
    @brief Mapping with ``version`` and ``build`` keys for banners and logs.
    """

    return {"version": __version__, "build": __build__}

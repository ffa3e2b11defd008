"""!
@brief Google Janitor package root.
@details Modules under this namespace discover Google services, applications,
and data on macOS, move them to the Trash with a single elevation prompt, and
put them back again on request.
"""

__all__ = [
    "main",
    "catalog",
    "constants",
    "models",
    "detect",
    "privilege",
    "remove",
    "restore",
    "blocker",
    "session",
    "system_control",
    "processes",
    "launchd",
    "elevation",
    "fs_tools",
    "exec_utils",
    "logging_ext",
    "safety",
    "confirm",
    "ui",
    "app_state",
    "version",
]

"""!
@brief Static data for the Google footprint on macOS.
@details Centralises the Keystone and GoogleUpdater service definitions,
application bundles, shared data locations and process names so
:mod:`catalog` can assemble a single validated registry from them. Paths that
live under the user's home are stored relative to it.
"""
from __future__ import annotations

from typing import Dict, Tuple

VENDOR_MARKER = "google"
"""!
@brief Case-insensitive token used to filter ``launchctl list`` output and
group container names.
"""

BUNDLE_PREFIX = "com.google."
"""!
@brief Bundle identifier prefix shared by every Google application.
"""

GOOGLE_PROCESSES: Tuple[str, ...] = (
    "GoogleUpdater",
    "GoogleSoftwareUpdateAgent",
    "GoogleSoftwareUpdateDaemon",
    "Google Chrome Helper",
    "Google Chrome",
    "Google Earth Pro",
    "keystone",
    "ksinstall",
    "ksadmin",
)

USER_LAUNCH_AGENTS: Tuple[str, ...] = (
    "Library/LaunchAgents/com.google.keystone.agent.plist",
    "Library/LaunchAgents/com.google.keystone.xpcservice.plist",
    "Library/LaunchAgents/com.google.GoogleUpdater.wake.login.plist",
)
"""!
@brief Per-user agents, activated in the ``gui/<uid>`` domain.
"""

SYSTEM_SERVICES: Tuple[str, ...] = (
    "/Library/LaunchAgents/com.google.keystone.agent.plist",
    "/Library/LaunchAgents/com.google.keystone.xpcservice.plist",
    "/Library/LaunchDaemons/com.google.keystone.daemon.plist",
    "/Library/LaunchDaemons/com.google.GoogleUpdater.wake.system.plist",
)
"""!
@brief Machine-wide agents and daemons, activated in the ``system`` domain.
"""

SYSTEM_DOMAIN = "system"

APPLICATIONS: Tuple[Dict[str, object], ...] = (
    {
        "install_path": "/Applications/Google Chrome.app",
        "display_name": "Google Chrome",
        "bundle_prefixes": ("com.google.Chrome",),
    },
    {
        "install_path": "/Applications/Google Earth Pro.app",
        "display_name": "Google Earth Pro",
        "bundle_prefixes": ("com.google.GoogleEarthPro", "com.google.GECommonSettings"),
    },
    {
        "install_path": "/Applications/Google Drive.app",
        "display_name": "Google Drive",
        "bundle_prefixes": ("com.google.drivefs",),
    },
)

SYSTEM_DATA_DIRS: Tuple[str, ...] = (
    "/Library/Google",
    "/Library/Application Support/Google",
)

USER_DATA_DIRS: Tuple[str, ...] = (
    "Library/Google",
    "Library/Application Support/Google",
)

USER_LOG_FILES: Tuple[str, ...] = ("Library/Logs/GoogleSoftwareUpdateAgent.log",)

LIBRARY_SUBDIRS: Tuple[str, ...] = (
    "Library/Caches",
    "Library/Preferences",
    "Library/Containers",
    "Library/HTTPStorages",
    "Library/Saved Application State",
    "Library/WebKit",
)
"""!
@brief Per-user library folders searched for bundle-prefixed entries.
"""

LIBRARY_SUFFIXES: Dict[str, str] = {
    "Library/Preferences": ".plist",
    "Library/Saved Application State": ".savedState",
}
"""!
@brief Entry suffixes that identify which library folder a trashed item came
from.
"""

GROUP_CONTAINERS_DIR = "Library/Group Containers"

GROUP_CONTAINER_NAME_PATTERN = r"[A-Z0-9]{10}\."
"""!
@brief Team identifier prefix carried by every third-party group container.
"""

BLOCKER_PATH = "Library/Google"
"""!
@brief Directory GoogleUpdater recreates on launch; replaced by a locked file.
"""

DEFAULT_TRASH_DIR = ".Trash"

TRASH_ORIGIN_SLOTS = 100
"""!
@brief Collision suffixes are ``<counter><two-digit origin slot>``.
@details The slot is the position of the item's own restore rule among all
rules accepting its name; ``00`` is the first such rule, which plain names fall
back to.
"""

SHARED_SYSTEM_FINDING = "System directories"
SHARED_USER_FINDING = "Caches & preferences"
SERVICE_FINDING = "Background services"

ENV_LOGDIR = "GOOGLE_JANITOR_LOGDIR"
ENV_TRASH = "GOOGLE_JANITOR_TRASH"

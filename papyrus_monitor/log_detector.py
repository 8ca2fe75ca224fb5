"""
Auto-detect Papyrus.0.log for Bethesda games using the Papyrus script engine.
Looks under the "My Games" document folder, including OneDrive-redirected
Documents on Windows and Proton prefixes on Linux.
"""

import glob
import os
import platform
from typing import List, Optional, Tuple

# Game folder names under "My Games"
GAME_FOLDERS = [
    "Fallout4",
    "Fallout4VR",
    "Skyrim Special Edition",
    "Skyrim VR",
    "Skyrim",
]

LOG_SUBPATH = os.path.join("Logs", "Script", "Papyrus.0.log")

# Steam app ids whose Proton prefixes may hold a "My Games" folder
PROTON_APP_IDS = ["377160", "611660", "489830", "611670", "72850"]


def get_documents_dirs() -> List[str]:
    """Candidate "Documents" directories for the current user and OS."""
    home = os.path.expanduser("~")
    system = platform.system()

    dirs = [os.path.join(home, "Documents")]

    if system == "Windows":
        for env in ("OneDrive", "OneDriveConsumer", "OneDriveCommercial"):
            root = os.environ.get(env)
            if root:
                dirs.append(os.path.join(root, "Documents"))

    elif system == "Linux":
        steam_roots = [
            os.path.join(home, ".steam", "steam"),
            os.path.join(home, ".local", "share", "Steam"),
        ]
        for root in steam_roots:
            for app_id in PROTON_APP_IDS:
                pattern = os.path.join(root, "steamapps", "compatdata", app_id,
                                       "pfx", "drive_c", "users", "*", "Documents")
                dirs.extend(glob.glob(pattern))

    seen = set()
    unique = []
    for d in dirs:
        if d not in seen:
            seen.add(d)
            unique.append(d)
    return unique


def find_papyrus_logs() -> List[Tuple[str, str]]:
    """
    Scan the document folders for Papyrus logs.

    Returns list of (game_label, log_path) tuples, sorted by modification
    time (newest first).
    """
    found = []
    seen_paths = set()

    for documents in get_documents_dirs():
        for game in GAME_FOLDERS:
            log_file = os.path.join(documents, "My Games", game, LOG_SUBPATH)
            if os.path.isfile(log_file) and log_file not in seen_paths:
                seen_paths.add(log_file)
                found.append((game, log_file))

    found.sort(key=lambda x: os.path.getmtime(x[1]) if os.path.exists(x[1]) else 0, reverse=True)
    return found


def find_most_recent_log() -> Optional[str]:
    """Find the most recently modified Papyrus.0.log. Returns path or None."""
    logs = find_papyrus_logs()
    if logs:
        return logs[0][1]
    return None

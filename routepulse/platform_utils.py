"""
Cross-platform helpers.

Locates the traceroute binary and reports whether the process runs
with the privileges some probe modes (ICMP echo) require.
"""

import os
import platform
import shutil
from typing import Optional


# Checked in order when traceroute is not on PATH
TRACEROUTE_LOCATIONS = (
    "/usr/sbin/traceroute",
    "/usr/bin/traceroute",
    "/sbin/traceroute",
    "/usr/local/sbin/traceroute",
)


def get_platform() -> str:
    """Get the current platform name."""
    system = platform.system().lower()
    if system == "darwin":
        return "macos"
    return system  # "windows" or "linux"


def find_traceroute() -> Optional[str]:
    """
    Find the traceroute executable.

    Returns:
        Absolute path, or None if no traceroute is installed
    """
    found = shutil.which("traceroute")
    if found:
        return found

    for path in TRACEROUTE_LOCATIONS:
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path
    return None


def check_elevated_privileges() -> bool:
    """Check if running with elevated privileges."""
    if get_platform() == "windows":
        try:
            import ctypes
            return ctypes.windll.shell32.IsUserAnAdmin() != 0
        except (AttributeError, OSError):
            return False
    return os.geteuid() == 0

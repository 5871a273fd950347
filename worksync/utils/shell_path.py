"""Resolve the PATH handed to child processes.

Desktop launchers often start with a minimal PATH that misses package-manager
directories where git and gh live. The resolved value is computed once per
process and reused for every spawned command.
"""

from __future__ import annotations

import functools
import os

EXTRA_PATH_DIRS = (
    "/opt/homebrew/bin",
    "/usr/local/bin",
    "/usr/bin",
    "/bin",
    "/usr/sbin",
    "/sbin",
)


@functools.cache
def get_shell_path() -> str:
    """Return the process PATH extended with well-known binary directories."""
    entries: list[str] = []
    for entry in os.environ.get("PATH", "").split(os.pathsep) + list(EXTRA_PATH_DIRS):
        if entry and entry not in entries:
            entries.append(entry)
    return os.pathsep.join(entries)

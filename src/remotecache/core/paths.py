"""Path translation between the host and the transfer environment.

This module provides:
- Environment: Where a path is meant to be used
- PathTranslator: Strategy interface for translating paths
- PosixPathTranslator: Host and bridge share the same paths
- WslPathTranslator: Windows drive paths <-> /mnt/<drive> paths
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)

_DRIVE_PATH = re.compile(r"^([A-Za-z]):([\\/].*)?$")
_WSL_MOUNT_PATH = re.compile(r"^/mnt/([a-z])(?:/(.*))?$")


class Environment(str, Enum):
    """Target environment of a translated path."""

    HOST = "host"
    BRIDGE = "bridge"


def strip_quotes(path: str) -> str:
    """Remove surrounding blanks and matching quotes."""
    path = path.strip()
    if len(path) >= 2 and path[0] == path[-1] and path[0] in "\"'":
        path = path[1:-1]
    return path


class PathTranslator(Protocol):
    """Translate a local path for the given environment."""

    def translate(self, path: str, target: Environment) -> str:
        """Translate ``path`` so it is usable in ``target``."""
        ...


class PosixPathTranslator:
    """Identity translation for bridges running on the host itself."""

    def translate(self, path: str, target: Environment) -> str:
        return strip_quotes(str(path))


class WslPathTranslator:
    """Translate between Windows paths and WSL mount paths.

    ``C:\\Users\\me`` <-> ``/mnt/c/Users/me``. Paths that are already in
    the target form are returned unchanged.
    """

    def translate(self, path: str, target: Environment) -> str:
        path = strip_quotes(str(path))
        if not path:
            return ""
        if target is Environment.BRIDGE:
            return self.to_wsl(path)
        return self.to_windows(path)

    @staticmethod
    def to_wsl(path: str) -> str:
        """Convert ``C:\\dir\\file`` to ``/mnt/c/dir/file``."""
        if path.startswith("/"):
            return path
        match = _DRIVE_PATH.match(path)
        if match:
            drive, rest = match.groups()
            rest = (rest or "/").replace("\\", "/")
            converted = f"/mnt/{drive.lower()}{rest}"
            logger.debug("Path translated: %s -> %s", path, converted)
            return converted
        return path.replace("\\", "/")

    @staticmethod
    def to_windows(path: str) -> str:
        """Convert ``/mnt/c/dir/file`` to ``C:\\dir\\file``."""
        if _DRIVE_PATH.match(path):
            return path
        match = _WSL_MOUNT_PATH.match(path)
        if match:
            drive, rest = match.groups()
            rest = (rest or "").replace("/", "\\")
            converted = f"{drive.upper()}:\\{rest}"
            logger.debug("Path translated: %s -> %s", path, converted)
            return converted
        return path

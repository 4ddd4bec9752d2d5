"""Scan a local directory tree the way the file aggregation tools do.

This module provides:
- scan_cache: Walk a directory applying ExclusionRules
- ScannedFile: A matched file
- remap_to_remote: Rewrite cache paths into remote paths

The scanner has no notion of remote caches: it is handed a local path.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from remotecache.cache.storage import LAST_SYNC_FILE
from remotecache.core.filters import ExclusionRules

logger = logging.getLogger(__name__)


@dataclass
class ScannedFile:
    """A file found by the scanner.

    Attributes:
        path: Absolute local path.
        relative_path: POSIX path relative to the scan root.
        size: File size in bytes.
    """

    path: Path
    relative_path: str
    size: int


def scan_cache(
    root: Path,
    rules: ExclusionRules | None = None,
    recursive: bool = True,
) -> list[ScannedFile]:
    """List files below ``root`` that pass the exclusion rules.

    Unreadable directories are skipped. Results are sorted by relative path.
    """
    if rules is None:
        rules = ExclusionRules()
    root = Path(root)
    matches: list[ScannedFile] = []

    for current, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        current_path = Path(current)
        if recursive:
            dirnames[:] = sorted(d for d in dirnames if not rules.is_excluded_directory(d))
        else:
            dirnames[:] = []
        for name in filenames:
            if current_path == root and name == LAST_SYNC_FILE:
                continue
            if rules.matches(name):
                continue
            file_path = current_path / name
            try:
                size = file_path.stat().st_size
            except OSError as e:
                logger.debug("Skipping unreadable file %s: %s", file_path, e)
                continue
            relative = file_path.relative_to(root).as_posix()
            matches.append(ScannedFile(path=file_path, relative_path=relative, size=size))

    matches.sort(key=lambda f: f.relative_path)
    return matches


def remap_to_remote(relative_path: str, remote_base: str) -> str:
    """Join a cache-relative path onto a remote base directory."""
    return str(PurePosixPath(remote_base or "/") / relative_path)


def _log_walk_error(error: OSError) -> None:
    logger.debug("Skipping unreadable directory: %s", error)

"""Exclusion rules for mirrored and scanned content.

This module provides:
- ExclusionRules: Extension, pattern and directory exclusions

The same rules drive two consumers: the transfer command (translated into
rsync ``--exclude`` arguments) and the local scanner (``matches``).
Patterns are compiled as regular expressions when the rules are built;
invalid ones are dropped with a warning instead of failing a scan.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath

from remotecache.core.types import SyncOptions

logger = logging.getLogger(__name__)


class ExclusionRules:
    """Compiled exclusion rules."""

    def __init__(
        self,
        extensions: list[str] | tuple[str, ...] | None = None,
        patterns: list[str] | tuple[str, ...] | None = None,
        directories: list[str] | tuple[str, ...] | None = None,
    ) -> None:
        """Initialize and validate rules.

        Args:
            extensions: File extensions without the dot ("log", "pyc"),
                matched case-sensitively like rsync patterns.
            patterns: Regular expressions matched against file names.
            directories: Directory names excluded anywhere in the tree.
        """
        self.extensions = tuple(
            sorted({e.strip().lstrip(".") for e in extensions or () if e.strip().lstrip(".")})
        )
        self.directories = tuple(
            sorted({d.strip().strip("/") for d in directories or () if d.strip().strip("/")})
        )
        self.patterns: tuple[str, ...] = ()
        self._compiled: list[re.Pattern[str]] = []

        valid = []
        for pattern in sorted({p for p in patterns or () if p.strip()}):
            try:
                self._compiled.append(re.compile(pattern))
            except re.error as e:
                logger.warning("Ignoring invalid exclude pattern %r: %s", pattern, e)
                continue
            valid.append(pattern)
        self.patterns = tuple(valid)

    @classmethod
    def from_options(cls, options: SyncOptions) -> ExclusionRules:
        """Build rules from sync options."""
        return cls(
            extensions=options.exclude_extensions,
            patterns=options.exclude_patterns,
            directories=options.exclude_directories,
        )

    def __bool__(self) -> bool:
        return bool(self.extensions or self.patterns or self.directories)

    def is_excluded_directory(self, name: str) -> bool:
        """Check if a directory name is excluded."""
        return name in self.directories

    def matches(self, name: str) -> bool:
        """Check if a file name is excluded by extension or pattern."""
        suffix = PurePosixPath(name).suffix.lstrip(".")
        if suffix and suffix in self.extensions:
            return True
        return any(regex.search(name) for regex in self._compiled)

    def excludes_path(self, relative_path: str) -> bool:
        """Check a relative POSIX path against all rules."""
        parts = PurePosixPath(relative_path).parts
        if any(self.is_excluded_directory(part) for part in parts[:-1]):
            return True
        return bool(parts) and self.matches(parts[-1])

    def to_rsync_args(self) -> list[str]:
        """Translate into rsync ``--exclude`` arguments.

        Patterns are handed to rsync unchanged; extensions become
        ``*.ext`` and directories ``name/`` (directories only). Empty
        rules produce no arguments.
        """
        args: list[str] = []
        for pattern in self.patterns:
            args.extend(["--exclude", pattern])
        for ext in self.extensions:
            args.extend(["--exclude", f"*.{ext}"])
        for directory in self.directories:
            args.extend(["--exclude", f"{directory}/"])
        return args

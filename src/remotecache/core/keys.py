"""Cache key derivation.

A cache key binds (connection, remote paths, sync options) to one local
mirror directory. Keys are the first 16 hex characters of a SHA-256 digest
over a canonical JSON encoding, so they are stable across restarts and
safe to expose in API responses.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from remotecache.core.types import Connection, PathSet, SyncOptions

CACHE_KEY_LENGTH = 16


def canonical_key_data(
    connection: Connection,
    paths: PathSet | str,
    options: SyncOptions | None = None,
) -> dict[str, Any]:
    """Build the order-independent data a cache key is derived from.

    The password is deliberately absent: it does not change what is
    mirrored.
    """
    path_set = PathSet.coerce(paths)
    options = options or SyncOptions()
    return {
        "host": connection.host.strip().lower(),
        "port": connection.port,
        "username": connection.username.strip(),
        "directories": sorted(path_set.directories),
        "files": sorted(path_set.files),
        "recursive": options.recursive,
        "exclude_extensions": sorted(options.exclude_extensions),
        "exclude_patterns": sorted(options.exclude_patterns),
        "exclude_directories": sorted(options.exclude_directories),
    }


def derive_cache_key(
    connection: Connection,
    paths: PathSet | str,
    options: SyncOptions | None = None,
) -> str:
    """Derive the cache key for a sync request.

    Args:
        connection: SSH connection (host, port and username are used).
        paths: PathSet or a legacy single remote directory.
        options: Sync options (exclusions, recursion).

    Returns:
        16-character lowercase hex string.
    """
    data = canonical_key_data(connection, paths, options)
    encoded = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()[:CACHE_KEY_LENGTH]


def is_valid_cache_key(value: str) -> bool:
    """Check if a string looks like a derived cache key."""
    return len(value) == CACHE_KEY_LENGTH and all(c in "0123456789abcdef" for c in value)

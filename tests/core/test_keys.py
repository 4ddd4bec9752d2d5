"""Tests for cache key derivation."""

from __future__ import annotations

from remotecache.core.keys import (
    CACHE_KEY_LENGTH,
    canonical_key_data,
    derive_cache_key,
    is_valid_cache_key,
)
from remotecache.core.types import Connection, PathSet, SyncOptions


def _connection(**overrides: object) -> Connection:
    values: dict[str, object] = {"host": "build.example.com", "username": "deploy", "port": 22}
    values.update(overrides)
    return Connection(**values)  # type: ignore[arg-type]


class TestDeriveCacheKey:
    """Tests for derive_cache_key."""

    def test_key_shape(self) -> None:
        """Keys are 16 lowercase hex characters."""
        key = derive_cache_key(_connection(), "/srv/app")
        assert len(key) == CACHE_KEY_LENGTH
        assert is_valid_cache_key(key)

    def test_deterministic(self) -> None:
        """Same inputs always give the same key."""
        options = SyncOptions(exclude_extensions=("log",))
        first = derive_cache_key(_connection(), "/srv/app", options)
        second = derive_cache_key(_connection(), "/srv/app", options)
        assert first == second

    def test_legacy_path_matches_single_directory(self) -> None:
        """A legacy remote path and a one-directory PathSet share a key."""
        legacy = derive_cache_key(_connection(), "/srv/app")
        modern = derive_cache_key(_connection(), PathSet(directories=("/srv/app",)))
        assert legacy == modern

    def test_order_independent(self) -> None:
        """Reordering paths or exclusions does not change the key."""
        paths_a = PathSet(directories=("/a", "/b"), files=("/etc/x", "/etc/y"))
        paths_b = PathSet(directories=("/b", "/a"), files=("/etc/y", "/etc/x"))
        options_a = SyncOptions(exclude_extensions=("log", "tmp"), exclude_directories=("a", "b"))
        options_b = SyncOptions(exclude_extensions=("tmp", "log"), exclude_directories=("b", "a"))
        assert derive_cache_key(_connection(), paths_a, options_a) == derive_cache_key(
            _connection(), paths_b, options_b
        )

    def test_trailing_slash_ignored(self) -> None:
        """Trailing slashes do not create a second cache."""
        assert derive_cache_key(_connection(), "/srv/app/") == derive_cache_key(
            _connection(), "/srv/app"
        )

    def test_differs_by_connection(self) -> None:
        """Host, port and username all select different caches."""
        base = derive_cache_key(_connection(), "/srv/app")
        assert derive_cache_key(_connection(host="other.example.com"), "/srv/app") != base
        assert derive_cache_key(_connection(port=2222), "/srv/app") != base
        assert derive_cache_key(_connection(username="root"), "/srv/app") != base

    def test_differs_by_options(self) -> None:
        """Different filters mirror different content."""
        base = derive_cache_key(_connection(), "/srv/app")
        assert derive_cache_key(_connection(), "/srv/app", SyncOptions(recursive=False)) != base
        assert (
            derive_cache_key(_connection(), "/srv/app", SyncOptions(exclude_patterns=(r"\.bak$",)))
            != base
        )

    def test_extension_case_is_significant(self) -> None:
        """Extension filters are case-sensitive, so their case is part of the key."""
        def key(ext: str) -> str:
            return derive_cache_key(_connection(), "/srv/app", SyncOptions(exclude_extensions=(ext,)))

        upper, lower, dotted = key("LOG"), key("log"), key(".LOG")
        assert upper != lower
        assert upper == dotted

    def test_password_not_part_of_key(self) -> None:
        """Changing the password keeps the same cache."""
        assert derive_cache_key(_connection(password="s3cret"), "/srv/app") == derive_cache_key(
            _connection(), "/srv/app"
        )

    def test_no_plaintext_credentials(self) -> None:
        """Neither host nor username appears in the key."""
        key = derive_cache_key(_connection(password="s3cret"), "/srv/app")
        assert "deploy" not in key
        assert "example" not in key

    def test_canonical_data_has_no_password(self) -> None:
        """The canonical key data never contains the password."""
        data = canonical_key_data(_connection(password="s3cret"), "/srv/app")
        assert "password" not in data
        assert "s3cret" not in str(data)


class TestIsValidCacheKey:
    """Tests for is_valid_cache_key."""

    def test_rejects_other_strings(self) -> None:
        """Only 16-character hex strings are keys."""
        assert is_valid_cache_key("0123456789abcdef")
        assert not is_valid_cache_key("0123456789ABCDEF")
        assert not is_valid_cache_key("../etc")
        assert not is_valid_cache_key("")

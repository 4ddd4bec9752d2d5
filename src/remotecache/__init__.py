"""remotecache - Mirror remote directories into a local, lock-guarded cache."""

__version__ = "0.1.0"

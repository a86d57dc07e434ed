"""Persistent local cache for observed events."""

from catallax.storage.sqlite import SQLiteEventCache

__all__ = ["SQLiteEventCache"]

"""Enumerations used across the di-bootstrap domain layer."""

from __future__ import annotations

from enum import StrEnum


class CacheState(StrEnum):
    """Freshness of a compiled container artifact for a given fingerprint."""

    MISSING = "missing"
    FRESH = "fresh"
    STALE = "stale"


class ResourceKind(StrEnum):
    """Filesystem object a compiled artifact depends on."""

    FILE = "file"
    DIRECTORY = "directory"
    MISSING = "missing"

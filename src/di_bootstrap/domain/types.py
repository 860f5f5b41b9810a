"""Shared type aliases for the domain layer."""

from __future__ import annotations

from os import PathLike
from typing import NewType

CacheFingerprint = NewType("CacheFingerprint", str)
StrPath = str | PathLike[str]

__all__ = [
    "CacheFingerprint",
    "StrPath",
]

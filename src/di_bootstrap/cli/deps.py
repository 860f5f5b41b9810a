"""Shared CLI dependency helpers."""

from __future__ import annotations

from functools import lru_cache

from di_bootstrap.config import LoaderSettings


@lru_cache(maxsize=1)
def get_settings() -> LoaderSettings:
    """Return cached loader settings for CLI commands."""

    return LoaderSettings.from_env()


def reset_settings() -> None:
    """Clear the cached settings (useful for tests)."""

    get_settings.cache_clear()

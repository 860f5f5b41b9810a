"""Loader settings sourced from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CONFIG_FILE = Path(__file__).resolve().parent / "resources" / "defaults.yaml"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no"}


@dataclass(frozen=True)
class LoaderSettings:
    """Immutable naming and policy knobs for the container bootstrap."""

    project_root_var: str = "PROJECT_ROOT"
    cache_dir_var: str = "CACHE_DIR"
    shared_kernel_var: str = "SHARED_KERNEL_LOCATION"
    env_mode_var: str = "ENV_MODE"
    dev_mode: str = "dev"
    default_env_mode: str = "dev"
    test_modes: tuple[str, ...] = ("test",)
    env_file_name: str = ".env"
    cache_folder_name: str = "di"
    default_cache_subdir: str = "cache"
    default_config_file: Path = DEFAULT_CONFIG_FILE
    default_config_priority: int = -100
    strict_entries: bool = False

    @classmethod
    def from_env(cls) -> LoaderSettings:
        return cls(
            dev_mode=os.getenv("DI_BOOTSTRAP_DEV_MODE", cls.dev_mode),
            default_env_mode=os.getenv("DI_BOOTSTRAP_DEFAULT_ENV_MODE", cls.default_env_mode),
            strict_entries=_env_bool("DI_BOOTSTRAP_STRICT_ENTRIES", cls.strict_entries),
        )


__all__ = ["DEFAULT_CONFIG_FILE", "LoaderSettings"]

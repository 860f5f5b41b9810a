"""Resolved load context and fingerprint inputs."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from pydantic import field_validator

from .base import DomainModel


class LoadInputs(DomainModel):
    """Exactly the data that determines a compiled container's identity."""

    project_root: str
    ordered_config_paths: tuple[str, ...]
    env_file_location: str

    @field_validator("project_root", "env_file_location")
    @classmethod
    def ensure_absolute(cls, value: str) -> str:
        if not os.path.isabs(value):
            msg = f"Expected an absolute path, got {value!r}"
            raise ValueError(msg)
        return value

    @field_validator("ordered_config_paths")
    @classmethod
    def ensure_absolute_sources(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for path in value:
            if not os.path.isabs(path):
                msg = f"Configuration paths must be absolute, got {path!r}"
                raise ValueError(msg)
        return value


@dataclass(frozen=True, slots=True)
class LoadContext:
    """Immutable environment resolved once per load and passed explicitly downstream."""

    project_root: Path
    env_file_location: Path
    cache_dir: Path
    env_mode: str
    shared_kernel_location: Path
    dev_mode: str = "dev"
    environment: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "environment", MappingProxyType(dict(self.environment)))

    @property
    def force_refresh(self) -> bool:
        """Development mode recompiles the container on every load."""

        return self.env_mode == self.dev_mode

    def base_parameters(self) -> dict[str, str]:
        """Parameters every compiled container receives before any config source.

        Only values bound to the fingerprint belong here; everything else is read
        at runtime through ``%env(NAME)%``.
        """

        return {
            "project.root": str(self.project_root),
            "project.cache_dir": str(self.cache_dir),
        }


__all__ = ["LoadContext", "LoadInputs"]

"""Configuration source models."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field, field_validator

from .base import DomainModel


def _require_path(value: str) -> str:
    if not value.strip():
        msg = "Configuration path must not be empty"
        raise ValueError(msg)
    return value


class ConfigSource(DomainModel):
    """A configuration file scheduled for loading at a given priority."""

    path: Annotated[str, Field(min_length=1)]
    priority: int = 0

    @field_validator("path")
    @classmethod
    def ensure_path(cls, value: str) -> str:
        return _require_path(value)


class PathEntry(DomainModel):
    """Plain configuration path loaded at the implicit priority 0."""

    kind: Literal["path"] = "path"
    path: Annotated[str, Field(min_length=1)]

    @field_validator("path")
    @classmethod
    def ensure_path(cls, value: str) -> str:
        return _require_path(value)


class PrioritizedEntry(DomainModel):
    """Configuration path with an explicit load priority."""

    kind: Literal["prioritized"] = "prioritized"
    path: Annotated[str, Field(min_length=1)]
    priority: int

    @field_validator("path")
    @classmethod
    def ensure_path(cls, value: str) -> str:
        return _require_path(value)


ConfigEntry = Annotated[PathEntry | PrioritizedEntry, Field(discriminator="kind")]

__all__ = ["ConfigEntry", "ConfigSource", "PathEntry", "PrioritizedEntry"]

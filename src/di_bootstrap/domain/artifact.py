"""Compiled container definition and its persisted artifact."""

from __future__ import annotations

import os
import re
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import Field, model_validator

from .base import DomainModel
from .enums import ResourceKind
from .types import StrPath

ARTIFACT_FORMAT_VERSION = 1

CONTAINER_SERVICE_ID = "service_container"
SERVICE_MARKER = "$service"
ENV_MARKER = "$env"
ENV_PLACEHOLDER = re.compile(r"%%|%env\(([^)%\s]+)\)%")


def utc_now() -> datetime:
    return datetime.now(UTC)


class ResourceRef(DomainModel):
    """Filesystem signature of a source the compiled container was built from."""

    path: Annotated[str, Field(min_length=1)]
    kind: ResourceKind
    mtime_ns: int | None = None
    size: int | None = None

    @classmethod
    def capture(cls, path: StrPath) -> ResourceRef:
        """Snapshot the current signature of ``path``."""

        location = os.fspath(path)
        try:
            stat = os.stat(location)
        except FileNotFoundError:
            return cls(path=location, kind=ResourceKind.MISSING)
        if os.path.isdir(location):
            return cls(path=location, kind=ResourceKind.DIRECTORY, mtime_ns=stat.st_mtime_ns)
        return cls(
            path=location,
            kind=ResourceKind.FILE,
            mtime_ns=stat.st_mtime_ns,
            size=stat.st_size,
        )

    def is_fresh(self) -> bool:
        """Return whether the resource on disk still matches the recorded signature."""

        return ResourceRef.capture(self.path) == self


class MethodCall(DomainModel):
    """Setter-style call applied to a service right after construction."""

    method: Annotated[str, Field(min_length=1)]
    arguments: tuple[Any, ...] = ()


class ServiceDefinition(DomainModel):
    """Data-only description of how to construct a service.

    Arguments are plain JSON values where service references are encoded as
    ``{"$service": id, "optional": bool}`` and strings that still carry
    ``%env(NAME)%`` placeholders as ``{"$env": template}``.
    """

    id: Annotated[str, Field(min_length=1)]
    class_path: str | None = None
    factory: str | None = None
    arguments: tuple[Any, ...] = ()
    calls: tuple[MethodCall, ...] = ()
    shared: bool = True
    public: bool = True
    tags: tuple[str, ...] = ()

    @model_validator(mode="after")
    def ensure_constructor(self) -> ServiceDefinition:
        if (self.class_path is None) == (self.factory is None):
            msg = f"Service '{self.id}' must declare exactly one of 'class' or 'factory'"
            raise ValueError(msg)
        return self

    @property
    def target(self) -> str:
        return self.class_path if self.class_path is not None else str(self.factory)


class ContainerDefinition(DomainModel):
    """Fully resolved, interpretable container description."""

    parameters: dict[str, Any] = Field(default_factory=dict)
    services: dict[str, ServiceDefinition] = Field(default_factory=dict)
    aliases: dict[str, str] = Field(default_factory=dict)

    def service_ids(self) -> tuple[str, ...]:
        return tuple(sorted({*self.services, *self.aliases}))


class CompiledArtifact(DomainModel):
    """Persisted unit for one fingerprint: definition plus its resource dependencies."""

    format_version: int = ARTIFACT_FORMAT_VERSION
    fingerprint: Annotated[str, Field(min_length=1)]
    created_at: datetime = Field(default_factory=utc_now)
    definition: ContainerDefinition
    resources: tuple[ResourceRef, ...] = ()

    def stale_resources(self) -> tuple[ResourceRef, ...]:
        """Resources whose on-disk signature no longer matches."""

        return tuple(resource for resource in self.resources if not resource.is_fresh())


__all__ = [
    "ARTIFACT_FORMAT_VERSION",
    "CONTAINER_SERVICE_ID",
    "CompiledArtifact",
    "ContainerDefinition",
    "ENV_MARKER",
    "ENV_PLACEHOLDER",
    "MethodCall",
    "ResourceRef",
    "SERVICE_MARKER",
    "ServiceDefinition",
]

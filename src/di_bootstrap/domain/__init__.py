"""Domain layer exports."""

from .artifact import (
    ARTIFACT_FORMAT_VERSION,
    CONTAINER_SERVICE_ID,
    ENV_MARKER,
    ENV_PLACEHOLDER,
    SERVICE_MARKER,
    CompiledArtifact,
    ContainerDefinition,
    MethodCall,
    ResourceRef,
    ServiceDefinition,
)
from .base import DomainModel
from .context import LoadContext, LoadInputs
from .enums import CacheState, ResourceKind
from .sources import ConfigEntry, ConfigSource, PathEntry, PrioritizedEntry
from .types import CacheFingerprint, StrPath

__all__ = [
    "ARTIFACT_FORMAT_VERSION",
    "CONTAINER_SERVICE_ID",
    "CacheFingerprint",
    "CacheState",
    "CompiledArtifact",
    "ConfigEntry",
    "ConfigSource",
    "ContainerDefinition",
    "DomainModel",
    "ENV_MARKER",
    "ENV_PLACEHOLDER",
    "LoadContext",
    "LoadInputs",
    "MethodCall",
    "PathEntry",
    "PrioritizedEntry",
    "ResourceKind",
    "ResourceRef",
    "SERVICE_MARKER",
    "ServiceDefinition",
    "StrPath",
]

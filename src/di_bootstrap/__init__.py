"""Bootstrap loader producing cached, queryable dependency-injection containers."""

from .cache import ContainerCache
from .compiler import CompilationResult, ContainerCompiler, DefinitionCompiler
from .config import LoaderSettings
from .container import Container
from .domain import CacheState, ConfigSource, LoadContext
from .exceptions import (
    ContainerError,
    ContainerLoadingFailedError,
    DIContainerLoadingError,
    InvalidParameterError,
    ServiceNotFoundError,
    WrongInfrastructureError,
)
from .loader import LoadReport, bootstrap, load

__all__ = [
    "CacheState",
    "CompilationResult",
    "ConfigSource",
    "Container",
    "ContainerCache",
    "ContainerCompiler",
    "ContainerError",
    "ContainerLoadingFailedError",
    "DIContainerLoadingError",
    "DefinitionCompiler",
    "InvalidParameterError",
    "LoadContext",
    "LoadReport",
    "LoaderSettings",
    "ServiceNotFoundError",
    "WrongInfrastructureError",
    "bootstrap",
    "load",
]

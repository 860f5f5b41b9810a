"""Loader and container exceptions."""

from __future__ import annotations


class DIContainerLoadingError(RuntimeError):
    """Base class for every failure raised while bootstrapping a container."""


class InvalidParameterError(DIContainerLoadingError):
    """Raised when caller-supplied data is structurally unusable."""


class WrongInfrastructureError(DIContainerLoadingError):
    """Raised when the runtime environment (project root, cache dir, env files) is unusable."""


class ContainerLoadingFailedError(DIContainerLoadingError):
    """Raised when compilation or persistence fails after inputs were validated."""


class ContainerError(RuntimeError):
    """Base class for failures while querying a loaded container."""


class ServiceNotFoundError(ContainerError, KeyError):
    """Raised when a requested service identifier is not defined."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class ParameterNotFoundError(ContainerError, KeyError):
    """Raised when a requested parameter or environment variable is not defined."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class CircularReferenceError(ContainerError):
    """Raised when constructing a service requires itself."""


class ServiceCreationError(ContainerError):
    """Raised when a service constructor or factory fails."""


__all__ = [
    "CircularReferenceError",
    "ContainerError",
    "ContainerLoadingFailedError",
    "DIContainerLoadingError",
    "InvalidParameterError",
    "ParameterNotFoundError",
    "ServiceCreationError",
    "ServiceNotFoundError",
    "WrongInfrastructureError",
]

"""Runtime container interpreting a compiled definition."""

from __future__ import annotations

import importlib
import logging
import re
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

from .domain import (
    CONTAINER_SERVICE_ID,
    ENV_MARKER,
    ENV_PLACEHOLDER,
    SERVICE_MARKER,
    ContainerDefinition,
    ServiceDefinition,
)
from .exceptions import (
    CircularReferenceError,
    ContainerError,
    ParameterNotFoundError,
    ServiceCreationError,
    ServiceNotFoundError,
)

logger = logging.getLogger(__name__)


def import_target(path: str) -> Any:
    """Import ``package.module:attr.sub`` (or ``package.module.attr``) and return the object."""

    if ":" in path:
        module_name, _, attr_path = path.partition(":")
    else:
        module_name, _, attr_path = path.rpartition(".")
    if not module_name or not attr_path:
        msg = f"Invalid import path '{path}'"
        raise ServiceCreationError(msg)
    try:
        target: Any = importlib.import_module(module_name)
        for attr in attr_path.split("."):
            target = getattr(target, attr)
    except (ImportError, AttributeError) as exc:
        msg = f"Can't import '{path}'"
        raise ServiceCreationError(msg) from exc
    return target


class Container:
    """Queryable service registry built from a data-only container definition.

    Services are created lazily on first ``get``. Shared services are cached for
    the lifetime of the container; non-shared ones are rebuilt on every request.
    """

    def __init__(
        self,
        definition: ContainerDefinition,
        *,
        environment: Mapping[str, str] | None = None,
        fingerprint: str | None = None,
    ) -> None:
        self._definition = definition
        self._environment: Mapping[str, str] = MappingProxyType(dict(environment or {}))
        self._instances: dict[str, Any] = {}
        self._loading: list[str] = []
        self.fingerprint = fingerprint

    @property
    def definition(self) -> ContainerDefinition:
        return self._definition

    @property
    def parameters(self) -> Mapping[str, Any]:
        return MappingProxyType(
            {name: self._materialize(value) for name, value in self._definition.parameters.items()}
        )

    def service_ids(self) -> tuple[str, ...]:
        return tuple(
            service_id
            for service_id in self._definition.service_ids()
            if self._is_public(service_id)
        )

    def has(self, service_id: str) -> bool:
        if service_id == CONTAINER_SERVICE_ID:
            return True
        return self._is_public(service_id)

    def get(self, service_id: str) -> Any:
        """Return the service registered under ``service_id``."""

        if not self.has(service_id):
            msg = f"You have requested a non-existent service '{service_id}'"
            raise ServiceNotFoundError(msg)
        return self._resolve(service_id, optional=False)

    def initialized(self, service_id: str) -> bool:
        return self._canonical(service_id) in self._instances

    def has_parameter(self, name: str) -> bool:
        return name in self._definition.parameters

    def get_parameter(self, name: str) -> Any:
        try:
            value = self._definition.parameters[name]
        except KeyError as exc:
            msg = f"You have requested a non-existent parameter '{name}'"
            raise ParameterNotFoundError(msg) from exc
        return self._materialize(value)

    def __contains__(self, service_id: object) -> bool:
        return isinstance(service_id, str) and self.has(service_id)

    def __getitem__(self, service_id: str) -> Any:
        return self.get(service_id)

    def __iter__(self) -> Iterator[str]:
        return iter(self.service_ids())

    def _canonical(self, service_id: str) -> str:
        current = service_id
        while current in self._definition.aliases:
            current = self._definition.aliases[current]
        return current

    def _is_public(self, service_id: str) -> bool:
        if service_id in self._definition.aliases:
            return True
        definition = self._definition.services.get(service_id)
        return definition is not None and definition.public

    def _resolve(self, service_id: str, *, optional: bool) -> Any:
        if service_id == CONTAINER_SERVICE_ID:
            return self
        canonical = self._canonical(service_id)
        if canonical == CONTAINER_SERVICE_ID:
            return self
        if canonical in self._instances:
            return self._instances[canonical]
        definition = self._definition.services.get(canonical)
        if definition is None:
            if optional:
                return None
            msg = f"You have requested a non-existent service '{service_id}'"
            raise ServiceNotFoundError(msg)
        if canonical in self._loading:
            chain = " -> ".join([*self._loading, canonical])
            msg = f"Circular reference detected for service '{canonical}' ({chain})"
            raise CircularReferenceError(msg)

        self._loading.append(canonical)
        try:
            instance = self._create(definition)
        finally:
            self._loading.pop()
        if definition.shared:
            self._instances[canonical] = instance
        return instance

    def _create(self, definition: ServiceDefinition) -> Any:
        target = import_target(definition.target)
        try:
            arguments = [self._materialize(value) for value in definition.arguments]
            instance = target(*arguments)
            for call in definition.calls:
                method = getattr(instance, call.method)
                method(*[self._materialize(value) for value in call.arguments])
        except ContainerError:
            raise
        except Exception as exc:
            msg = f"Service '{definition.id}' could not be created with '{definition.target}'"
            raise ServiceCreationError(msg) from exc
        logger.debug("Created service %s", definition.id)
        return instance

    def _materialize(self, value: Any) -> Any:
        if isinstance(value, dict):
            if SERVICE_MARKER in value:
                return self._resolve(value[SERVICE_MARKER], optional=bool(value.get("optional")))
            if ENV_MARKER in value:
                return self._interpolate_env(value[ENV_MARKER])
            return {key: self._materialize(item) for key, item in value.items()}
        if isinstance(value, list | tuple):
            return [self._materialize(item) for item in value]
        return value

    def _interpolate_env(self, template: str) -> str:
        def substitute(match: re.Match[str]) -> str:
            name = match.group(1)
            if name is None:
                return "%"
            try:
                return self._environment[name]
            except KeyError as exc:
                msg = f"Environment variable not found: '{name}'"
                raise ParameterNotFoundError(msg) from exc

        return ENV_PLACEHOLDER.sub(substitute, template)


__all__ = ["CONTAINER_SERVICE_ID", "Container", "import_target"]

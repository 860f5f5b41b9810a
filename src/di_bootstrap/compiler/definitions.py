"""Default compiler: merges raw sources into a validated container definition."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from di_bootstrap.domain import (
    CONTAINER_SERVICE_ID,
    ENV_MARKER,
    ENV_PLACEHOLDER,
    SERVICE_MARKER,
    ContainerDefinition,
    MethodCall,
    ResourceRef,
    ServiceDefinition,
)

from .base import CompilationResult
from .exceptions import CompilationError, ConfigSourceError
from .loaders import DelegatingLoader, RawConfig

logger = logging.getLogger(__name__)

_SERVICE_KEYS = frozenset({"class", "factory", "arguments", "calls", "shared", "public", "tags", "alias"})
_WHOLE_PARAMETER = re.compile(r"^%([^%\s]+)%$")
_PARAMETER = re.compile(r"%%|%([^%\s]+)%")


def _is_env_name(name: str) -> bool:
    return name.startswith("env(") and name.endswith(")")


class _ParameterResolver:
    """Resolves ``%name%`` references between parameters, keeping ``%env()%`` for runtime."""

    def __init__(self, raw: Mapping[str, Any]) -> None:
        self._raw = raw
        self._resolved: dict[str, Any] = {}
        self._resolving: list[str] = []

    def parameter(self, name: str) -> Any:
        if name in self._resolved:
            return self._resolved[name]
        if name in self._resolving:
            chain = " -> ".join([*self._resolving, name])
            msg = f"Circular reference detected for parameter '{name}' ({chain})"
            raise CompilationError(msg)
        if name not in self._raw:
            msg = f"You have requested a non-existent parameter '{name}'"
            raise CompilationError(msg)
        self._resolving.append(name)
        try:
            value = self.resolve(self._raw[name])
        finally:
            self._resolving.pop()
        self._resolved[name] = value
        return value

    def resolve(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._resolve_string(value)
        if isinstance(value, list | tuple):
            return [self.resolve(item) for item in value]
        if isinstance(value, Mapping):
            return {key: self.resolve(item) for key, item in value.items()}
        return value

    def _resolve_string(self, value: str) -> Any:
        whole = _WHOLE_PARAMETER.match(value)
        if whole and not _is_env_name(whole.group(1)):
            return self.parameter(whole.group(1))

        def substitute(match: re.Match[str]) -> str:
            name = match.group(1)
            if name is None or _is_env_name(name):
                return match.group(0)
            resolved = self.parameter(name)
            if isinstance(resolved, list | dict):
                msg = f"Parameter '{name}' of type {type(resolved).__name__} can't be embedded in '{value}'"
                raise CompilationError(msg)
            if isinstance(resolved, str):
                return resolved
            return "" if resolved is None else str(resolved)

        return _PARAMETER.sub(substitute, value)

    def all(self) -> dict[str, Any]:
        return {name: self.parameter(name) for name in self._raw}


def finalize(value: Any) -> Any:
    """Turn resolved strings into runtime values: unescape ``%%`` or mark ``%env()%`` templates."""

    if isinstance(value, str):
        if any(match.group(1) for match in ENV_PLACEHOLDER.finditer(value)):
            return {ENV_MARKER: value}
        return value.replace("%%", "%")
    if isinstance(value, list):
        return [finalize(item) for item in value]
    if isinstance(value, dict):
        return {key: finalize(item) for key, item in value.items()}
    return value


class _ServiceBuilder:
    """Converts raw service entries into definitions with encoded references."""

    def __init__(self, resolver: _ParameterResolver) -> None:
        self._resolver = resolver
        self.references: list[tuple[str, str]] = []

    def argument(self, owner: str, value: Any) -> Any:
        if isinstance(value, str):
            if value.startswith("@@"):
                return finalize(self._resolver.resolve(value[1:]))
            if value.startswith("@?"):
                return {SERVICE_MARKER: value[2:], "optional": True}
            if value.startswith("@"):
                self.references.append((owner, value[1:]))
                return {SERVICE_MARKER: value[1:], "optional": False}
            return finalize(self._resolver.resolve(value))
        if isinstance(value, list | tuple):
            return [self.argument(owner, item) for item in value]
        if isinstance(value, Mapping):
            return {str(key): self.argument(owner, item) for key, item in value.items()}
        return value

    def arguments(self, owner: str, raw: Any) -> tuple[Any, ...]:
        if raw is None:
            return ()
        if not isinstance(raw, list | tuple):
            msg = f"Arguments of service '{owner}' must be a list"
            raise CompilationError(msg)
        return tuple(self.argument(owner, item) for item in raw)

    def calls(self, owner: str, raw: Any) -> tuple[MethodCall, ...]:
        calls: list[MethodCall] = []
        for item in raw or ():
            if isinstance(item, Mapping):
                method, args = item.get("method"), item.get("arguments")
            elif isinstance(item, list | tuple) and 1 <= len(item) <= 2:
                method, args = item[0], item[1] if len(item) == 2 else None
            else:
                msg = f"Invalid method call {item!r} on service '{owner}'"
                raise CompilationError(msg)
            if not isinstance(method, str) or not method:
                msg = f"Method call on service '{owner}' needs a method name"
                raise CompilationError(msg)
            calls.append(MethodCall(method=method, arguments=self.arguments(owner, args)))
        return tuple(calls)

    def build(self, service_id: str, raw: Any) -> ServiceDefinition | str:
        """Return a definition, or the alias target for alias entries."""

        if raw is None:
            raw = {"class": service_id}
        if isinstance(raw, str):
            if raw.startswith("@") and not raw.startswith("@@"):
                return raw[1:]
            msg = f"Service '{service_id}' must be a mapping or an '@alias' reference"
            raise CompilationError(msg)
        if not isinstance(raw, Mapping):
            msg = f"Service '{service_id}' must be a mapping"
            raise CompilationError(msg)
        unknown = set(raw) - _SERVICE_KEYS
        if unknown:
            msg = f"Unsupported keys {sorted(map(str, unknown))} for service '{service_id}'"
            raise CompilationError(msg)
        if raw.get("alias"):
            return str(raw["alias"]).lstrip("@")

        tags = tuple(
            tag["name"] if isinstance(tag, Mapping) else str(tag) for tag in raw.get("tags") or ()
        )
        try:
            return ServiceDefinition(
                id=service_id,
                class_path=self._constructor(raw.get("class")),
                factory=self._constructor(raw.get("factory")),
                arguments=self.arguments(service_id, raw.get("arguments")),
                calls=self.calls(service_id, raw.get("calls")),
                shared=bool(raw.get("shared", True)),
                public=bool(raw.get("public", True)),
                tags=tags,
            )
        except ValidationError as exc:
            msg = f"Invalid definition for service '{service_id}': {exc}"
            raise CompilationError(msg) from exc

    def _constructor(self, raw: Any) -> str | None:
        if raw is None:
            return None
        resolved = finalize(self._resolver.resolve(raw))
        if not isinstance(resolved, str):
            msg = f"Constructor path must resolve to a string, got {resolved!r}"
            raise CompilationError(msg)
        return resolved


class DefinitionCompiler:
    """Loads sources (and their imports) in order and compiles them into a definition.

    Later sources override parameters and services declared by earlier ones.
    """

    def __init__(self, loader: DelegatingLoader | None = None) -> None:
        self._loader = loader or DelegatingLoader()

    def compile(
        self,
        parameters: Mapping[str, Any],
        sources: Sequence[str],
    ) -> CompilationResult:
        # base parameters are literal values, so '%' must not start a reference
        raw_parameters: dict[str, Any] = {
            name: value.replace("%", "%%") if isinstance(value, str) else value
            for name, value in parameters.items()
        }
        raw_services: dict[str, Any] = {}
        resources: dict[str, ResourceRef] = {}

        for source in sources:
            self._load(Path(source).resolve(), raw_parameters, raw_services, resources, ())

        resolver = _ParameterResolver(raw_parameters)
        resolved_parameters = {name: finalize(value) for name, value in resolver.all().items()}

        builder = _ServiceBuilder(resolver)
        services: dict[str, ServiceDefinition] = {}
        aliases: dict[str, str] = {}
        for service_id, raw in raw_services.items():
            built = builder.build(service_id, raw)
            if isinstance(built, str):
                aliases[service_id] = built
            else:
                services[service_id] = built

        known = {*services, *aliases, CONTAINER_SERVICE_ID}
        for owner, target in builder.references:
            if target not in known:
                msg = f"Service '{owner}' has a dependency on a non-existent service '{target}'"
                raise CompilationError(msg)
        self._check_aliases(aliases, known)

        definition = ContainerDefinition(
            parameters=resolved_parameters,
            services=services,
            aliases=aliases,
        )
        logger.debug(
            "Compiled %d services and %d aliases from %d sources",
            len(services),
            len(aliases),
            len(sources),
        )
        return CompilationResult(definition=definition, resources=tuple(resources.values()))

    def _load(
        self,
        path: Path,
        parameters: dict[str, Any],
        services: dict[str, Any],
        resources: dict[str, ResourceRef],
        stack: tuple[Path, ...],
    ) -> None:
        if path in stack:
            chain = " -> ".join(str(item) for item in (*stack, path))
            msg = f"Circular import detected: {chain}"
            raise CompilationError(msg)
        # signature before content, so an edit during the read leaves it stale
        resources[str(path)] = ResourceRef.capture(path)
        raw: RawConfig = self._loader.load(path)

        for spec in raw.imports:
            target = (path.parent / spec.resource).resolve()
            if not target.exists():
                if spec.ignore_errors:
                    logger.debug("Ignoring missing import %s from %s", target, path)
                    resources[str(target)] = ResourceRef.capture(target)
                    continue
                msg = f"Imported resource {spec.resource!r} not found from {path}"
                raise ConfigSourceError(msg)
            self._load(target, parameters, services, resources, (*stack, path))

        parameters.update(raw.parameters)
        for service_id, definition in raw.services.items():
            services.pop(service_id, None)
            services[service_id] = definition

    @staticmethod
    def _check_aliases(aliases: Mapping[str, str], known: set[str]) -> None:
        for alias, target in aliases.items():
            if target not in known:
                msg = f"Alias '{alias}' points to a non-existent service '{target}'"
                raise CompilationError(msg)
            seen = [alias]
            current = target
            while current in aliases:
                if current in seen:
                    chain = " -> ".join([*seen, current])
                    msg = f"Circular alias detected: {chain}"
                    raise CompilationError(msg)
                seen.append(current)
                current = aliases[current]


__all__ = ["CONTAINER_SERVICE_ID", "DefinitionCompiler", "finalize"]

"""File loaders turning YAML, XML and JSON sources into raw definition data."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol
from xml.etree.ElementTree import Element

import defusedxml.ElementTree as SafeET
import yaml
from defusedxml.common import DefusedXmlException

from .exceptions import ConfigSourceError, UnsupportedConfigFormatError

_TOP_LEVEL_KEYS = frozenset({"parameters", "services", "imports"})
_NUMBER = re.compile(r"^-?(?:\d+|\d*\.\d+)$")


@dataclass(frozen=True, slots=True)
class ImportSpec:
    """Reference from one source to another, resolved relative to the importer."""

    resource: str
    ignore_errors: bool = False


@dataclass(slots=True)
class RawConfig:
    """Unvalidated definitions read from a single file."""

    parameters: dict[str, Any] = field(default_factory=dict)
    services: dict[str, Any] = field(default_factory=dict)
    imports: list[ImportSpec] = field(default_factory=list)


class FileLoader(Protocol):
    def supports(self, path: Path) -> bool: ...

    def load(self, path: Path) -> RawConfig: ...


def _read_text(path: Path) -> str:
    if not path.is_file():
        msg = f"Configuration file not found: {path}"
        raise ConfigSourceError(msg)
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Configuration file can't be read: {path}"
        raise ConfigSourceError(msg) from exc


def _parse_imports(path: Path, raw: Any) -> list[ImportSpec]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        msg = f"'imports' must be a list in {path}"
        raise ConfigSourceError(msg)
    imports: list[ImportSpec] = []
    for item in raw:
        if isinstance(item, str):
            imports.append(ImportSpec(resource=item))
        elif isinstance(item, Mapping) and isinstance(item.get("resource"), str):
            imports.append(
                ImportSpec(resource=item["resource"], ignore_errors=bool(item.get("ignore_errors")))
            )
        else:
            msg = f"Invalid import {item!r} in {path}"
            raise ConfigSourceError(msg)
    return imports


def _from_mapping(path: Path, data: Any) -> RawConfig:
    if data is None:
        return RawConfig()
    if not isinstance(data, Mapping):
        msg = f"Configuration root must be a mapping in {path}"
        raise ConfigSourceError(msg)
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        msg = f"Unsupported keys {sorted(map(str, unknown))} in {path}"
        raise ConfigSourceError(msg)
    parameters = data.get("parameters") or {}
    services = data.get("services") or {}
    if not isinstance(parameters, Mapping):
        msg = f"'parameters' must be a mapping in {path}"
        raise ConfigSourceError(msg)
    if not isinstance(services, Mapping):
        msg = f"'services' must be a mapping in {path}"
        raise ConfigSourceError(msg)
    return RawConfig(
        parameters={str(key): value for key, value in parameters.items()},
        services={str(key): value for key, value in services.items()},
        imports=_parse_imports(path, data.get("imports")),
    )


class YamlFileLoader:

    def supports(self, path: Path) -> bool:
        return path.suffix.lower() in {".yaml", ".yml"}

    def load(self, path: Path) -> RawConfig:
        raw = _read_text(path)
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            msg = f"Invalid YAML in {path}: {exc}"
            raise ConfigSourceError(msg) from exc
        return _from_mapping(path, data)


class JsonFileLoader:

    def supports(self, path: Path) -> bool:
        return path.suffix.lower() == ".json"

    def load(self, path: Path) -> RawConfig:
        raw = _read_text(path)
        try:
            data = json.loads(raw) if raw.strip() else None
        except json.JSONDecodeError as exc:
            msg = f"Invalid JSON in {path}: {exc}"
            raise ConfigSourceError(msg) from exc
        return _from_mapping(path, data)


def coerce_scalar(text: str | None) -> Any:
    """Convert XML scalar text into the closest native value."""

    if text is None:
        return None
    value = text.strip()
    lowered = value.lower()
    if lowered in {"", "null", "~"}:
        return None
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _NUMBER.match(value):
        return float(value) if "." in value else int(value)
    return value


def _as_bool(element: Element, name: str, default: bool) -> bool:
    raw = element.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"true", "1", "yes"}


class XmlFileLoader:
    """Loads ``<container>`` documents with ``imports``, ``parameters`` and ``services`` sections."""


    def supports(self, path: Path) -> bool:
        return path.suffix.lower() == ".xml"

    def load(self, path: Path) -> RawConfig:
        _read_text(path)
        try:
            root = SafeET.parse(str(path)).getroot()
        except (SafeET.ParseError, DefusedXmlException) as exc:
            msg = f"Invalid XML in {path}: {exc}"
            raise ConfigSourceError(msg) from exc
        if _local(root.tag) != "container":
            msg = f"Root element must be <container> in {path}"
            raise ConfigSourceError(msg)

        config = RawConfig()
        for section in root:
            name = _local(section.tag)
            if name == "imports":
                config.imports.extend(self._imports(path, section))
            elif name == "parameters":
                for parameter in _children(section, "parameter"):
                    key = parameter.get("key")
                    if not key:
                        msg = f"<parameter> without key in {path}"
                        raise ConfigSourceError(msg)
                    config.parameters[key] = self._parameter_value(parameter)
            elif name == "services":
                for service in _children(section, "service"):
                    service_id = service.get("id")
                    if not service_id:
                        msg = f"<service> without id in {path}"
                        raise ConfigSourceError(msg)
                    config.services[service_id] = self._service(service)
            else:
                msg = f"Unsupported element <{name}> in {path}"
                raise ConfigSourceError(msg)
        return config

    def _imports(self, path: Path, section: Element) -> Iterable[ImportSpec]:
        for item in _children(section, "import"):
            resource = item.get("resource")
            if not resource:
                msg = f"<import> without resource in {path}"
                raise ConfigSourceError(msg)
            yield ImportSpec(resource=resource, ignore_errors=_as_bool(item, "ignore-errors", False))

    def _parameter_value(self, element: Element) -> Any:
        kind = element.get("type")
        if kind == "collection":
            return self._collection(element, "parameter", self._parameter_value)
        if kind == "string":
            return element.text or ""
        return coerce_scalar(element.text)

    def _argument(self, element: Element) -> Any:
        kind = element.get("type")
        if kind == "service":
            target = element.get("id")
            optional = element.get("on-invalid") in {"null", "ignore"}
            return f"@?{target}" if optional else f"@{target}"
        if kind == "collection":
            return self._collection(element, "argument", self._argument)
        if kind == "string":
            value = element.text or ""
        else:
            value = coerce_scalar(element.text)
        if isinstance(value, str) and value.startswith("@"):
            return "@" + value
        return value

    def _collection(self, element: Element, child: str, convert: Any) -> Any:
        items = list(_children(element, child))
        if items and all(item.get("key") is not None for item in items):
            return {item.get("key"): convert(item) for item in items}
        return [convert(item) for item in items]

    def _service(self, element: Element) -> Any:
        alias = element.get("alias")
        if alias:
            return f"@{alias}"
        definition: dict[str, Any] = {}
        if element.get("class"):
            definition["class"] = element.get("class")
        if element.get("factory"):
            definition["factory"] = element.get("factory")
        definition["shared"] = _as_bool(element, "shared", True)
        definition["public"] = _as_bool(element, "public", True)
        definition["arguments"] = [self._argument(arg) for arg in _children(element, "argument")]
        definition["calls"] = [
            {
                "method": call.get("method"),
                "arguments": [self._argument(arg) for arg in _children(call, "argument")],
            }
            for call in _children(element, "call")
        ]
        definition["tags"] = [tag.get("name") for tag in _children(element, "tag")]
        return definition


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: Element, name: str) -> Iterable[Element]:
    return (child for child in element if _local(child.tag) == name)


class DelegatingLoader:
    """Dispatches each file to the first loader that supports its extension."""

    def __init__(self, loaders: Iterable[FileLoader] | None = None) -> None:
        self._loaders: tuple[FileLoader, ...] = tuple(
            loaders if loaders is not None else (YamlFileLoader(), XmlFileLoader(), JsonFileLoader())
        )

    def resolve(self, path: Path) -> FileLoader:
        for loader in self._loaders:
            if loader.supports(path):
                return loader
        msg = f"No loader supports configuration file {path}"
        raise UnsupportedConfigFormatError(msg)

    def load(self, path: Path) -> RawConfig:
        return self.resolve(path).load(path)


__all__ = [
    "DelegatingLoader",
    "FileLoader",
    "ImportSpec",
    "JsonFileLoader",
    "RawConfig",
    "XmlFileLoader",
    "YamlFileLoader",
    "coerce_scalar",
]

"""Normalization of heterogeneous config file entries into ordered sources."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .domain import ConfigEntry, ConfigSource, PathEntry, PrioritizedEntry
from .exceptions import InvalidParameterError

logger = logging.getLogger(__name__)

_ENTRY_ADAPTER: TypeAdapter[PathEntry | PrioritizedEntry] = TypeAdapter(ConfigEntry)


class _Unrecognized(Exception):
    """Internal signal for an entry that matches no accepted shape."""


def _is_path(value: Any) -> bool:
    return isinstance(value, str | os.PathLike)


def _is_priority(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _from_record(path: Any, record: Mapping[str, Any]) -> PathEntry | PrioritizedEntry:
    priority = record.get("priority")
    if priority is None:
        return PathEntry(path=os.fspath(path))
    if not _is_priority(priority):
        raise _Unrecognized(f"priority {priority!r} for {path!r} is not an integer")
    return PrioritizedEntry(path=os.fspath(path), priority=priority)


def _coerce_item(item: Any) -> PathEntry | PrioritizedEntry:
    """Interpret one element of a sequence-style config list."""

    if isinstance(item, PathEntry | PrioritizedEntry):
        return item
    if isinstance(item, ConfigSource):
        return PrioritizedEntry(path=item.path, priority=item.priority)
    if _is_path(item):
        return PathEntry(path=os.fspath(item))
    if isinstance(item, Mapping):
        if "kind" in item:
            try:
                return _ENTRY_ADAPTER.validate_python(item)
            except ValidationError as exc:
                raise _Unrecognized(str(exc)) from exc
        path = item.get("file", item.get("path"))
        if not _is_path(path):
            raise _Unrecognized(f"record {dict(item)!r} has no 'file' path")
        return _from_record(path, item)
    if isinstance(item, tuple | list) and len(item) == 2:
        path, priority = item
        if _is_path(path) and _is_priority(priority):
            return PrioritizedEntry(path=os.fspath(path), priority=priority)
    raise _Unrecognized(f"unsupported config entry {item!r}")


def _coerce_pair(key: Any, value: Any) -> PathEntry | PrioritizedEntry:
    """Interpret one ``path: priority`` or ``path: {priority: ...}`` mapping entry."""

    if not _is_path(key):
        raise _Unrecognized(f"config key {key!r} is not a path")
    if _is_priority(value):
        return PrioritizedEntry(path=os.fspath(key), priority=value)
    if isinstance(value, Mapping):
        return _from_record(key, value)
    raise _Unrecognized(f"unsupported priority {value!r} for {key!r}")


def _iter_candidates(entries: Any) -> Iterator[tuple[Any, Any]]:
    if isinstance(entries, Mapping):
        yield from ((key, value) for key, value in entries.items())
        return
    if _is_path(entries):
        yield (None, entries)
        return
    if not isinstance(entries, Iterable):
        msg = f"Config files must be a mapping or an iterable, got {type(entries).__name__}"
        raise InvalidParameterError(msg)
    yield from ((None, item) for item in entries)


def parse_config_entries(entries: Any, *, strict: bool = False) -> list[PathEntry | PrioritizedEntry]:
    """Validate caller input into typed entries.

    Entries that match none of the accepted shapes are dropped with a warning,
    or rejected with :class:`InvalidParameterError` when ``strict`` is set.
    """

    parsed: list[PathEntry | PrioritizedEntry] = []
    is_mapping = isinstance(entries, Mapping)
    for key, value in _iter_candidates(entries):
        try:
            entry = _coerce_pair(key, value) if is_mapping else _coerce_item(value)
        except (_Unrecognized, ValidationError) as exc:
            if strict:
                raise InvalidParameterError(f"Invalid config entry: {exc}") from exc
            logger.warning("Skipping config entry that matches no known shape: %s", exc)
            continue
        parsed.append(entry)
    return parsed


def normalize_config_entries(
    entries: Any = (),
    *,
    default_source: ConfigSource | None = None,
    strict: bool = False,
    absolute: bool = False,
) -> tuple[ConfigSource, ...]:
    """Return sources ordered by ascending priority.

    A path seen twice keeps its first position and takes the later priority.
    Equal priorities keep their first-seen order. With ``absolute`` set, paths
    are made absolute first so that relative and absolute spellings of the same
    file collapse into one source.
    """

    def identity(path: str) -> str:
        return os.path.abspath(path) if absolute else path

    priorities: dict[str, int] = {}
    for entry in parse_config_entries(entries, strict=strict):
        priority = entry.priority if isinstance(entry, PrioritizedEntry) else 0
        priorities[identity(entry.path)] = priority
    if default_source is not None:
        priorities[identity(default_source.path)] = default_source.priority

    ordered = sorted(priorities.items(), key=lambda item: item[1])
    return tuple(ConfigSource(path=path, priority=priority) for path, priority in ordered)


def ordered_paths(sources: Iterable[ConfigSource]) -> tuple[str, ...]:
    return tuple(source.path for source in sources)


__all__ = ["normalize_config_entries", "ordered_paths", "parse_config_entries"]

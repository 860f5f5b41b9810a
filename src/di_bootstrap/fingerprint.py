"""Deterministic cache keys for compiled containers."""

from __future__ import annotations

import json
import os
from collections.abc import Iterable
from hashlib import sha256

from pydantic import ValidationError

from .domain import CacheFingerprint, ConfigSource, LoadContext, LoadInputs
from .exceptions import InvalidParameterError


def build_load_inputs(context: LoadContext, sources: Iterable[ConfigSource]) -> LoadInputs:
    """Collect the fingerprint inputs from a resolved context and ordered sources."""

    try:
        return LoadInputs(
            project_root=str(context.project_root),
            ordered_config_paths=tuple(os.path.abspath(source.path) for source in sources),
            env_file_location=str(context.env_file_location),
        )
    except ValidationError as exc:
        msg = "Can't generate container cache key because of invalid input data"
        raise InvalidParameterError(msg) from exc


def derive_fingerprint(inputs: LoadInputs) -> CacheFingerprint:
    """SHA-256 over the canonical JSON of root, ordered config paths and env location."""

    payload = [inputs.project_root, list(inputs.ordered_config_paths), inputs.env_file_location]
    try:
        canonical = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
        digest = sha256(canonical.encode("utf-8")).hexdigest()
    except (TypeError, ValueError) as exc:
        msg = "Can't generate container cache key because of invalid input data"
        raise InvalidParameterError(msg) from exc
    return CacheFingerprint(digest)


__all__ = ["build_load_inputs", "derive_fingerprint"]

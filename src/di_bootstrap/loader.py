"""Entry point wiring environment resolution, normalization, fingerprinting and caching."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .cache import ContainerCache
from .compiler import ContainerCompiler
from .config import LoaderSettings
from .container import Container
from .domain import CacheFingerprint, CacheState, ConfigSource, LoadContext, StrPath
from .environment import publish_environment, resolve_environment
from .fingerprint import build_load_inputs, derive_fingerprint
from .normalizer import normalize_config_entries, ordered_paths

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LoadReport:
    """Everything decided during one load, for tooling and diagnostics."""

    context: LoadContext
    sources: tuple[ConfigSource, ...]
    fingerprint: CacheFingerprint
    state: CacheState
    artifact_path: str
    container: Container


def default_source(settings: LoaderSettings) -> ConfigSource:
    return ConfigSource(
        path=str(settings.default_config_file),
        priority=settings.default_config_priority,
    )


def prepare(
    config_files: Any = (),
    project_root: StrPath | None = None,
    env_file_location: StrPath | None = None,
    cache_dir: StrPath | None = None,
    use_defaults: bool = True,
    *,
    settings: LoaderSettings | None = None,
    environ: Mapping[str, str] | None = None,
    probe_from: StrPath | None = None,
    strict: bool | None = None,
) -> tuple[LoadContext, tuple[ConfigSource, ...], CacheFingerprint]:
    """Resolve the context, ordered sources and fingerprint without touching the cache."""

    resolved_settings = settings or LoaderSettings()
    context = resolve_environment(
        project_root,
        env_file_location,
        cache_dir,
        environ=environ,
        settings=resolved_settings,
        probe_from=probe_from,
    )
    sources = normalize_config_entries(
        config_files,
        default_source=default_source(resolved_settings) if use_defaults else None,
        strict=resolved_settings.strict_entries if strict is None else strict,
        absolute=True,
    )
    fingerprint = derive_fingerprint(build_load_inputs(context, sources))
    logger.debug("Container fingerprint %s for %d sources", fingerprint, len(sources))
    return context, sources, fingerprint


def bootstrap(
    config_files: Any = (),
    project_root: StrPath | None = None,
    env_file_location: StrPath | None = None,
    cache_dir: StrPath | None = None,
    use_defaults: bool = True,
    *,
    compiler: ContainerCompiler | None = None,
    settings: LoaderSettings | None = None,
    environ: Mapping[str, str] | None = None,
    probe_from: StrPath | None = None,
    strict: bool | None = None,
    force_refresh: bool | None = None,
    publish_env: bool = False,
) -> LoadReport:
    """Load a container and report how it was obtained."""

    resolved_settings = settings or LoaderSettings()
    context, sources, fingerprint = prepare(
        config_files,
        project_root,
        env_file_location,
        cache_dir,
        use_defaults,
        settings=resolved_settings,
        environ=environ,
        probe_from=probe_from,
        strict=strict,
    )
    if publish_env:
        publish_environment(context, settings=resolved_settings)

    cache = ContainerCache(context.cache_dir, compiler=compiler, settings=resolved_settings)
    state, artifact = cache.resolve(
        fingerprint,
        ordered_paths(sources),
        context,
        force_refresh=force_refresh,
    )
    container = Container(
        artifact.definition,
        environment=context.environment,
        fingerprint=fingerprint,
    )
    return LoadReport(
        context=context,
        sources=sources,
        fingerprint=fingerprint,
        state=state,
        artifact_path=str(cache.artifact_path(fingerprint)),
        container=container,
    )


def load(
    config_files: Any = (),
    project_root: StrPath | None = None,
    env_file_location: StrPath | None = None,
    cache_dir: StrPath | None = None,
    use_defaults: bool = True,
    *,
    compiler: ContainerCompiler | None = None,
    settings: LoaderSettings | None = None,
    environ: Mapping[str, str] | None = None,
    probe_from: StrPath | None = None,
    strict: bool | None = None,
    force_refresh: bool | None = None,
    publish_env: bool = False,
) -> Container:
    """Return a ready-to-use container for the given configuration files.

    ``config_files`` may be a list of paths, ``(path, priority)`` pairs or
    ``{"file": ..., "priority": ...}`` records, or a mapping of path to priority.
    Higher priorities load later and override earlier definitions. The built-in
    default configuration is included at priority -100 unless ``use_defaults``
    is false.

    Raises:
        InvalidParameterError: unusable caller data.
        WrongInfrastructureError: project root or cache directory can't be used.
        ContainerLoadingFailedError: compilation or persistence failed.
    """

    return bootstrap(
        config_files,
        project_root,
        env_file_location,
        cache_dir,
        use_defaults,
        compiler=compiler,
        settings=settings,
        environ=environ,
        probe_from=probe_from,
        strict=strict,
        force_refresh=force_refresh,
        publish_env=publish_env,
    ).container


__all__ = ["LoadReport", "bootstrap", "default_source", "load", "prepare"]

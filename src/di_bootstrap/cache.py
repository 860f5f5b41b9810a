"""Fingerprint-addressed cache of compiled container artifacts."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path

from pydantic import ValidationError

from .compiler import ContainerCompiler, DefinitionCompiler
from .config import LoaderSettings
from .domain import (
    ARTIFACT_FORMAT_VERSION,
    CacheFingerprint,
    CacheState,
    CompiledArtifact,
    LoadContext,
    StrPath,
)
from .exceptions import ContainerLoadingFailedError

ARTIFACT_PREFIX = "container_"
ARTIFACT_SUFFIX = ".json"
_DIRECTORY_MODE = 0o755


class ContainerCache:
    """Decides whether a compiled artifact can be reused, and rebuilds it when not.

    Artifacts live at ``{cache_dir}/di/container_{fingerprint}.json`` and embed the
    resource signatures used for staleness checks. A stale artifact is replaced
    as a whole; concurrent writers of the same fingerprint converge on the same
    path and the last writer wins.
    """

    def __init__(
        self,
        cache_dir: StrPath,
        *,
        compiler: ContainerCompiler | None = None,
        settings: LoaderSettings | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings or LoaderSettings()
        self._root = Path(cache_dir)
        self._directory = self._root / self._settings.cache_folder_name
        self._compiler: ContainerCompiler = compiler or DefinitionCompiler()
        self._logger = logger or logging.getLogger(__name__)

    @property
    def directory(self) -> Path:
        return self._directory

    def artifact_path(self, fingerprint: CacheFingerprint) -> Path:
        return self._directory / f"{ARTIFACT_PREFIX}{fingerprint}{ARTIFACT_SUFFIX}"

    def read(self, fingerprint: CacheFingerprint) -> CompiledArtifact | None:
        """Return the stored artifact, or ``None`` when it is absent or unusable."""

        path = self.artifact_path(fingerprint)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            self._logger.warning("Unable to read container artifact %s: %s", path, exc)
            return None
        try:
            artifact = CompiledArtifact.model_validate_json(raw)
        except ValidationError as exc:
            self._logger.warning("Discarding corrupt container artifact %s: %s", path, exc)
            return None
        if artifact.format_version != ARTIFACT_FORMAT_VERSION or artifact.fingerprint != fingerprint:
            self._logger.warning("Discarding incompatible container artifact %s", path)
            return None
        return artifact

    def inspect(self, fingerprint: CacheFingerprint) -> CacheState:
        """Classify the artifact for ``fingerprint`` without compiling anything."""

        state, _ = self._inspect(fingerprint)
        return state

    def _inspect(self, fingerprint: CacheFingerprint) -> tuple[CacheState, CompiledArtifact | None]:
        if not self.artifact_path(fingerprint).exists():
            return CacheState.MISSING, None
        artifact = self.read(fingerprint)
        if artifact is None:
            return CacheState.STALE, None
        stale = artifact.stale_resources()
        if stale:
            self._logger.debug(
                "Container %s is stale: %s changed",
                fingerprint,
                ", ".join(resource.path for resource in stale),
            )
            return CacheState.STALE, None
        return CacheState.FRESH, artifact

    def resolve(
        self,
        fingerprint: CacheFingerprint,
        sources: Sequence[str],
        context: LoadContext,
        *,
        force_refresh: bool | None = None,
    ) -> tuple[CacheState, CompiledArtifact]:
        """Return the state observed before loading together with a usable artifact."""

        refresh = context.force_refresh if force_refresh is None else force_refresh
        if refresh:
            state, artifact = CacheState.STALE, None
        else:
            state, artifact = self._inspect(fingerprint)
        if artifact is None:
            artifact = self.rebuild(fingerprint, sources, context)
        return state, artifact

    def rebuild(
        self,
        fingerprint: CacheFingerprint,
        sources: Sequence[str],
        context: LoadContext,
    ) -> CompiledArtifact:
        """Compile ``sources`` and persist the result under ``fingerprint``."""

        try:
            self._ensure_directory()
            self._logger.info("Compiling container %s from %d sources", fingerprint, len(sources))
            result = self._compiler.compile(context.base_parameters(), list(sources))
            artifact = CompiledArtifact(
                fingerprint=fingerprint,
                definition=result.definition,
                resources=result.resources,
            )
            self._write(self.artifact_path(fingerprint), artifact)
        except ContainerLoadingFailedError:
            raise
        except Exception as exc:
            msg = f"Container compilation failed: {exc}"
            raise ContainerLoadingFailedError(msg) from exc
        return artifact

    def _ensure_directory(self) -> None:
        if self._directory.is_dir():
            return
        try:
            self._directory.mkdir(mode=_DIRECTORY_MODE)
        except FileExistsError:
            self._logger.debug("Cache directory %s created concurrently", self._directory)
        if not self._directory.is_dir():
            msg = f"Can't create container cache directory '{self._directory}'"
            raise ContainerLoadingFailedError(msg)

    def _write(self, path: Path, artifact: CompiledArtifact) -> None:
        payload = artifact.model_dump_json(indent=2)
        fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.chmod(temp_name, 0o644)
            os.replace(temp_name, path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        self._logger.info("Wrote container artifact %s", path)

    def list_artifacts(self) -> tuple[Path, ...]:
        if not self._directory.is_dir():
            return ()
        return tuple(sorted(self._directory.glob(f"{ARTIFACT_PREFIX}*{ARTIFACT_SUFFIX}")))

    def clear(self) -> int:
        """Delete every cached artifact and return how many were removed."""

        removed = 0
        for path in self.list_artifacts():
            path.unlink(missing_ok=True)
            removed += 1
        return removed


__all__ = ["ARTIFACT_PREFIX", "ARTIFACT_SUFFIX", "ContainerCache"]

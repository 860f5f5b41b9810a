from __future__ import annotations

import os
from pathlib import Path

import pytest

from di_bootstrap.cache import ContainerCache
from di_bootstrap.compiler import ConfigSourceError
from di_bootstrap.domain import CacheFingerprint, CacheState, LoadContext
from di_bootstrap.exceptions import ContainerLoadingFailedError

from conftest import Project, RecordingCompiler

KEY = CacheFingerprint("abc123")


def _context(project: Project, env_mode: str = "prod") -> LoadContext:
    return LoadContext(
        project_root=project.root,
        env_file_location=project.root,
        cache_dir=project.cache_dir,
        env_mode=env_mode,
        shared_kernel_location=project.root,
    )


def _sources(project: Project) -> list[str]:
    path = project.write("services.yaml", "services:\n  items: {class: builtins:list}\n")
    return [str(path)]


def test_missing_artifact_is_compiled_and_written(
    project: Project, compiler: RecordingCompiler
) -> None:
    cache = ContainerCache(project.cache_dir, compiler=compiler)
    sources = _sources(project)

    assert cache.inspect(KEY) is CacheState.MISSING
    state, artifact = cache.resolve(KEY, sources, _context(project))

    assert state is CacheState.MISSING
    assert cache.artifact_path(KEY) == project.cache_dir / "di" / "container_abc123.json"
    assert cache.artifact_path(KEY).is_file()
    assert artifact.fingerprint == KEY
    assert "items" in artifact.definition.services
    assert len(compiler.calls) == 1
    parameters, compiled_sources = compiler.calls[0]
    assert parameters["project.root"] == str(project.root)
    assert compiled_sources == sources


def test_fresh_artifact_is_reused_without_compiling(
    project: Project, compiler: RecordingCompiler
) -> None:
    cache = ContainerCache(project.cache_dir, compiler=compiler)
    sources = _sources(project)
    cache.resolve(KEY, sources, _context(project))

    state, artifact = cache.resolve(KEY, sources, _context(project))

    assert state is CacheState.FRESH
    assert len(compiler.calls) == 1
    assert artifact.definition.services["items"].class_path == "builtins:list"


def test_changed_source_makes_artifact_stale(
    project: Project, compiler: RecordingCompiler
) -> None:
    cache = ContainerCache(project.cache_dir, compiler=compiler)
    sources = _sources(project)
    cache.resolve(KEY, sources, _context(project))

    source = Path(sources[0])
    source.write_text("services:\n  items: {class: builtins:dict}\n", encoding="utf-8")
    stat = source.stat()
    os.utime(source, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))

    assert cache.inspect(KEY) is CacheState.STALE
    state, artifact = cache.resolve(KEY, sources, _context(project))
    assert state is CacheState.STALE
    assert artifact.definition.services["items"].class_path == "builtins:dict"
    assert len(compiler.calls) == 2
    assert cache.inspect(KEY) is CacheState.FRESH


def test_dev_mode_always_recompiles(project: Project, compiler: RecordingCompiler) -> None:
    cache = ContainerCache(project.cache_dir, compiler=compiler)
    sources = _sources(project)
    context = _context(project, env_mode="dev")

    cache.resolve(KEY, sources, context)
    state, _ = cache.resolve(KEY, sources, context)

    assert state is CacheState.STALE
    assert len(compiler.calls) == 2

    state, _ = cache.resolve(KEY, sources, context, force_refresh=False)
    assert state is CacheState.FRESH
    assert len(compiler.calls) == 2


def test_corrupt_artifact_is_rebuilt(
    project: Project, compiler: RecordingCompiler, caplog: pytest.LogCaptureFixture
) -> None:
    cache = ContainerCache(project.cache_dir, compiler=compiler)
    sources = _sources(project)
    cache.directory.mkdir()
    cache.artifact_path(KEY).write_text("{not json", encoding="utf-8")

    state, _ = cache.resolve(KEY, sources, _context(project))

    assert state is CacheState.STALE
    assert "corrupt" in caplog.text
    assert len(compiler.calls) == 1


def test_directory_created_concurrently(
    project: Project, compiler: RecordingCompiler, monkeypatch: pytest.MonkeyPatch
) -> None:
    cache = ContainerCache(project.cache_dir, compiler=compiler)
    sources = _sources(project)
    original_mkdir = Path.mkdir

    def racing_mkdir(self: Path, *args: object, **kwargs: object) -> None:
        original_mkdir(self)
        raise FileExistsError(str(self))

    monkeypatch.setattr(Path, "mkdir", racing_mkdir)
    cache.resolve(KEY, sources, _context(project))

    assert cache.artifact_path(KEY).is_file()


def test_uncreatable_directory_fails(project: Project, compiler: RecordingCompiler) -> None:
    (project.cache_dir / "di").write_text("occupied", encoding="utf-8")
    cache = ContainerCache(project.cache_dir, compiler=compiler)

    with pytest.raises(ContainerLoadingFailedError, match="Can't create"):
        cache.resolve(KEY, _sources(project), _context(project))
    assert compiler.calls == []


def test_compiler_failures_are_wrapped(project: Project, compiler: RecordingCompiler) -> None:
    cache = ContainerCache(project.cache_dir, compiler=compiler)
    missing = str(project.root / "missing.yaml")

    with pytest.raises(ContainerLoadingFailedError, match="compilation failed") as info:
        cache.resolve(KEY, [missing], _context(project))

    assert isinstance(info.value.__cause__, ConfigSourceError)
    assert not cache.artifact_path(KEY).exists()


def test_list_and_clear(project: Project, compiler: RecordingCompiler) -> None:
    cache = ContainerCache(project.cache_dir, compiler=compiler)
    sources = _sources(project)
    assert cache.clear() == 0

    cache.resolve(CacheFingerprint("one"), sources, _context(project))
    cache.resolve(CacheFingerprint("two"), sources, _context(project))

    assert [path.name for path in cache.list_artifacts()] == [
        "container_one.json",
        "container_two.json",
    ]
    assert cache.clear() == 2
    assert cache.list_artifacts() == ()

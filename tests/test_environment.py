from __future__ import annotations

import os
from pathlib import Path

import pytest

from di_bootstrap.config import LoaderSettings
from di_bootstrap.environment import (
    detect_project_root,
    publish_environment,
    read_env_files,
    resolve_environment,
)
from di_bootstrap.exceptions import InvalidParameterError, WrongInfrastructureError

from conftest import Project


def test_explicit_arguments_win(project: Project) -> None:
    context = resolve_environment(project.root, cache_dir=project.cache_dir, environ={})

    assert context.project_root == project.root.resolve()
    assert context.cache_dir == project.cache_dir.resolve()
    assert context.env_file_location == project.root.resolve()
    assert context.env_mode == "dev"
    assert context.force_refresh is True
    assert context.environment["PROJECT_ROOT"] == str(project.root.resolve())
    assert context.environment["CACHE_DIR"] == str(project.cache_dir.resolve())


def test_project_root_from_environment_variable(project: Project) -> None:
    context = resolve_environment(environ={"PROJECT_ROOT": str(project.root)})
    assert context.project_root == project.root.resolve()
    assert context.cache_dir == (project.root / "cache").resolve()


def test_project_root_detected_from_env_file(project: Project) -> None:
    project.write(".env", "ENV_MODE=prod\n")
    nested = project.root / "src" / "pkg"
    nested.mkdir(parents=True)

    assert detect_project_root(nested) == project.root.resolve()

    context = resolve_environment(environ={}, probe_from=nested)
    assert context.project_root == project.root.resolve()
    assert context.env_mode == "prod"
    assert context.force_refresh is False


def test_missing_explicit_root_falls_back_to_probe(project: Project, tmp_path: Path) -> None:
    project.write(".env", "")
    context = resolve_environment(tmp_path / "nope", environ={}, probe_from=project.root)
    assert context.project_root == project.root.resolve()


def test_unlocatable_project_root(tmp_path: Path) -> None:
    start = tmp_path / "isolated"
    start.mkdir()
    with pytest.raises(WrongInfrastructureError):
        resolve_environment(environ={}, probe_from=start)


def test_missing_cache_directory(tmp_path: Path) -> None:
    with pytest.raises(WrongInfrastructureError, match="cache directory does not exist"):
        resolve_environment(tmp_path, environ={})


def test_cache_dir_from_explicit_env_location(project: Project, tmp_path: Path) -> None:
    custom_cache = tmp_path / "elsewhere"
    custom_cache.mkdir()
    env_dir = tmp_path / "envdir"
    env_dir.mkdir()
    (env_dir / ".env").write_text(
        f"PROJECT_ROOT={project.root}\nCACHE_DIR={custom_cache}\n", encoding="utf-8"
    )

    context = resolve_environment(env_file_location=env_dir, environ={})

    assert context.project_root == project.root.resolve()
    assert context.cache_dir == custom_cache.resolve()
    assert context.env_file_location == env_dir.resolve()


def test_env_files_are_layered(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("ENV_MODE=prod\nA=1\nB=1\nC=1\n", encoding="utf-8")
    (tmp_path / ".env.local").write_text("B=2\n", encoding="utf-8")
    (tmp_path / ".env.prod").write_text("C=3\n", encoding="utf-8")
    (tmp_path / ".env.prod.local").write_text("D=4\n", encoding="utf-8")

    values = read_env_files(tmp_path, environ={}, settings=LoaderSettings())

    assert values == {"ENV_MODE": "prod", "A": "1", "B": "2", "C": "3", "D": "4"}


def test_test_mode_skips_local_overrides(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("B=1\n", encoding="utf-8")
    (tmp_path / ".env.local").write_text("B=2\n", encoding="utf-8")

    values = read_env_files(tmp_path, environ={"ENV_MODE": "test"}, settings=LoaderSettings())

    assert values["B"] == "1"


def test_dist_file_used_when_env_missing(tmp_path: Path) -> None:
    (tmp_path / ".env.dist").write_text("FROM_DIST=yes\n", encoding="utf-8")
    values = read_env_files(tmp_path, environ={}, settings=LoaderSettings())
    assert values["FROM_DIST"] == "yes"


def test_process_environment_wins_over_files(project: Project) -> None:
    project.write(".env", "ENV_MODE=prod\nGREETING=file\n")
    context = resolve_environment(
        project.root, environ={"GREETING": "process", "ENV_MODE": "staging"}
    )
    assert context.environment["GREETING"] == "process"
    assert context.env_mode == "staging"


def test_malformed_env_file(project: Project) -> None:
    project.write(".env", 'GOOD=1\nBAD="unterminated\n')
    with pytest.raises(WrongInfrastructureError, match="line 2"):
        resolve_environment(project.root, environ={})


def test_explicit_env_location_without_env_file(tmp_path: Path) -> None:
    with pytest.raises(InvalidParameterError):
        resolve_environment(env_file_location=tmp_path, environ={})


def test_explicit_env_location_not_a_directory(tmp_path: Path) -> None:
    with pytest.raises(InvalidParameterError):
        resolve_environment(env_file_location=tmp_path / "missing", environ={})


def test_process_environment_is_not_mutated(project: Project) -> None:
    before = dict(os.environ)
    resolve_environment(project.root, environ={})
    assert dict(os.environ) == before


def test_publish_environment_writes_target(project: Project) -> None:
    project.write(".env", "FEATURE=on\n")
    context = resolve_environment(project.root, environ={})
    target = {"FEATURE": "preset", "PROJECT_ROOT": "/stale"}

    publish_environment(context, target)

    assert target["PROJECT_ROOT"] == str(project.root.resolve())
    assert target["CACHE_DIR"] == str(project.cache_dir.resolve())
    assert target["FEATURE"] == "preset"
    assert target["ENV_MODE"] == "dev"

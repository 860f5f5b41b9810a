from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from di_bootstrap.cli.app import app
from di_bootstrap.cli.deps import reset_settings

from conftest import Project

runner = CliRunner()


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENV_MODE", "prod")
    for name in ("PROJECT_ROOT", "CACHE_DIR", "DI_BOOTSTRAP_DEV_MODE", "DI_BOOTSTRAP_STRICT_ENTRIES"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()


def _location_args(project: Project) -> list[str]:
    return ["--project-root", str(project.root), "--cache-dir", str(project.cache_dir)]


def _config(project: Project) -> str:
    path = project.write("services.yaml", "services:\n  items: {class: builtins:list}\n")
    return str(path)


def test_show_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DI_BOOTSTRAP_STRICT_ENTRIES", "1")
    reset_settings()

    result = runner.invoke(app, ["show-settings"])

    assert result.exit_code == 0, result.output
    assert "Default priority:\t-100" in result.output
    assert "Cache folder:\tdi" in result.output
    assert "Strict entries:\ttrue" in result.output


def test_warmup_then_fingerprint_reports_fresh(project: Project) -> None:
    config = _config(project)

    warm = runner.invoke(app, ["warmup", *_location_args(project), config])
    assert warm.exit_code == 0, warm.output
    assert "State:\tmissing" in warm.output

    again = runner.invoke(app, ["warmup", *_location_args(project), config])
    assert "State:\tfresh" in again.output

    forced = runner.invoke(app, ["warmup", "--force", *_location_args(project), config])
    assert "State:\tstale" in forced.output

    shown = runner.invoke(app, ["fingerprint", *_location_args(project), f"{config}=5"])
    assert shown.exit_code == 0, shown.output
    assert "Fingerprint:\t" in shown.output
    assert f"5\t{config}" in shown.output
    assert "-100\t" in shown.output


def test_services_lists_public_ids(project: Project) -> None:
    config = _config(project)

    result = runner.invoke(app, ["services", *_location_args(project), config])

    assert result.exit_code == 0, result.output
    assert "items\tbuiltins:list" in result.output
    assert "container\talias for service_container" in result.output
    assert "logger\tlogging:getLogger" in result.output


def test_clear_cache(project: Project) -> None:
    config = _config(project)
    runner.invoke(app, ["warmup", *_location_args(project), config])

    result = runner.invoke(app, ["clear-cache", *_location_args(project)])

    assert result.exit_code == 0, result.output
    assert "Removed 1 container artifacts" in result.output
    assert not any((project.cache_dir / "di").iterdir())


def test_errors_exit_with_status_one(project: Project, tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["warmup", "--project-root", str(project.root), "--cache-dir", str(tmp_path / "absent")],
    )

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_invalid_priority_is_rejected(project: Project) -> None:
    result = runner.invoke(app, ["fingerprint", *_location_args(project), "services.yaml=high"])
    assert result.exit_code != 0

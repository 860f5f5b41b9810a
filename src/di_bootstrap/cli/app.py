"""Typer CLI for inspecting and warming container caches."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from di_bootstrap.cache import ContainerCache
from di_bootstrap.domain import PathEntry, PrioritizedEntry
from di_bootstrap.environment import resolve_environment
from di_bootstrap.exceptions import DIContainerLoadingError
from di_bootstrap.loader import bootstrap, prepare

from .deps import get_settings

app = typer.Typer(help="Dependency-injection container bootstrap utilities")

_CONFIGS_HELP = "Config files, optionally suffixed with =PRIORITY (e.g. services.yaml=10)"


def _parse_config(value: str) -> PathEntry | PrioritizedEntry:
    path, sep, priority = value.rpartition("=")
    if sep and path:
        try:
            return PrioritizedEntry(path=path, priority=int(priority))
        except ValueError as exc:
            raise typer.BadParameter(f"priority in '{value}' must be an integer") from exc
    return PathEntry(path=value)


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _fail(exc: Exception) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


@app.command("show-settings")
def show_settings() -> None:
    """Print the loader settings in effect."""

    settings = get_settings()
    typer.echo("Default config:\t" + str(settings.default_config_file))
    typer.echo("Default priority:\t" + str(settings.default_config_priority))
    typer.echo("Cache folder:\t" + settings.cache_folder_name)
    typer.echo("Dev mode:\t" + settings.dev_mode)
    typer.echo("Strict entries:\t" + str(settings.strict_entries).lower())


@app.command("fingerprint")
def fingerprint(
    configs: list[str] | None = typer.Argument(None, help=_CONFIGS_HELP),
    project_root: Path | None = typer.Option(None, help="Project root directory"),
    cache_dir: Path | None = typer.Option(None, help="Main cache directory"),
    env_file_location: Path | None = typer.Option(None, help="Directory holding the .env files"),
    no_defaults: bool = typer.Option(False, "--no-defaults", help="Skip the built-in config"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Show the cache key, ordered sources and cache state without compiling."""

    _configure_logging(verbose)
    settings = get_settings()
    try:
        context, sources, key = prepare(
            [_parse_config(value) for value in configs or []],
            project_root,
            env_file_location,
            cache_dir,
            not no_defaults,
            settings=settings,
        )
    except DIContainerLoadingError as exc:
        raise _fail(exc) from exc

    cache = ContainerCache(context.cache_dir, settings=settings)
    typer.echo(f"Fingerprint:\t{key}")
    typer.echo(f"Artifact:\t{cache.artifact_path(key)}")
    typer.echo(f"State:\t{cache.inspect(key)}")
    for source in sources:
        typer.echo(f"{source.priority}\t{source.path}")


@app.command("warmup")
def warmup(
    configs: list[str] | None = typer.Argument(None, help=_CONFIGS_HELP),
    project_root: Path | None = typer.Option(None, help="Project root directory"),
    cache_dir: Path | None = typer.Option(None, help="Main cache directory"),
    env_file_location: Path | None = typer.Option(None, help="Directory holding the .env files"),
    no_defaults: bool = typer.Option(False, "--no-defaults", help="Skip the built-in config"),
    force: bool | None = typer.Option(
        None, "--force/--no-force", help="Override the environment mode's refresh policy"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Compile the container if needed and report whether the cache was reused."""

    _configure_logging(verbose)
    try:
        report = bootstrap(
            [_parse_config(value) for value in configs or []],
            project_root,
            env_file_location,
            cache_dir,
            not no_defaults,
            settings=get_settings(),
            force_refresh=force,
        )
    except DIContainerLoadingError as exc:
        raise _fail(exc) from exc

    typer.echo(f"State:\t{report.state}")
    typer.echo(f"Artifact:\t{report.artifact_path}")
    typer.echo(f"Services:\t{len(report.container.service_ids())}")


@app.command("services")
def services(
    configs: list[str] | None = typer.Argument(None, help=_CONFIGS_HELP),
    project_root: Path | None = typer.Option(None, help="Project root directory"),
    cache_dir: Path | None = typer.Option(None, help="Main cache directory"),
    env_file_location: Path | None = typer.Option(None, help="Directory holding the .env files"),
    no_defaults: bool = typer.Option(False, "--no-defaults", help="Skip the built-in config"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """List the public service identifiers of the loaded container."""

    _configure_logging(verbose)
    try:
        report = bootstrap(
            [_parse_config(value) for value in configs or []],
            project_root,
            env_file_location,
            cache_dir,
            not no_defaults,
            settings=get_settings(),
        )
    except DIContainerLoadingError as exc:
        raise _fail(exc) from exc

    definition = report.container.definition
    for service_id in report.container.service_ids():
        if service_id in definition.aliases:
            typer.echo(f"{service_id}\talias for {definition.aliases[service_id]}")
        else:
            typer.echo(f"{service_id}\t{definition.services[service_id].target}")


@app.command("clear-cache")
def clear_cache(
    project_root: Path | None = typer.Option(None, help="Project root directory"),
    cache_dir: Path | None = typer.Option(None, help="Main cache directory"),
    env_file_location: Path | None = typer.Option(None, help="Directory holding the .env files"),
) -> None:
    """Delete every compiled container artifact in the cache directory."""

    settings = get_settings()
    try:
        context = resolve_environment(
            project_root,
            env_file_location,
            cache_dir,
            settings=settings,
        )
    except DIContainerLoadingError as exc:
        raise _fail(exc) from exc

    removed = ContainerCache(context.cache_dir, settings=settings).clear()
    typer.echo(f"Removed {removed} container artifacts")

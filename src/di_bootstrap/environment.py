"""Resolution of project root, cache directory and environment mode."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, MutableMapping
from pathlib import Path

from dotenv import dotenv_values
from dotenv.parser import parse_stream

from .config import LoaderSettings
from .domain import LoadContext, StrPath
from .exceptions import InvalidParameterError, WrongInfrastructureError

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent


def _validate_env_file(path: Path) -> None:
    try:
        with path.open(encoding="utf-8") as stream:
            for binding in parse_stream(stream):
                if binding.error:
                    line = binding.original.line
                    msg = f"Invalid environment file format in '{path}' at line {line}"
                    raise WrongInfrastructureError(msg)
    except OSError as exc:
        msg = f"Environment file '{path}' can't be read"
        raise InvalidParameterError(msg) from exc


def read_env_file(path: Path) -> dict[str, str]:
    """Parse one key=value file, rejecting malformed statements."""

    _validate_env_file(path)
    values = dotenv_values(path, encoding="utf-8")
    return {key: value for key, value in values.items() if value is not None}


def read_env_files(
    location: Path,
    *,
    environ: Mapping[str, str],
    settings: LoaderSettings,
    required: bool = True,
) -> dict[str, str]:
    """Load the layered environment-definition files found in ``location``.

    ``.env`` (or ``.env.dist``) is read first, then ``.env.local`` unless the
    mode is a test mode, then ``.env.<mode>`` and ``.env.<mode>.local``.
    Later files override earlier ones.
    """

    if not location.is_dir():
        if required:
            msg = f"Invalid environment file location '{location}'"
            raise InvalidParameterError(msg)
        return {}

    base = location / settings.env_file_name
    dist = location / f"{settings.env_file_name}.dist"
    values: dict[str, str] = {}
    if base.is_file():
        values.update(read_env_file(base))
    elif dist.is_file():
        values.update(read_env_file(dist))
    elif required:
        msg = f"No '{settings.env_file_name}' file found in '{location}'"
        raise InvalidParameterError(msg)
    else:
        logger.debug("No environment file in %s", location)

    mode = (
        environ.get(settings.env_mode_var)
        or values.get(settings.env_mode_var)
        or settings.default_env_mode
    )
    overlays = [f"{settings.env_file_name}.{mode}", f"{settings.env_file_name}.{mode}.local"]
    if mode not in settings.test_modes:
        overlays.insert(0, f"{settings.env_file_name}.local")
    for name in overlays:
        candidate = location / name
        if candidate.is_file():
            values.update(read_env_file(candidate))
    return values


def detect_project_root(start: StrPath, *, env_file_name: str = ".env") -> Path | None:
    """Walk upward from ``start`` to the first directory holding an environment file."""

    current = Path(start).resolve()
    while current.is_dir() and current != current.parent:
        if (current / env_file_name).is_file():
            return current
        current = current.parent
    return None


def _existing_dir(candidate: str | None) -> Path | None:
    if not candidate:
        return None
    path = Path(candidate).expanduser()
    return path if path.is_dir() else None


def resolve_environment(
    project_root: StrPath | None = None,
    env_file_location: StrPath | None = None,
    cache_dir: StrPath | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    settings: LoaderSettings | None = None,
    probe_from: StrPath | None = None,
) -> LoadContext:
    """Resolve the load context from explicit arguments, environment and filesystem."""

    resolved_settings = settings or LoaderSettings()
    process_env: Mapping[str, str] = os.environ if environ is None else environ
    file_values: dict[str, str] = {}

    def lookup(name: str) -> str | None:
        return process_env.get(name) or file_values.get(name)

    if env_file_location is not None:
        file_values.update(
            read_env_files(
                Path(env_file_location).expanduser(),
                environ=process_env,
                settings=resolved_settings,
            )
        )

    root = _existing_dir(os.fspath(project_root) if project_root is not None else None)
    if project_root is not None and root is None:
        logger.warning("Explicit project root %s is not a directory, probing instead", project_root)
    if root is None:
        root = _existing_dir(lookup(resolved_settings.project_root_var))
    if root is None:
        root = detect_project_root(
            probe_from if probe_from is not None else PACKAGE_DIR.parent,
            env_file_name=resolved_settings.env_file_name,
        )
    if root is None:
        msg = "Project root directory can't be located"
        raise WrongInfrastructureError(msg)
    root = Path(os.path.realpath(root))

    if env_file_location is None:
        env_location = root
        file_values.update(
            read_env_files(
                env_location,
                environ=process_env,
                settings=resolved_settings,
                required=False,
            )
        )
    else:
        env_location = Path(os.path.realpath(Path(env_file_location).expanduser()))

    shared_kernel = lookup(resolved_settings.shared_kernel_var) or str(PACKAGE_DIR.parent)

    cache_candidate = (
        os.fspath(cache_dir)
        if cache_dir is not None
        else lookup(resolved_settings.cache_dir_var)
    )
    cache_path = (
        Path(cache_candidate).expanduser()
        if cache_candidate
        else root / resolved_settings.default_cache_subdir
    )
    if not cache_path.is_dir():
        msg = f"Project cache directory does not exist at '{cache_path}'"
        raise WrongInfrastructureError(msg)
    cache_path = Path(os.path.realpath(cache_path))

    env_mode = lookup(resolved_settings.env_mode_var) or resolved_settings.default_env_mode

    environment = {**file_values, **process_env}
    environment[resolved_settings.project_root_var] = str(root)
    environment[resolved_settings.cache_dir_var] = str(cache_path)
    environment[resolved_settings.shared_kernel_var] = shared_kernel
    environment[resolved_settings.env_mode_var] = env_mode

    context = LoadContext(
        project_root=root,
        env_file_location=env_location,
        cache_dir=cache_path,
        env_mode=env_mode,
        shared_kernel_location=Path(shared_kernel),
        dev_mode=resolved_settings.dev_mode,
        environment=environment,
    )
    logger.debug(
        "Resolved load context root=%s cache=%s mode=%s", root, cache_path, env_mode
    )
    return context


def publish_environment(
    context: LoadContext,
    target: MutableMapping[str, str] | None = None,
    *,
    settings: LoaderSettings | None = None,
) -> None:
    """Write the resolved context into a process-wide environment mapping.

    Values already present in ``target`` are kept, except the project root and
    cache directory which always reflect the latest load.
    """

    resolved_settings = settings or LoaderSettings()
    destination: MutableMapping[str, str] = os.environ if target is None else target
    for key, value in context.environment.items():
        destination.setdefault(key, value)
    destination[resolved_settings.project_root_var] = str(context.project_root)
    destination[resolved_settings.cache_dir_var] = str(context.cache_dir)


__all__ = [
    "detect_project_root",
    "publish_environment",
    "read_env_file",
    "read_env_files",
    "resolve_environment",
]

from __future__ import annotations

import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

# Ensure the src/ directory is importable when tests run via `uv run pytest`.
sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from di_bootstrap.compiler import CompilationResult, DefinitionCompiler  # noqa: E402


@dataclass
class Project:
    root: Path
    cache_dir: Path

    def write(self, relative: str, content: str) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path


@dataclass
class RecordingCompiler:
    """Delegates to the default compiler while recording every invocation."""

    calls: list[tuple[dict[str, Any], list[str]]] = field(default_factory=list)
    inner: DefinitionCompiler = field(default_factory=DefinitionCompiler)

    def compile(self, parameters: Mapping[str, Any], sources: Sequence[str]) -> CompilationResult:
        self.calls.append((dict(parameters), list(sources)))
        return self.inner.compile(parameters, sources)


@pytest.fixture
def project(tmp_path: Path) -> Project:
    root = tmp_path / "proj"
    cache_dir = root / "cache"
    cache_dir.mkdir(parents=True)
    return Project(root=root, cache_dir=cache_dir)


@pytest.fixture
def compiler() -> RecordingCompiler:
    return RecordingCompiler()


@pytest.fixture
def prod_env() -> dict[str, str]:
    return {"ENV_MODE": "prod"}

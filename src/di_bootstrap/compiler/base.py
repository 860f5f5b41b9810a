"""Container compiler contract."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from di_bootstrap.domain import ContainerDefinition, ResourceRef


@dataclass(frozen=True, slots=True)
class CompilationResult:
    """Compiled container definition and every resource it was built from."""

    definition: ContainerDefinition
    resources: tuple[ResourceRef, ...] = ()


@runtime_checkable
class ContainerCompiler(Protocol):
    """Compiles ordered configuration sources into a data-only container definition."""

    def compile(
        self,
        parameters: Mapping[str, Any],
        sources: Sequence[str],
    ) -> CompilationResult: ...


__all__ = ["CompilationResult", "ContainerCompiler"]

"""Container compilation errors."""

from __future__ import annotations


class CompilationError(RuntimeError):
    """Raised when configuration sources can't be compiled into a container."""


class ConfigSourceError(CompilationError):
    """Raised when a configuration source is missing, unreadable or malformed."""


class UnsupportedConfigFormatError(ConfigSourceError):
    """Raised when no loader supports a configuration file."""


__all__ = ["CompilationError", "ConfigSourceError", "UnsupportedConfigFormatError"]

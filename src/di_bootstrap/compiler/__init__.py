"""Container compiler exports."""

from .base import CompilationResult, ContainerCompiler
from .definitions import CONTAINER_SERVICE_ID, DefinitionCompiler
from .exceptions import CompilationError, ConfigSourceError, UnsupportedConfigFormatError
from .loaders import DelegatingLoader, JsonFileLoader, XmlFileLoader, YamlFileLoader

__all__ = [
    "CONTAINER_SERVICE_ID",
    "CompilationError",
    "CompilationResult",
    "ConfigSourceError",
    "ContainerCompiler",
    "DefinitionCompiler",
    "DelegatingLoader",
    "JsonFileLoader",
    "UnsupportedConfigFormatError",
    "XmlFileLoader",
    "YamlFileLoader",
]

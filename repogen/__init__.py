"""
Static Composer repository generator.

Reads packages from git repositories and local directories and writes a
packages.json index (plus per-package metadata files) that Composer can
consume without contacting the sources again.
"""

from repogen.domain.errors import (
    CacheError,
    ConfigError,
    FetchError,
    GenerationError,
    ParseError,
    RepositoryError,
)
from repogen.domain.models import GeneratorConfig, Source, SourceKind, SourceOptions
from repogen.services.generator import RepositoryGenerator

__version__ = "0.1.0"

__all__ = [
    "CacheError",
    "ConfigError",
    "FetchError",
    "GenerationError",
    "GeneratorConfig",
    "ParseError",
    "RepositoryError",
    "RepositoryGenerator",
    "Source",
    "SourceKind",
    "SourceOptions",
]

"""
Error taxonomy for repository generation.

Per-version and per-source failures are captured as outcomes (see
`repogen.domain.results`); only `ConfigError` and `GenerationError`
escape `RepositoryGenerator.generate()`.
"""
from __future__ import annotations

from typing import List


class RepositoryError(Exception):
    """Base exception for repository generation."""
    pass


class FetchError(RepositoryError):
    """A git clone/fetch/checkout/archive failed or timed out."""
    pass


class ParseError(RepositoryError):
    """A manifest is missing, malformed, or has no usable package name."""
    pass


class CacheError(RepositoryError):
    """A cache entry could not be read. Always degrades to a cache miss."""
    pass


class ConfigError(RepositoryError):
    """The generator is misconfigured (no sources, invalid settings)."""
    pass


class GenerationError(RepositoryError):
    """
    No source produced any package and at least one source failed.

    The message concatenates every per-source failure message.
    """

    def __init__(self, failures: List[str]):
        self.failures = list(failures)
        message = "Failed to process any source repositories:\n" + "\n".join(self.failures)
        super().__init__(message)

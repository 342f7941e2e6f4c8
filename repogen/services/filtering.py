"""
Package filtering.

A version survives only when every applicable check accepts it: the
global predicate, the per-source predicate, and the declarative
`package_type` / `name_pattern` options of its source.
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional

from repogen.domain.errors import ConfigError
from repogen.domain.models import PackageFilter, PackageMap, PackageMetadata, SourceOptions

logger = logging.getLogger(__name__)


class PackageFilterChain:
    """Composes the filters that apply to one source."""

    def __init__(
        self,
        global_filter: Optional[PackageFilter] = None,
        source_filter: Optional[PackageFilter] = None,
        options: Optional[SourceOptions] = None,
    ):
        self.global_filter = global_filter
        self.source_filter = source_filter
        self.package_type = options.package_type if options else None
        self.name_pattern = None
        if options and options.name_pattern:
            try:
                self.name_pattern = re.compile(options.name_pattern)
            except re.error as e:
                raise ConfigError(f"Invalid name_pattern {options.name_pattern!r}: {e}") from e

    def accepts(self, metadata: PackageMetadata) -> bool:
        if self.package_type and metadata.get("type") != self.package_type:
            return False

        if self.name_pattern is not None:
            name = metadata.get("name")
            if not isinstance(name, str) or not self.name_pattern.search(name):
                return False

        for predicate in self._predicates():
            if not predicate(metadata):
                return False
        return True

    def apply(self, packages: PackageMap) -> PackageMap:
        """Return a copy of `packages` without rejected versions or emptied packages."""
        filtered: PackageMap = {}
        for name, versions in packages.items():
            kept = {v: data for v, data in versions.items() if self.accepts(data)}
            if kept:
                filtered[name] = kept
            else:
                logger.debug(f"All versions of {name} were filtered out")
        return filtered

    def _predicates(self) -> List[PackageFilter]:
        return [p for p in (self.global_filter, self.source_filter) if p is not None]

"""
Accumulating outcome types for generation runs.

Each version of a source and each source of a run produces exactly one
outcome: either a value or a failure. The orchestrator folds the source
outcomes into a `GenerationReport` instead of relying on suppressed
exceptions.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from repogen.domain.errors import GenerationError, RepositoryError
from repogen.domain.models import PackageMap, PackageMetadata

logger = logging.getLogger(__name__)


@dataclass
class VersionOutcome:
    """What happened to a single resolved version of a source."""

    version: str
    reference: Optional[str] = None
    record: Optional[PackageMetadata] = None
    error: Optional[RepositoryError] = None
    skipped: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.record is not None


@dataclass
class SourceOutcome:
    """The result of processing one registered source."""

    locator: str
    packages: Optional[PackageMap] = None
    error: Optional[Exception] = None
    from_cache: bool = False
    versions: List[VersionOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        return f"Error processing source '{self.locator}': {self.error}"


@dataclass
class GenerationReport:
    """Ordered source outcomes and their merged packages."""

    outcomes: List[SourceOutcome] = field(default_factory=list)
    packages: PackageMap = field(default_factory=dict)

    @property
    def failures(self) -> List[SourceOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def succeeded(self) -> List[SourceOutcome]:
        return [o for o in self.outcomes if o.ok]

    def raise_if_failed(self) -> None:
        """Raise only when something failed and nothing was aggregated."""
        failures = self.failures
        if failures and not self.packages:
            raise GenerationError([f.message for f in failures])


def merge_outcomes(outcomes: List[SourceOutcome]) -> GenerationReport:
    """
    Fold source outcomes, in registration order, into one report.

    A later source's version entry replaces an earlier one with the same
    package name and version string.
    """
    report = GenerationReport(outcomes=list(outcomes))
    for outcome in outcomes:
        if not outcome.ok or not outcome.packages:
            continue
        for name, versions in outcome.packages.items():
            existing = report.packages.setdefault(name, {})
            for version, metadata in versions.items():
                if version in existing:
                    logger.warning(
                        f"{name} {version} from {outcome.locator} overrides an earlier source"
                    )
                existing[version] = metadata
    return report

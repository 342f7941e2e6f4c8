"""
Parse one source into package metadata.

`SourceParser` composes the fetcher, the version resolver, the manifest
reader, the filter chain and the archive builder. It returns a
`SourceOutcome` whose `packages` map is `name -> version -> metadata` and
whose `versions` list records what happened to every resolved version.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from repogen.domain.errors import ParseError, RepositoryError
from repogen.domain.models import (
    DEFAULT_GIT_TIMEOUT,
    DEFAULT_MANIFEST_NAME,
    ArchiveResult,
    ResolvedVersion,
    Source,
    SourceKind,
)
from repogen.domain.results import SourceOutcome, VersionOutcome
from repogen.services.authentication import redact_url
from repogen.services.filtering import PackageFilterChain
from repogen.services.sources.archive import ArchiveBuilder
from repogen.services.sources.fetcher import SourceFetcher, WorkingCopy, Workspace
from repogen.services.sources.manifest import ManifestReader
from repogen.services.sources.versions import resolve_versions

logger = logging.getLogger(__name__)

DEFAULT_PATH_VERSION = "dev-main"

SKIPPED_NO_MANIFEST = "no manifest"
SKIPPED_FILTERED = "filtered"
SKIPPED_NO_NAME = "no name"


class SourceParser:
    """
    Reads every publishable version of a source.

    The parser owns its `Workspace` unless one is passed in; use it as a
    context manager (or call `close()`) to remove the clones.
    """

    def __init__(
        self,
        workspace: Optional[Workspace] = None,
        manifest_name: str = DEFAULT_MANIFEST_NAME,
        timeout: float = DEFAULT_GIT_TIMEOUT,
    ):
        self._owns_workspace = workspace is None
        self.workspace = workspace or Workspace()
        self.fetcher = SourceFetcher(self.workspace, timeout=timeout)
        self.reader = ManifestReader(manifest_name)

    def close(self) -> None:
        if self._owns_workspace:
            self.workspace.cleanup()

    def __enter__(self) -> "SourceParser":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def parse(
        self,
        source: Source,
        fetch_url: Optional[str] = None,
        filters: Optional[PackageFilterChain] = None,
        archiver: Optional[ArchiveBuilder] = None,
        output_dir: Optional[Path] = None,
    ) -> SourceOutcome:
        """
        Parse `source`.

        `archiver` enables proxying: every kept version gets a zip and a
        `dist` entry whose url is relative to `output_dir`. Raises
        FetchError or ParseError when the source as a whole is unusable.
        """
        filters = filters or PackageFilterChain(source_filter=source.package_filter, options=source.options)
        working_copy = self.fetcher.fetch(source, fetch_url)

        if working_copy.kind == SourceKind.GIT:
            return self._parse_git(source, working_copy, filters, archiver, output_dir)
        return self._parse_path(source, working_copy, filters, archiver, output_dir)

    def _parse_git(
        self,
        source: Source,
        working_copy: WorkingCopy,
        filters: PackageFilterChain,
        archiver: Optional[ArchiveBuilder],
        output_dir: Optional[Path],
    ) -> SourceOutcome:
        git = working_copy.git
        versions = resolve_versions(git, source.options)
        display_url = redact_url(working_copy.url)
        if not versions:
            raise ParseError(f"No valid versions found in Git repository: {display_url}")

        outcome = SourceOutcome(locator=source.locator, packages={})
        for resolved in versions.values():
            result = self._parse_revision(working_copy, resolved, filters, archiver, output_dir)
            outcome.versions.append(result)
            if result.ok:
                name = result.record["name"]
                outcome.packages.setdefault(name, {})[resolved.version] = result.record

        # Only versions rejected by a filter keep an otherwise empty source alive.
        if not any(v.ok or v.skipped == SKIPPED_FILTERED for v in outcome.versions):
            raise ParseError(
                f"No version of {display_url} has a usable {self.reader.manifest_name}: "
                + "; ".join(_describe(v) for v in outcome.versions)
            )

        logger.info(
            f"Parsed {display_url}: {sum(len(v) for v in outcome.packages.values())} version(s) "
            f"of {len(outcome.packages)} package(s)"
        )
        return outcome

    def _parse_revision(
        self,
        working_copy: WorkingCopy,
        resolved: ResolvedVersion,
        filters: PackageFilterChain,
        archiver: Optional[ArchiveBuilder],
        output_dir: Optional[Path],
    ) -> VersionOutcome:
        outcome = VersionOutcome(version=resolved.version, reference=resolved.reference)
        try:
            working_copy.git.checkout(resolved.target)
            if not self.reader.exists(working_copy.path):
                outcome.skipped = SKIPPED_NO_MANIFEST
                return outcome

            record = self.reader.read(
                working_copy.path,
                {
                    "version": resolved.version,
                    "reference": resolved.reference,
                    "source": {
                        "type": SourceKind.GIT.value,
                        "url": working_copy.url,
                        "reference": resolved.reference,
                    },
                },
            )
        except RepositoryError as e:
            logger.warning(f"Error parsing version {resolved.version}: {e}")
            outcome.error = e
            return outcome

        if not filters.accepts(record):
            outcome.skipped = SKIPPED_FILTERED
            return outcome

        name = record.get("name")
        if not name:
            outcome.skipped = SKIPPED_NO_NAME
            return outcome

        if archiver is not None:
            archive = archiver.archive_revision(working_copy.git, name, resolved.version, resolved.target)
            if archive is not None:
                record["dist"] = _dist_entry(archive, resolved.reference, output_dir)

        outcome.record = record
        return outcome

    def _parse_path(
        self,
        source: Source,
        working_copy: WorkingCopy,
        filters: PackageFilterChain,
        archiver: Optional[ArchiveBuilder],
        output_dir: Optional[Path],
    ) -> SourceOutcome:
        record = self.reader.read(working_copy.path)
        version = str(record.get("version") or DEFAULT_PATH_VERSION)
        record["version"] = version
        outcome = SourceOutcome(locator=source.locator, packages={})
        result = VersionOutcome(version=version)
        outcome.versions.append(result)

        if not filters.accepts(record):
            result.skipped = SKIPPED_FILTERED
            return outcome

        name = record.get("name")
        if not name:
            raise ParseError(
                f"Package name not found in {self.reader.manifest_name}: {self.reader.path_in(working_copy.path)}"
            )

        if archiver is not None:
            archive = archiver.archive_directory(working_copy.path, name, version)
            if archive is not None:
                record["dist"] = _dist_entry(archive, None, output_dir)

        result.record = record
        outcome.packages = {name: {version: record}}
        return outcome


def _dist_entry(archive: ArchiveResult, reference: Optional[str], output_dir: Optional[Path]) -> Dict[str, str]:
    dist = {
        "type": "zip",
        "url": _relative_url(archive.path, output_dir),
        "shasum": archive.sha256,
    }
    if reference is not None:
        dist["reference"] = reference
    return dist


def _relative_url(path: Path, output_dir: Optional[Path]) -> str:
    """POSIX path of `path` relative to `output_dir`; absolute when outside it."""
    absolute = Path(path).resolve()
    if output_dir is None:
        return absolute.as_posix()
    try:
        return absolute.relative_to(Path(output_dir).resolve()).as_posix()
    except ValueError:
        return absolute.as_posix()


def _describe(outcome: VersionOutcome) -> str:
    if outcome.error is not None:
        return f"{outcome.version}: {outcome.error}"
    return f"{outcome.version}: {outcome.skipped}"

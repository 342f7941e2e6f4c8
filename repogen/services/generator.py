"""
Repository generation orchestrator.

`RepositoryGenerator` holds the registered sources, runs each of them
through the cache or the source parser, folds the per-source outcomes into
one package map and writes the static index.

Sources are processed sequentially in registration order; a failing source
is recorded and skipped, and generation only fails when no package at all
could be collected.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from repogen.domain.errors import ConfigError
from repogen.domain.models import (
    DEFAULT_GITHUB_HOST,
    GeneratorConfig,
    PackageFilter,
    Source,
    SourceOptions,
)
from repogen.domain.results import GenerationReport, SourceOutcome, merge_outcomes
from repogen.services.authentication import TokenStore, redact_url
from repogen.services.filtering import PackageFilterChain
from repogen.services.sources.archive import ArchiveBuilder
from repogen.services.sources.fetcher import Workspace, determine_source_kind
from repogen.services.sources.parser import SourceParser
from repogen.storage.cache_store import CacheStore
from repogen.storage.index_writer import IndexWriter
from repogen.storage.json_cache_store import JsonCacheStore

logger = logging.getLogger(__name__)

OptionsInput = Union[SourceOptions, Mapping[str, Any], None]


class RepositoryGenerator:
    """
    Builds a static Composer repository from git and local sources.

    The generator owns its clone workspace and cache store; call `close()`
    (or use it as a context manager) to remove the workspace.
    """

    def __init__(
        self,
        config: GeneratorConfig,
        cache: Optional[CacheStore] = None,
        parser: Optional[SourceParser] = None,
    ):
        self.config = config
        self._sources: Dict[str, Source] = {}
        self._package_filter: Optional[PackageFilter] = None
        self._use_cache = config.use_cache
        self._proxy_packages = config.proxy_packages
        self._tokens = TokenStore(config.auth_tokens)

        self._output_dir = Path(config.output_dir)
        self._archive_dir = config.archive_dir
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self._cache = cache or JsonCacheStore(config.resolved_cache_dir())

        self._workspace: Optional[Workspace] = None
        self._parser = parser
        self.last_report: Optional[GenerationReport] = None

        for locator, options in config.sources.items():
            self.add_source(locator, options)

        if self._proxy_packages:
            self.archive_dir.mkdir(parents=True, exist_ok=True)

    # ========================================================================
    # Configuration
    # ========================================================================

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    @property
    def archive_dir(self) -> Path:
        return Path(self._archive_dir) if self._archive_dir else self._output_dir / "archives"

    @property
    def cache(self) -> CacheStore:
        return self._cache

    @property
    def sources(self) -> List[Source]:
        return list(self._sources.values())

    def add_source(
        self,
        locator: str,
        options: OptionsInput = None,
        package_filter: Optional[PackageFilter] = None,
    ) -> "RepositoryGenerator":
        """
        Register a git URL or local path. Re-adding a locator replaces its
        options and filter.

        A mapping may carry a callable 'package_filter' entry; it is split
        off from the data options.
        """
        if not locator:
            raise ConfigError("Source locator must not be empty")

        if isinstance(options, SourceOptions):
            source_options = options
        else:
            data = dict(options or {})
            embedded_filter = data.pop("package_filter", None)
            if embedded_filter is not None:
                if not callable(embedded_filter):
                    raise ConfigError(f"package_filter for {locator} must be callable")
                package_filter = package_filter or embedded_filter
            try:
                source_options = SourceOptions.model_validate(data)
            except ValidationError as e:
                raise ConfigError(f"Invalid options for source {locator}: {e}") from e

        kind = source_options.kind or determine_source_kind(locator)
        self._sources[locator] = Source(
            locator=locator,
            kind=kind,
            options=source_options,
            package_filter=package_filter,
        )
        return self

    def add_sources(self, sources: Mapping[str, OptionsInput]) -> "RepositoryGenerator":
        for locator, options in sources.items():
            self.add_source(locator, options)
        return self

    def set_package_filter(self, package_filter: Optional[PackageFilter]) -> "RepositoryGenerator":
        """Global predicate applied to every version of every source."""
        self._package_filter = package_filter
        return self

    def use_cache(self, use_cache: bool = True) -> "RepositoryGenerator":
        self._use_cache = use_cache
        return self

    def set_output_directory(self, output_dir: Union[str, Path]) -> "RepositoryGenerator":
        self._output_dir = Path(output_dir)
        self._output_dir.mkdir(parents=True, exist_ok=True)
        return self

    def set_cache_directory(self, cache_dir: Union[str, Path]) -> "RepositoryGenerator":
        self._cache = JsonCacheStore(Path(cache_dir))
        return self

    def add_auth_token(self, token: str, host: str = DEFAULT_GITHUB_HOST) -> "RepositoryGenerator":
        self._tokens.add(token, host)
        return self

    def enable_archive_proxying(self, enable: bool = True) -> "RepositoryGenerator":
        self._proxy_packages = enable
        if enable:
            self.archive_dir.mkdir(parents=True, exist_ok=True)
        return self

    # ========================================================================
    # Generation
    # ========================================================================

    def generate(self) -> str:
        """
        Generate packages.json and the per-package metadata files.

        Returns the path to packages.json. Raises ConfigError without
        sources and GenerationError when every source failed.
        """
        if not self._sources:
            raise ConfigError("No source repositories added. Use add_source() to add at least one source.")

        logger.info(f"Starting repository generation ({len(self._sources)} sources)")
        outcomes = [self._process_source(source) for source in self._sources.values()]

        report = merge_outcomes(outcomes)
        self.last_report = report
        report.raise_if_failed()

        if not report.packages:
            logger.warning("No packages were found in any of the source repositories")

        packages_json = IndexWriter(self._output_dir).write(report.packages)
        logger.info(
            f"Repository generated successfully: {packages_json} "
            f"({len(report.packages)} packages, {len(report.succeeded)} of {len(report.outcomes)} sources succeeded)"
        )
        return str(packages_json)

    def clean_cache(self, locator: Optional[str] = None) -> bool:
        """Remove every cache entry, or only those of `locator`."""
        return self._cache.invalidate(locator)

    def close(self) -> None:
        if self._parser is not None:
            self._parser.close()
        if self._workspace is not None:
            self._workspace.cleanup()
            self._workspace = None

    def __enter__(self) -> "RepositoryGenerator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _get_parser(self) -> SourceParser:
        if self._parser is None:
            self._workspace = Workspace(self.config.workspace_dir)
            self._parser = SourceParser(
                workspace=self._workspace,
                manifest_name=self.config.manifest_name,
                timeout=self.config.git_timeout,
            )
        return self._parser

    def _effective_source(self, source: Source) -> Source:
        """Resolve settings inherited from the generator into the source options."""
        create_archives = source.options.create_archives
        if create_archives is None:
            create_archives = self._proxy_packages
        options = source.options.model_copy(update={"create_archives": create_archives})
        update: Dict[str, Any] = {"options": options}
        if create_archives:
            # dist urls depend on where archives land relative to the output root
            update.update(archive_dir=self.archive_dir, output_dir=self._output_dir)
        return source.model_copy(update=update)

    def _excluded_dirs(self) -> List[Path]:
        """Directories written by the generator; never packed into archives."""
        dirs = [self._output_dir, self.archive_dir]
        if isinstance(self._cache, JsonCacheStore):
            dirs.append(self._cache.cache_dir)
        if self._workspace is not None:
            dirs.append(self._workspace.root)
        return dirs

    def _process_source(self, source: Source) -> SourceOutcome:
        source = self._effective_source(source)
        display = redact_url(source.locator)
        try:
            filters = PackageFilterChain(
                global_filter=self._package_filter,
                source_filter=source.package_filter,
                options=source.options,
            )
            if self._use_cache:
                cached = self._cache.get(source)
                if cached is not None:
                    logger.debug(f"Loading packages from cache for {display}")
                    # predicates are not part of the cache key
                    packages = filters.apply(cached)
                    return SourceOutcome(locator=source.locator, packages=packages, from_cache=True)

            logger.debug(f"Processing source {display}")
            parser = self._get_parser()
            archiver = None
            if source.options.create_archives:
                archiver = ArchiveBuilder(self.archive_dir, excluded_dirs=self._excluded_dirs())
            outcome = parser.parse(
                source,
                fetch_url=self._tokens.authenticate_url(source.locator),
                filters=filters,
                archiver=archiver,
                output_dir=self._output_dir,
            )
        except Exception as e:
            logger.error(f"Error processing source {display}: {redact_url(str(e))}")
            return SourceOutcome(locator=source.locator, error=e)

        if self._use_cache:
            try:
                self._cache.put(source, outcome.packages)
            except OSError as e:
                logger.warning(f"Failed to cache packages for {display}: {e}")

        if not outcome.packages:
            logger.info(f"No packages found in source {display}")
        return outcome

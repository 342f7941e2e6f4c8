"""
Pydantic models for the repository generator.

This module defines the data models used throughout the application:
- Generator configuration and per-source options
- Registered sources (with their filter predicates kept out of serialization)
- Resolved versions, archive results and package metadata aliases

Plain package metadata stays a dict: manifests carry arbitrary fields that
are passed through verbatim into the generated index.
"""

from __future__ import annotations

import hashlib
import json
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


# Metadata for one package at one version, as emitted into the index.
PackageMetadata = Dict[str, Any]

# name -> version -> metadata
PackageMap = Dict[str, Dict[str, PackageMetadata]]

# Predicate deciding whether a version's metadata is kept.
PackageFilter = Callable[[PackageMetadata], bool]

DEFAULT_GITHUB_HOST = "github.com"
DEFAULT_MANIFEST_NAME = "composer.json"
DEFAULT_GIT_TIMEOUT = 300.0


class SourceKind(str, Enum):
    """How a source is read: a git remote or a local directory."""

    GIT = "git"
    PATH = "path"


# ---------------------------------------------------------------------------
# Source Models
# ---------------------------------------------------------------------------


class SourceOptions(BaseModel):
    """
    Data-only options for a single source.

    Every field here takes part in the cache key, so callables are not
    allowed; per-source predicates live on `Source.package_filter`.
    """

    model_config = ConfigDict(extra="forbid")

    semver_only: bool = Field(
        default=True,
        description="Only keep tags that are valid semantic versions (after stripping a leading 'v').",
    )
    include_dev_versions: bool = Field(
        default=False,
        description="Also publish remote branches as 'dev-<branch>' versions.",
    )
    create_archives: Optional[bool] = Field(
        default=None,
        description="Archive each version into a zip. None inherits the generator's proxying setting.",
    )
    package_type: Optional[str] = Field(
        default=None,
        description="Only keep versions whose manifest 'type' equals this value.",
    )
    name_pattern: Optional[str] = Field(
        default=None,
        description="Only keep versions whose package name matches this regular expression.",
    )
    kind: Optional[SourceKind] = Field(
        default=None,
        description="Force the source kind instead of inferring it from the locator.",
    )


class Source(BaseModel):
    """
    A registered origin of packages.

    Identity is the locator string. `package_filter` is behaviour, not data:
    it is excluded from dumps and therefore from the cache key.
    """

    locator: str = Field(min_length=1)
    kind: SourceKind
    options: SourceOptions = Field(default_factory=SourceOptions)
    package_filter: Optional[PackageFilter] = Field(default=None, exclude=True)
    archive_dir: Optional[Path] = Field(
        default=None,
        description="Where proxied archives are written; set only while archiving.",
    )
    output_dir: Optional[Path] = Field(
        default=None,
        description="Root that dist urls are relative to; set only while archiving.",
    )

    def fingerprint(self) -> str:
        """Canonical JSON of the data fields, used for the cache key."""
        data = {
            "kind": self.kind.value,
            "locator": self.locator,
            **self.options.model_dump(mode="json"),
        }
        # Absent unless archiving, so plain sources keep their key.
        if self.archive_dir is not None:
            data["archive_dir"] = Path(self.archive_dir).resolve().as_posix()
        if self.output_dir is not None:
            data["output_dir"] = Path(self.output_dir).resolve().as_posix()
        return json.dumps(data, sort_keys=True, separators=(",", ":"))

    def cache_key(self) -> str:
        locator_hash = hashlib.md5(self.locator.encode("utf-8")).hexdigest()
        options_hash = hashlib.md5(self.fingerprint().encode("utf-8")).hexdigest()
        return f"{locator_hash}-{options_hash}"


class ResolvedVersion(BaseModel):
    """A version key and the git revision it points to."""

    version: str
    reference: str = Field(description="Tag or branch name recorded in the metadata.")
    target: str = Field(description="Revision passed to git checkout/archive.")


class ArchiveResult(BaseModel):
    """A zip archive produced for one package version."""

    path: Path
    sha256: str


# ---------------------------------------------------------------------------
# Generator Configuration
# ---------------------------------------------------------------------------


class GeneratorConfig(BaseModel):
    """
    Top-level configuration for a generation run.

    Loaded from a YAML or JSON file by `repogen.core.settings.load_config`;
    directory fields left empty are derived from `output_dir`.
    """

    model_config = ConfigDict(extra="forbid")

    output_dir: Path = Field(
        description="Directory receiving packages.json and the p/ metadata files.",
    )
    cache_dir: Optional[Path] = Field(
        default=None,
        description="Directory for per-source cache files. Defaults to <output_dir>/cache.",
    )
    archive_dir: Optional[Path] = Field(
        default=None,
        description="Directory for proxied zip archives. Defaults to <output_dir>/archives.",
    )
    workspace_dir: Optional[Path] = Field(
        default=None,
        description="Parent directory for the temporary clone workspace. Defaults to the system temp dir.",
    )
    use_cache: bool = Field(
        default=True,
        description="Reuse per-source parse results from the cache directory.",
    )
    proxy_packages: bool = Field(
        default=False,
        description="Archive every version and point 'dist' at the local zip.",
    )
    auth_tokens: Dict[str, str] = Field(
        default_factory=dict,
        description="Access tokens by hostname, embedded into https clone URLs.",
    )
    git_timeout: float = Field(
        default=DEFAULT_GIT_TIMEOUT,
        gt=0,
        description="Seconds before a git clone/fetch/checkout/archive is killed.",
    )
    manifest_name: str = Field(
        default=DEFAULT_MANIFEST_NAME,
        min_length=1,
        description="Manifest file read at the root of every source revision.",
    )
    sources: Dict[str, SourceOptions] = Field(
        default_factory=dict,
        description="Sources to register, keyed by locator.",
    )

    def resolved_cache_dir(self) -> Path:
        return self.cache_dir or self.output_dir / "cache"

    def resolved_archive_dir(self) -> Path:
        return self.archive_dir or self.output_dir / "archives"

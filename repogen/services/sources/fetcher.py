"""
Turn a source locator into an on-disk working copy.

Git sources are cloned (or refreshed) into a private `Workspace` owned by
the orchestrator, one subdirectory per fetch URL; local paths are used in
place.
"""
from __future__ import annotations

import hashlib
import logging
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from repogen.domain.errors import FetchError
from repogen.domain.models import DEFAULT_GIT_TIMEOUT, Source, SourceKind
from repogen.services.sources.git_repository import GitWorkingCopy

logger = logging.getLogger(__name__)

_REMOTE_LOCATOR_RE = re.compile(r"^(https?://|ssh://|git://|file://|[\w.-]+@[\w.-]+:)")


def determine_source_kind(locator: str) -> SourceKind:
    """'git' for remote URLs and scp-style 'user@host:path', 'path' otherwise."""
    if _REMOTE_LOCATOR_RE.match(locator):
        return SourceKind.GIT
    return SourceKind.PATH


class Workspace:
    """
    Process-private scratch directory for git clones.

    Subdirectories are named by a hash of the fetch URL so repeated fetches
    of the same source within a run reuse one clone. Removed on `cleanup()`.
    """

    def __init__(self, parent: Optional[Path] = None):
        if parent is not None:
            Path(parent).mkdir(parents=True, exist_ok=True)
        self.root = Path(tempfile.mkdtemp(prefix="repogen-", dir=str(parent) if parent else None))

    def path_for(self, url: str) -> Path:
        return self.root / hashlib.md5(url.encode("utf-8")).hexdigest()

    def cleanup(self) -> None:
        if self.root.exists():
            shutil.rmtree(self.root, ignore_errors=True)

    def __enter__(self) -> "Workspace":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cleanup()


@dataclass
class WorkingCopy:
    """Where a source's files can be read."""

    kind: SourceKind
    path: Path
    url: str
    git: Optional[GitWorkingCopy] = None


class SourceFetcher:
    """Produces working copies for sources."""

    def __init__(self, workspace: Workspace, timeout: float = DEFAULT_GIT_TIMEOUT):
        self.workspace = workspace
        self.timeout = timeout

    def fetch(self, source: Source, fetch_url: Optional[str] = None) -> WorkingCopy:
        """
        Make `source` readable on disk.

        `fetch_url` is the (possibly authenticated) URL to clone from; it
        defaults to the locator.
        """
        url = fetch_url or source.locator
        if source.kind == SourceKind.GIT:
            target_dir = self.workspace.path_for(url)
            git_copy = GitWorkingCopy.clone_or_update(url, target_dir, timeout=self.timeout)
            return WorkingCopy(kind=SourceKind.GIT, path=git_copy.path, url=url, git=git_copy)

        path = Path(source.locator).expanduser()
        if not path.is_dir():
            raise FetchError(f"Source path is not a directory: {source.locator}")
        return WorkingCopy(kind=SourceKind.PATH, path=path, url=source.locator)

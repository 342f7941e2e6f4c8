"""
Zip archives for proxied package versions.

Archive creation is best effort: failures are logged and reported as
`None` so the version is published without a `dist` entry.
"""
from __future__ import annotations

import logging
import os
import zipfile
from pathlib import Path
from typing import Iterable, Iterator, Optional, Set

from repogen.domain.errors import FetchError
from repogen.domain.models import ArchiveResult
from repogen.domain.repo_utils import archive_file_name, sha256_file
from repogen.services.sources.git_repository import GitWorkingCopy

logger = logging.getLogger(__name__)

# Fixed entry timestamp so identical trees give identical zips.
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
EXCLUDED_DIRS = {".git", ".hg", ".svn"}


class ArchiveBuilder:
    """
    Creates '<name>-<version>.zip' files in `output_dir`.

    `excluded_dirs` are never packed by `archive_directory`; the generator
    passes its output, cache and archive directories so a repository
    generated inside a local source does not end up in that source's zip.
    """

    def __init__(self, output_dir: Path, excluded_dirs: Optional[Iterable[Path]] = None):
        self.output_dir = Path(output_dir)
        self.excluded_dirs = [Path(d) for d in (excluded_dirs or ())]

    def archive_path(self, package_name: str, version: str) -> Path:
        return self.output_dir / archive_file_name(package_name, version)

    def archive_revision(
        self,
        working_copy: GitWorkingCopy,
        package_name: str,
        version: str,
        target: str,
    ) -> Optional[ArchiveResult]:
        """Export git revision `target` with `git archive`."""
        archive_file = self.archive_path(package_name, version)
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            working_copy.archive(target, archive_file.resolve())
            return ArchiveResult(path=archive_file, sha256=sha256_file(archive_file))
        except (FetchError, OSError) as e:
            logger.error(f"Failed to create archive for {package_name}@{version}: {e}")
            archive_file.unlink(missing_ok=True)
            return None

    def archive_directory(self, root: Path, package_name: str, version: str) -> Optional[ArchiveResult]:
        """Zip a local directory tree, skipping VCS metadata."""
        root = Path(root)
        archive_file = self.archive_path(package_name, version)
        tmp_file = archive_file.with_name(archive_file.name + ".tmp")
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            skip = {d.resolve() for d in [self.output_dir, *self.excluded_dirs]}
            with zipfile.ZipFile(tmp_file, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for file_path in _walk_files(root, skip):
                    arcname = file_path.relative_to(root).as_posix()
                    info = zipfile.ZipInfo(arcname, date_time=ZIP_EPOCH)
                    info.compress_type = zipfile.ZIP_DEFLATED
                    info.external_attr = (file_path.stat().st_mode & 0o777) << 16
                    zf.writestr(info, file_path.read_bytes())
            tmp_file.replace(archive_file)
            return ArchiveResult(path=archive_file, sha256=sha256_file(archive_file))
        except OSError as e:
            logger.error(f"Failed to create archive for {package_name}@{version}: {e}")
            tmp_file.unlink(missing_ok=True)
            return None


def _walk_files(root: Path, skip: Set[Path]) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in EXCLUDED_DIRS and (current / d).resolve() not in skip
        )
        for filename in sorted(filenames):
            path = current / filename
            if path.is_file():
                yield path

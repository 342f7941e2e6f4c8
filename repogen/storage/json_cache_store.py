import hashlib
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Optional

from repogen.domain.errors import CacheError
from repogen.domain.models import PackageMap, Source
from repogen.storage.cache_store import CacheStore

logger = logging.getLogger(__name__)


def write_atomic(path: Path, content: str) -> None:
    """Write to a temp file beside `path`, then rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        tmp_path.write_text(content, encoding="utf-8")
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def _is_package_map(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    for name, versions in value.items():
        if not isinstance(name, str) or not isinstance(versions, dict):
            return False
        for version, metadata in versions.items():
            if not isinstance(version, str) or not isinstance(metadata, dict):
                return False
    return True


class JsonCacheStore(CacheStore):
    """
    One JSON file per (locator, options) pair:
    <cache_dir>/<md5(locator)>-<md5(options)>.json
    """

    def __init__(self, cache_dir: Path):
        self._cache_dir = Path(cache_dir)
        self._cache_dir.mkdir(parents=True, exist_ok=True)

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def path_for(self, source: Source) -> Path:
        return self._cache_dir / f"{source.cache_key()}.json"

    def get(self, source: Source) -> Optional[PackageMap]:
        path = self.path_for(source)
        if not path.exists():
            return None
        try:
            return self._load(path)
        except CacheError as e:
            logger.warning(f"Invalid cache data, will reprocess source: {e}")
            return None

    def put(self, source: Source, packages: PackageMap) -> None:
        path = self.path_for(source)
        logger.debug(f"Saving packages to cache: {path}")
        write_atomic(path, json.dumps(packages, ensure_ascii=False))

    def invalidate(self, locator: Optional[str] = None) -> bool:
        if not self._cache_dir.exists():
            return True
        try:
            if locator is None:
                shutil.rmtree(self._cache_dir)
                self._cache_dir.mkdir(parents=True, exist_ok=True)
                logger.info("Cache cleaned completely")
            else:
                prefix = hashlib.md5(locator.encode("utf-8")).hexdigest()
                for path in self._cache_dir.glob(f"{prefix}-*.json"):
                    path.unlink()
                logger.info(f"Cache cleaned for source {locator}")
            return True
        except OSError as e:
            logger.error(f"Failed to clean cache: {e}")
            return False

    def _load(self, path: Path) -> PackageMap:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CacheError(f"{path}: {e}") from e
        if not _is_package_map(data):
            raise CacheError(f"{path}: unexpected structure")
        return data

"""
Writes the static repository index.

Layout under the output directory:
* packages.json                     aggregate descriptor
* p/<vendor>$<package>.json         per-package metadata
* p/<vendor>$<package>$<sha256>.json identical bytes, content addressed
"""
from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from repogen.domain.models import PackageMap
from repogen.domain.repo_utils import metadata_file_name
from repogen.storage.json_cache_store import write_atomic

logger = logging.getLogger(__name__)

PACKAGES_FILE = "packages.json"
METADATA_DIR = "p"
METADATA_URL_TEMPLATE = "p/%package%.json"
PROVIDERS_URL_TEMPLATE = "p/%package%$%hash%.json"


def encode_json(data: Any) -> str:
    return json.dumps(data, indent=4, ensure_ascii=False)


class IndexWriter:
    """Emits packages.json and the p/ files for an aggregated package map."""

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def build_descriptor(self, packages: PackageMap, generated: Optional[datetime] = None) -> Dict[str, Any]:
        generated = generated or datetime.now(timezone.utc)
        return {
            "packages": packages,
            "metadata-url": METADATA_URL_TEMPLATE,
            "providers-url": PROVIDERS_URL_TEMPLATE,
            "available-packages": list(packages.keys()),
            "generated": generated.isoformat(timespec="seconds"),
        }

    def write(self, packages: PackageMap, generated: Optional[datetime] = None) -> Path:
        """Write every index file; returns the packages.json path."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        descriptor_path = self.output_dir / PACKAGES_FILE
        write_atomic(descriptor_path, encode_json(self.build_descriptor(packages, generated)))

        for name, versions in packages.items():
            self.write_package(name, versions)
        return descriptor_path

    def write_package(self, name: str, versions: Dict[str, Any]) -> Path:
        """
        Write p/<file>.json and p/<file>$<sha256>.json with identical content.
        Returns the content-addressed path.
        """
        content = encode_json({"packages": {name: versions}})
        digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
        file_name = metadata_file_name(name)
        metadata_dir = self.output_dir / METADATA_DIR

        metadata_path = metadata_dir / f"{file_name}.json"
        hashed_path = metadata_dir / f"{file_name}${digest}.json"
        write_atomic(metadata_path, content)
        if not hashed_path.exists():
            write_atomic(hashed_path, content)

        logger.debug(f"Generated package metadata for {name} ({len(versions)} versions): {metadata_path}")
        return hashed_path

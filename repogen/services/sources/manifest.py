"""
Read and validate package manifests (composer.json).
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from repogen.domain.errors import ParseError
from repogen.domain.models import DEFAULT_MANIFEST_NAME, PackageMetadata
from repogen.domain.repo_utils import is_valid_package_name

logger = logging.getLogger(__name__)


class ManifestReader:
    """Reads the manifest at the root of a working copy."""

    def __init__(self, manifest_name: str = DEFAULT_MANIFEST_NAME):
        self.manifest_name = manifest_name

    def path_in(self, root: Path) -> Path:
        return Path(root) / self.manifest_name

    def exists(self, root: Path) -> bool:
        return self.path_in(root).is_file()

    def read(self, root: Path, additional: Optional[Dict[str, Any]] = None) -> PackageMetadata:
        """
        Parse the manifest under `root` and merge `additional` on top of it.

        Raises ParseError if the file is missing or unreadable, is not a JSON
        object, or carries a name that is not 'vendor/package' shaped. A
        missing name is allowed here; callers decide what to do with it.
        """
        path = self.path_in(root)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ParseError(f"{self.manifest_name} not found at: {path}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ParseError(f"Failed to read file: {path}: {e}") from e

        try:
            manifest = json.loads(content)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON in {path}: {e}") from e

        if not isinstance(manifest, dict):
            raise ParseError(f"Expected a JSON object in {path}, got {type(manifest).__name__}")

        if manifest.get("name") is not None and not is_valid_package_name(manifest["name"]):
            raise ParseError(f"Invalid package name {manifest['name']!r} in {path}")

        if additional:
            manifest.update(additional)
        return manifest

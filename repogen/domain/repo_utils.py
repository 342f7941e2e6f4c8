import hashlib
import re
from pathlib import Path
from typing import Any, Optional, Tuple, Union

SEMVER_RE = re.compile(
    r"^(\d+)\.(\d+)\.(\d+)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

PACKAGE_NAME_RE = re.compile(r"^[^/\\$\s]+/[^/\\$\s]+$")

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


def strip_version_prefix(tag: str) -> str:
    """Drop a single leading 'v' from a tag name ('v1.2.0' -> '1.2.0')."""
    return tag[1:] if tag.startswith("v") else tag


def is_semver(version: str) -> bool:
    return SEMVER_RE.match(version) is not None


def is_valid_package_name(name: Any) -> bool:
    return isinstance(name, str) and PACKAGE_NAME_RE.match(name) is not None


def _prerelease_key(prerelease: Optional[str]) -> Tuple:
    # A release sorts above all of its pre-releases.
    if prerelease is None:
        return (1,)
    parts = []
    for ident in prerelease.split("."):
        if ident.isdigit():
            parts.append((0, int(ident), ""))
        else:
            parts.append((1, 0, ident))
    return (0, tuple(parts))


def version_sort_key(version: str) -> Tuple:
    """
    Ascending sort key: semantic versions by precedence, everything else
    (non-semver tags, dev- branches) below them, compared as strings.
    """
    match = SEMVER_RE.match(version)
    if match is None:
        return (0, version)
    major, minor, patch, prerelease, _build = match.groups()
    return (1, (int(major), int(minor), int(patch)), _prerelease_key(prerelease), version)


def metadata_file_name(package_name: str) -> str:
    """Flat file name for a 'vendor/package' name ('a/b' -> 'a$b')."""
    return package_name.replace("/", "$")


def archive_file_name(package_name: str, version: str) -> str:
    name = _UNSAFE_FILENAME_RE.sub("-", package_name).strip("-") or "package"
    version = _UNSAFE_FILENAME_RE.sub("-", version).strip("-") or "version"
    return f"{name}-{version}.zip"


def sha256_file(path: Union[str, Path], bufsize: int = 1024 * 1024) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(bufsize), b""):
            h.update(chunk)
    return h.hexdigest()

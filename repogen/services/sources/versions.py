"""
Version discovery from git tags and branches.
"""
from __future__ import annotations

import logging
from typing import Dict

from repogen.domain.models import ResolvedVersion, SourceOptions
from repogen.domain.repo_utils import is_semver, strip_version_prefix, version_sort_key
from repogen.services.sources.git_repository import GitWorkingCopy

logger = logging.getLogger(__name__)

DEV_VERSION_PREFIX = "dev-"


def resolve_versions(working_copy: GitWorkingCopy, options: SourceOptions) -> Dict[str, ResolvedVersion]:
    """
    Map version keys to git revisions, newest first.

    Tags lose one leading 'v' ('v1.2.0' -> '1.2.0') and, with `semver_only`,
    must be semantic versions. With `include_dev_versions` every remote
    branch becomes 'dev-<branch>'.
    """
    versions: Dict[str, ResolvedVersion] = {}

    for tag in working_copy.tags():
        version = strip_version_prefix(tag)
        if not version:
            logger.debug(f"Skipping tag {tag}: empty version")
            continue
        if options.semver_only and not is_semver(version):
            logger.debug(f"Skipping non-semver tag {tag}")
            continue
        versions[version] = ResolvedVersion(version=version, reference=tag, target=tag)

    if options.include_dev_versions:
        for branch, tracking_ref in working_copy.remote_branches():
            version = DEV_VERSION_PREFIX + branch
            versions[version] = ResolvedVersion(version=version, reference=branch, target=tracking_ref)

    return order_versions(versions)


def order_versions(versions: Dict[str, ResolvedVersion]) -> Dict[str, ResolvedVersion]:
    """Newest first; see `version_sort_key`."""
    return {key: versions[key] for key in sorted(versions, key=version_sort_key, reverse=True)}

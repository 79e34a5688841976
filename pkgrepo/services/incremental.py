"""
Decide whether a package needs rebuilding, based on the previously published
repository index.
"""
from __future__ import annotations

import logging
from typing import Optional

from pkgrepo.domain.models import PackageBuild, PackageRecord, RepositoryIndex

logger = logging.getLogger(__name__)


def find_previous_record(name: str, previous: Optional[RepositoryIndex]) -> Optional[PackageRecord]:
    if previous is None:
        return None
    return previous.find(name)


def should_skip(build: PackageBuild, previous: Optional[RepositoryIndex]) -> bool:
    """
    True when the previous index lists this package with exactly the same
    version string.

    Versions are compared as plain strings, so "1.0" and "1.0.0" differ.
    Asset contents are not compared: changing a package without bumping its
    version does not trigger a rebuild.
    """
    record = find_previous_record(build.name, previous)
    if record is None:
        return False
    if record.version == build.info.version:
        logger.debug(f"{build.name} {build.info.version} is already published")
        return True
    logger.debug(f"{build.name} changed: {record.version} -> {build.info.version}")
    return False

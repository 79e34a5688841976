"""
Build one package directory into a zip archive and a metadata record.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Optional, Sequence
import httpx

from pkgrepo.domain.errors import PackageBuildError
from pkgrepo.domain.manifest import MANIFEST_FILENAME, InstallManifest
from pkgrepo.domain.models import (
    BuildContext,
    BuilderConfig,
    BuildInfo,
    PackageBuild,
    PackageInfo,
    PackageRecord,
    PackageResult,
    RepositoryIndex,
    format_updated,
)
from pkgrepo.services.archive import directory_size, iter_files, zip_directory
from pkgrepo.services.incremental import find_previous_record, should_skip
from pkgrepo.services.resolver import AssetResolver
from pkgrepo.storage.json_store import (
    JsonRepositoryStore,
    load_package_build,
    write_package_info,
)

logger = logging.getLogger(__name__)

THEME_CATEGORY = "theme"


def find_binary(info: BuildInfo, package_dir: Path, extensions: Sequence[str]) -> str:
    """
    Work out the package's entry point.

    An explicit ``binary`` wins; themes have none; otherwise the first file
    (in sorted walk order) with a recognized extension is used, as a path
    relative to the package root. Returns "" when nothing matches.
    """
    if info.binary is not None:
        return info.binary
    if info.category == THEME_CATEGORY:
        return "none"

    for path in iter_files(package_dir):
        if any(path.name.endswith(ext) for ext in extensions):
            binary = path.relative_to(package_dir).as_posix()
            logger.warning(f"Binary path not specified in pkgbuild.json; guessing {binary}.")
            return binary

    logger.warning(
        f"{info.title or package_dir.name}'s binary path not specified in pkgbuild.json, "
        f"and no binary found!"
    )
    return ""


class PackageBuilder:
    """Builds packages against one output repository."""

    def __init__(
        self,
        config: BuilderConfig,
        store: JsonRepositoryStore,
        client: httpx.AsyncClient,
        previous: Optional[RepositoryIndex] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.store = store
        self.client = client
        self.previous = previous
        self.clock = clock

    def package_info(self, build: PackageBuild) -> PackageInfo:
        info = build.info

        timestamp = info.timestamp
        if timestamp is None:
            logger.warning("No timestamp found! Using current timestamp.")
            timestamp = self.clock()

        try:
            updated = format_updated(timestamp)
        except (ValueError, OverflowError, OSError) as e:
            raise PackageBuildError(build.name, f"timestamp {timestamp!r} is out of range: {e}") from e

        changelog = build.changelog
        if build.changes is not None:
            logger.warning("The `changes` field was deprecated from the start. Use `changelog` instead.")
            changelog = build.changes
        elif changelog is None:
            logger.warning("No changelog found!")

        return PackageInfo(
            category=info.category,
            name=build.name,
            license=info.license,
            title=info.title,
            url=info.url,
            author=info.author,
            version=info.version,
            details=info.details,
            description=info.description,
            updated=updated,
            changelog=changelog,
        )

    async def build(self, package_dir: Path) -> PackageResult:
        """
        Build the package in ``package_dir``.

        The result is marked skipped (with no record) when the package is
        unchanged since the previous index; nothing is written in that case.
        Raises PackageBuildError when the package cannot be built; nothing
        already written for it is rolled back.
        """
        build = load_package_build(package_dir)
        previous = find_previous_record(build.name, self.previous)

        if should_skip(build, self.previous):
            logger.info(f"{build.info.title or build.name} hasn't changed, skipping.")
            return PackageResult(name=build.name, skipped=True, previous=previous)

        context = BuildContext(
            package_name=build.name,
            package_dir=package_dir,
            output_dir=self.store.output_dir,
            config=self.config,
        )

        try:
            with InstallManifest(package_dir / MANIFEST_FILENAME) as manifest:
                logger.info(f"{len(build.assets)} asset(s) detected")
                resolver = AssetResolver(context, manifest, self.client)
                await resolver.resolve_all(build.assets)

                info = self.package_info(build)
                write_package_info(package_dir, info)
                logger.info("info.json generated.")
        except OSError as e:
            raise PackageBuildError(package_dir.name, f"failed to write manifest or info.json: {e}") from e

        if resolver.errors:
            logger.warning(f"{len(resolver.errors)} asset(s) of {build.name} could not be resolved")

        try:
            extracted = directory_size(package_dir)
        except OSError as e:
            raise PackageBuildError(package_dir.name, f"failed to measure package: {e}") from e
        logger.info(f"Package is {extracted // 1024} KiB large.")

        binary = find_binary(build.info, package_dir, self.config.valid_binary_extensions)

        zip_path = self.store.zip_path(build.name)
        try:
            zip_directory(package_dir, zip_path)
            filesize = zip_path.stat().st_size
        except (OSError, ValueError) as e:
            raise PackageBuildError(package_dir.name, f"failed to create zip archive: {e}") from e
        logger.info(f"Package written to {zip_path}")
        logger.info(f"Zipped package is {filesize // 1024} KiB large.")

        record = PackageRecord(
            **info.model_dump(),
            extracted=extracted // 1024,
            filesize=filesize // 1024,
            binary=binary,
        )
        return PackageResult(
            name=build.name,
            record=record,
            previous=previous,
            asset_errors=[e.message for e in resolver.errors],
        )

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional
import httpx

from pkgrepo.domain.errors import PackageBuildError
from pkgrepo.domain.models import BuilderConfig, BuildSummary
from pkgrepo.services.builder import PackageBuilder
from pkgrepo.services.fetcher import create_http_client
from pkgrepo.storage.json_store import BUILD_FILENAME, JsonRepositoryStore

logger = logging.getLogger(__name__)


def discover_packages(source_dir: Path, config: BuilderConfig) -> List[Path]:
    """
    List package directories under ``source_dir``.

    A package directory is any non-ignored directory holding a pkgbuild.json.
    Directories are returned sorted by name, which is the build order.
    """
    pkg_dirs: List[Path] = []
    for entry in sorted(source_dir.iterdir(), key=lambda p: p.name):
        if not entry.is_dir():
            continue
        if entry.name in config.ignored_directories:
            continue
        if (entry / BUILD_FILENAME).is_file():
            pkg_dirs.append(entry)
    return pkg_dirs


def resolve_output_dir(source_dir: Path, config: BuilderConfig) -> Path:
    """Relative output directories are taken relative to the source directory."""
    output_dir = Path(config.output_directory).expanduser()
    if not output_dir.is_absolute():
        output_dir = source_dir / output_dir
    return output_dir


class RepositoryBuilder:
    """
    Builds every package under a source directory into one repository.

    Responsibilities:
    * Validate the output directory and load the previously published index.
    * Build packages one at a time, isolating per-package failures.
    * Collect the records in build order and write repo.json.
    """

    def __init__(
        self,
        source_dir: Path,
        config: BuilderConfig,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.source_dir = source_dir
        self.config = config
        self.store = JsonRepositoryStore(resolve_output_dir(source_dir, config))
        self._client = client
        self._clock = clock

    async def run(self) -> BuildSummary:
        """
        Run the build.

        Raises OutputDirectoryConflict or RepositoryWriteError; every other
        failure only affects the package or asset it happened in.
        """
        previous = self.store.prepare()

        pkg_dirs = discover_packages(self.source_dir, self.config)
        summary = BuildSummary(discovered=[p.name for p in pkg_dirs])
        logger.info(f"{len(pkg_dirs)} detected packages: {summary.discovered}")

        client = self._client or create_http_client(self.config)
        try:
            builder = PackageBuilder(self.config, self.store, client, previous, self._clock)
            for pkg_dir in pkg_dirs:
                logger.info(f"Building {pkg_dir.name}")
                try:
                    result = await builder.build(pkg_dir)
                except PackageBuildError as e:
                    logger.error(e.message)
                    summary.failed.append(pkg_dir.name)
                    continue

                if result.skipped:
                    summary.skipped.append(pkg_dir.name)
                    if self.config.carry_forward_skipped and result.previous is not None:
                        summary.index.add(result.previous)
                    continue

                summary.index.add(result.record)
                summary.built.append(pkg_dir.name)
        finally:
            if self._client is None:
                await client.aclose()

        self.store.write_index(summary.index)
        return summary

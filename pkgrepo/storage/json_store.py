import json
import logging
from pathlib import Path
from typing import Optional

from pkgrepo.domain.errors import (
    ConfigLoadError,
    DescriptorParseError,
    OutputDirectoryConflict,
    RepositoryWriteError,
)
from pkgrepo.domain.models import (
    BuilderConfig,
    PackageBuild,
    PackageInfo,
    RepositoryIndex,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
BUILD_FILENAME = "pkgbuild.json"
INFO_FILENAME = "info.json"
INDEX_FILENAME = "repo.json"


def load_config(path: Path) -> BuilderConfig:
    """
    Load config.json, merging with defaults for any missing fields.

    A missing or invalid file is not fatal: the defaults are used.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return BuilderConfig.model_validate(raw)
    except (OSError, ValueError) as e:
        error = ConfigLoadError(f"Couldn't load {path}: {e}")
        logger.warning(f"{error.message}; using default configuration.")
        return BuilderConfig()


def load_package_build(package_dir: Path) -> PackageBuild:
    path = package_dir / BUILD_FILENAME
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return PackageBuild.model_validate(raw)
    except (OSError, ValueError) as e:
        raise DescriptorParseError(package_dir.name, f"invalid {BUILD_FILENAME}: {e}") from e


def write_package_info(package_dir: Path, info: PackageInfo) -> Path:
    path = package_dir / INFO_FILENAME
    path.write_text(info.model_dump_json(indent=2), encoding="utf-8")
    return path


class JsonRepositoryStore:
    """
    The output repository tree: repo.json, zips/ and packages/.
    """

    def __init__(self, output_dir: Path):
        self._output_dir = output_dir

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    @property
    def index_path(self) -> Path:
        return self._output_dir / INDEX_FILENAME

    def zip_path(self, package_name: str) -> Path:
        return self._output_dir / "zips" / f"{package_name}.zip"

    def prepare(self) -> Optional[RepositoryIndex]:
        """
        Make sure the output directory can hold a repository.

        Returns the previously published index when the directory already
        holds a repository, or None when it is absent or empty. Raises
        OutputDirectoryConflict for any other non-empty directory.
        """
        out = self._output_dir
        if not out.exists():
            out.mkdir(parents=True, exist_ok=True)
            return None
        if not out.is_dir():
            raise OutputDirectoryConflict(str(out), "not a directory")
        if not any(out.iterdir()):
            return None

        try:
            raw = json.loads(self.index_path.read_text(encoding="utf-8"))
            previous = RepositoryIndex.model_validate(raw)
        except (OSError, ValueError) as e:
            raise OutputDirectoryConflict(str(out), str(e)) from e

        logger.info(
            f"The output directory is already a package repository "
            f"({len(previous.packages)} package(s)); updating it."
        )
        return previous

    def write_index(self, index: RepositoryIndex) -> Path:
        path = self.index_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(index.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise RepositoryWriteError(f"Failed to write {path}: {e}") from e
        logger.info(f"{path} generated.")
        return path

"""Exception types raised while building a package repository."""

from typing import Optional


class PkgRepoError(Exception):
    """Base exception for repository build errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigLoadError(PkgRepoError):
    """config.json is missing or invalid; defaults are used instead."""


class OutputDirectoryConflict(PkgRepoError):
    """The output directory is not empty and does not hold a repository."""

    def __init__(self, output_dir: str, reason: str):
        super().__init__(
            f"Output directory {output_dir} is not empty and is not a package repository: {reason}"
        )
        self.output_dir = output_dir


class RepositoryWriteError(PkgRepoError):
    """The final repository index could not be written."""


class PackageBuildError(PkgRepoError):
    """Building a single package failed."""

    def __init__(self, package: str, message: str):
        super().__init__(f"Failed to build {package}: {message}")
        self.package = package


class DescriptorParseError(PackageBuildError):
    """pkgbuild.json could not be read or validated."""


class AssetError(PkgRepoError):
    """Resolving a single asset failed."""

    def __init__(self, asset: str, message: str):
        super().__init__(f"Asset {asset}: {message}")
        self.asset = asset


class AssetFetchError(AssetError):
    """The asset source could not be opened or downloaded."""


class AssetWriteError(AssetError):
    """The asset could not be written to its destination."""


class ArchiveExtractError(AssetError):
    """An archive asset could not be extracted."""


class UnknownAssetTypeError(AssetError):
    """The asset declares a type the builder does not know."""

    def __init__(self, asset: str, asset_type: Optional[str]):
        super().__init__(asset, f"unknown asset type {asset_type!r}")
        self.asset_type = asset_type

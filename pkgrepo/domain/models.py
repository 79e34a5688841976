"""
Pydantic models for the package repository builder.

This module defines all data models used throughout the builder, including:
- Builder configuration
- Build descriptors (pkgbuild.json) and their asset descriptors
- Per-package metadata records and the aggregate repository index

Build descriptors are validated once when they are loaded; every later stage
works on the typed, frozen models only.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    model_validator,
)


INSTALL_TYPES = ("update", "get", "extract", "local")
IMAGE_TYPES = ("icon", "screenshot")
ARCHIVE_TYPES = ("zip", "archive")

DEFAULT_BINARY_EXTENSIONS = [".nro", ".elf", ".rpx", ".cia", ".3dsx", ".dol"]


# ---------------------------------------------------------------------------
# Builder Configuration
# ---------------------------------------------------------------------------


SubAssetMode = Literal["skip", "install"]


class BuilderConfig(BaseModel):
    """
    Configuration for a repository build.

    Loaded once from config.json at start-up and handed to every component
    that needs it. Missing keys fall back to the defaults below.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    ignored_directories: List[str] = Field(
        default_factory=lambda: [".git"],
        description="Directory names that are never treated as packages.",
    )
    output_directory: str = Field(
        default="public",
        description="Where the repository (repo.json, zips/, packages/) is written.",
    )
    valid_binary_extensions: List[str] = Field(
        default_factory=lambda: list(DEFAULT_BINARY_EXTENSIONS),
        description="File suffixes recognized when guessing a package's binary.",
    )
    sub_asset_mode: SubAssetMode = Field(
        default="skip",
        description=(
            "How assets flagged with subAsset are handled: 'skip' logs and ignores them, "
            "'install' processes them like any other asset of their type."
        ),
    )
    carry_forward_skipped: bool = Field(
        default=False,
        description="Copy the previous record of unchanged packages into the new index.",
    )
    download_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Timeout in seconds for asset downloads. None waits forever.",
    )


# ---------------------------------------------------------------------------
# Asset Descriptors
# ---------------------------------------------------------------------------


class _AssetBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    source: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("url", "source"),
        description="URL, path relative to the package directory, or extracted path.",
    )
    path: Optional[str] = Field(
        default=None,
        description="Path of the entry inside the parent archive, for nested assets.",
    )
    sub_asset: bool = Field(
        default=False,
        validation_alias=AliasChoices("subAsset", "sub_asset"),
        description="Marks an entry that lives inside a parent archive.",
    )

    @model_validator(mode="after")
    def check_location(self):
        if not self.sub_asset and self.source is None and self.path is None:
            raise ValueError(f"{self.type} asset needs a 'url' or a 'path'")
        return self

    @property
    def label(self) -> str:
        return self.source or self.path or f"<{self.type}>"


class InstallAsset(_AssetBase):
    """A file installed into the package tree and listed in the manifest."""

    type: Literal["update", "get", "extract", "local"]
    dest: Optional[str] = Field(
        default=None,
        description="Destination relative to the package root.",
    )

    @model_validator(mode="after")
    def check_dest(self):
        if not self.sub_asset and not self.dest:
            raise ValueError(f"{self.type} asset {self.label} needs a 'dest'")
        return self

    @property
    def opcode(self) -> str:
        return self.type[0].upper()


class ImageAsset(_AssetBase):
    """Icon or screenshot, published next to the package in the output tree."""

    type: Literal["icon", "screenshot"]

    @property
    def filename(self) -> str:
        return "icon.png" if self.type == "icon" else "screen.png"


class ArchiveAsset(_AssetBase):
    """A zip archive whose entries are resolved as nested assets."""

    type: Literal["zip", "archive"]
    assets: List[AssetDescriptor] = Field(
        default_factory=list,
        validation_alias=AliasChoices("zip", "assets"),
        description="Descriptors for entries of the archive, resolved in order.",
    )

    @model_validator(mode="before")
    @classmethod
    def reject_dest(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("dest") is not None:
            raise ValueError("archive assets must not declare a 'dest'")
        return data


class UnknownAsset(BaseModel):
    """An asset whose type is not recognized. Kept so it can be reported."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    type: Optional[str] = None
    source: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("url", "source"),
    )
    path: Optional[str] = None
    sub_asset: bool = Field(
        default=False,
        validation_alias=AliasChoices("subAsset", "sub_asset"),
    )

    @property
    def label(self) -> str:
        return self.source or self.path or f"<{self.type}>"


def _asset_kind(value: Any) -> str:
    if isinstance(value, dict):
        asset_type = value.get("type")
    else:
        asset_type = getattr(value, "type", None)
    if asset_type in INSTALL_TYPES:
        return "install"
    if asset_type in IMAGE_TYPES:
        return "image"
    if asset_type in ARCHIVE_TYPES:
        return "archive"
    return "unknown"


AssetDescriptor = Annotated[
    Union[
        Annotated[InstallAsset, Tag("install")],
        Annotated[ImageAsset, Tag("image")],
        Annotated[ArchiveAsset, Tag("archive")],
        Annotated[UnknownAsset, Tag("unknown")],
    ],
    Discriminator(_asset_kind),
]

ArchiveAsset.model_rebuild()


# ---------------------------------------------------------------------------
# Build Descriptor (pkgbuild.json)
# ---------------------------------------------------------------------------


class BuildInfo(BaseModel):
    """The "info" block of a build descriptor."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str = ""
    author: str = ""
    category: str = ""
    version: str
    license: str = ""
    description: str = ""
    details: str = ""
    url: str = ""
    timestamp: Optional[float] = Field(
        default=None,
        description="Release time in epoch seconds. The build time is used when absent.",
    )
    binary: Optional[str] = Field(
        default=None,
        description="Explicit path of the package's entry point.",
    )


class PackageBuild(BaseModel):
    """
    A parsed pkgbuild.json.

    Immutable for the duration of the package's build.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(validation_alias=AliasChoices("package", "name"))
    info: BuildInfo
    changelog: Optional[str] = None
    changes: Optional[str] = Field(
        default=None,
        description="Deprecated spelling of 'changelog'.",
    )
    assets: List[AssetDescriptor] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Package Metadata and Repository Index
# ---------------------------------------------------------------------------


class PackageInfo(BaseModel):
    """Public package metadata, written to the package's info.json."""

    model_config = ConfigDict(frozen=True, extra="allow")

    category: str = ""
    name: str
    license: str = ""
    title: str = ""
    url: str = ""
    author: str = ""
    version: str
    details: str = ""
    description: str = ""
    updated: str = ""
    changelog: Optional[str] = None


class PackageRecord(PackageInfo):
    """
    One entry of repo.json: the package info plus derived fields.

    Sizes are in KiB, rounded down.
    """

    extracted: int = 0
    filesize: int = 0
    web_dls: int = -1
    app_dls: int = -1
    binary: str = ""


class RepositoryIndex(BaseModel):
    """The repository index published as repo.json."""

    packages: List[PackageRecord] = Field(default_factory=list)

    def find(self, name: str) -> Optional[PackageRecord]:
        for record in self.packages:
            if record.name == name:
                return record
        return None

    def add(self, record: PackageRecord) -> None:
        self.packages.append(record)


class BuildContext(BaseModel):
    """Everything asset resolution needs to know about the package being built."""

    model_config = ConfigDict(frozen=True)

    package_name: str
    package_dir: Path
    output_dir: Path
    config: BuilderConfig = Field(default_factory=BuilderConfig)

    @property
    def published_dir(self) -> Path:
        return self.output_dir / "packages" / self.package_name


class PackageResult(BaseModel):
    """Outcome of building one package directory."""

    name: str
    record: Optional[PackageRecord] = None
    skipped: bool = False
    previous: Optional[PackageRecord] = Field(
        default=None,
        description="The record of this package in the previous index, if any.",
    )
    asset_errors: List[str] = Field(default_factory=list)


class BuildSummary(BaseModel):
    """Outcome of a repository build run."""

    index: RepositoryIndex = Field(default_factory=RepositoryIndex)
    discovered: List[str] = Field(default_factory=list)
    built: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)


def format_updated(timestamp: float) -> str:
    """Render an epoch timestamp as the YYYY-MM-DD date used in repo.json."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")

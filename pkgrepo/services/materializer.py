"""
Write fetched assets to their destinations in the package and output trees.
"""
from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import BinaryIO, Union

from pkgrepo.domain.errors import AssetWriteError, UnknownAssetTypeError
from pkgrepo.domain.manifest import InstallManifest
from pkgrepo.domain.models import (
    ArchiveAsset,
    BuildContext,
    ImageAsset,
    InstallAsset,
    UnknownAsset,
)

logger = logging.getLogger(__name__)


def destination_path(root: Path, dest: str) -> Path:
    """
    Join a declared destination onto ``root``.

    Destinations are written with or without a leading slash; both mean
    "relative to the package root". A destination escaping the root is refused.
    """
    target = root / dest.lstrip("/\\")
    try:
        target.resolve().relative_to(root.resolve())
    except ValueError:
        raise AssetWriteError(dest, f"destination escapes {root}")
    except OSError as e:
        raise AssetWriteError(dest, f"cannot resolve destination: {e}") from e
    return target


def is_same_file(source: BinaryIO, target: Path) -> bool:
    """True when ``source`` is an open handle on ``target`` itself."""
    name = getattr(source, "name", None)
    if not isinstance(name, str) or not target.exists():
        return False
    return os.path.samefile(name, target)


def write_stream(source: BinaryIO, target: Path) -> None:
    """
    Copy ``source`` from its start into ``target``, replacing any existing file.

    A local source that already sits at ``target`` is left untouched.
    """
    if is_same_file(source, target):
        logger.debug(f"{target} is already in place")
        return
    target.parent.mkdir(parents=True, exist_ok=True)
    source.seek(0)
    with target.open("wb") as out:
        shutil.copyfileobj(source, out)


def copy_new_file(src: Path, dst: Path) -> None:
    """Copy a regular file to ``dst``, refusing to overwrite an existing file."""
    if not src.is_file():
        raise AssetWriteError(str(src), "is not a regular file")
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise AssetWriteError(str(dst), f"cannot create {dst.parent}: {e}") from e
    try:
        with src.open("rb") as f_in, dst.open("xb") as f_out:
            shutil.copyfileobj(f_in, f_out)
    except FileExistsError:
        raise AssetWriteError(str(dst), "file already exists")
    except OSError as e:
        raise AssetWriteError(str(dst), f"copy failed: {e}") from e


def _install(context: BuildContext, source: BinaryIO, asset: InstallAsset, manifest: InstallManifest) -> None:
    if not asset.dest:
        raise AssetWriteError(asset.label, "asset declares no 'dest'")
    dest = asset.dest
    logger.info(f"\t- Type is {asset.type}, moving to /{dest.lstrip('/')}")
    target = destination_path(context.package_dir, dest)
    try:
        write_stream(source, target)
    except OSError as e:
        raise AssetWriteError(asset.label, f"failed to write {target}: {e}") from e
    manifest.record(asset.opcode, dest)


def _publish_image(context: BuildContext, source: BinaryIO, asset: ImageAsset) -> None:
    logger.info(f"\t- Type is {asset.type}, moving to /{asset.filename}")
    local_path = context.package_dir / asset.filename
    try:
        write_stream(source, local_path)
    except OSError as e:
        raise AssetWriteError(asset.label, f"failed to write {local_path}: {e}") from e
    copy_new_file(local_path, context.published_dir / asset.filename)


def materialize(
    context: BuildContext,
    source: BinaryIO,
    asset: Union[InstallAsset, ImageAsset, ArchiveAsset, UnknownAsset],
    manifest: InstallManifest,
) -> None:
    """
    Write one leaf asset.

    Install kinds land in the package tree and add one manifest line.
    Icons and screenshots land in the package tree and are also published
    under ``<output>/packages/<name>/``; they add no manifest line.
    """
    if isinstance(asset, InstallAsset):
        _install(context, source, asset, manifest)
    elif isinstance(asset, ImageAsset):
        _publish_image(context, source, asset)
    else:
        raise UnknownAssetTypeError(asset.label, asset.type)

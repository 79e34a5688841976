"""
Zip helpers: extracting archive assets and packing built packages.
"""
from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path
from typing import BinaryIO, Iterator, List

from pkgrepo.domain.errors import ArchiveExtractError

logger = logging.getLogger(__name__)

# Fixed entry timestamp so rebuilding unchanged content yields identical zips.
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


def extract_archive(source: BinaryIO, dest_dir: Path, label: str = "<archive>") -> List[str]:
    """
    Extract every entry of a zip archive into ``dest_dir``.

    Directory entries create directories, file entries are copied verbatim at
    their relative paths. Returns the extracted entry names.
    """
    root = dest_dir.resolve()
    names: List[str] = []
    try:
        source.seek(0)
        with zipfile.ZipFile(source, "r") as zip_ref:
            for info in zip_ref.infolist():
                target = (dest_dir / info.filename).resolve()
                if target != root and root not in target.parents:
                    raise ArchiveExtractError(label, f"entry {info.filename!r} escapes the extraction directory")
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with zip_ref.open(info, "r") as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                names.append(info.filename)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, RuntimeError) as e:
        raise ArchiveExtractError(label, f"failed to unzip: {e}") from e

    logger.debug(f"Extracted {len(names)} file(s) from {label} into {dest_dir}")
    return names


def extracted_member(dest_dir: Path, path: str, label: str = "<archive>") -> Path:
    """
    Locate a nested asset's ``path`` inside an extraction directory.

    A leading slash still means "relative to the archive root". Paths that
    leave ``dest_dir`` or name no extracted file are refused.
    """
    root = dest_dir.resolve()
    target = (dest_dir / path.lstrip("/\\")).resolve()
    if root not in target.parents:
        raise ArchiveExtractError(label, f"path {path!r} escapes the extraction directory")
    if not target.is_file():
        raise ArchiveExtractError(label, f"path {path!r} not found in archive")
    return target


def iter_files(root: Path) -> Iterator[Path]:
    """Yield regular files under ``root`` in sorted, depth-first order."""
    for entry in sorted(root.iterdir(), key=lambda p: p.name):
        if entry.is_dir():
            yield from iter_files(entry)
        elif entry.is_file():
            yield entry


def directory_size(root: Path) -> int:
    return sum(path.stat().st_size for path in iter_files(root))


def zip_directory(source_dir: Path, zip_path: Path) -> int:
    """
    Pack every file under ``source_dir`` into ``zip_path``.

    Entry names are relative to ``source_dir`` and use forward slashes. Entries
    are sorted and carry a fixed timestamp. Returns the number of entries.
    """
    zip_path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for file_path in iter_files(source_dir):
            info = zipfile.ZipInfo(file_path.relative_to(source_dir).as_posix(), date_time=ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            with file_path.open("rb") as src, zf.open(info, "w") as dst:
                shutil.copyfileobj(src, dst)
            count += 1
    return count

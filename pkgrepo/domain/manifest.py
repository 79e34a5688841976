"""
Install manifest (manifest.install) written into every package.

Each line tells the on-device installer what to do with one file:
``U`` update, ``G`` get, ``E`` extract, ``L`` local.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, TextIO

MANIFEST_FILENAME = "manifest.install"


class InstallManifest:
    """Append-only writer for a package's install manifest."""

    def __init__(self, path: Path):
        self.path = path
        self.lines: List[str] = []
        self._handle: Optional[TextIO] = None

    def open(self) -> "InstallManifest":
        self._handle = self.path.open("w", encoding="utf-8", newline="\n")
        return self

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "InstallManifest":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def record(self, opcode: str, dest: str) -> None:
        if self._handle is None:
            raise RuntimeError(f"Manifest {self.path} is not open")
        line = f"{opcode}: {dest}\n"
        self._handle.write(line)
        self.lines.append(line)

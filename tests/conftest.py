"""Shared pytest fixtures for the repository builder tests."""

import io
import json
import zipfile
from pathlib import Path
from typing import Callable, Dict, Optional

import httpx
import pytest


# Configure the anyio pytest plugin to only use the asyncio backend.
@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


def make_zip_bytes(entries: Dict[str, bytes], directories=()) -> bytes:
    """Build an in-memory zip with the given file entries (and directory entries)."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name in directories:
            zf.writestr(name.rstrip("/") + "/", b"")
        for name, data in entries.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def write_pkgbuild(
    package_dir: Path,
    assets: list,
    name: Optional[str] = None,
    version: str = "1.0",
    **info_overrides,
) -> Path:
    """Create a package directory with a valid pkgbuild.json."""
    package_dir.mkdir(parents=True, exist_ok=True)
    info = {
        "title": "Test Package",
        "author": "tester",
        "category": "tool",
        "version": version,
        "license": "MIT",
        "description": "A test package",
        "details": "Details",
        "url": "https://example.com",
        "timestamp": 1700000000,
    }
    info.update(info_overrides)
    info = {k: v for k, v in info.items() if v is not None}
    data = {
        "package": name or package_dir.name,
        "info": info,
        "changelog": "Initial release",
        "assets": assets,
    }
    path = package_dir / "pkgbuild.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def make_client() -> Callable[..., httpx.AsyncClient]:
    """
    Factory for an AsyncClient served from a dict of URL -> bytes.

    Unknown URLs answer 404. Every requested URL is appended to
    ``client.requested``.
    """

    def factory(responses: Optional[Dict[str, bytes]] = None) -> httpx.AsyncClient:
        responses = responses or {}
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            requested.append(url)
            if url in responses:
                return httpx.Response(200, content=responses[url])
            return httpx.Response(404, content=b"not found")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        client.requested = requested
        return client

    return factory

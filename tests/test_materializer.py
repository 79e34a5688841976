import io
from pathlib import Path

import pytest

from pkgrepo.domain.errors import AssetWriteError, UnknownAssetTypeError
from pkgrepo.domain.manifest import InstallManifest
from pkgrepo.domain.models import BuildContext, ImageAsset, InstallAsset, UnknownAsset
from pkgrepo.services.materializer import copy_new_file, destination_path, materialize


@pytest.fixture
def context(tmp_path: Path) -> BuildContext:
    package_dir = tmp_path / "demo"
    package_dir.mkdir()
    return BuildContext(package_name="demo", package_dir=package_dir, output_dir=tmp_path / "public")


@pytest.fixture
def manifest(context: BuildContext):
    with InstallManifest(context.package_dir / "manifest.install") as m:
        yield m


@pytest.mark.parametrize("asset_type,opcode", [("update", "U"), ("get", "G"), ("extract", "E"), ("local", "L")])
def test_install_kinds_write_file_and_manifest_line(context, manifest, asset_type, opcode):
    asset = InstallAsset(type=asset_type, source="x", dest="/switch/demo/demo.nro")

    materialize(context, io.BytesIO(b"payload"), asset, manifest)

    target = context.package_dir / "switch" / "demo" / "demo.nro"
    assert target.read_bytes() == b"payload"
    assert manifest.lines == [f"{opcode}: /switch/demo/demo.nro\n"]


def test_source_is_copied_from_its_start(context, manifest):
    source = io.BytesIO(b"abcdef")
    source.read(3)

    materialize(context, source, InstallAsset(type="get", source="x", dest="a.bin"), manifest)

    assert (context.package_dir / "a.bin").read_bytes() == b"abcdef"


@pytest.mark.parametrize("asset_type,filename", [("icon", "icon.png"), ("screenshot", "screen.png")])
def test_images_are_published_without_manifest_line(context, manifest, asset_type, filename):
    materialize(context, io.BytesIO(b"png"), ImageAsset(type=asset_type, source="x"), manifest)

    assert (context.package_dir / filename).read_bytes() == b"png"
    assert (context.output_dir / "packages" / "demo" / filename).read_bytes() == b"png"
    assert manifest.lines == []


def test_published_image_is_never_overwritten(context, manifest):
    published = context.output_dir / "packages" / "demo" / "icon.png"
    published.parent.mkdir(parents=True)
    published.write_bytes(b"old")

    with pytest.raises(AssetWriteError):
        materialize(context, io.BytesIO(b"new"), ImageAsset(type="icon", source="x"), manifest)

    assert published.read_bytes() == b"old"


def test_unknown_type_writes_nothing(context, manifest):
    asset = UnknownAsset(type="teleport", source="x")

    with pytest.raises(UnknownAssetTypeError):
        materialize(context, io.BytesIO(b"x"), asset, manifest)

    assert manifest.lines == []
    assert [p.name for p in context.package_dir.iterdir()] == ["manifest.install"]


def test_destination_cannot_escape_package(tmp_path: Path):
    with pytest.raises(AssetWriteError):
        destination_path(tmp_path / "pkg", "../outside.bin")


def test_copy_new_file_refuses_directories(tmp_path: Path):
    with pytest.raises(AssetWriteError):
        copy_new_file(tmp_path, tmp_path / "copy")

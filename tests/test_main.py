import json
from pathlib import Path

from conftest import write_pkgbuild
from pkgrepo.main import main


def test_main_builds_local_packages(tmp_path: Path, capsys):
    pkg = tmp_path / "demo"
    pkg.mkdir()
    (pkg / "demo.nro").write_bytes(b"nro")
    write_pkgbuild(pkg, [{"type": "local", "url": "demo.nro", "dest": "/switch/demo/demo.nro"}])
    (tmp_path / "config.json").write_text(json.dumps({"output_directory": "site"}))

    assert main([str(tmp_path)]) == 0

    repo = json.loads((tmp_path / "site" / "repo.json").read_text())
    assert repo["packages"][0]["name"] == "demo"
    out = capsys.readouterr().out
    assert "Built 1 of 1 packages" in out


def test_main_output_override_and_second_run_skips(tmp_path: Path, capsys):
    write_pkgbuild(tmp_path / "demo", [])
    output = tmp_path / "custom"

    assert main([str(tmp_path), "--output", str(output)]) == 0
    assert main([str(tmp_path), "--output", str(output)]) == 0

    out = capsys.readouterr().out
    assert "Built 0 of 1 packages (1 unchanged, 0 failed)" in out


def test_main_stops_on_conflicting_output(tmp_path: Path):
    write_pkgbuild(tmp_path / "demo", [])
    (tmp_path / "public").mkdir()
    (tmp_path / "public" / "index.html").write_text("<html></html>")

    assert main([str(tmp_path)]) == 1

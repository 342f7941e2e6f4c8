from __future__ import annotations

import json
from pathlib import Path

import pytest

from repogen.core.settings import CACHE_DIR_ENV_VAR, OUTPUT_DIR_ENV_VAR
from repogen.main import main


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(OUTPUT_DIR_ENV_VAR, raising=False)
    monkeypatch.delenv(CACHE_DIR_ENV_VAR, raising=False)


def _config(tmp_path: Path, sources: str) -> Path:
    path = tmp_path / "repogen.yaml"
    path.write_text(
        f"output_dir: out\nworkspace_dir: work\nsources:\n{sources}",
        encoding="utf-8",
    )
    return path


def test_main_generates_and_prints_path(
    tmp_path: Path, make_local_package, capsys: pytest.CaptureFixture
) -> None:
    root = make_local_package({"name": "a/b", "version": "1.0.0"})
    config = _config(tmp_path, f"  {root}: {{}}\n")

    assert main([str(config), "--no-cache"]) == 0

    packages_json = tmp_path / "out" / "packages.json"
    assert capsys.readouterr().out.strip() == str(packages_json.resolve())
    assert json.loads(packages_json.read_text(encoding="utf-8"))["available-packages"] == ["a/b"]
    assert not (tmp_path / "out" / "cache").exists() or not list((tmp_path / "out" / "cache").iterdir())


def test_main_reports_failure(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    config = _config(tmp_path, "  ./missing: {}\n")

    assert main([str(config), "--clean-cache"]) == 1
    assert capsys.readouterr().out == ""


def test_main_rejects_unreadable_config(tmp_path: Path) -> None:
    assert main([str(tmp_path / "absent.yaml")]) == 1

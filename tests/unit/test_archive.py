from __future__ import annotations

import hashlib
import zipfile
from pathlib import Path

from repogen.services.sources.archive import ArchiveBuilder
from repogen.services.sources.git_repository import GitWorkingCopy


def test_archive_revision_exports_the_tagged_tree(make_git_repo, tmp_path: Path) -> None:
    upstream = make_git_repo()
    upstream.release("1.0.0")
    upstream.commit({"NEW.md": "added after 1.0.0"})
    working_copy = GitWorkingCopy.clone_or_update(upstream.url, tmp_path / "clone")

    result = ArchiveBuilder(tmp_path / "archives").archive_revision(working_copy, "acme/widgets", "1.0.0", "1.0.0")

    assert result is not None
    assert result.path == tmp_path / "archives" / "acme-widgets-1.0.0.zip"
    assert result.sha256 == hashlib.sha256(result.path.read_bytes()).hexdigest()
    with zipfile.ZipFile(result.path) as zf:
        names = zf.namelist()
    assert "composer.json" in names
    assert "NEW.md" not in names


def test_archive_revision_failure_returns_none(make_git_repo, tmp_path: Path) -> None:
    upstream = make_git_repo()
    upstream.release("1.0.0")
    working_copy = GitWorkingCopy.clone_or_update(upstream.url, tmp_path / "clone")
    builder = ArchiveBuilder(tmp_path / "archives")

    assert builder.archive_revision(working_copy, "acme/widgets", "9.9.9", "no-such-ref") is None
    assert not builder.archive_path("acme/widgets", "9.9.9").exists()


def test_archive_directory_is_deterministic_and_skips_vcs(make_local_package, tmp_path: Path) -> None:
    root = make_local_package({"name": "acme/local"})
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")

    first = ArchiveBuilder(tmp_path / "one").archive_directory(root, "acme/local", "dev-main")
    second = ArchiveBuilder(tmp_path / "two").archive_directory(root, "acme/local", "dev-main")

    assert first is not None and second is not None
    assert first.sha256 == second.sha256
    with zipfile.ZipFile(first.path) as zf:
        assert sorted(zf.namelist()) == ["composer.json", "src/Widget.php"]


def test_archive_directory_does_not_include_its_own_output(make_local_package) -> None:
    root = make_local_package({"name": "acme/local"})

    result = ArchiveBuilder(root / "dist").archive_directory(root, "acme/local", "1.0.0")

    assert result is not None
    with zipfile.ZipFile(result.path) as zf:
        assert not any(name.startswith("dist/") for name in zf.namelist())


def test_archive_directory_skips_excluded_dirs_inside_the_source(make_local_package, tmp_path: Path) -> None:
    root = make_local_package({"name": "acme/local"})
    for generated in ("build/packages.json", "build/p/acme$local.json", "cache/abc-def.json"):
        (root / generated).parent.mkdir(parents=True, exist_ok=True)
        (root / generated).write_text("{}", encoding="utf-8")

    builder = ArchiveBuilder(tmp_path / "archives", excluded_dirs=[root / "build", root / "cache"])
    result = builder.archive_directory(root, "acme/local", "1.0.0")

    assert result is not None
    with zipfile.ZipFile(result.path) as zf:
        assert sorted(zf.namelist()) == ["composer.json", "src/Widget.php"]

from __future__ import annotations

import hashlib
import json
import re
import zipfile
from pathlib import Path

import pytest

from repogen.domain.errors import ConfigError, GenerationError
from repogen.domain.models import GeneratorConfig
from repogen.services.generator import RepositoryGenerator

MANIFEST = {"name": "a/b", "version": "1.0.0", "type": "library"}


def _load(path: Path):
    return json.loads(Path(path).read_text(encoding="utf-8"))


def test_generate_without_sources_is_a_config_error(generator: RepositoryGenerator) -> None:
    with pytest.raises(ConfigError, match="No source repositories"):
        generator.generate()


def test_local_source_end_to_end(generator: RepositoryGenerator, make_local_package, output_dir: Path) -> None:
    root = make_local_package(MANIFEST)

    packages_json = Path(generator.add_source(str(root)).generate())

    assert packages_json == output_dir / "packages.json"
    descriptor = _load(packages_json)
    assert descriptor["packages"] == {"a/b": {"1.0.0": MANIFEST}}
    assert descriptor["available-packages"] == ["a/b"]
    assert descriptor["metadata-url"] == "p/%package%.json"
    assert descriptor["providers-url"] == "p/%package%$%hash%.json"
    assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\+00:00$", descriptor["generated"])

    canonical = output_dir / "p" / "a$b.json"
    assert _load(canonical) == {"packages": {"a/b": {"1.0.0": MANIFEST}}}

    content = canonical.read_bytes()
    hashed = output_dir / "p" / f"a$b${hashlib.sha256(content).hexdigest()}.json"
    assert hashed.read_bytes() == content


def test_local_source_without_version_defaults_to_dev_main(generator: RepositoryGenerator, make_local_package) -> None:
    root = make_local_package({"name": "a/b"})

    descriptor = _load(generator.add_source(str(root)).generate())

    assert descriptor["packages"]["a/b"]["dev-main"]["version"] == "dev-main"


def test_regeneration_is_byte_identical(generator: RepositoryGenerator, make_local_package, output_dir: Path) -> None:
    generator.add_source(str(make_local_package(MANIFEST)))

    generator.generate()
    first = {p.name: p.read_bytes() for p in (output_dir / "p").iterdir()}
    generator.generate()
    second = {p.name: p.read_bytes() for p in (output_dir / "p").iterdir()}

    assert first == second
    assert len(first) == 2


def test_missing_manifest_is_the_only_source_so_generation_fails(
    generator: RepositoryGenerator, make_local_package
) -> None:
    root = make_local_package(None)
    generator.use_cache(False).add_source(str(root))

    with pytest.raises(GenerationError, match="composer.json not found"):
        generator.generate()

    assert generator.last_report is not None
    assert [o.locator for o in generator.last_report.failures] == [str(root)]


def test_failed_source_does_not_stop_the_others(
    generator: RepositoryGenerator, make_local_package, tmp_path: Path
) -> None:
    good = make_local_package(MANIFEST, name="good")
    generator.add_source(str(tmp_path / "missing"))
    generator.add_source(str(good))

    descriptor = _load(generator.generate())

    assert list(descriptor["packages"]) == ["a/b"]
    assert len(generator.last_report.failures) == 1


def test_missing_name_is_a_source_failure(generator: RepositoryGenerator, make_local_package) -> None:
    generator.add_source(str(make_local_package({"version": "1.0.0"})))

    with pytest.raises(GenerationError, match="Package name not found"):
        generator.generate()


def test_global_and_source_filters_both_apply(generator: RepositoryGenerator, make_local_package) -> None:
    library = make_local_package(MANIFEST, name="library")
    plugin = make_local_package({"name": "c/plugin", "version": "1.0.0", "type": "composer-plugin"}, name="plugin")
    project = make_local_package({"name": "e/f", "version": "1.0.0", "type": "library"}, name="project")

    generator.set_package_filter(lambda p: p.get("type") == "library")
    generator.add_source(str(library))
    generator.add_source(str(plugin), package_filter=lambda p: True)
    generator.add_source(str(project), {"package_filter": lambda p: p["name"] != "e/f"})

    descriptor = _load(generator.generate())

    assert list(descriptor["packages"]) == ["a/b"]


def test_declarative_filters_from_options(generator: RepositoryGenerator, make_local_package) -> None:
    generator.add_source(str(make_local_package(MANIFEST, name="one")), {"name_pattern": "^x/"})
    generator.add_source(str(make_local_package({"name": "x/y", "version": "2.0.0"}, name="two")), {"package_type": "library"})
    generator.add_source(str(make_local_package({"name": "x/z", "version": "3.0.0", "type": "library"}, name="three")))

    descriptor = _load(generator.generate())

    assert list(descriptor["packages"]) == ["x/z"]


def test_unknown_option_is_rejected(generator: RepositoryGenerator) -> None:
    with pytest.raises(ConfigError, match="Invalid options"):
        generator.add_source("/srv/packages/b", {"semver_onyl": False})


def test_later_source_overrides_same_version(generator: RepositoryGenerator, make_local_package) -> None:
    first = make_local_package({**MANIFEST, "description": "first"}, name="first")
    second = make_local_package({**MANIFEST, "description": "second"}, name="second")
    generator.add_sources({str(first): {}, str(second): {}})

    descriptor = _load(generator.generate())

    assert descriptor["packages"]["a/b"]["1.0.0"]["description"] == "second"


def test_cached_result_is_reused_until_cleaned(
    generator: RepositoryGenerator, make_local_package
) -> None:
    root = make_local_package(MANIFEST)
    generator.add_source(str(root))
    generator.generate()

    (root / "composer.json").write_text(json.dumps({**MANIFEST, "description": "changed"}), encoding="utf-8")

    descriptor = _load(generator.generate())
    assert "description" not in descriptor["packages"]["a/b"]["1.0.0"]
    assert generator.last_report.outcomes[0].from_cache

    assert generator.clean_cache(str(root)) is True
    descriptor = _load(generator.generate())
    assert descriptor["packages"]["a/b"]["1.0.0"]["description"] == "changed"


def test_proxying_local_source_adds_dist(generator: RepositoryGenerator, make_local_package, output_dir: Path) -> None:
    generator.enable_archive_proxying().add_source(str(make_local_package(MANIFEST)))

    descriptor = _load(generator.generate())

    dist = descriptor["packages"]["a/b"]["1.0.0"]["dist"]
    assert dist["type"] == "zip"
    assert dist["url"] == "archives/a-b-1.0.0.zip"
    archive = output_dir / dist["url"]
    assert dist["shasum"] == hashlib.sha256(archive.read_bytes()).hexdigest()


def test_output_directory_can_be_changed(generator: RepositoryGenerator, make_local_package, tmp_path: Path) -> None:
    elsewhere = tmp_path / "elsewhere"
    generator.set_output_directory(elsewhere).add_source(str(make_local_package(MANIFEST)))

    assert Path(generator.generate()) == elsewhere / "packages.json"
    assert (elsewhere / "p" / "a$b.json").is_file()


def test_output_nested_in_local_source_is_not_archived(make_local_package, tmp_path: Path) -> None:
    root = make_local_package(MANIFEST)
    output = root / "build"
    config = GeneratorConfig(
        output_dir=output,
        workspace_dir=tmp_path / "workspace",
        use_cache=False,
        proxy_packages=True,
    )

    with RepositoryGenerator(config) as generator:
        generator.add_source(str(root))
        first = _load(generator.generate())["packages"]["a/b"]["1.0.0"]["dist"]
        first_files = {p.name: p.read_bytes() for p in (output / "p").iterdir()}
        second = _load(generator.generate())["packages"]["a/b"]["1.0.0"]["dist"]
        second_files = {p.name: p.read_bytes() for p in (output / "p").iterdir()}

    assert first == second
    assert first_files == second_files
    with zipfile.ZipFile(output / first["url"]) as zf:
        assert sorted(zf.namelist()) == ["composer.json", "src/Widget.php"]


def test_cached_packages_still_pass_current_filters(generator: RepositoryGenerator, make_local_package) -> None:
    generator.add_source(str(make_local_package(MANIFEST)))
    generator.generate()

    descriptor = _load(generator.set_package_filter(lambda p: p["name"] != "a/b").generate())

    assert generator.last_report.outcomes[0].from_cache
    assert descriptor["packages"] == {}


def test_moving_the_output_directory_rebuilds_archives(
    generator: RepositoryGenerator, make_local_package, tmp_path: Path
) -> None:
    generator.enable_archive_proxying().add_source(str(make_local_package(MANIFEST)))
    generator.generate()

    elsewhere = tmp_path / "elsewhere"
    descriptor = _load(generator.set_output_directory(elsewhere).generate())

    assert not generator.last_report.outcomes[0].from_cache
    dist = descriptor["packages"]["a/b"]["1.0.0"]["dist"]
    assert (elsewhere / dist["url"]).is_file()

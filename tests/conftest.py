from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

import pytest
from git import Actor, Repo

from repogen.domain.models import GeneratorConfig
from repogen.services.generator import RepositoryGenerator

ACTOR = Actor("Repo Tester", "tester@example.com")


class GitFixtureRepo:
    """A throwaway upstream repository driven through GitPython."""

    def __init__(self, path: Path):
        self.path = path
        self.repo = Repo.init(str(path), initial_branch="main")

    @property
    def url(self) -> str:
        return self.path.as_uri()

    def commit(self, files: Dict[str, Any], message: str = "update") -> str:
        for name, content in files.items():
            target = self.path / name
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, (dict, list)):
                content = json.dumps(content)
            target.write_text(content, encoding="utf-8")
        self.repo.index.add(list(files))
        commit = self.repo.index.commit(message, author=ACTOR, committer=ACTOR)
        return commit.hexsha

    def remove(self, name: str, message: str = "remove") -> None:
        self.repo.index.remove([name], working_tree=True)
        self.repo.index.commit(message, author=ACTOR, committer=ACTOR)

    def manifest(self, version: Optional[str] = None, **fields: Any) -> str:
        data = {"name": "acme/widgets", "type": "library", **fields}
        return self.commit({"composer.json": data}, message=f"release {version or 'dev'}")

    def tag(self, name: str) -> None:
        self.repo.create_tag(name)

    def release(self, tag: str, **fields: Any) -> None:
        fields.setdefault("description", f"release {tag}")
        self.manifest(version=tag, **fields)
        self.tag(tag)

    def branch(self, name: str) -> None:
        self.repo.create_head(name)

    def checkout(self, name: str) -> None:
        self.repo.heads[name].checkout()


@pytest.fixture
def make_git_repo(tmp_path: Path) -> Callable[[str], GitFixtureRepo]:
    def factory(name: str = "upstream") -> GitFixtureRepo:
        return GitFixtureRepo(tmp_path / "upstreams" / name)

    return factory


@pytest.fixture
def make_local_package(tmp_path: Path) -> Callable[..., Path]:
    def factory(manifest: Any, name: str = "local") -> Path:
        root = tmp_path / "locals" / name
        root.mkdir(parents=True, exist_ok=True)
        if manifest is not None:
            content = manifest if isinstance(manifest, str) else json.dumps(manifest)
            (root / "composer.json").write_text(content, encoding="utf-8")
        (root / "src").mkdir(exist_ok=True)
        (root / "src" / "Widget.php").write_text("<?php\n", encoding="utf-8")
        return root

    return factory


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "repository"


@pytest.fixture
def generator(output_dir: Path, tmp_path: Path) -> Iterator[RepositoryGenerator]:
    config = GeneratorConfig(output_dir=output_dir, workspace_dir=tmp_path / "workspace")
    with RepositoryGenerator(config) as gen:
        yield gen

"""
Thin wrapper around a GitPython `Repo` used by the source pipeline.

Every git invocation is a blocking child process killed after
`timeout` seconds; failures (including timeouts) surface as `FetchError`
with any embedded credentials redacted.
"""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List, Tuple

from git import Git, GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from repogen.domain.errors import FetchError
from repogen.domain.models import DEFAULT_GIT_TIMEOUT
from repogen.services.authentication import redact_url

logger = logging.getLogger(__name__)

# Never block on an interactive credential prompt.
GIT_ENVIRONMENT = {"GIT_TERMINAL_PROMPT": "0"}


def _git_error(action: str, error: Exception) -> FetchError:
    return FetchError(redact_url(f"git {action} failed: {error}"))


class GitWorkingCopy:
    """A checked-out clone inside the generator's workspace."""

    def __init__(self, repo: Repo, url: str, timeout: float = DEFAULT_GIT_TIMEOUT):
        self.repo = repo
        self.url = url
        self.timeout = timeout
        self.repo.git.update_environment(**GIT_ENVIRONMENT)

    @property
    def path(self) -> Path:
        return Path(self.repo.working_tree_dir)

    @classmethod
    def clone_or_update(cls, url: str, target_dir: Path, timeout: float = DEFAULT_GIT_TIMEOUT) -> "GitWorkingCopy":
        """
        Refresh an existing clone in `target_dir`, or clone `url` into it.
        """
        if (target_dir / ".git").exists():
            try:
                repo = Repo(str(target_dir))
            except (InvalidGitRepositoryError, NoSuchPathError) as e:
                raise FetchError(f"Not a git repository: {target_dir}") from e
            copy = cls(repo, url, timeout)
            copy.fetch()
            return copy

        target_dir.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Cloning {redact_url(url)}")
        git = Git(str(target_dir.parent))
        git.update_environment(**GIT_ENVIRONMENT)
        try:
            git.clone(url, str(target_dir), kill_after_timeout=timeout)
        except GitCommandError as e:
            # clean up partial directory
            if target_dir.exists():
                shutil.rmtree(target_dir, ignore_errors=True)
            raise _git_error("clone", e) from e

        return cls(Repo(str(target_dir)), url, timeout)

    def fetch(self) -> None:
        logger.info(f"Updating {redact_url(self.url)}")
        try:
            self.repo.git.fetch("--all", "--tags", kill_after_timeout=self.timeout)
        except GitCommandError as e:
            raise _git_error("fetch", e) from e

    def checkout(self, target: str) -> None:
        try:
            self.repo.git.checkout("--force", "--quiet", target, kill_after_timeout=self.timeout)
        except GitCommandError as e:
            raise FetchError(f"Git checkout of '{target}' failed: {e.stderr.strip() if e.stderr else e}") from e

    def tags(self) -> List[str]:
        """Tag names; an error listing tags yields an empty list."""
        try:
            output = self.repo.git.tag(kill_after_timeout=self.timeout)
        except GitCommandError as e:
            logger.warning(f"Listing tags failed, treating as no tags: {e}")
            return []
        return [t.strip() for t in output.splitlines() if t.strip()]

    def remote_branches(self) -> List[Tuple[str, str]]:
        """
        Remote-tracking branches as (branch name, tracking ref) pairs,
        e.g. ('feature/x', 'origin/feature/x'). The symbolic HEAD is skipped.
        """
        try:
            output = self.repo.git.for_each_ref(
                "--format=%(refname)", "refs/remotes/", kill_after_timeout=self.timeout
            )
        except GitCommandError as e:
            logger.warning(f"Listing branches failed, treating as no branches: {e}")
            return []

        branches = []
        for line in output.splitlines():
            refname = line.strip()
            if not refname.startswith("refs/remotes/"):
                continue
            tracking = refname[len("refs/remotes/"):]
            _remote, _, branch = tracking.partition("/")
            if not branch or branch == "HEAD":
                continue
            branches.append((branch, tracking))
        return branches

    def archive(self, target: str, output_file: Path) -> None:
        try:
            self.repo.git.archive(
                "--format=zip", f"--output={output_file}", target, kill_after_timeout=self.timeout
            )
        except GitCommandError as e:
            raise _git_error("archive", e) from e

"""Shared test fixtures for prbranch tests."""

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pytest
from git import Repo
from rich.console import Console

from prbranch.command_log import BashCommandLogger, LoggerOptions
from prbranch.fake_git_ops import FakeGitOps
from prbranch.git_ops import RepoGitOps


def _configure(repo: Repo) -> None:
    with repo.config_writer() as config:
        config.set_value("user", "name", "Test User")
        config.set_value("user", "email", "test@example.com")
        config.set_value("commit", "gpgsign", "false")


@dataclass
class GitSandbox:
    """A working clone of a bare ``origin``, plus a second clone for upstream pushes.

    Structure:
        tmp_path/
            origin.git/     # bare remote
            project/        # the checkout under test, on main
            upstream/       # another contributor's clone
    """

    root: Path
    origin: Path
    repo: Repo
    tmp_path: Path

    def write(self, path: str, content: str) -> Path:
        target = self.root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        return target

    def read(self, path: str) -> str:
        return (self.root / path).read_text()

    def commit_file(self, path: str, content: str, message: str) -> str:
        self.write(path, content)
        self.repo.git.add(path)
        self.repo.git.commit("-m", message)
        return self.repo.head.commit.hexsha

    def stage(self, path: str, content: str) -> None:
        self.write(path, content)
        self.repo.git.add(path)

    def push_upstream_commit(self, path: str, content: str, message: str = "upstream change") -> str:
        """Commit and push to origin/main from another clone, then fetch here."""
        other_dir = self.tmp_path / "upstream"
        if other_dir.exists():
            other = Repo(str(other_dir))
            other.git.pull("origin", "main")
        else:
            other = Repo.clone_from(str(self.origin), str(other_dir))
            _configure(other)
        (other_dir / path).parent.mkdir(parents=True, exist_ok=True)
        (other_dir / path).write_text(content)
        other.git.add(path)
        other.git.commit("-m", message)
        other.git.push("origin", "HEAD:main")
        self.repo.git.fetch("origin")
        return other.head.commit.hexsha

    def ops(self, logger: Optional[BashCommandLogger] = None) -> RepoGitOps:
        return RepoGitOps.open(str(self.root), logger).unwrap()

    def stash_list(self) -> str:
        return self.repo.git.stash("list")


@pytest.fixture
def quiet_logger() -> BashCommandLogger:
    return BashCommandLogger(LoggerOptions(), Console(quiet=True))


@pytest.fixture
def recording_console() -> Console:
    return Console(record=True, width=200, force_terminal=False)


@pytest.fixture
def fake_ops() -> FakeGitOps:
    return FakeGitOps()


@pytest.fixture
def sandbox(tmp_path: Path) -> GitSandbox:
    if shutil.which("git") is None:
        pytest.skip("git executable not available")

    origin = tmp_path / "origin.git"
    origin_repo = Repo.init(str(origin), bare=True)
    origin_repo.git.symbolic_ref("HEAD", "refs/heads/main")

    root = tmp_path / "project"
    repo = Repo.init(str(root))
    repo.git.symbolic_ref("HEAD", "refs/heads/main")
    _configure(repo)

    (root / "README.md").write_text("# project\n")
    (root / "src").mkdir()
    (root / "src" / "app.py").write_text("print('hello')\n")
    repo.git.add(".")
    repo.git.commit("-m", "initial commit")
    repo.create_remote("origin", str(origin))
    repo.git.push("-u", "origin", "main")

    return GitSandbox(root=root, origin=origin, repo=repo, tmp_path=tmp_path)

"""
Git primitives used by the state engine.

``GitOps`` fixes the method set the engine may call. ``RepoGitOps`` implements
it with GitPython against a real checkout; tests use ``FakeGitOps``.

Every Git operation documents its bash equivalent for transparency.
"""

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

import git
from git import GitCommandError, Repo

from prbranch.command_log import BashCommandLogger
from prbranch.config import RepoConfig
from prbranch.errors import Ok, Result, not_a_repository

NOTHING_TO_STASH = "No local changes to save"
STASH_TOP = "stash@{0}"

# Report non-ASCII paths as UTF-8 instead of octal escapes.
RAW_PATHS = "core.quotePath=false"

_C_ESCAPES = {"a": "\a", "b": "\b", "t": "\t", "n": "\n", "v": "\v", "f": "\f", "r": "\r"}
_QUOTED_CHAR = re.compile(r'\\([0-7]{3}|.)')


def unquote_path(path: str) -> str:
    """
    Undo git's C-style quoting of a path.

    Git quotes paths holding a double quote, a backslash or a control
    character (and, unless ``core.quotePath`` is off, any non-ASCII byte).
    Octal escapes are UTF-8 bytes.

    Examples:
        '"with \\"quote\\".txt"'  -> 'with "quote".txt'
        '"caf\\303\\251.txt"'     -> 'café.txt'
    """
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path
    body = path[1:-1]
    raw = bytearray()
    position = 0
    for match in _QUOTED_CHAR.finditer(body):
        raw.extend(body[position:match.start()].encode("utf-8"))
        escaped = match.group(1)
        if len(escaped) == 3:
            raw.append(int(escaped, 8))
        else:
            raw.extend(_C_ESCAPES.get(escaped, escaped).encode("utf-8"))
        position = match.end()
    raw.extend(body[position:].encode("utf-8"))
    return raw.decode("utf-8", errors="replace")


class GitOps(ABC):
    """Side-effecting git operations, one checkout per instance."""

    @property
    def dry_run(self) -> bool:
        """True when mutations are only logged, so ``stash`` never returns a ref."""
        return False

    # ---------- queries ----------

    @abstractmethod
    def status_porcelain(self) -> str:
        """Raw ``git status --porcelain`` output, leading spaces intact."""

    @abstractmethod
    def ref_commit(self, ref: str) -> Optional[str]:
        """SHA of ``ref``, or None when it does not resolve."""

    @abstractmethod
    def merge_base_is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """True when ``ancestor`` is reachable from ``descendant``."""

    @abstractmethod
    def merge_base(self, a: str, b: str) -> Optional[str]:
        """Best common ancestor of two refs, or None when unrelated."""

    @abstractmethod
    def staged_files(self) -> List[str]:
        """Paths listed by ``git diff --cached --name-only``."""

    @abstractmethod
    def current_branch(self) -> Optional[str]:
        """Checked-out branch name, or None when HEAD is detached."""

    @abstractmethod
    def head_commit(self) -> str:
        """SHA of HEAD."""

    @abstractmethod
    def commits_ahead(self, base_ref: str) -> List[str]:
        """One-line log of commits in HEAD but not in ``base_ref``."""

    @abstractmethod
    def is_linked_worktree(self) -> bool:
        """True when this checkout is a linked worktree, not the main one."""

    @abstractmethod
    def repo_root(self) -> str:
        """Top-level directory of the working tree."""

    @abstractmethod
    def repo_name(self) -> str:
        """Repository name derived from the origin URL or the directory."""

    @abstractmethod
    def remote_branch_exists(self, name: str, remote: str = RepoConfig.ORIGIN_REMOTE) -> bool:
        """True when ``refs/remotes/<remote>/<name>`` exists."""

    # ---------- mutations ----------

    @abstractmethod
    def add(self, paths: Sequence[str]) -> None:
        """Stage paths."""

    @abstractmethod
    def stash(self, keep_index: bool = False, message: Optional[str] = None,
              include_untracked: bool = False) -> Optional[str]:
        """Stash changes; returns the stash ref, or None when nothing was stashed."""

    @abstractmethod
    def commit(self, message: str, allow_empty: bool = False) -> str:
        """Commit the index; returns the new HEAD SHA."""

    @abstractmethod
    def checkout_new_branch(self, name: str, start_point: str) -> None:
        """Create ``name`` at ``start_point`` and switch to it."""

    @abstractmethod
    def checkout(self, ref: str) -> None:
        """Switch to an existing branch or commit."""

    @abstractmethod
    def fetch(self, remote: str = RepoConfig.ORIGIN_REMOTE) -> None:
        """Fetch from a remote."""

    @abstractmethod
    def push(self, remote: str, branch: str, set_upstream: bool = False) -> None:
        """Push a branch."""

    @abstractmethod
    def add_worktree(self, path: str, branch: str) -> None:
        """Check out an existing branch in a new linked worktree."""

    @abstractmethod
    def stash_apply(self, stash_ref: str = STASH_TOP, cwd: Optional[str] = None) -> None:
        """Apply a stash, optionally inside another worktree of the same repo."""

    @abstractmethod
    def stash_drop(self, stash_ref: str = STASH_TOP) -> None:
        """Drop a stash entry."""

    @abstractmethod
    def stash_pop(self, stash_ref: str = STASH_TOP) -> None:
        """Apply and drop a stash entry."""


class RepoGitOps(GitOps):
    """
    GitOps backed by GitPython.

    Commands run in the top-level directory of the working tree, so ``add .``
    stages the whole tree whatever the caller's cwd was.
    """

    def __init__(self, repo: Repo, logger: Optional[BashCommandLogger] = None):
        self.repo = repo
        self.logger = logger or BashCommandLogger()

    @classmethod
    def open(cls, cwd: Optional[str] = None, logger: Optional[BashCommandLogger] = None) -> Result["RepoGitOps"]:
        """
        Open the repository containing ``cwd``.

        Bash equivalent:
            git -C {cwd} rev-parse --show-toplevel
        """
        path = str(cwd or Path.cwd())
        logger = logger or BashCommandLogger()
        logger.log(f'git -C "{path}" rev-parse --show-toplevel', "Find repository root")
        try:
            repo = Repo(path, search_parent_directories=True)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError):
            return not_a_repository(path)
        if repo.bare or repo.working_tree_dir is None:
            return not_a_repository(path)
        return Ok(cls(repo, logger))

    @property
    def dry_run(self) -> bool:
        return self.logger.dry_run

    # ---------- queries ----------

    def status_porcelain(self) -> str:
        self.logger.log(f"git -c {RAW_PATHS} status --porcelain", "Read working tree status")
        return self.repo.git(c=RAW_PATHS).status("--porcelain", strip_newline_in_stdout=False)

    def ref_commit(self, ref: str) -> Optional[str]:
        self.logger.log(f"git rev-parse --verify {ref}", f"Resolve {ref}")
        try:
            return self.repo.git.rev_parse("--verify", f"{ref}^{{commit}}")
        except GitCommandError:
            return None

    def merge_base_is_ancestor(self, ancestor: str, descendant: str) -> bool:
        self.logger.log(f"git merge-base --is-ancestor {ancestor} {descendant}",
                        f"Is {ancestor} an ancestor of {descendant}?")
        try:
            self.repo.git.merge_base("--is-ancestor", ancestor, descendant)
        except GitCommandError as e:
            if e.status == 1:
                return False
            raise
        return True

    def merge_base(self, a: str, b: str) -> Optional[str]:
        self.logger.log(f"git merge-base {a} {b}", "Find common ancestor")
        try:
            return self.repo.git.merge_base(a, b) or None
        except GitCommandError:
            return None

    def staged_files(self) -> List[str]:
        self.logger.log(f"git -c {RAW_PATHS} diff --cached --name-only", "List staged files")
        output = self.repo.git(c=RAW_PATHS).diff("--cached", "--name-only")
        return [unquote_path(line) for line in output.splitlines() if line]

    def current_branch(self) -> Optional[str]:
        self.logger.log("git rev-parse --abbrev-ref HEAD", "Get current branch")
        name = self.repo.git.rev_parse("--abbrev-ref", "HEAD")
        return None if name == "HEAD" else name

    def head_commit(self) -> str:
        self.logger.log("git rev-parse HEAD", "Get HEAD commit")
        return self.repo.git.rev_parse("HEAD")

    def commits_ahead(self, base_ref: str) -> List[str]:
        self.logger.log(f"git rev-list --oneline {base_ref}..HEAD", "List local commits")
        try:
            output = self.repo.git.rev_list("--oneline", f"{base_ref}..HEAD")
        except GitCommandError:
            return []
        return [line for line in output.splitlines() if line]

    def is_linked_worktree(self) -> bool:
        self.logger.log("git rev-parse --git-dir --git-common-dir", "Check for linked worktree")
        git_dir = Path(self.repo.git_dir).resolve()
        common_dir = Path(self.repo.common_dir).resolve()
        return git_dir != common_dir

    def repo_root(self) -> str:
        return str(self.repo.working_tree_dir)

    def repo_name(self) -> str:
        if RepoConfig.ORIGIN_REMOTE in self.repo.remotes:
            self.logger.log(f"git remote get-url {RepoConfig.ORIGIN_REMOTE}", "Get origin URL")
            url = self.repo.remote(RepoConfig.ORIGIN_REMOTE).url
            # git@github.com:org/repo.git -> repo, https://github.com/org/repo.git -> repo
            match = re.search(r'[/:]([^/:]+?)(?:\.git)?/?$', url)
            if match:
                return match.group(1)
        return Path(self.repo_root()).name

    def remote_branch_exists(self, name: str, remote: str = RepoConfig.ORIGIN_REMOTE) -> bool:
        return self.ref_commit(f"refs/remotes/{remote}/{name}") is not None

    # ---------- mutations ----------

    def add(self, paths: Sequence[str]) -> None:
        self.logger.log(f"git add {' '.join(paths)}", "Stage changes", mutating=True)
        if not self.dry_run:
            self.repo.git.add(*paths)

    def stash(self, keep_index: bool = False, message: Optional[str] = None,
              include_untracked: bool = False) -> Optional[str]:
        args = ["push"]
        if keep_index:
            args.append("--keep-index")
        if include_untracked:
            args.append("--include-untracked")
        if message:
            args.extend(["-m", message])
        shown = " ".join(f'"{a}"' if " " in a else a for a in args)
        self.logger.log(f"git stash {shown}", "Stash changes", mutating=True)
        if self.dry_run:
            return None

        before = self._stash_head()
        output = self.repo.git.stash(*args)
        if NOTHING_TO_STASH in output or self._stash_head() == before:
            return None
        return STASH_TOP

    def _stash_head(self) -> Optional[str]:
        try:
            return self.repo.git.rev_parse("--verify", "--quiet", "refs/stash")
        except GitCommandError:
            return None

    def commit(self, message: str, allow_empty: bool = False) -> str:
        args = []
        if allow_empty:
            args.append("--allow-empty")
        args.extend(["-m", message])
        summary = message.splitlines()[0] if message else ""
        flag = "--allow-empty " if allow_empty else ""
        self.logger.log(f'git commit {flag}-m "{summary}"', "Create commit", mutating=True)
        if not self.dry_run:
            self.repo.git.commit(*args)
        return self.head_commit()

    def checkout_new_branch(self, name: str, start_point: str) -> None:
        self.logger.log(f"git checkout -b {name} {start_point}", "Create branch", mutating=True)
        if not self.dry_run:
            self.repo.git.checkout("-b", name, start_point)

    def checkout(self, ref: str) -> None:
        self.logger.log(f"git checkout {ref}", "Switch branch", mutating=True)
        if not self.dry_run:
            self.repo.git.checkout(ref)

    def fetch(self, remote: str = RepoConfig.ORIGIN_REMOTE) -> None:
        self.logger.log(f"git fetch {remote}", f"Fetch {remote}")
        self.repo.git.fetch(remote)

    def push(self, remote: str, branch: str, set_upstream: bool = False) -> None:
        flag = "-u " if set_upstream else ""
        self.logger.log(f"git push {flag}{remote} {branch}", "Push branch", mutating=True)
        if self.dry_run:
            return
        if set_upstream:
            self.repo.git.push("-u", remote, branch)
        else:
            self.repo.git.push(remote, branch)

    def add_worktree(self, path: str, branch: str) -> None:
        self.logger.log(f'git worktree add "{path}" "{branch}"', "Create worktree", mutating=True)
        if not self.dry_run:
            self.repo.git.worktree("add", path, branch)

    def stash_apply(self, stash_ref: str = STASH_TOP, cwd: Optional[str] = None) -> None:
        where = f'-C "{cwd}" ' if cwd else ""
        self.logger.log(f"git {where}stash apply {stash_ref}", "Apply stash", mutating=True)
        if self.dry_run:
            return
        if cwd:
            git.Git(cwd).stash("apply", stash_ref)
        else:
            self.repo.git.stash("apply", stash_ref)

    def stash_drop(self, stash_ref: str = STASH_TOP) -> None:
        self.logger.log(f"git stash drop {stash_ref}", "Drop stash", mutating=True)
        if not self.dry_run:
            self.repo.git.stash("drop", stash_ref)

    def stash_pop(self, stash_ref: str = STASH_TOP) -> None:
        self.logger.log(f"git stash pop {stash_ref}", "Restore stash", mutating=True)
        if not self.dry_run:
            self.repo.git.stash("pop", stash_ref)

"""In-memory GitOps for tests."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from git import GitCommandError

from prbranch.config import RepoConfig
from prbranch.git_ops import STASH_TOP, GitOps


@dataclass
class FakeStash:
    message: Optional[str]
    entries: Dict[str, Tuple[str, str]]


@dataclass
class FakeGitOps(GitOps):
    """
    A tiny model of one checkout.

    ``entries`` maps a path to its two porcelain status columns
    (index, worktree), in insertion order: ``("A", " ")`` is a staged new
    file, ``(" ", "M")`` an unstaged modification, ``("?", "?")`` untracked.
    ``refs`` maps ref names to SHAs and ``ancestry`` holds
    ``(ancestor, descendant)`` SHA pairs. Set ``failures[method] = stderr``
    to make a method raise ``GitCommandError``. With ``dry_run`` set, ``stash``
    records the call and stashes nothing.
    """

    branch: Optional[str] = "main"
    head: str = "c0"
    refs: Dict[str, str] = field(default_factory=lambda: {"origin/main": "c0", "main": "c0"})
    ancestry: Set[Tuple[str, str]] = field(default_factory=set)
    entries: Dict[str, Tuple[str, str]] = field(default_factory=dict)
    local_commits: List[str] = field(default_factory=list)
    linked_worktree: bool = False
    root: str = "/fake/project"
    name: str = "project"
    failures: Dict[str, str] = field(default_factory=dict)
    stashes: List[FakeStash] = field(default_factory=list)
    commits: List[Tuple[str, Tuple[str, ...]]] = field(default_factory=list)
    calls: List[str] = field(default_factory=list)
    worktrees: Dict[str, str] = field(default_factory=dict)
    pushed: List[Tuple[str, str]] = field(default_factory=list)
    dry_run: bool = False

    def _record(self, method: str, command: str) -> None:
        self.calls.append(method)
        if method in self.failures:
            raise GitCommandError(command.split(), 128, stderr=self.failures[method])

    # ---------- helpers for tests ----------

    def stage(self, path: str, code: str = "A") -> "FakeGitOps":
        self.entries[path] = (code, " ")
        return self

    def modify(self, path: str) -> "FakeGitOps":
        index, _ = self.entries.get(path, (" ", " "))
        self.entries[path] = (index, "M")
        return self

    def untracked(self, path: str) -> "FakeGitOps":
        self.entries[path] = ("?", "?")
        return self

    @property
    def mutations(self) -> List[str]:
        readonly = {
            "status_porcelain", "ref_commit", "merge_base_is_ancestor", "merge_base",
            "staged_files", "current_branch", "head_commit", "commits_ahead",
            "is_linked_worktree", "remote_branch_exists", "fetch",
        }
        return [call for call in self.calls if call not in readonly]

    # ---------- queries ----------

    def status_porcelain(self) -> str:
        self._record("status_porcelain", "git status --porcelain")
        return "".join(f"{x}{y} {path}\n" for path, (x, y) in self.entries.items())

    def ref_commit(self, ref: str) -> Optional[str]:
        self._record("ref_commit", f"git rev-parse {ref}")
        if ref == "HEAD":
            return self.head
        return self.refs.get(ref)

    def _sha(self, ref: str) -> Optional[str]:
        return self.head if ref == "HEAD" else self.refs.get(ref, ref)

    def merge_base_is_ancestor(self, ancestor: str, descendant: str) -> bool:
        self._record("merge_base_is_ancestor", f"git merge-base --is-ancestor {ancestor} {descendant}")
        a, d = self._sha(ancestor), self._sha(descendant)
        return a == d or (a, d) in self.ancestry

    def merge_base(self, a: str, b: str) -> Optional[str]:
        self._record("merge_base", f"git merge-base {a} {b}")
        sha_a, sha_b = self._sha(a), self._sha(b)
        if sha_a == sha_b or (sha_a, sha_b) in self.ancestry:
            return sha_a
        if (sha_b, sha_a) in self.ancestry:
            return sha_b
        return None

    def staged_files(self) -> List[str]:
        self._record("staged_files", "git diff --cached --name-only")
        return [path for path, (x, _) in self.entries.items() if x not in (" ", "?")]

    def current_branch(self) -> Optional[str]:
        self._record("current_branch", "git rev-parse --abbrev-ref HEAD")
        return self.branch

    def head_commit(self) -> str:
        self._record("head_commit", "git rev-parse HEAD")
        return self.head

    def commits_ahead(self, base_ref: str) -> List[str]:
        self._record("commits_ahead", f"git rev-list --oneline {base_ref}..HEAD")
        return list(self.local_commits)

    def is_linked_worktree(self) -> bool:
        self._record("is_linked_worktree", "git rev-parse --git-common-dir")
        return self.linked_worktree

    def repo_root(self) -> str:
        return self.root

    def repo_name(self) -> str:
        return self.name

    def remote_branch_exists(self, name: str, remote: str = RepoConfig.ORIGIN_REMOTE) -> bool:
        self._record("remote_branch_exists", f"git rev-parse --verify refs/remotes/{remote}/{name}")
        return f"{remote}/{name}" in self.refs

    # ---------- mutations ----------

    def add(self, paths: Sequence[str]) -> None:
        self._record("add", f"git add {' '.join(paths)}")
        everything = "." in paths
        for path, (x, y) in list(self.entries.items()):
            if not everything and path not in paths:
                continue
            if (x, y) == ("?", "?"):
                self.entries[path] = ("A", " ")
            elif y == "D":
                self.entries[path] = ("D", " ")
            elif y != " ":
                self.entries[path] = (x if x != " " else "M", " ")

    def stash(self, keep_index: bool = False, message: Optional[str] = None,
              include_untracked: bool = False) -> Optional[str]:
        self._record("stash", "git stash push")
        if self.dry_run:
            return None
        saved: Dict[str, Tuple[str, str]] = {}
        for path, (x, y) in list(self.entries.items()):
            if (x, y) == ("?", "?"):
                if include_untracked:
                    saved[path] = (x, y)
                    del self.entries[path]
                continue
            if keep_index:
                if y != " ":
                    saved[path] = (x, y)
                    if x == " ":
                        del self.entries[path]
                    else:
                        self.entries[path] = (x, " ")
            else:
                saved[path] = (x, y)
                del self.entries[path]
        if not saved:
            return None
        self.stashes.insert(0, FakeStash(message=message, entries=saved))
        return STASH_TOP

    def commit(self, message: str, allow_empty: bool = False) -> str:
        self._record("commit", f"git commit -m {message!r}")
        staged = tuple(self.staged_files())
        if not staged and not allow_empty:
            raise GitCommandError(["git", "commit"], 1, stderr="nothing to commit, working tree clean")
        for path in staged:
            x, y = self.entries[path]
            if y == " ":
                del self.entries[path]
            else:
                self.entries[path] = (" ", y)
        self.head = f"c{len(self.commits) + 1}"
        self.commits.append((message, staged))
        if self.branch:
            self.refs[self.branch] = self.head
        return self.head

    def checkout_new_branch(self, name: str, start_point: str) -> None:
        self._record("checkout_new_branch", f"git checkout -b {name} {start_point}")
        self.branch = name
        self.head = self._sha(start_point) or self.head
        self.refs[name] = self.head

    def checkout(self, ref: str) -> None:
        self._record("checkout", f"git checkout {ref}")
        if ref in self.refs:
            self.branch = ref
            self.head = self.refs[ref]
        else:
            self.branch = None
            self.head = ref

    def fetch(self, remote: str = RepoConfig.ORIGIN_REMOTE) -> None:
        self._record("fetch", f"git fetch {remote}")

    def push(self, remote: str, branch: str, set_upstream: bool = False) -> None:
        self._record("push", f"git push {remote} {branch}")
        self.pushed.append((remote, branch))
        self.refs[f"{remote}/{branch}"] = self.refs.get(branch, self.head)

    def add_worktree(self, path: str, branch: str) -> None:
        self._record("add_worktree", f"git worktree add {path} {branch}")
        self.worktrees[path] = branch

    def stash_apply(self, stash_ref: str = STASH_TOP, cwd: Optional[str] = None) -> None:
        self._record("stash_apply", f"git stash apply {stash_ref}")
        if not self.stashes:
            raise GitCommandError(["git", "stash", "apply"], 1, stderr="No stash entries found.")
        if cwd is None:
            self.entries.update(self.stashes[0].entries)

    def stash_drop(self, stash_ref: str = STASH_TOP) -> None:
        self._record("stash_drop", f"git stash drop {stash_ref}")
        if self.stashes:
            self.stashes.pop(0)

    def stash_pop(self, stash_ref: str = STASH_TOP) -> None:
        self._record("stash_pop", f"git stash pop {stash_ref}")
        if not self.stashes:
            raise GitCommandError(["git", "stash", "pop"], 1, stderr="No stash entries found.")
        self.entries.update(self.stashes.pop(0).entries)

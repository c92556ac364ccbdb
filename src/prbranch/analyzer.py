"""
State analysis: gather a GitStateSnapshot from a checkout.

The analyzer only reads. Its one fatal failure is being pointed at a
directory outside any git working tree; a missing ``origin/<base>`` ref
degrades to ``divergent`` instead of failing.
"""

import re
from pathlib import PurePath
from typing import Iterable, List, Optional, Tuple

from git import GitCommandError
from rich.markup import escape

from prbranch.command_log import BashCommandLogger
from prbranch.config import RepoConfig
from prbranch.errors import Err, Ok, Result, command_failure, ref_unresolvable
from prbranch.git_ops import GitOps, RepoGitOps, unquote_path
from prbranch.models import CommitRelationship, GitStateSnapshot, WorkingTreeStatus


def _porcelain_lines(porcelain: str) -> Iterable[str]:
    # Only trailing newlines may be dropped: the leading space is the index column.
    for line in porcelain.split("\n"):
        line = line.rstrip("\r")
        if len(line) >= 3:
            yield line


def _entry_path(line: str) -> str:
    path = line[3:]
    if " -> " in path:
        path = path.split(" -> ", 1)[1]
    return unquote_path(path)


def parse_working_tree_status(porcelain: str) -> WorkingTreeStatus:
    """
    Classify ``git status --porcelain`` output.

    Index column outside ``{' ', '?'}`` means staged; a non-blank worktree
    column, or ``?`` in the index column, means unstaged.
    """
    has_staged = False
    has_unstaged = False
    for line in _porcelain_lines(porcelain):
        index_status, worktree_status = line[0], line[1]
        if index_status not in (" ", "?"):
            has_staged = True
        if worktree_status != " " or index_status == "?":
            has_unstaged = True

    if has_staged and has_unstaged:
        return WorkingTreeStatus.BOTH
    if has_staged:
        return WorkingTreeStatus.STAGED_ONLY
    if has_unstaged:
        return WorkingTreeStatus.UNSTAGED_ONLY
    return WorkingTreeStatus.CLEAN


def parse_unstaged_files(porcelain: str) -> Tuple[str, ...]:
    """Modified and untracked paths, first-seen order, no duplicates."""
    seen = []
    for line in _porcelain_lines(porcelain):
        index_status, worktree_status = line[0], line[1]
        if worktree_status != " " or index_status == "?":
            path = _entry_path(line)
            if path not in seen:
                seen.append(path)
    return tuple(seen)


def validate_base_branch(base_branch: str) -> str:
    if not base_branch or base_branch.startswith("refs/") or base_branch.startswith(f"{RepoConfig.ORIGIN_REMOTE}/"):
        raise ValueError(f"Base branch must be a plain branch name, got: '{base_branch}'")
    return base_branch


class StateAnalyzer:
    """Reads one checkout through GitOps and produces a snapshot."""

    def __init__(self, git_ops: GitOps):
        self.git_ops = git_ops
        # Degraded lookups; they never stop the analysis.
        self.degraded: List[Err] = []

    def commit_relationship(self, base_branch: str) -> CommitRelationship:
        """
        Relationship of HEAD to origin/<base>.

        Bash equivalents:
            git rev-parse HEAD
            git rev-parse origin/{base}
            git merge-base --is-ancestor HEAD origin/{base}
            git merge-base --is-ancestor origin/{base} HEAD
            git merge-base HEAD origin/{base}
        """
        base_ref = f"{RepoConfig.ORIGIN_REMOTE}/{base_branch}"
        head = self.git_ops.head_commit()
        base = self.git_ops.ref_commit(base_ref)

        if base is None:
            self.degraded.append(ref_unresolvable(base_ref))
            return CommitRelationship.DIVERGENT
        if head == base:
            return CommitRelationship.SAME
        if self.git_ops.merge_base_is_ancestor("HEAD", base_ref):
            return CommitRelationship.ANCESTOR
        if self.git_ops.merge_base_is_ancestor(base_ref, "HEAD"):
            return CommitRelationship.AHEAD
        if self.git_ops.merge_base("HEAD", base_ref) == head:
            return CommitRelationship.BEHIND
        return CommitRelationship.DIVERGENT

    def is_inside_pr_worktree(self) -> bool:
        root = self.git_ops.repo_root()
        if re.search(RepoConfig.PR_WORKTREE_PATTERN, PurePath(root).name):
            return True
        return self.git_ops.is_linked_worktree()

    def analyze(self, base_branch: str = RepoConfig.DEFAULT_BASE_BRANCH) -> GitStateSnapshot:
        base_branch = validate_base_branch(base_branch)
        base_ref = f"{RepoConfig.ORIGIN_REMOTE}/{base_branch}"

        current_branch = self.git_ops.current_branch()
        relationship = self.commit_relationship(base_branch)
        porcelain = self.git_ops.status_porcelain()
        local_commits: List[str] = self.git_ops.commits_ahead(base_ref)

        return GitStateSnapshot(
            current_branch=current_branch,
            base_branch=base_branch,
            commit_relationship=relationship,
            working_tree_status=parse_working_tree_status(porcelain),
            staged_files=tuple(self.git_ops.staged_files()),
            unstaged_files=parse_unstaged_files(porcelain),
            local_commits_ahead_count=len(local_commits),
            is_detached_head=current_branch is None,
            is_inside_pr_worktree=self.is_inside_pr_worktree(),
            local_commits=tuple(local_commits),
            repo_root=self.git_ops.repo_root(),
            repo_name=self.git_ops.repo_name(),
        )


def analyze_git_state(base_branch: str = RepoConfig.DEFAULT_BASE_BRANCH, cwd: Optional[str] = None,
                      git_ops: Optional[GitOps] = None,
                      logger: Optional[BashCommandLogger] = None) -> Result[GitStateSnapshot]:
    """
    Snapshot the checkout containing ``cwd``.

    Args:
        base_branch: Branch PRs target, without any ref prefix
        cwd: Directory inside the working tree (default: process cwd)
        git_ops: Pre-opened GitOps; opened from ``cwd`` when omitted
        logger: Command logger for a freshly opened GitOps; degraded lookups
            are printed to its console as warnings

    Returns:
        Ok(snapshot), or Err(not_a_git_repository / git_command_failure)
    """
    if git_ops is None:
        opened = RepoGitOps.open(cwd, logger)
        if isinstance(opened, Ok):
            git_ops = opened.value
        else:
            return opened
    analyzer = StateAnalyzer(git_ops)
    try:
        snapshot = analyzer.analyze(base_branch)
    except GitCommandError as e:
        return command_failure(e)
    if logger is not None:
        for err in analyzer.degraded:
            logger.console.print(f"[yellow]Warning: {escape(str(err))}[/yellow]")
    return Ok(snapshot)

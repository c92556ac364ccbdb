"""
Data model for the working-tree state engine.

Snapshots, scenarios and actions are immutable values; the engine creates
them once per run and never mutates them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from prbranch.config import RepoConfig


class CommitRelationship(str, Enum):
    """Relationship of HEAD to origin/<base>."""
    SAME = "same"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGENT = "divergent"
    ANCESTOR = "ancestor"  # HEAD is contained in origin's history


class WorkingTreeStatus(str, Enum):
    CLEAN = "clean"
    STAGED_ONLY = "staged_only"
    UNSTAGED_ONLY = "unstaged_only"
    BOTH = "both"


class ScenarioId(str, Enum):
    MAIN_CLEAN_SAME = "main_clean_same"
    MAIN_STAGED_SAME = "main_staged_same"
    MAIN_UNSTAGED_SAME = "main_unstaged_same"
    MAIN_BOTH_SAME = "main_both_same"
    MAIN_CLEAN_AHEAD = "main_clean_ahead"
    MAIN_CHANGES_AHEAD = "main_changes_ahead"
    BRANCH_SAME_AS_MAIN = "branch_same_as_main"
    BRANCH_ANCESTOR = "branch_ancestor"
    BRANCH_DIVERGENT = "branch_divergent"
    BRANCH_WITH_CHANGES = "branch_with_changes"
    DETACHED_HEAD = "detached_head"
    PR_WORKTREE = "pr_worktree"


class ActionType(str, Enum):
    COMMIT_STAGED = "commit_staged"
    COMMIT_ALL = "commit_all"
    USE_COMMITS_AND_COMMIT_ALL = "use_commits_and_commit_all"
    STASH_ALL = "stash_all"
    LEAVE_AND_EMPTY_COMMIT = "leave_and_empty_commit"
    CANCEL = "cancel"
    USE_COMMITS = "use_commits"
    USE_COMMITS_AND_STASH = "use_commits_and_stash"
    PUSH_THEN_BRANCH = "push_then_branch"
    CREATE_PR_FOR_BRANCH = "create_pr_for_branch"
    PR_FOR_BRANCH_COMMIT_ALL = "pr_for_branch_commit_all"
    PR_FOR_BRANCH_STASH = "pr_for_branch_stash"
    BRANCH_FROM_DETACHED = "branch_from_detached"


class BranchFrom(str, Enum):
    ORIGIN_MAIN = "origin_main"
    HEAD = "head"
    LOCAL_BASE = "local_base"


@dataclass(frozen=True)
class GitStateSnapshot:
    """
    Everything the classifier needs to know about one checkout.

    ``current_branch`` is None when HEAD is detached. ``staged_files`` keeps
    ``git diff --cached --name-only`` order; ``unstaged_files`` holds modified
    and untracked paths, each listed once.
    """
    current_branch: Optional[str]
    base_branch: str = RepoConfig.DEFAULT_BASE_BRANCH
    commit_relationship: CommitRelationship = CommitRelationship.SAME
    working_tree_status: WorkingTreeStatus = WorkingTreeStatus.CLEAN
    staged_files: Tuple[str, ...] = ()
    unstaged_files: Tuple[str, ...] = ()
    local_commits_ahead_count: int = 0
    is_detached_head: bool = False
    is_inside_pr_worktree: bool = False
    local_commits: Tuple[str, ...] = ()
    repo_root: Optional[str] = None
    repo_name: Optional[str] = None

    def __post_init__(self):
        if self.local_commits_ahead_count < 0:
            raise ValueError("local_commits_ahead_count must be >= 0")

    @property
    def is_on_base_branch(self) -> bool:
        return self.current_branch is not None and self.current_branch == self.base_branch

    @property
    def has_changes(self) -> bool:
        return self.working_tree_status is not WorkingTreeStatus.CLEAN

    @property
    def has_local_commits(self) -> bool:
        return self.local_commits_ahead_count > 0

    def to_dict(self) -> dict:
        return {
            "current_branch": self.current_branch,
            "base_branch": self.base_branch,
            "commit_relationship": self.commit_relationship.value,
            "working_tree_status": self.working_tree_status.value,
            "staged_files": list(self.staged_files),
            "unstaged_files": list(self.unstaged_files),
            "local_commits_ahead_count": self.local_commits_ahead_count,
            "local_commits": list(self.local_commits),
            "is_detached_head": self.is_detached_head,
            "is_inside_pr_worktree": self.is_inside_pr_worktree,
            "repo_root": self.repo_root,
            "repo_name": self.repo_name,
        }


@dataclass(frozen=True)
class AvailableAction:
    """Menu entry shown to the user. Carries no execution semantics."""
    key: str
    label: str
    description: str

    def to_dict(self) -> dict:
        return {"key": self.key, "label": self.label, "description": self.description}


@dataclass(frozen=True)
class ActionMenu:
    actions: Tuple[AvailableAction, ...]
    recommended: str

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(action.key for action in self.actions)


@dataclass(frozen=True)
class StateAction:
    """The executable intent chosen for a scenario."""
    action: ActionType
    branch_from: BranchFrom = BranchFrom.ORIGIN_MAIN
    stash_unstaged: bool = False


@dataclass(frozen=True)
class ActionResult:
    success: bool
    message: str
    stash_ref: Optional[str] = None

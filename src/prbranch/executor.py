"""
Action execution.

``execute_state_action`` performs only the git mutations that must happen
before the branch is created: staging, stashing, or pushing the base.
Creating the branch, committing, pushing it and adding the worktree are the
caller's job, using ``get_branch_point`` for the start point.

Git failures are reported, not retried, and nothing is rolled back: the
repository is left as the last successful command left it.
"""

from typing import Optional

from git import GitCommandError
from typing_extensions import assert_never

from prbranch.command_log import BashCommandLogger
from prbranch.config import RepoConfig
from prbranch.errors import Ok, Result, command_failure
from prbranch.git_ops import GitOps
from prbranch.models import ActionResult, ActionType, BranchFrom, StateAction


# ============================================================================
# Branch point and predicates
# ============================================================================

def get_branch_point(action: StateAction, base_branch: str = RepoConfig.DEFAULT_BASE_BRANCH) -> str:
    """
    Ref the new branch is created from.

    Examples:
        origin_main -> "origin/main"
        head        -> "HEAD"
        local_base  -> "main"
    """
    branch_from = action.branch_from
    if branch_from is BranchFrom.ORIGIN_MAIN:
        return f"{RepoConfig.ORIGIN_REMOTE}/{base_branch}"
    if branch_from is BranchFrom.HEAD:
        return "HEAD"
    if branch_from is BranchFrom.LOCAL_BASE:
        return base_branch
    assert_never(branch_from)


def is_existing_branch_action(action: StateAction) -> bool:
    """True when the PR is opened for the checked-out branch instead of a new one."""
    return action.action in (
        ActionType.CREATE_PR_FOR_BRANCH,
        ActionType.PR_FOR_BRANCH_COMMIT_ALL,
        ActionType.PR_FOR_BRANCH_STASH,
    )


def describe_action(action: StateAction, base_branch: str = RepoConfig.DEFAULT_BASE_BRANCH) -> str:
    """One line for debug output, e.g. ``commit_all from HEAD``."""
    text = f"{action.action.value} from {get_branch_point(action, base_branch)}"
    if action.stash_unstaged:
        text += " (unstaged changes parked for the new worktree)"
    return text


# ============================================================================
# Execution
# ============================================================================

def _stash(git_ops: GitOps, branch_name: str, keep_index: bool = False) -> ActionResult:
    template = RepoConfig.UNSTAGED_STASH_MESSAGE if keep_index else RepoConfig.STASH_MESSAGE_TEMPLATE
    stash_ref = git_ops.stash(
        keep_index=keep_index,
        message=template.format(branch=branch_name),
        include_untracked=True,
    )
    if stash_ref is None:
        if git_ops.dry_run:
            return ActionResult(True, "Dry run: local changes would be stashed")
        return ActionResult(True, "No local changes to stash; continuing")
    if keep_index:
        return ActionResult(True, "Unstaged changes stashed for the new worktree", stash_ref=stash_ref)
    return ActionResult(True, "Changes stashed (restore with git stash pop)", stash_ref=stash_ref)


def _run(action: StateAction, branch_name: str, git_ops: GitOps, base_branch: str) -> ActionResult:
    kind = action.action

    if kind is ActionType.LEAVE_AND_EMPTY_COMMIT:
        return ActionResult(True, "Local changes left in place; the new branch starts with an empty commit")

    if kind is ActionType.USE_COMMITS:
        return ActionResult(True, "Local commits will be used for the PR")

    if kind is ActionType.CREATE_PR_FOR_BRANCH:
        return ActionResult(True, "PR will be created for the current branch")

    if kind is ActionType.BRANCH_FROM_DETACHED:
        return ActionResult(True, "Branch will be created from the detached commit")

    if kind is ActionType.COMMIT_STAGED:
        if action.stash_unstaged:
            return _stash(git_ops, branch_name, keep_index=True)
        return ActionResult(True, "Staged changes will be committed to the new branch")

    if kind is ActionType.COMMIT_ALL:
        git_ops.add(["."])
        return ActionResult(True, "All changes staged for the new branch")

    if kind is ActionType.USE_COMMITS_AND_COMMIT_ALL:
        if action.branch_from is not BranchFrom.HEAD:
            return ActionResult(False, "Local commits can only be carried over when branching from HEAD")
        git_ops.add(["."])
        return ActionResult(True, "All changes staged on top of the local commits")

    if kind in (ActionType.STASH_ALL, ActionType.USE_COMMITS_AND_STASH, ActionType.PR_FOR_BRANCH_STASH):
        return _stash(git_ops, branch_name)

    if kind is ActionType.PUSH_THEN_BRANCH:
        git_ops.push(RepoConfig.ORIGIN_REMOTE, base_branch)
        return ActionResult(True, f"Local commits pushed to {RepoConfig.ORIGIN_REMOTE}/{base_branch}")

    if kind is ActionType.PR_FOR_BRANCH_COMMIT_ALL:
        git_ops.add(["."])
        git_ops.commit(RepoConfig.WIP_COMMIT_MESSAGE)
        return ActionResult(True, "Changes committed to the current branch")

    if kind is ActionType.CANCEL:
        return ActionResult(False, "Cancelled; no changes made")

    assert_never(kind)


def execute_state_action(action: StateAction, description: str, branch_name: str, git_ops: GitOps,
                         cwd: Optional[str] = None,
                         base_branch: str = RepoConfig.DEFAULT_BASE_BRANCH,
                         logger: Optional[BashCommandLogger] = None) -> Result[ActionResult]:
    """
    Perform the pre-branch git mutations for a chosen action.

    Bash equivalents (by action):
        commit_all:                 git add .
        commit_staged + unstaged:   git stash push --keep-index --include-untracked -m "..."
        stash_all:                  git stash push --include-untracked -m "..."
        push_then_branch:           git push origin {base}
        pr_for_branch_commit_all:   git add . && git commit -m "chore: work in progress"

    Args:
        action: Intent resolved from the menu
        description: What the PR is for (used in debug output only)
        branch_name: Name of the branch about to be created
        git_ops: Git primitives for the checkout
        cwd: Directory the run started in (debug output only)
        base_branch: Branch PRs target
        logger: Command logger for narrative debug lines

    Returns:
        Ok(ActionResult), or Err(git_command_failure) when a git command fails
    """
    if logger is not None:
        where = f" in {cwd}" if cwd else ""
        logger.note(f"Executing {describe_action(action, base_branch)} for '{description}'{where}")
    try:
        return Ok(_run(action, branch_name, git_ops, base_branch))
    except GitCommandError as e:
        return command_failure(e)

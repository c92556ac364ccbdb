"""
Action catalog: the menu offered for each scenario.

A static table from ScenarioId to ordered entries. Each entry pairs the
display metadata (AvailableAction) with the StateAction it resolves to.
Every menu ends with ``cancel``.

Stage-and-commit actions branch from HEAD: when origin/<base> has moved on,
``git checkout -b <branch> origin/<base>`` can reset or refuse staged
modifications of files that changed upstream, while HEAD keeps the index
exactly as staged.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from prbranch.models import (
    ActionMenu,
    ActionType,
    AvailableAction,
    BranchFrom,
    GitStateSnapshot,
    ScenarioId,
    StateAction,
)


@dataclass(frozen=True)
class CatalogEntry:
    key: str
    label: str
    description: str
    action: StateAction

    @property
    def available(self) -> AvailableAction:
        return AvailableAction(key=self.key, label=self.label, description=self.description)


def _entry(action: ActionType, label: str, description: str,
           branch_from: BranchFrom = BranchFrom.ORIGIN_MAIN,
           stash_unstaged: bool = False, key: Optional[str] = None) -> CatalogEntry:
    return CatalogEntry(
        key=key or action.value,
        label=label,
        description=description,
        action=StateAction(action=action, branch_from=branch_from, stash_unstaged=stash_unstaged),
    )


CANCEL = _entry(ActionType.CANCEL, "Cancel", "Stop here; nothing in the repository is changed.")

EMPTY_COMMIT = _entry(
    ActionType.LEAVE_AND_EMPTY_COMMIT,
    "Leave changes here and continue with empty initial commit",
    "New branch from origin/<base> with an empty commit; local changes stay where they are.",
)

STASH_ALL = _entry(
    ActionType.STASH_ALL,
    "Stash changes (will restore after)",
    "Stash everything including untracked files, branch from origin/<base>, restore on failure.",
)

COMMIT_ALL = _entry(
    ActionType.COMMIT_ALL,
    "Stage all and commit to the new PR branch",
    "git add . before branching from HEAD; every change lands in the first commit.",
    branch_from=BranchFrom.HEAD,
)


CATALOG: Dict[ScenarioId, Tuple[CatalogEntry, ...]] = {
    ScenarioId.MAIN_CLEAN_SAME: (
        _entry(
            ActionType.LEAVE_AND_EMPTY_COMMIT,
            "Continue with empty initial commit",
            "A PR needs at least one commit; start the branch with an empty one.",
        ),
        CANCEL,
    ),
    ScenarioId.MAIN_STAGED_SAME: (
        _entry(
            ActionType.COMMIT_STAGED,
            "Commit staged changes to the new PR branch",
            "Branch from HEAD and commit exactly what is staged.",
            branch_from=BranchFrom.HEAD,
        ),
        EMPTY_COMMIT,
        CANCEL,
    ),
    ScenarioId.MAIN_UNSTAGED_SAME: (
        COMMIT_ALL,
        EMPTY_COMMIT,
        STASH_ALL,
        CANCEL,
    ),
    ScenarioId.MAIN_BOTH_SAME: (
        _entry(
            ActionType.COMMIT_STAGED,
            "Commit staged to PR branch, move unstaged to new worktree",
            "Stash only the unstaged part (--keep-index), commit what is staged, "
            "then apply the unstaged part inside the new worktree.",
            branch_from=BranchFrom.HEAD,
            stash_unstaged=True,
        ),
        _entry(
            ActionType.COMMIT_ALL,
            "Stage all and commit everything to the new PR branch",
            "git add . before branching from HEAD; staged and unstaged work are committed together.",
            branch_from=BranchFrom.HEAD,
        ),
        _entry(
            ActionType.LEAVE_AND_EMPTY_COMMIT,
            "Leave all changes here and continue with empty initial commit",
            EMPTY_COMMIT.description,
        ),
        _entry(ActionType.STASH_ALL, "Stash all changes (will restore after)", STASH_ALL.description),
        CANCEL,
    ),
    ScenarioId.MAIN_CLEAN_AHEAD: (
        _entry(
            ActionType.USE_COMMITS,
            "Use these commits for the PR (create branch from HEAD)",
            "Local commits on <base> become the PR's commits.",
            branch_from=BranchFrom.HEAD,
        ),
        _entry(
            ActionType.PUSH_THEN_BRANCH,
            "Push commits to origin/<base> first, then create PR branch",
            "git push origin <base>, then branch from the updated origin/<base>.",
        ),
        _entry(
            ActionType.LEAVE_AND_EMPTY_COMMIT,
            "Start fresh from origin/<base> (ignore local commits)",
            "Local commits stay on <base> and are not part of the PR.",
        ),
        CANCEL,
    ),
    ScenarioId.MAIN_CHANGES_AHEAD: (
        _entry(
            ActionType.USE_COMMITS_AND_COMMIT_ALL,
            "Include commits + commit uncommitted changes to PR branch",
            "git add . on top of the local commits and branch from HEAD.",
            branch_from=BranchFrom.HEAD,
        ),
        _entry(
            ActionType.USE_COMMITS_AND_STASH,
            "Include commits only, stash uncommitted changes",
            "Branch from HEAD with the local commits; uncommitted work is stashed.",
            branch_from=BranchFrom.HEAD,
        ),
        _entry(
            ActionType.LEAVE_AND_EMPTY_COMMIT,
            "Start fresh from origin/<base> (ignore all local work)",
            "Commits and changes stay on <base>.",
        ),
        CANCEL,
    ),
    ScenarioId.BRANCH_SAME_AS_MAIN: (
        _entry(
            ActionType.LEAVE_AND_EMPTY_COMMIT,
            "Continue with empty initial commit (new branch from <base>)",
            "The current branch has no commits of its own.",
        ),
        CANCEL,
    ),
    ScenarioId.BRANCH_ANCESTOR: (
        _entry(
            ActionType.LEAVE_AND_EMPTY_COMMIT,
            "Continue with empty initial commit (new branch from <base>)",
            "The current branch appears to be merged already.",
        ),
        CANCEL,
    ),
    ScenarioId.BRANCH_DIVERGENT: (
        _entry(
            ActionType.CREATE_PR_FOR_BRANCH,
            "Create PR for THIS branch",
            "Open the PR for the current branch. It is checked out here, so no second worktree can be made for it.",
            branch_from=BranchFrom.HEAD,
        ),
        _entry(
            ActionType.LEAVE_AND_EMPTY_COMMIT,
            "Create NEW branch from <base> (ignore current branch's commits)",
            "Fresh branch from origin/<base> with an empty initial commit.",
        ),
        CANCEL,
    ),
    ScenarioId.BRANCH_WITH_CHANGES: (
        _entry(
            ActionType.PR_FOR_BRANCH_COMMIT_ALL,
            "Create PR for THIS branch, commit changes first",
            "Commit everything to the current branch and open the PR for it.",
            branch_from=BranchFrom.HEAD,
        ),
        _entry(
            ActionType.PR_FOR_BRANCH_STASH,
            "Create PR for THIS branch, stash uncommitted changes",
            "Stash uncommitted work and open the PR for the current branch.",
            branch_from=BranchFrom.HEAD,
        ),
        _entry(
            ActionType.COMMIT_ALL,
            "Stage all and commit to a new PR branch",
            COMMIT_ALL.description,
            branch_from=BranchFrom.HEAD,
        ),
        _entry(
            ActionType.LEAVE_AND_EMPTY_COMMIT,
            "Leave changes and continue with empty initial commit",
            EMPTY_COMMIT.description,
        ),
        STASH_ALL,
        CANCEL,
    ),
    ScenarioId.DETACHED_HEAD: (
        _entry(
            ActionType.BRANCH_FROM_DETACHED,
            "Create branch from this commit",
            "The detached commit becomes the base of the PR branch.",
            branch_from=BranchFrom.HEAD,
        ),
        _entry(
            ActionType.LEAVE_AND_EMPTY_COMMIT,
            "Create branch from origin/<base>",
            "Fresh branch from origin/<base> with an empty initial commit.",
        ),
        _entry(
            ActionType.LEAVE_AND_EMPTY_COMMIT,
            "Create branch from local <base>",
            "Fresh branch from the local <base> branch with an empty initial commit.",
            branch_from=BranchFrom.LOCAL_BASE,
            key="leave_and_empty_commit_local",
        ),
        CANCEL,
    ),
    ScenarioId.PR_WORKTREE: (
        _entry(
            ActionType.LEAVE_AND_EMPTY_COMMIT,
            "Create NEW branch from origin/<base> anyway",
            "This checkout is a PR worktree; run from the main worktree where possible.",
        ),
        CANCEL,
    ),
}

RECOMMENDED: Dict[ScenarioId, Tuple[str, ...]] = {
    ScenarioId.MAIN_CLEAN_SAME: ("leave_and_empty_commit",),
    ScenarioId.MAIN_STAGED_SAME: ("commit_staged",),
    ScenarioId.MAIN_UNSTAGED_SAME: ("commit_all",),
    ScenarioId.MAIN_BOTH_SAME: ("commit_staged",),
    ScenarioId.MAIN_CLEAN_AHEAD: ("use_commits",),
    ScenarioId.MAIN_CHANGES_AHEAD: ("use_commits_and_commit_all",),
    ScenarioId.BRANCH_SAME_AS_MAIN: ("leave_and_empty_commit",),
    ScenarioId.BRANCH_ANCESTOR: ("leave_and_empty_commit",),
    ScenarioId.BRANCH_DIVERGENT: ("create_pr_for_branch",),
    ScenarioId.BRANCH_WITH_CHANGES: ("pr_for_branch_commit_all", "commit_all"),
    ScenarioId.DETACHED_HEAD: ("branch_from_detached",),
    ScenarioId.PR_WORKTREE: ("cancel",),
}

_THIS_BRANCH_ACTIONS = {ActionType.PR_FOR_BRANCH_COMMIT_ALL, ActionType.PR_FOR_BRANCH_STASH}
_NEW_BRANCH_ACTIONS = {ActionType.COMMIT_ALL, ActionType.STASH_ALL}


def entries_for(scenario: ScenarioId, snapshot: Optional[GitStateSnapshot] = None) -> Tuple[CatalogEntry, ...]:
    """
    Catalog entries for a scenario.

    With a snapshot, ``branch_with_changes`` is narrowed: a branch with its
    own commits gets the "THIS branch" actions, one without gets the
    new-branch ones.
    """
    entries = CATALOG[scenario]
    if snapshot is None or scenario is not ScenarioId.BRANCH_WITH_CHANGES:
        return entries
    dropped = _NEW_BRANCH_ACTIONS if snapshot.has_local_commits else _THIS_BRANCH_ACTIONS
    return tuple(entry for entry in entries if entry.action.action not in dropped)


def get_available_actions(scenario: ScenarioId, snapshot: Optional[GitStateSnapshot] = None) -> ActionMenu:
    entries = entries_for(scenario, snapshot)
    keys = [entry.key for entry in entries]
    recommended = next((key for key in RECOMMENDED[scenario] if key in keys), keys[0])
    base = snapshot.base_branch if snapshot else "<base>"
    actions = tuple(
        AvailableAction(
            key=entry.key,
            label=entry.label.replace("<base>", base),
            description=entry.description.replace("<base>", base),
        )
        for entry in entries
    )
    return ActionMenu(actions=actions, recommended=recommended)


def resolve_action(scenario: ScenarioId, key: str, snapshot: Optional[GitStateSnapshot] = None) -> StateAction:
    """
    Map a menu key to its StateAction.

    Raises:
        KeyError: If the key is not offered for this scenario
    """
    for entry in entries_for(scenario, snapshot):
        if entry.key == key:
            return entry.action
    raise KeyError(f"Action '{key}' is not available for scenario '{scenario.value}'")

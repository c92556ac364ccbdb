"""
Scenario classification.

``detect_scenario`` is a pure, total function of the snapshot: no I/O and no
hidden state, so identical snapshots always classify identically.
"""

from typing_extensions import Literal, assert_never

from prbranch.models import CommitRelationship, GitStateSnapshot, ScenarioId, WorkingTreeStatus

MessageLevel = Literal["info", "warning"]

_BASE_NO_LOCAL_COMMITS = {
    WorkingTreeStatus.CLEAN: ScenarioId.MAIN_CLEAN_SAME,
    WorkingTreeStatus.STAGED_ONLY: ScenarioId.MAIN_STAGED_SAME,
    WorkingTreeStatus.UNSTAGED_ONLY: ScenarioId.MAIN_UNSTAGED_SAME,
    WorkingTreeStatus.BOTH: ScenarioId.MAIN_BOTH_SAME,
}

SCENARIO_DESCRIPTIONS = {
    ScenarioId.MAIN_CLEAN_SAME: "On {base} branch, same as origin/{base}, no changes",
    ScenarioId.MAIN_STAGED_SAME: "On {base} branch, same as origin/{base}, staged changes only",
    ScenarioId.MAIN_UNSTAGED_SAME: "On {base} branch, same as origin/{base}, unstaged changes only",
    ScenarioId.MAIN_BOTH_SAME: "On {base} branch, same as origin/{base}, both staged and unstaged changes",
    ScenarioId.MAIN_CLEAN_AHEAD: "On {base} branch, ahead of origin/{base}, no uncommitted changes",
    ScenarioId.MAIN_CHANGES_AHEAD: "On {base} branch, ahead of origin/{base}, with uncommitted changes",
    ScenarioId.BRANCH_SAME_AS_MAIN: "On feature branch at same commit as {base} (no divergent commits)",
    ScenarioId.BRANCH_ANCESTOR: "On feature branch that is an ancestor of {base} (already merged)",
    ScenarioId.BRANCH_DIVERGENT: "On feature branch with commits not in {base}",
    ScenarioId.BRANCH_WITH_CHANGES: "On feature branch with uncommitted changes",
    ScenarioId.DETACHED_HEAD: "In detached HEAD state",
    ScenarioId.PR_WORKTREE: "In a PR worktree (not the main worktree)",
}


def _classify_on_base(relationship: CommitRelationship, status: WorkingTreeStatus) -> ScenarioId:
    if relationship in (CommitRelationship.SAME, CommitRelationship.ANCESTOR, CommitRelationship.BEHIND):
        # Locally behind origin leaves nothing to preserve: same menu as level.
        return _BASE_NO_LOCAL_COMMITS[status]
    if relationship in (CommitRelationship.AHEAD, CommitRelationship.DIVERGENT):
        if status is WorkingTreeStatus.CLEAN:
            return ScenarioId.MAIN_CLEAN_AHEAD
        return ScenarioId.MAIN_CHANGES_AHEAD
    assert_never(relationship)


def _classify_clean_branch(relationship: CommitRelationship) -> ScenarioId:
    if relationship in (CommitRelationship.SAME, CommitRelationship.BEHIND):
        return ScenarioId.BRANCH_SAME_AS_MAIN
    if relationship is CommitRelationship.ANCESTOR:
        return ScenarioId.BRANCH_ANCESTOR
    if relationship in (CommitRelationship.AHEAD, CommitRelationship.DIVERGENT):
        return ScenarioId.BRANCH_DIVERGENT
    assert_never(relationship)


def detect_scenario(snapshot: GitStateSnapshot) -> ScenarioId:
    """
    Classify a snapshot. First match wins:

    1. inside a linked PR worktree
    2. detached HEAD
    3. on the base branch, by (relationship, working tree)
    4. on any other branch
    """
    if snapshot.is_inside_pr_worktree:
        return ScenarioId.PR_WORKTREE
    if snapshot.is_detached_head or snapshot.current_branch is None:
        return ScenarioId.DETACHED_HEAD
    if snapshot.is_on_base_branch:
        return _classify_on_base(snapshot.commit_relationship, snapshot.working_tree_status)
    if snapshot.has_changes:
        return ScenarioId.BRANCH_WITH_CHANGES
    return _classify_clean_branch(snapshot.commit_relationship)


def describe_scenario(scenario: ScenarioId, base_branch: str = "main") -> str:
    return SCENARIO_DESCRIPTIONS[scenario].format(base=base_branch)


def scenario_message_level(scenario: ScenarioId) -> MessageLevel:
    if scenario in (
        ScenarioId.MAIN_CLEAN_SAME,
        ScenarioId.BRANCH_SAME_AS_MAIN,
        ScenarioId.BRANCH_ANCESTOR,
        ScenarioId.DETACHED_HEAD,
        ScenarioId.PR_WORKTREE,
    ):
        return "warning"
    return "info"

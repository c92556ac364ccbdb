"""Tests for scenario classification."""

import itertools

import pytest

from prbranch.classifier import (
    describe_scenario,
    detect_scenario,
    scenario_message_level,
)
from prbranch.models import CommitRelationship, GitStateSnapshot, ScenarioId, WorkingTreeStatus

R = CommitRelationship
W = WorkingTreeStatus

ALL_SNAPSHOTS = [
    GitStateSnapshot(
        current_branch=branch,
        base_branch="main",
        commit_relationship=relationship,
        working_tree_status=status,
        is_detached_head=branch is None,
        is_inside_pr_worktree=in_pr_worktree,
        local_commits_ahead_count=ahead,
    )
    for branch, relationship, status, in_pr_worktree, ahead in itertools.product(
        ["main", "feature", None],
        list(CommitRelationship),
        list(WorkingTreeStatus),
        [False, True],
        [0, 2],
    )
]


def snap(branch="main", relationship=R.SAME, status=W.CLEAN, **kwargs) -> GitStateSnapshot:
    return GitStateSnapshot(
        current_branch=branch,
        base_branch=kwargs.pop("base_branch", "main"),
        commit_relationship=relationship,
        working_tree_status=status,
        **kwargs,
    )


class TestTotality:
    @pytest.mark.parametrize("snapshot", ALL_SNAPSHOTS)
    def test_every_snapshot_maps_to_a_scenario(self, snapshot):
        assert detect_scenario(snapshot) in set(ScenarioId)

    @pytest.mark.parametrize("snapshot", ALL_SNAPSHOTS)
    def test_classification_is_deterministic(self, snapshot):
        copy = GitStateSnapshot(**snapshot.__dict__)
        assert detect_scenario(snapshot) is detect_scenario(copy)

    def test_every_scenario_is_reachable(self):
        reached = {detect_scenario(s) for s in ALL_SNAPSHOTS}
        assert reached == set(ScenarioId)


class TestPrecedence:
    @pytest.mark.parametrize("branch", ["main", "feature", None])
    def test_pr_worktree_wins(self, branch):
        snapshot = snap(branch, R.DIVERGENT, W.BOTH, is_inside_pr_worktree=True, is_detached_head=branch is None)
        assert detect_scenario(snapshot) is ScenarioId.PR_WORKTREE

    def test_detached_before_branch_rules(self):
        assert detect_scenario(snap(None, R.AHEAD, W.BOTH, is_detached_head=True)) is ScenarioId.DETACHED_HEAD

    def test_missing_branch_name_is_detached(self):
        assert detect_scenario(snap(None)) is ScenarioId.DETACHED_HEAD


class TestOnBaseBranch:
    @pytest.mark.parametrize(
        "status,expected",
        [
            (W.CLEAN, ScenarioId.MAIN_CLEAN_SAME),
            (W.STAGED_ONLY, ScenarioId.MAIN_STAGED_SAME),
            (W.UNSTAGED_ONLY, ScenarioId.MAIN_UNSTAGED_SAME),
            (W.BOTH, ScenarioId.MAIN_BOTH_SAME),
        ],
    )
    @pytest.mark.parametrize("relationship", [R.SAME, R.ANCESTOR, R.BEHIND])
    def test_no_local_commits(self, relationship, status, expected):
        assert detect_scenario(snap("main", relationship, status)) is expected

    @pytest.mark.parametrize("relationship", [R.AHEAD, R.DIVERGENT])
    def test_local_commits_clean(self, relationship):
        assert detect_scenario(snap("main", relationship, W.CLEAN)) is ScenarioId.MAIN_CLEAN_AHEAD

    @pytest.mark.parametrize("relationship", [R.AHEAD, R.DIVERGENT])
    @pytest.mark.parametrize("status", [W.STAGED_ONLY, W.UNSTAGED_ONLY, W.BOTH])
    def test_local_commits_with_changes(self, relationship, status):
        assert detect_scenario(snap("main", relationship, status)) is ScenarioId.MAIN_CHANGES_AHEAD

    def test_staged_on_main_after_origin_moved_on(self):
        # The local base is behind origin: nothing of ours to keep but the index.
        assert detect_scenario(snap("main", R.ANCESTOR, W.STAGED_ONLY)) is ScenarioId.MAIN_STAGED_SAME

    def test_custom_base_branch(self):
        snapshot = snap("develop", R.SAME, W.UNSTAGED_ONLY, base_branch="develop")
        assert detect_scenario(snapshot) is ScenarioId.MAIN_UNSTAGED_SAME


class TestOnOtherBranch:
    @pytest.mark.parametrize("relationship", list(CommitRelationship))
    @pytest.mark.parametrize("status", [W.STAGED_ONLY, W.UNSTAGED_ONLY, W.BOTH])
    def test_changes_win(self, relationship, status):
        assert detect_scenario(snap("feature", relationship, status)) is ScenarioId.BRANCH_WITH_CHANGES

    @pytest.mark.parametrize(
        "relationship,expected",
        [
            (R.SAME, ScenarioId.BRANCH_SAME_AS_MAIN),
            (R.BEHIND, ScenarioId.BRANCH_SAME_AS_MAIN),
            (R.ANCESTOR, ScenarioId.BRANCH_ANCESTOR),
            (R.AHEAD, ScenarioId.BRANCH_DIVERGENT),
            (R.DIVERGENT, ScenarioId.BRANCH_DIVERGENT),
        ],
    )
    def test_clean(self, relationship, expected):
        assert detect_scenario(snap("feature", relationship, W.CLEAN)) is expected

    def test_main_is_a_feature_branch_when_base_differs(self):
        assert detect_scenario(snap("main", R.SAME, W.CLEAN, base_branch="develop")) is ScenarioId.BRANCH_SAME_AS_MAIN


class TestHelpers:
    def test_describe_uses_base_branch(self):
        text = describe_scenario(ScenarioId.MAIN_CLEAN_AHEAD, "develop")
        assert "develop" in text
        assert "origin/develop" in text

    def test_every_scenario_has_description(self):
        for scenario in ScenarioId:
            assert describe_scenario(scenario)

    @pytest.mark.parametrize(
        "scenario,level",
        [
            (ScenarioId.MAIN_CLEAN_SAME, "warning"),
            (ScenarioId.PR_WORKTREE, "warning"),
            (ScenarioId.DETACHED_HEAD, "warning"),
            (ScenarioId.MAIN_STAGED_SAME, "info"),
            (ScenarioId.BRANCH_WITH_CHANGES, "info"),
        ],
    )
    def test_message_level(self, scenario, level):
        assert scenario_message_level(scenario) == level

    def test_snapshot_properties(self):
        assert snap(status=W.BOTH).has_changes
        assert not snap(status=W.CLEAN).has_changes
        assert snap(local_commits_ahead_count=3).has_local_commits
        assert not snap().has_local_commits
        assert snap(branch="main").is_on_base_branch
        assert not snap(branch="feature").is_on_base_branch

    def test_negative_commit_count_rejected(self):
        with pytest.raises(ValueError):
            snap(local_commits_ahead_count=-1)

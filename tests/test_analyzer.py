"""Tests for snapshot gathering over FakeGitOps."""

import pytest
from rich.console import Console

from prbranch.analyzer import (
    StateAnalyzer,
    analyze_git_state,
    parse_unstaged_files,
    parse_working_tree_status,
    validate_base_branch,
)
from prbranch.command_log import BashCommandLogger, LoggerOptions
from prbranch.errors import Err, ErrorKind, Ok
from prbranch.fake_git_ops import FakeGitOps
from prbranch.models import CommitRelationship, WorkingTreeStatus


class TestParseWorkingTreeStatus:
    @pytest.mark.parametrize(
        "porcelain,expected",
        [
            ("", WorkingTreeStatus.CLEAN),
            ("M  src/app.py\n", WorkingTreeStatus.STAGED_ONLY),
            ("A  new.py\n", WorkingTreeStatus.STAGED_ONLY),
            ("R  old.py -> new.py\n", WorkingTreeStatus.STAGED_ONLY),
            (" M src/app.py\n", WorkingTreeStatus.UNSTAGED_ONLY),
            ("?? notes.txt\n", WorkingTreeStatus.UNSTAGED_ONLY),
            (" D gone.py\n", WorkingTreeStatus.UNSTAGED_ONLY),
            ("MM src/app.py\n", WorkingTreeStatus.BOTH),
            ("A  new.py\n M src/app.py\n", WorkingTreeStatus.BOTH),
            ("M  staged.py\n?? untracked.txt\n", WorkingTreeStatus.BOTH),
        ],
    )
    def test_classifies_porcelain(self, porcelain, expected):
        assert parse_working_tree_status(porcelain) is expected

    def test_leading_space_is_not_staged(self):
        # " M" must not be read as a staged "M" after whitespace stripping
        assert parse_working_tree_status(" M a.py") is WorkingTreeStatus.UNSTAGED_ONLY

    def test_ignores_blank_and_crlf_lines(self):
        assert parse_working_tree_status("\r\n\n M a.py\r\n") is WorkingTreeStatus.UNSTAGED_ONLY


class TestParseUnstagedFiles:
    def test_modified_and_untracked(self):
        porcelain = " M src/app.py\n?? notes.txt\nM  staged_only.py\n"
        assert parse_unstaged_files(porcelain) == ("src/app.py", "notes.txt")

    def test_rename_target_is_reported(self):
        assert parse_unstaged_files("RM old.py -> new.py\n") == ("new.py",)

    def test_quoted_paths_are_unquoted(self):
        assert parse_unstaged_files('?? "with space.txt"\n') == ("with space.txt",)

    @pytest.mark.parametrize(
        "quoted,expected",
        [
            ('"caf\\303\\251.txt"', "café.txt"),
            ('"say \\"hi\\".txt"', 'say "hi".txt'),
            ('"tab\\there"', "tab\there"),
            ('"back\\\\slash"', "back\\slash"),
        ],
    )
    def test_c_style_escapes_are_decoded(self, quoted, expected):
        assert parse_unstaged_files(f" M {quoted}\n") == (expected,)

    def test_deduplicates_in_first_seen_order(self):
        porcelain = " M b.py\n M a.py\n M b.py\n"
        assert parse_unstaged_files(porcelain) == ("b.py", "a.py")


class TestValidateBaseBranch:
    def test_accepts_plain_name(self):
        assert validate_base_branch("develop") == "develop"

    @pytest.mark.parametrize("bad", ["", "origin/main", "refs/heads/main"])
    def test_rejects_prefixed_or_empty(self, bad):
        with pytest.raises(ValueError):
            validate_base_branch(bad)


class TestCommitRelationship:
    def test_same(self):
        assert StateAnalyzer(FakeGitOps()).commit_relationship("main") is CommitRelationship.SAME

    def test_ahead(self):
        ops = FakeGitOps(head="c2", ancestry={("c0", "c2")})
        assert StateAnalyzer(ops).commit_relationship("main") is CommitRelationship.AHEAD

    def test_ancestor_when_origin_moved_on(self):
        ops = FakeGitOps(head="c0", refs={"origin/main": "c2", "main": "c0"}, ancestry={("c0", "c2")})
        assert StateAnalyzer(ops).commit_relationship("main") is CommitRelationship.ANCESTOR

    def test_divergent(self):
        ops = FakeGitOps(head="c3", refs={"origin/main": "c2", "main": "c3"})
        assert StateAnalyzer(ops).commit_relationship("main") is CommitRelationship.DIVERGENT

    def test_missing_origin_ref_degrades_to_divergent(self):
        ops = FakeGitOps(refs={"main": "c0"})
        analyzer = StateAnalyzer(ops)

        assert analyzer.commit_relationship("main") is CommitRelationship.DIVERGENT
        assert [err.kind for err in analyzer.degraded] == [ErrorKind.REF_UNRESOLVABLE]


class TestAnalyze:
    def test_clean_main(self):
        snapshot = StateAnalyzer(FakeGitOps()).analyze("main")

        assert snapshot.current_branch == "main"
        assert snapshot.base_branch == "main"
        assert snapshot.commit_relationship is CommitRelationship.SAME
        assert snapshot.working_tree_status is WorkingTreeStatus.CLEAN
        assert snapshot.staged_files == ()
        assert snapshot.unstaged_files == ()
        assert snapshot.local_commits_ahead_count == 0
        assert not snapshot.is_detached_head
        assert not snapshot.is_inside_pr_worktree
        assert snapshot.repo_name == "project"

    def test_files_and_commits(self):
        ops = FakeGitOps(head="c2", ancestry={("c0", "c2")}, local_commits=["c2 add feature"])
        ops.stage("new.py").modify("src/app.py").untracked("notes.txt")

        snapshot = StateAnalyzer(ops).analyze("main")

        assert snapshot.working_tree_status is WorkingTreeStatus.BOTH
        assert snapshot.staged_files == ("new.py",)
        assert snapshot.unstaged_files == ("src/app.py", "notes.txt")
        assert snapshot.local_commits_ahead_count == 1
        assert snapshot.local_commits == ("c2 add feature",)

    def test_detached_head(self):
        snapshot = StateAnalyzer(FakeGitOps(branch=None)).analyze("main")
        assert snapshot.current_branch is None
        assert snapshot.is_detached_head

    @pytest.mark.parametrize(
        "root,linked,expected",
        [
            ("/src/project", False, False),
            ("/src/project.pr12", False, True),
            ("/src/wt/project/feature", True, True),
        ],
    )
    def test_pr_worktree_detection(self, root, linked, expected):
        ops = FakeGitOps(root=root, linked_worktree=linked)
        assert StateAnalyzer(ops).analyze("main").is_inside_pr_worktree is expected

    def test_analyze_is_read_only(self):
        ops = FakeGitOps().stage("a.py").modify("b.py")
        StateAnalyzer(ops).analyze("main")
        assert ops.mutations == []


class TestAnalyzeGitState:
    def test_returns_ok(self):
        result = analyze_git_state("main", git_ops=FakeGitOps())
        assert isinstance(result, Ok)
        assert result.value.current_branch == "main"

    def test_git_failure_becomes_err(self):
        ops = FakeGitOps(failures={"status_porcelain": "fatal: index file corrupt"})

        result = analyze_git_state("main", git_ops=ops)

        assert isinstance(result, Err)
        assert result.kind is ErrorKind.GIT_COMMAND_FAILURE
        assert result.stderr == "fatal: index file corrupt"
        assert "git status --porcelain" in result.command

    def test_degraded_lookup_is_a_warning(self):
        logger = BashCommandLogger(LoggerOptions(), Console(record=True, width=200))

        result = analyze_git_state("main", git_ops=FakeGitOps(refs={"main": "c0"}), logger=logger)

        assert isinstance(result, Ok)
        assert result.value.commit_relationship is CommitRelationship.DIVERGENT
        assert "Warning: Cannot resolve origin/main" in logger.console.export_text()

    def test_rejects_prefixed_base(self):
        with pytest.raises(ValueError):
            analyze_git_state("origin/main", git_ops=FakeGitOps())

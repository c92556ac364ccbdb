"""Tests for the click command line interface."""

import json
import subprocess

import pytest
from click.testing import CliRunner

from prbranch import command_log as command_log_module
from prbranch import workflow as workflow_module
from prbranch.cli import cli

pytestmark = pytest.mark.integration


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def in_sandbox(sandbox, monkeypatch):
    monkeypatch.chdir(sandbox.root)
    return sandbox


class TestGroup:
    def test_help_without_command(self, runner):
        result = runner.invoke(cli, [])
        assert result.exit_code == 0
        assert "state" in result.output
        assert "new" in result.output

    def test_quickstart(self, runner):
        result = runner.invoke(cli, ["quickstart"])
        assert result.exit_code == 0
        assert "Quickstart Guide" in result.output


class TestState:
    def test_json_output(self, runner, in_sandbox):
        result = runner.invoke(cli, ["state", "--json"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["scenario"] == "main_clean_same"
        assert payload["recommended_action"] == "leave_and_empty_commit"
        assert payload["current_branch"] == "main"
        assert [a["key"] for a in payload["available_actions"]][-1] == "cancel"

    def test_human_output(self, runner, in_sandbox):
        in_sandbox.write("src/app.py", "print('changed')\n")

        result = runner.invoke(cli, ["state", "--verbose"])

        assert result.exit_code == 0, result.output
        assert "main_unstaged_same" in result.output
        assert "src/app.py" in result.output
        assert "recommended" in result.output

    def test_debug_shows_bash_commands(self, runner, in_sandbox):
        result = runner.invoke(cli, ["--debug", "state"])
        assert "[BASH] git -c core.quotePath=false status --porcelain" in result.output

    def test_prefixed_base_is_rejected(self, runner, in_sandbox):
        result = runner.invoke(cli, ["state", "--base", "origin/main"])
        assert result.exit_code == 1
        assert "ERROR:" in result.output

    def test_outside_repository(self, runner, tmp_path, monkeypatch):
        outside = tmp_path / "plain"
        outside.mkdir()
        monkeypatch.chdir(outside)

        result = runner.invoke(cli, ["state"])

        if result.exit_code == 0:
            pytest.skip("temporary directory lives inside a git repository")
        assert result.exit_code == 1
        assert "Not inside a Git repository" in result.output

    def test_save_history(self, runner, in_sandbox):
        result = runner.invoke(cli, ["--save-history", "state"])

        assert result.exit_code == 0, result.output
        history = json.loads((in_sandbox.root / ".prbranch_history.json").read_text())
        assert any(entry["command"].endswith("status --porcelain") for entry in history)


class TestNew:
    def test_cancel_exits_non_zero(self, runner, in_sandbox):
        in_sandbox.write("src/app.py", "print('changed')\n")

        result = runner.invoke(cli, ["new", "Anything", "--action", "cancel", "--no-pr"])

        assert result.exit_code == 1
        assert "Cancelled; no changes made" in result.output
        assert in_sandbox.read("src/app.py") == "print('changed')\n"

    def test_unknown_action(self, runner, in_sandbox):
        result = runner.invoke(cli, ["new", "Anything", "--action", "nope", "--no-pr"])
        assert result.exit_code == 1
        assert "ERROR:" in result.output

    def test_recommended_action_end_to_end(self, runner, in_sandbox):
        in_sandbox.write("src/app.py", "print('changed')\n")

        result = runner.invoke(cli, ["new", "Change app", "-y", "--no-pr", "--branch", "feat/change-app"])

        assert result.exit_code == 0, result.output
        assert "Done!" in result.output
        assert in_sandbox.repo.active_branch.name == "main"
        assert "feat/change-app" in [head.name for head in in_sandbox.repo.heads]
        assert in_sandbox.repo.git.ls_remote("origin", "feat/change-app")
        assert (in_sandbox.tmp_path / "wt" / "origin" / "change-app" / "src" / "app.py").exists()

    def test_dry_run_changes_nothing(self, runner, in_sandbox):
        in_sandbox.write("src/app.py", "print('changed')\n")

        result = runner.invoke(cli, ["--dry-run", "new", "Dry run", "-y", "--no-pr", "--branch", "feat/dry"])

        assert result.exit_code == 0, result.output
        assert "[DRY-RUN] Would execute: git add ." in result.output
        assert [head.name for head in in_sandbox.repo.heads] == ["main"]
        assert in_sandbox.repo.git.diff("--cached", "--name-only") == ""

    def test_pr_failure_is_reported_and_work_restored(self, runner, in_sandbox, monkeypatch):
        monkeypatch.setattr(workflow_module.shutil, "which", lambda name: "/usr/bin/gh")
        real_run = subprocess.run

        def run_without_github(args, **kwargs):
            if list(args[:1]) == ["gh"]:
                raise subprocess.CalledProcessError(1, list(args), output="", stderr="GraphQL: Bad credentials")
            return real_run(args, **kwargs)

        monkeypatch.setattr(command_log_module.subprocess, "run", run_without_github)
        in_sandbox.write("src/app.py", "print('changed')\n")

        result = runner.invoke(
            cli, ["new", "Change app", "--action", "stash_all", "--no-push", "--branch", "feat/change-app"]
        )

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "ERROR: gh pr create failed: GraphQL: Bad credentials" in result.output
        assert in_sandbox.read("src/app.py") == "print('changed')\n"
        assert in_sandbox.stash_list() == ""

    def test_existing_remote_branch_gets_a_worktree(self, runner, in_sandbox):
        in_sandbox.repo.git.push("origin", "HEAD:refs/heads/feat/existing")
        in_sandbox.write("src/app.py", "print('changed')\n")

        result = runner.invoke(cli, ["new", "Existing", "-y", "--no-pr", "--branch", "feat/existing"])

        assert result.exit_code == 0, result.output
        worktree = in_sandbox.tmp_path / "wt" / "origin" / "existing"
        assert (worktree / "src" / "app.py").read_text() == "print('hello')\n"
        assert in_sandbox.read("src/app.py") == "print('changed')\n"
        assert in_sandbox.stash_list() == ""

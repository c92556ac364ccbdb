"""Tests for the bash command ledger."""

import json
import sys

from rich.console import Console

from prbranch.command_log import BashCommandLogger, LoggerOptions


def recording_logger(**options) -> BashCommandLogger:
    return BashCommandLogger(LoggerOptions(**options), Console(record=True, width=200))


class TestLog:
    def test_records_entries(self):
        logger = recording_logger()
        logger.log("git status --porcelain", "Read working tree status")

        assert [entry.command for entry in logger.commands] == ["git status --porcelain"]
        assert logger.commands[0].description == "Read working tree status"
        assert logger.console.export_text() == ""

    def test_debug_prints_bash_lines(self):
        logger = recording_logger(debug=True)
        logger.log("git add .", "Stage changes")

        output = logger.console.export_text()
        assert "[BASH] git add ." in output
        assert "Stage changes" in output

    def test_dry_run_announces_only_mutations(self):
        logger = recording_logger(dry_run=True)
        logger.log("git status --porcelain")
        logger.log("git stash push --include-untracked", mutating=True)

        output = logger.console.export_text()
        assert "[DRY-RUN] Would execute: git stash push --include-untracked" in output
        assert "status" not in output

    def test_note_only_in_debug(self):
        quiet = recording_logger()
        quiet.note("Chosen action: commit_all from HEAD")
        assert quiet.console.export_text() == ""

        loud = recording_logger(debug=True)
        loud.note("Chosen action: commit_all from HEAD")
        assert "Chosen action" in loud.console.export_text()


class TestExecute:
    def test_runs_command_and_records_output(self):
        logger = recording_logger()
        result = logger.execute([sys.executable, "-c", "print('hello')"], "Say hello")

        assert result.returncode == 0
        assert result.stdout.strip() == "hello"
        assert logger.commands[-1].executed
        assert logger.commands[-1].result.strip() == "hello"

    def test_dry_run_skips_execution(self):
        logger = recording_logger(dry_run=True)
        result = logger.execute(["gh", "pr", "create", "--title", "Add search"])

        assert result.returncode == 0
        assert result.stdout == ""
        assert not logger.commands[-1].executed
        assert "gh pr create --title 'Add search'" in logger.console.export_text()


class TestSaveHistory:
    def test_writes_json_ledger(self, tmp_path):
        history = tmp_path / "history.json"
        logger = recording_logger(history_file=str(history))
        logger.log("git fetch origin", "Fetch origin")
        logger.save_history()

        data = json.loads(history.read_text())
        assert data[0]["command"] == "git fetch origin"
        assert data[0]["description"] == "Fetch origin"
        assert data[0]["executed"] is False
        assert "timestamp" in data[0]

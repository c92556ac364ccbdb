"""
Command ledger for prbranch.

Every git operation is recorded with its bash equivalent so the user can see
(and replay) exactly what the tool did to the repository.
"""

import json
import shlex
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from rich.console import Console

from prbranch.config import RepoConfig


@dataclass(frozen=True)
class LoggerOptions:
    """Options the command logger is configured with, once per run."""
    debug: bool = False
    dry_run: bool = False
    history_file: str = RepoConfig.HISTORY_FILE


@dataclass
class CommandEntry:
    """Record of a bash command execution."""
    command: str
    description: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    executed: bool = False
    result: Optional[str] = None


class BashCommandLogger:
    """
    Logs and documents all bash command equivalents.

    One instance is created per invocation and handed to every component
    that touches git; nothing here is process-wide.
    """

    def __init__(self, options: Optional[LoggerOptions] = None, console: Optional[Console] = None):
        self.options = options or LoggerOptions()
        self.console = console or Console()
        self.commands: List[CommandEntry] = []

    @property
    def debug(self) -> bool:
        return self.options.debug

    @property
    def dry_run(self) -> bool:
        return self.options.dry_run

    def log(self, bash_cmd: str, description: Optional[str] = None, mutating: bool = False) -> CommandEntry:
        """
        Log a bash command with optional description.

        Args:
            bash_cmd: The bash command that would be executed
            description: Optional description of what the command does
            mutating: Whether the command changes the repository (shown in dry-run)

        Returns:
            The ledger entry, so the caller can mark it executed
        """
        entry = CommandEntry(command=bash_cmd, description=description)
        self.commands.append(entry)

        if self.debug:
            self.console.print(f"[cyan][BASH][/cyan] {bash_cmd}", highlight=False)
            if description:
                self.console.print(f"       [dim]{description}[/dim]", highlight=False)

        if self.dry_run and mutating:
            self.console.print(f"[yellow][DRY-RUN][/yellow] Would execute: {bash_cmd}", highlight=False)

        return entry

    def note(self, message: str) -> None:
        """Print a narrative line in debug mode."""
        if self.debug:
            self.console.print(f"[dim]{message}[/dim]", highlight=False)

    def execute(self, args: Sequence[str], description: Optional[str] = None,
                check: bool = True, cwd: Optional[str] = None) -> subprocess.CompletedProcess:
        """
        Log and execute a non-git command (for example the gh CLI).

        Args:
            args: Command and arguments
            description: Optional description
            check: Whether to raise on non-zero exit
            cwd: Working directory for the command

        Returns:
            CompletedProcess result
        """
        bash_cmd = shlex.join(args)
        entry = self.log(bash_cmd, description, mutating=True)

        if self.dry_run:
            return subprocess.CompletedProcess(args=list(args), returncode=0, stdout="", stderr="")

        result = subprocess.run(
            list(args),
            check=check,
            capture_output=True,
            text=True,
            cwd=cwd,
        )
        entry.executed = True
        entry.result = result.stdout
        return result

    def save_history(self, filepath: Optional[str] = None) -> None:
        """Save command history for audit/learning."""
        filepath = filepath or self.options.history_file
        history = []
        for entry in self.commands:
            history.append({
                "command": entry.command,
                "description": entry.description,
                "timestamp": entry.timestamp.isoformat(),
                "executed": entry.executed,
                "result": entry.result
            })

        with open(filepath, "w") as f:
            json.dump(history, f, indent=2)

        if self.debug:
            self.console.print(f"[green]Command history saved to {filepath}[/green]")

"""
prbranch command line interface.

Every Git operation documents its bash equivalent for transparency; run with
``--debug`` to see them and with ``--dry-run`` to preview mutations.
"""

import json
import subprocess
import sys
from dataclasses import dataclass
from typing import Optional

import click
from git import GitCommandError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from prbranch.classifier import describe_scenario, scenario_message_level
from prbranch.command_log import BashCommandLogger, LoggerOptions
from prbranch.config import RepoConfig
from prbranch.errors import EngineError, ErrorKind, raw_stderr
from prbranch.git_ops import RepoGitOps
from prbranch.models import ActionMenu, GitStateSnapshot, ScenarioId
from prbranch.workflow import NewPrOptions, NewPrWorkflow


@dataclass
class CliState:
    """Global options, turned into one command logger per command."""
    options: LoggerOptions
    save_history: bool = False

    def make_logger(self, json_output: bool = False) -> BashCommandLogger:
        # Human-readable output goes to stderr when stdout carries JSON.
        logger = BashCommandLogger(self.options, Console(stderr=json_output))
        if self.save_history:
            click.get_current_context().call_on_close(logger.save_history)
        return logger


def fail(console: Console, message: str) -> None:
    console.print(f"[red]ERROR: {escape(message)}[/red]")
    sys.exit(1)


def open_workflow(logger: BashCommandLogger) -> NewPrWorkflow:
    git_ops = RepoGitOps.open(logger=logger).unwrap()
    return NewPrWorkflow(git_ops, logger)


def handle_errors(console: Console, error: Exception) -> None:
    if isinstance(error, EngineError):
        if error.kind is ErrorKind.USER_CANCELLED:
            console.print(f"[yellow]{escape(str(error))}[/yellow]")
            sys.exit(1)
        fail(console, str(error))
    if isinstance(error, GitCommandError):
        fail(console, raw_stderr(error) or str(error))
    if isinstance(error, subprocess.CalledProcessError):
        # gh pr create carries the whole PR body; name the subcommand only.
        command = " ".join(error.cmd[:3]) if isinstance(error.cmd, (list, tuple)) else str(error.cmd)
        stderr = (error.stderr or "").strip()
        fail(console, f"{command} failed: {stderr or f'exit status {error.returncode}'}")
    fail(console, str(error))


# ========== CLI Interface ==========

@click.group(invoke_without_command=True)
@click.option('--debug', '-d', is_flag=True, help='Enable debug output (shows bash commands)')
@click.option('--dry-run', '-n', is_flag=True, help='Preview commands without execution')
@click.option('--save-history', is_flag=True, help=f'Save command history to {RepoConfig.HISTORY_FILE}')
@click.version_option(package_name='prbranch')
@click.pass_context
def cli(ctx, debug, dry_run, save_history):
    """
    prbranch - turn local work into a PR branch with its own worktree.

    prbranch looks at your checkout (branch, commits ahead of origin,
    staged and unstaged changes), tells you which situation you are in and
    offers the sensible ways forward.

    Common workflow:

        prbranch state                    # What would happen?

        prbranch new "Fix login bug"      # Branch, commit, push, PR, worktree
    """
    ctx.obj = CliState(options=LoggerOptions(debug=debug, dry_run=dry_run), save_history=save_history)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ========== State Commands ==========

def render_state(console: Console, snapshot: GitStateSnapshot, scenario: ScenarioId,
                 menu: ActionMenu, verbose: bool = False) -> None:
    level = scenario_message_level(scenario)
    color = "yellow" if level == "warning" else "cyan"
    console.print(Panel.fit(
        f"[bold]{scenario.value}[/bold]\n{escape(describe_scenario(scenario, snapshot.base_branch))}",
        style=color,
    ))

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Branch:", escape(snapshot.current_branch or "(detached HEAD)"))
    table.add_row("Base:", f"{RepoConfig.ORIGIN_REMOTE}/{escape(snapshot.base_branch)}")
    table.add_row("Relationship:", snapshot.commit_relationship.value)
    table.add_row("Working tree:", snapshot.working_tree_status.value)
    table.add_row("Local commits:", str(snapshot.local_commits_ahead_count))
    if snapshot.is_inside_pr_worktree:
        table.add_row("Worktree:", "[yellow]PR worktree[/yellow]")
    console.print(table)

    if verbose:
        for title, items in (("Staged files", snapshot.staged_files),
                             ("Unstaged files", snapshot.unstaged_files),
                             ("Local commits", snapshot.local_commits)):
            if items:
                console.print(f"\n[bold cyan]{title}:[/bold cyan]")
                for item in items:
                    console.print(f"  {escape(item)}", highlight=False)

    console.print("\n[bold cyan]Available actions:[/bold cyan]")
    actions = Table(show_header=False, box=None, padding=(0, 2))
    actions.add_column("Key", style="green")
    actions.add_column("Action")
    for action in menu.actions:
        marker = " [green](recommended)[/green]" if action.key == menu.recommended else ""
        label = f"{escape(action.label)}{marker}"
        if verbose:
            label += f"\n[dim]{escape(action.description)}[/dim]"
        actions.add_row(action.key, label)
    console.print(actions)


def state_payload(snapshot: GitStateSnapshot, scenario: ScenarioId, menu: ActionMenu) -> dict:
    payload = snapshot.to_dict()
    payload.update({
        "scenario": scenario.value,
        "scenario_description": describe_scenario(scenario, snapshot.base_branch),
        "available_actions": [action.to_dict() for action in menu.actions],
        "recommended_action": menu.recommended,
    })
    return payload


@cli.command()
@click.option('--base', default=RepoConfig.DEFAULT_BASE_BRANCH, help='Base branch PRs target')
@click.option('--json', 'json_output', is_flag=True, help='Print machine-readable JSON')
@click.option('--verbose', '-v', is_flag=True, help='List files, commits and action details')
@click.pass_obj
def state(cli_state, base, json_output, verbose):
    """Show the detected working-tree scenario and the available actions."""
    logger = cli_state.make_logger(json_output)
    try:
        workflow = open_workflow(logger)
        snapshot, scenario, menu = workflow.inspect(base)
    except (EngineError, GitCommandError, ValueError) as e:
        handle_errors(logger.console, e)
        return

    if json_output:
        click.echo(json.dumps(state_payload(snapshot, scenario, menu), indent=2))
    else:
        render_state(logger.console, snapshot, scenario, menu, verbose)


# ========== PR Commands ==========

@cli.command()
@click.argument('description')
@click.option('--base', default=RepoConfig.DEFAULT_BASE_BRANCH, help='Base branch for the PR (default: main)')
@click.option('--branch', 'branch_name', help='Branch name (generated from DESCRIPTION if not provided)')
@click.option('--action', 'action_key', help='Action key to run instead of prompting (see: prbranch state)')
@click.option('--non-interactive', '-y', is_flag=True, help='Take the recommended action without prompting')
@click.option('--draft', is_flag=True, default=RepoConfig.DEFAULT_DRAFT_PR, help='Create as draft PR')
@click.option('--no-pr', is_flag=True, help='Skip gh pr create')
@click.option('--no-push', is_flag=True, help='Do not push the new branch')
@click.option('--no-worktree', is_flag=True, help='Do not create a worktree')
@click.option('--json', 'json_output', is_flag=True, help='Print the outcome as JSON')
@click.pass_obj
def new(cli_state, description, base, branch_name, action_key, non_interactive, draft,
        no_pr, no_push, no_worktree, json_output):
    """
    Create a PR branch for DESCRIPTION from the current work.

    Detects the scenario, applies the chosen action, then creates the branch,
    commits, pushes, opens the PR and adds a worktree for it.
    """
    logger = cli_state.make_logger(json_output)
    options = NewPrOptions(
        base_branch=base,
        branch_name=branch_name,
        action_key=action_key,
        non_interactive=non_interactive or json_output,
        draft=draft,
        create_pr=not no_pr,
        push=not no_push,
        create_worktree=not no_worktree,
    )
    try:
        workflow = open_workflow(logger)
        outcome = workflow.run(description, options)
    except (EngineError, GitCommandError, subprocess.CalledProcessError, ValueError) as e:
        handle_errors(logger.console, e)
        return

    if json_output:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
    if not outcome.success:
        logger.console.print(escape(outcome.action_result.message))
        sys.exit(1)
    if not json_output:
        print_summary(logger.console, outcome.branch_name, outcome.pr_url, outcome.worktree_path)


def print_summary(console: Console, branch_name: Optional[str], pr_url: Optional[str],
                  worktree_path: Optional[str]) -> None:
    console.print("\n[bold green]Done![/bold green]")
    if branch_name:
        console.print(f"  Branch:   {escape(branch_name)}")
    if pr_url:
        console.print(f"  PR:       {pr_url}")
    if worktree_path:
        console.print(f"  Worktree: {escape(worktree_path)}")
        console.print("\nNext steps:")
        console.print(f"  cd {escape(worktree_path)}")


# ========== Tutorial Commands ==========

@cli.command()
def quickstart():
    """Show quickstart guide."""
    quickstart_text = """
[bold cyan]Quickstart Guide[/bold cyan]
================

[bold]See where you are:[/bold]
  [green]prbranch state[/green]                      # Scenario + available actions
  [green]prbranch state --json[/green]               # Same, machine-readable

[bold]Turn local work into a PR:[/bold]
  [green]prbranch new "Fix login bug"[/green]        # Prompt for an action
  [green]prbranch new "Fix login bug" -y[/green]     # Take the recommended action
  [green]prbranch new "Fix" --action commit_all[/green]

[bold]Without GitHub:[/bold]
  [green]prbranch new "Spike" --no-pr[/green]        # Worktree under ../wt/<repo>/

[bold]Options:[/bold]
  --debug    Show bash commands
  --dry-run  Preview without execution
  --help     Show help for any command
"""
    Console().print(quickstart_text)


if __name__ == "__main__":
    cli()

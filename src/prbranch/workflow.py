"""
New-PR workflow: from a dirty checkout to a pushed branch, a PR and a worktree.

The state engine decides what to do with local work; this module carries the
decision through: create the branch at the branch point, commit, push,
open the PR with the GitHub CLI and add the worktree.
"""

import json
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from git import GitCommandError
from rich.markup import escape
from rich.prompt import IntPrompt
from rich.table import Table

from prbranch.analyzer import analyze_git_state
from prbranch.catalog import get_available_actions, resolve_action
from prbranch.classifier import describe_scenario, detect_scenario, scenario_message_level
from prbranch.command_log import BashCommandLogger
from prbranch.config import RepoConfig
from prbranch.errors import raw_stderr, user_cancelled
from prbranch.executor import (
    describe_action,
    execute_state_action,
    get_branch_point,
    is_existing_branch_action,
)
from prbranch.git_ops import GitOps
from prbranch.models import (
    ActionMenu,
    ActionResult,
    ActionType,
    BranchFrom,
    GitStateSnapshot,
    ScenarioId,
    StateAction,
)
from prbranch.validation import SafetyValidator, branch_name_for

PR_URL_PATTERN = re.compile(r"/pull/(\d+)")

CHECKOUT_CONFLICT_HINTS = (
    "Checkout failed due to conflicting changes.",
    "Your staged changes are preserved. To resolve this, either:",
    "  1. Commit your changes first, then run prbranch new again",
    "  2. Stash your changes: git stash push",
    "  3. Use a different branch point (e.g., HEAD instead of origin/<base>)",
)


@dataclass
class NewPrOptions:
    """Per-invocation choices for ``prbranch new``."""
    base_branch: str = RepoConfig.DEFAULT_BASE_BRANCH
    branch_name: Optional[str] = None
    action_key: Optional[str] = None
    non_interactive: bool = False
    draft: bool = RepoConfig.DEFAULT_DRAFT_PR
    create_pr: bool = True
    push: bool = True
    create_worktree: bool = True


@dataclass
class NewPrOutcome:
    scenario: ScenarioId
    action_key: str
    action_result: ActionResult
    branch_name: Optional[str] = None
    pr_number: Optional[int] = None
    pr_url: Optional[str] = None
    worktree_path: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.action_result.success

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.action_result.message,
            "scenario": self.scenario.value,
            "action": self.action_key,
            "branch": self.branch_name,
            "pr_number": self.pr_number,
            "pr_url": self.pr_url,
            "worktree_path": self.worktree_path,
            "warnings": list(self.warnings),
        }


def parse_pr_number(output: str) -> Optional[int]:
    """Extract the PR number from ``gh pr create`` output (the PR URL)."""
    match = PR_URL_PATTERN.search(output or "")
    return int(match.group(1)) if match else None


def worktree_path_for(repo_root: str, repo_name: str, branch_name: str,
                      pr_number: Optional[int] = None) -> Path:
    """
    Where the worktree for a new branch goes.

    Examples:
        PR #42 in /src/app   -> /src/app.pr42
        no PR, feat/x-1a2b3c -> /src/wt/app/x-1a2b3c
    """
    root = Path(repo_root)
    if pr_number is not None:
        return root.parent / RepoConfig.PR_WORKTREE_NAME.format(repo=repo_name, number=pr_number)
    slug = branch_name[len(RepoConfig.FEATURE_BRANCH_PREFIX):] \
        if branch_name.startswith(RepoConfig.FEATURE_BRANCH_PREFIX) else branch_name
    base = Path(RepoConfig.WORKTREE_BASE_PATH).name
    return root.parent / base / repo_name / slug.replace("/", "-")


class NewPrWorkflow:
    """
    Runs ``prbranch new`` against one checkout.

    The GitOps instance and the command logger are supplied by the caller;
    every message goes to the logger's console.
    """

    def __init__(self, git_ops: GitOps, logger: BashCommandLogger):
        self.git_ops = git_ops
        self.logger = logger
        self.console = logger.console

    # ========== State ==========

    def inspect(self, base_branch: str) -> Tuple[GitStateSnapshot, ScenarioId, ActionMenu]:
        """
        Snapshot, scenario and menu for the checkout.

        Raises:
            EngineError: If the repository cannot be read
        """
        snapshot = analyze_git_state(base_branch, git_ops=self.git_ops, logger=self.logger).unwrap()
        scenario = detect_scenario(snapshot)
        return snapshot, scenario, get_available_actions(scenario, snapshot)

    def fetch_base(self) -> None:
        """
        Refresh origin refs; a failure only warns.

        Bash equivalent:
            git fetch origin
        """
        try:
            self.git_ops.fetch(RepoConfig.ORIGIN_REMOTE)
        except GitCommandError as e:
            self.console.print(
                f"[yellow]Warning: could not fetch {RepoConfig.ORIGIN_REMOTE} "
                f"({escape(raw_stderr(e) or str(e.status))}); using local refs[/yellow]"
            )

    def print_scenario(self, snapshot: GitStateSnapshot, scenario: ScenarioId) -> None:
        color = "yellow" if scenario_message_level(scenario) == "warning" else "cyan"
        self.console.print(f"[{color}]{escape(describe_scenario(scenario, snapshot.base_branch))}[/{color}]")
        if snapshot.local_commits:
            self.console.print(f"  {snapshot.local_commits_ahead_count} local commit(s):")
            for line in snapshot.local_commits[:5]:
                self.console.print(f"    {escape(line)}", highlight=False)

    def choose_action(self, scenario: ScenarioId, menu: ActionMenu, options: NewPrOptions) -> str:
        """
        Pick a menu key: ``--action``, the recommended key, or a prompt.

        Raises:
            ValueError: If ``--action`` names a key this scenario does not offer
            EngineError: If the prompt is aborted
        """
        if options.action_key:
            if options.action_key not in menu.keys:
                raise ValueError(
                    f"Action '{options.action_key}' is not available here. "
                    f"Choose one of: {', '.join(menu.keys)}"
                )
            return options.action_key

        if options.non_interactive:
            return menu.recommended

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("#", style="cyan")
        table.add_column("Action")
        for number, action in enumerate(menu.actions, start=1):
            marker = " [green](recommended)[/green]" if action.key == menu.recommended else ""
            table.add_row(str(number), f"{escape(action.label)}{marker}")
        self.console.print(table)

        default = menu.keys.index(menu.recommended) + 1
        try:
            choice = IntPrompt.ask(
                "Choose an action",
                console=self.console,
                choices=[str(n) for n in range(1, len(menu.actions) + 1)],
                default=default,
            )
        except (KeyboardInterrupt, EOFError):
            user_cancelled().unwrap()
        return menu.actions[choice - 1].key

    # ========== Run ==========

    def run(self, description: str, options: NewPrOptions) -> NewPrOutcome:
        """
        Create a PR branch for the current work.

        Bash equivalents:
            git fetch origin
            git checkout -b {branch} {branch_point}
            git commit -m "feat: {description}"
            git push -u origin {branch}
            git checkout {original}
            gh pr create --base {base} --head {branch} --title "{description}" --body "..."
            git worktree add ../{repo}.pr{number} {branch}

        Args:
            description: What the PR is about; also the PR title
            options: Per-invocation choices

        Returns:
            Outcome; ``action_result.success`` is False for cancel and
            rejected actions

        Raises:
            EngineError: If the repository cannot be read or the prompt is aborted
            GitCommandError: If a git command fails after the action ran
            subprocess.CalledProcessError: If gh pr create fails
            ValueError: For invalid input
        """
        if not description or not description.strip():
            raise ValueError("A description is required")
        if options.create_pr and not self.logger.dry_run and not shutil.which("gh"):
            raise ValueError("GitHub CLI required (https://cli.github.com/); or pass --no-pr")

        self.fetch_base()
        snapshot, scenario, menu = self.inspect(options.base_branch)
        self.print_scenario(snapshot, scenario)

        key = self.choose_action(scenario, menu, options)
        action = resolve_action(scenario, key, snapshot)
        self.logger.note(f"Chosen action: {describe_action(action, options.base_branch)}")

        if action.action is ActionType.CANCEL:
            result = execute_state_action(action, description, "", self.git_ops,
                                          base_branch=options.base_branch, logger=self.logger).unwrap()
            return NewPrOutcome(scenario=scenario, action_key=key, action_result=result)

        if is_existing_branch_action(action):
            return self._run_for_current_branch(description, options, snapshot, scenario, key, action)
        return self._run_for_new_branch(description, options, snapshot, scenario, key, action)

    def _run_for_new_branch(self, description: str, options: NewPrOptions, snapshot: GitStateSnapshot,
                            scenario: ScenarioId, key: str, action: StateAction) -> NewPrOutcome:
        if options.branch_name:
            branch_name = options.branch_name
            SafetyValidator.validate_branch_name(branch_name)
        else:
            branch_name = branch_name_for(description)

        if self.git_ops.remote_branch_exists(branch_name):
            return self._run_for_remote_branch(description, options, snapshot, scenario, key, branch_name)

        original = snapshot.current_branch or self.git_ops.head_commit()
        result = execute_state_action(action, description, branch_name, self.git_ops,
                                      cwd=snapshot.repo_root, base_branch=options.base_branch,
                                      logger=self.logger).unwrap()
        outcome = NewPrOutcome(scenario=scenario, action_key=key, action_result=result, branch_name=branch_name)
        if not result.success:
            return outcome
        self.console.print(f"[green]✓ {escape(result.message)}[/green]")

        try:
            self._create_branch(branch_name, description, action, options.base_branch)

            if options.push:
                self.console.print(f"Pushing {branch_name} to {RepoConfig.ORIGIN_REMOTE}...")
                self.git_ops.push(RepoConfig.ORIGIN_REMOTE, branch_name, set_upstream=True)

            self.git_ops.checkout(original)

            if options.create_pr:
                outcome.pr_number, outcome.pr_url = self._create_pr(description, branch_name, options)

            if options.create_worktree:
                self._add_worktree(snapshot, branch_name, outcome)
        except Exception:
            if result.stash_ref:
                self._restore_stash(result.stash_ref)
            raise

        if action.stash_unstaged and result.stash_ref:
            self._move_unstaged(result.stash_ref, outcome)
        elif result.stash_ref:
            outcome.warnings.append(f"Your changes are stashed ({result.stash_ref}); restore with: git stash pop")

        for warning in outcome.warnings:
            self.console.print(f"[yellow]{escape(warning)}[/yellow]")
        return outcome

    def _run_for_current_branch(self, description: str, options: NewPrOptions, snapshot: GitStateSnapshot,
                                scenario: ScenarioId, key: str, action: StateAction) -> NewPrOutcome:
        branch_name = snapshot.current_branch or ""
        result = execute_state_action(action, description, branch_name, self.git_ops,
                                      cwd=snapshot.repo_root, base_branch=options.base_branch,
                                      logger=self.logger).unwrap()
        outcome = NewPrOutcome(scenario=scenario, action_key=key, action_result=result, branch_name=branch_name)
        if not result.success:
            return outcome
        self.console.print(f"[green]✓ {escape(result.message)}[/green]")

        try:
            if options.push:
                self.console.print(f"Pushing {branch_name} to {RepoConfig.ORIGIN_REMOTE}...")
                self.git_ops.push(RepoConfig.ORIGIN_REMOTE, branch_name, set_upstream=True)
            if options.create_pr:
                outcome.pr_number, outcome.pr_url = self._create_pr(description, branch_name, options)
        except Exception:
            if result.stash_ref:
                self._restore_stash(result.stash_ref)
            raise

        outcome.warnings.append(
            f"'{branch_name}' is checked out here, so no separate worktree was created for it"
        )
        if result.stash_ref:
            outcome.warnings.append(f"Your changes are stashed ({result.stash_ref}); restore with: git stash pop")
        for warning in outcome.warnings:
            self.console.print(f"[yellow]{escape(warning)}[/yellow]")
        return outcome

    def _run_for_remote_branch(self, description: str, options: NewPrOptions, snapshot: GitStateSnapshot,
                               scenario: ScenarioId, key: str, branch_name: str) -> NewPrOutcome:
        """
        Reuse a branch that is already on origin: find its PR or open one,
        then add the worktree. Local changes are left where they are.

        Bash equivalents:
            gh pr view {branch} --json number,url,state
            gh pr create --base {base} --head {branch} ...   # no PR yet
            git worktree add ../{repo}.pr{number} {branch}
        """
        self.console.print(f"[yellow]Branch {branch_name} already exists on {RepoConfig.ORIGIN_REMOTE}[/yellow]")
        result = ActionResult(True, f"Reusing {RepoConfig.ORIGIN_REMOTE}/{branch_name}")
        outcome = NewPrOutcome(scenario=scenario, action_key=key, action_result=result, branch_name=branch_name)

        if options.create_pr:
            outcome.pr_number, outcome.pr_url = self._find_pr(branch_name)
            if outcome.pr_number is not None:
                self.console.print(f"[green]✓ PR #{outcome.pr_number} already exists: {outcome.pr_url}[/green]")
            else:
                self.console.print("No PR exists, creating one...")
                outcome.pr_number, outcome.pr_url = self._create_pr(description, branch_name, options)

        if options.create_worktree:
            self._add_worktree(snapshot, branch_name, outcome)

        if snapshot.has_changes:
            outcome.warnings.append(f"Local changes were left in place; they are not on {branch_name}")
        for warning in outcome.warnings:
            self.console.print(f"[yellow]{escape(warning)}[/yellow]")
        return outcome

    # ========== Steps ==========

    def _create_branch(self, branch_name: str, description: str, action: StateAction, base_branch: str) -> None:
        """
        Create the branch at its branch point and give it a first commit.

        Bash equivalents:
            git checkout -b {branch} {branch_point}
            git commit -m "feat: {description}"              # staged files present
            git commit --allow-empty -m "chore: initialize ..." # fresh from a base ref
        """
        branch_point = get_branch_point(action, base_branch)
        self.console.print(f"Creating branch {branch_name} from {branch_point}...")
        try:
            self.git_ops.checkout_new_branch(branch_name, branch_point)
        except GitCommandError as e:
            stderr = raw_stderr(e)
            if "overwritten" in stderr or "conflict" in stderr:
                for hint in CHECKOUT_CONFLICT_HINTS:
                    self.console.print(f"[red]{escape(hint.replace('<base>', base_branch))}[/red]")
            raise

        if self.git_ops.staged_files():
            self.console.print("Committing staged changes...")
            self.git_ops.commit(RepoConfig.COMMIT_MESSAGE_TEMPLATE.format(description=description))
        elif action.branch_from in (BranchFrom.ORIGIN_MAIN, BranchFrom.LOCAL_BASE):
            self.console.print("Creating initial commit (required for PR creation)...")
            self.git_ops.commit(
                RepoConfig.EMPTY_COMMIT_TEMPLATE.format(branch=branch_name, description=description),
                allow_empty=True,
            )

    def _create_pr(self, description: str, branch_name: str,
                   options: NewPrOptions) -> Tuple[Optional[int], Optional[str]]:
        """
        Open the PR with the GitHub CLI.

        Bash equivalent:
            gh pr create --base {base} --head {branch} --title "{title}" --body "{body}" [--draft]
        """
        args = [
            "gh", "pr", "create",
            "--base", options.base_branch,
            "--head", branch_name,
            "--title", description,
            "--body", RepoConfig.PR_BODY_TEMPLATE.format(description=description),
        ]
        if options.draft:
            args.append("--draft")
        create_type = "draft PR" if options.draft else "PR"
        self.console.print(f"Creating {create_type}...")

        result = self.logger.execute(args, f"Create {create_type}", cwd=self.git_ops.repo_root())
        url = result.stdout.strip() or None
        number = parse_pr_number(result.stdout)
        if number is not None:
            self.console.print(f"[green]✓ Created {create_type} #{number}: {url}[/green]")
        elif not self.logger.dry_run:
            self.console.print("[yellow]Could not read the PR number from gh output[/yellow]")
        return number, url

    def _find_pr(self, branch_name: str) -> Tuple[Optional[int], Optional[str]]:
        """
        Look up the PR whose head is ``branch_name``.

        Bash equivalent:
            gh pr view {branch} --json number,url,state
        """
        result = self.logger.execute(
            ["gh", "pr", "view", branch_name, "--json", "number,url,state"],
            "Check for existing PR",
            check=False,
            cwd=self.git_ops.repo_root(),
        )
        if self.logger.dry_run or result.returncode != 0 or not result.stdout.strip():
            return None, None
        pr = json.loads(result.stdout)
        if pr.get("state") not in (None, "OPEN"):
            self.console.print(f"[yellow]PR #{pr.get('number')} is {pr['state']}[/yellow]")
        return pr.get("number"), pr.get("url")

    def _add_worktree(self, snapshot: GitStateSnapshot, branch_name: str, outcome: NewPrOutcome) -> None:
        """
        Bash equivalent:
            git worktree add {path} {branch}
        """
        path = worktree_path_for(snapshot.repo_root or self.git_ops.repo_root(),
                                 snapshot.repo_name or self.git_ops.repo_name(),
                                 branch_name, outcome.pr_number)
        self.console.print(f"Creating worktree at {path}...")
        self.git_ops.add_worktree(str(path), branch_name)
        outcome.worktree_path = str(path)
        self.console.print(f"[green]✓ Created worktree: {path}[/green]")

    def _move_unstaged(self, stash_ref: str, outcome: NewPrOutcome) -> None:
        """
        Apply the parked unstaged changes inside the new worktree.

        Bash equivalents:
            git -C {worktree} stash apply {stash_ref}
            git stash drop {stash_ref}
        """
        if outcome.worktree_path is None:
            outcome.warnings.append(f"Unstaged changes are stashed ({stash_ref}); restore with: git stash pop")
            return
        self.console.print("Moving unstaged changes to the worktree...")
        try:
            self.git_ops.stash_apply(stash_ref, cwd=outcome.worktree_path)
        except GitCommandError:
            outcome.warnings.append(
                "Failed to apply unstaged changes to the worktree. "
                "Run 'git stash pop' in the main worktree to recover them."
            )
            return
        self.git_ops.stash_drop(stash_ref)
        self.console.print("[green]✓ Unstaged changes applied to worktree[/green]")

    def _restore_stash(self, stash_ref: str) -> None:
        self.console.print("Restoring stashed changes...")
        try:
            self.git_ops.stash_pop(stash_ref)
        except GitCommandError:
            self.console.print("[yellow]Failed to restore stash. Run 'git stash pop' manually.[/yellow]")

"""
Repository configuration for prbranch.

When adopting prbranch in a new repository, update these values first.
"""


class RepoConfig:
    """
    Repository-specific configuration - modify these for your repo.
    This centralizes all repo-specific settings for easy customization.
    """

    # Repository defaults
    DEFAULT_BASE_BRANCH = "main"  # or "master", "develop", etc.

    # Remote names (standard Git convention, rarely needs changing)
    ORIGIN_REMOTE = "origin"

    # Branch naming conventions
    FEATURE_BRANCH_PREFIX = "feat/"  # Branches will be: feat/{slug}-{suffix}
    MAX_SLUG_LENGTH = 50
    BRANCH_SUFFIX_LENGTH = 6

    # Worktree configuration
    # PR worktrees live next to the main checkout: ../{repo}.pr{number}
    PR_WORKTREE_NAME = "{repo}.pr{number}"
    # Worktrees created without a PR: ../wt/{repo}/{slug}
    WORKTREE_BASE_PATH = "../wt"
    # Directory names matching this pattern are treated as PR worktrees
    PR_WORKTREE_PATTERN = r"\.pr\d+"

    # Commit and stash messages
    COMMIT_MESSAGE_TEMPLATE = "feat: {description}"
    EMPTY_COMMIT_TEMPLATE = "chore: initialize {branch}\n\nBranch created for: {description}"
    WIP_COMMIT_MESSAGE = "chore: work in progress"
    STASH_MESSAGE_TEMPLATE = "prbranch: auto-stash before creating {branch}"
    UNSTAGED_STASH_MESSAGE = "prbranch: unstaged changes for {branch}"

    # PR defaults
    DEFAULT_DRAFT_PR = False
    PR_BODY_TEMPLATE = """## Summary

{description}

## Test Plan

- [ ] Tests pass"""

    # History
    HISTORY_FILE = ".prbranch_history.json"

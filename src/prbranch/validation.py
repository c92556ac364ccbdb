"""
Input validation: branch names and slugs.
"""

import re
import secrets
from typing import Optional

from prbranch.config import RepoConfig


class SafetyValidator:
    """
    Input validation and safety checks for Git operations.

    Ensures branch names and slugs are safe and valid.
    """

    @staticmethod
    def validate_branch_name(branch: str) -> None:
        """
        Validate branch name per Git standards.

        Bash equivalent:
            git check-ref-format --branch "{branch}"

        Raises:
            ValueError: If branch name is invalid
        """
        if not branch or branch == "HEAD":
            raise ValueError(f"Invalid branch name: '{branch}'")

        if re.search(r'[\s~^:?*\[\\]', branch):
            raise ValueError(f"Branch name '{branch}' contains invalid characters (spaces, ~, ^, :, ?, *, [, \\)")

        if ".." in branch:
            raise ValueError("Branch name cannot contain two consecutive dots (..)")

        if branch.startswith("/") or branch.endswith("/") or "//" in branch:
            raise ValueError("Branch name cannot start or end with slash, or contain //")

        if branch.startswith("-"):
            raise ValueError("Branch name cannot start with a dash")

        if branch.endswith(".lock") or branch.endswith("."):
            raise ValueError("Branch name cannot end with .lock or a dot")

        if "@{" in branch:
            raise ValueError("Branch name cannot contain @{ sequence")

    @staticmethod
    def validate_slug(slug: str) -> str:
        """
        Turn a free-text description into a branch slug.

        Lower-cases, collapses every run of non-alphanumerics to a single
        hyphen, trims hyphens at both ends and caps the length.

        Args:
            slug: Description or slug text

        Returns:
            Cleaned slug

        Raises:
            ValueError: If nothing usable is left
        """
        if not slug or not slug.strip():
            raise ValueError("A description is required")

        cleaned = re.sub(r'[^a-z0-9]+', '-', slug.lower()).strip('-')
        cleaned = cleaned[:RepoConfig.MAX_SLUG_LENGTH].rstrip('-')
        if not cleaned:
            raise ValueError(f"Description '{slug}' has no letters or digits to build a branch name from")
        return cleaned


def branch_name_for(description: str, suffix: Optional[str] = None) -> str:
    """
    Generate a feature branch name from a description.

    Example:
        "Fix login bug!" -> "feat/fix-login-bug-3fa91c"
    """
    slug = SafetyValidator.validate_slug(description)
    suffix = suffix or secrets.token_hex(RepoConfig.BRANCH_SUFFIX_LENGTH // 2)
    branch = f"{RepoConfig.FEATURE_BRANCH_PREFIX}{slug}-{suffix}"
    SafetyValidator.validate_branch_name(branch)
    return branch

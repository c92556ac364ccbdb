"""
prbranch - turn uncommitted work into a pull-request branch with its own worktree
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Import main CLI for convenience
from prbranch.cli import cli

__all__ = ["cli", "__version__"]

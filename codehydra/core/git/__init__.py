"""Git-backed workspace storage: command runner, branch metadata and worktrees."""

from codehydra.core.git.client import GitClient
from codehydra.core.git.metadata import BranchMetadataStore
from codehydra.core.git.worktree import GitWorktreeProvider

__all__ = ["BranchMetadataStore", "GitClient", "GitWorktreeProvider"]

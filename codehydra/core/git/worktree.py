"""Workspaces backed by ``git worktree``.

One provider is bound to one repository.  Every non-main worktree is a
workspace whose name is its branch; new worktrees are created under
``workspaces_dir``.  Workspace metadata is stored per branch via
``BranchMetadataStore``.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from codehydra.core.errors import GitError, WorkspaceError
from codehydra.core.git.client import GitClient
from codehydra.core.git.metadata import BranchMetadataStore
from codehydra.core.identity import absolute_path, is_valid_metadata_key, project_id, workspace_name
from codehydra.core.models.enums import WorkspaceErrorKind
from codehydra.core.models.workspace import (
    BranchInfo,
    RemovalResult,
    Workspace,
    WorkspaceMetadata,
    WorktreeInfo,
)

BASE_KEY = "base"


def worktree_dir_name(name: str) -> str:
    """Directory name for a workspace.  Branch separators would nest directories."""
    return name.replace("/", "%")


def _same_path(a: str | Path, b: str | Path) -> bool:
    return Path(a).resolve() == Path(b).resolve()


class GitWorktreeProvider:
    """Discover, create and remove the workspaces of one repository."""

    def __init__(
        self,
        repo_path: str | Path,
        git: GitClient,
        workspaces_dir: str | Path,
        metadata: BranchMetadataStore | None = None,
    ) -> None:
        self.repo_path = Path(repo_path)
        self.workspaces_dir = Path(workspaces_dir)
        self.project_id = project_id(str(self.repo_path))
        self._git = git
        self._metadata = metadata or BranchMetadataStore(git, self.repo_path)

    @classmethod
    async def create(cls, repo_path: str | Path, git: GitClient, workspaces_dir: str | Path) -> GitWorktreeProvider:
        """Validate ``repo_path`` and return a provider bound to it.

        Raises ``NotAbsoluteError`` for a relative path and ``WorkspaceError``
        (``NOT_A_REPOSITORY``) when the path is not a git working tree.
        """
        path = absolute_path(str(repo_path))
        if not await git.is_git_repository(path):
            raise WorkspaceError(WorkspaceErrorKind.NOT_A_REPOSITORY, f"Not a git repository: {path}")
        return cls(path, git, workspaces_dir)

    # -- Discovery -------------------------------------------------------------

    async def discover(self) -> list[Workspace]:
        """All workspaces of the repository, excluding the main worktree."""
        workspaces: list[Workspace] = []
        for info in await self._git.list_worktrees(self.repo_path):
            if info.is_main:
                continue
            workspaces.append(await self._to_workspace(info))
        logger.debug("Discovered {} workspaces in {}", len(workspaces), self.repo_path)
        return workspaces

    async def _to_workspace(self, info: WorktreeInfo) -> Workspace:
        return Workspace(
            project_id=self.project_id,
            name=info.branch or info.name,
            path=info.path,
            branch=info.branch,
            metadata=await self._read_metadata(info),
        )

    async def _read_metadata(self, info: WorktreeInfo) -> WorkspaceMetadata:
        """Stored metadata with ``base`` falling back to the branch name.

        Workspaces created before metadata existed have no stored ``base``.
        """
        if info.branch is None:
            return WorkspaceMetadata(base=info.name)
        values = await self._metadata.get_all(info.branch)
        base = values.pop(BASE_KEY, None) or info.branch
        return WorkspaceMetadata.model_validate({BASE_KEY: base, **values})

    async def _find(self, path: str | Path) -> WorktreeInfo:
        for info in await self._git.list_worktrees(self.repo_path):
            if _same_path(info.path, path):
                return info
        raise WorkspaceError(WorkspaceErrorKind.NOT_FOUND, f"Workspace not found: {path}")

    async def _find_branch(self, path: str | Path) -> str:
        info = await self._find(path)
        if info.branch is None:
            raise WorkspaceError(WorkspaceErrorKind.NOT_FOUND, f"Workspace has no branch (detached HEAD): {path}")
        return info.branch

    # -- Create / remove -------------------------------------------------------

    async def create_workspace(self, name: str, base_branch: str) -> Workspace:
        """Create branch ``name`` from ``base_branch`` and check it out in a new worktree.

        The ``base`` metadata is recorded before returning.  A failure part-way
        rolls back what was created so no half-made workspace is left behind.
        """
        name = workspace_name(name)
        worktree_path = self.workspaces_dir / worktree_dir_name(name)

        branches = await self._git.list_branches(self.repo_path)
        if any(not b.is_remote and b.name == name for b in branches):
            raise WorkspaceError(WorkspaceErrorKind.ALREADY_EXISTS, f"Workspace '{name}' already exists")
        if worktree_path.exists():
            raise WorkspaceError(WorkspaceErrorKind.ALREADY_EXISTS, f"Directory already exists: {worktree_path}")

        await self._git.create_branch(self.repo_path, name, base_branch)
        try:
            await self._git.add_worktree(self.repo_path, worktree_path, name)
        except GitError:
            await self._git.delete_branch(self.repo_path, name)
            raise
        try:
            await self._metadata.set(name, BASE_KEY, base_branch)
        except GitError:
            await self._git.remove_worktree(self.repo_path, worktree_path)
            await self._git.delete_branch(self.repo_path, name)
            raise

        logger.info("Created workspace {} from {} at {}", name, base_branch, worktree_path)
        return Workspace(
            project_id=self.project_id,
            name=name,
            path=str(worktree_path),
            branch=name,
            metadata=WorkspaceMetadata(base=base_branch),
        )

    async def remove_workspace(self, path: str | Path, *, delete_branch: bool = True) -> RemovalResult:
        """Remove the worktree at ``path`` and, unless told otherwise, its branch.

        Branch-scoped metadata goes with the branch.  The main worktree can
        never be removed.
        """
        info = await self._find(path)
        if info.is_main:
            raise WorkspaceError(WorkspaceErrorKind.MAIN_WORKTREE, "Cannot remove the main worktree")

        await self._git.remove_worktree(self.repo_path, info.path)
        await self._git.prune_worktrees(self.repo_path)

        base_deleted = False
        if delete_branch and info.branch is not None:
            await self._metadata.clear(info.branch)
            await self._git.delete_branch(self.repo_path, info.branch)
            base_deleted = True

        logger.info("Removed workspace {} (branch deleted: {})", info.path, base_deleted)
        return RemovalResult(workspace_removed=True, base_deleted=base_deleted)

    # -- Metadata --------------------------------------------------------------

    async def set_metadata(self, path: str | Path, key: str, value: str | None) -> None:
        """Set ``key`` on the workspace at ``path``; ``None`` deletes it.

        The key is validated before anything is written.  Keys are
        case-insensitive and are stored lowercased.
        """
        if not is_valid_metadata_key(key):
            raise WorkspaceError(
                WorkspaceErrorKind.INVALID_METADATA_KEY,
                f"Invalid metadata key '{key}': use letters, digits and inner hyphens, starting with a letter",
            )
        branch = await self._find_branch(path)
        # git lowercases variable names on write.
        key = key.lower()
        if value is None:
            await self._metadata.unset(branch, key)
        else:
            await self._metadata.set(branch, key, value)

    async def get_metadata(self, path: str | Path) -> WorkspaceMetadata:
        return await self._read_metadata(await self._find(path))

    # -- Bases / status --------------------------------------------------------

    async def list_bases(self) -> list[BranchInfo]:
        """Local and remote branches a new workspace can start from."""
        return await self._git.list_branches(self.repo_path)

    async def update_bases(self) -> None:
        """Fetch from every remote so remote bases are current."""
        for remote in await self._git.list_remotes(self.repo_path):
            await self._git.fetch(self.repo_path, remote)

    async def is_dirty(self, path: str | Path) -> bool:
        status = await self._git.get_status(path)
        return status.is_dirty

    def is_main_workspace(self, path: str | Path) -> bool:
        return _same_path(path, self.repo_path)

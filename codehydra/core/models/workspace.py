"""Project and workspace domain models.

A project is a git repository the user has opened.  A workspace is one of
its worktrees (other than the main one), named after the branch it holds.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class WorkspaceMetadata(BaseModel):
    """Branch-scoped metadata.  ``base`` always resolves; extra keys pass through."""

    model_config = ConfigDict(extra="allow", frozen=True)

    base: str

    def extras(self) -> dict[str, str]:
        """Keys other than ``base``."""
        return dict(self.model_extra or {})

    def get(self, key: str) -> str | None:
        """Value of ``key``, matched case-insensitively like git config names."""
        key = key.lower()
        if key == "base":
            return self.base
        return (self.model_extra or {}).get(key)

    def as_dict(self) -> dict[str, str]:
        return {"base": self.base, **self.extras()}


class Workspace(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str
    name: str
    path: str
    branch: str | None
    metadata: WorkspaceMetadata


class WorkspaceRef(BaseModel):
    """Lightweight workspace identity.  Equality is structural on all fields."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    workspace_name: str
    path: str


class Project(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    path: str
    name: str
    workspaces: tuple[Workspace, ...] = Field(default_factory=tuple)


class WorktreeInfo(BaseModel):
    """One entry of ``git worktree list --porcelain``."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    branch: str | None
    is_main: bool = False


class BranchInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    is_remote: bool


class WorkspaceStatus(BaseModel):
    is_dirty: bool
    modified_count: int = 0
    staged_count: int = 0
    untracked_count: int = 0


class RemovalResult(BaseModel):
    workspace_removed: bool
    base_deleted: bool


class ProjectRecord(BaseModel):
    """On-disk project registry record (``config.json``)."""

    version: int = 1
    path: str = Field(min_length=1)

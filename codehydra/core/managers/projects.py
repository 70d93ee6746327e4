"""Open projects and their workspaces.

Ties together the project registry, one ``GitWorktreeProvider`` per open
project and the domain events callers subscribe to.
"""

from __future__ import annotations

from loguru import logger

from codehydra.core.errors import ProjectNotFoundError, WorkspaceError
from codehydra.core.events import EventEmitter
from codehydra.core.git.client import GitClient
from codehydra.core.git.worktree import GitWorktreeProvider
from codehydra.core.identity import absolute_path
from codehydra.core.models.enums import WorkspaceErrorKind
from codehydra.core.models.workspace import (
    BranchInfo,
    Project,
    RemovalResult,
    Workspace,
    WorkspaceMetadata,
    WorkspaceRef,
    WorkspaceStatus,
)
from codehydra.core.paths import DataPaths
from codehydra.core.store.base import ProjectStore


class ProjectEvents:
    """Event channels published by ``ProjectManager``."""

    def __init__(self) -> None:
        self.project_opened: EventEmitter[Project] = EventEmitter("project:opened")
        self.project_closed: EventEmitter[str] = EventEmitter("project:closed")
        self.workspace_created: EventEmitter[Workspace] = EventEmitter("workspace:created")
        self.workspace_removed: EventEmitter[WorkspaceRef] = EventEmitter("workspace:removed")

    def clear(self) -> None:
        for emitter in (self.project_opened, self.project_closed, self.workspace_created, self.workspace_removed):
            emitter.clear()


class ProjectManager:
    """In-memory set of open projects backed by the project registry."""

    def __init__(self, store: ProjectStore, git: GitClient, paths: DataPaths) -> None:
        self._store = store
        self._git = git
        self._paths = paths
        self._providers: dict[str, GitWorktreeProvider] = {}
        self.events = ProjectEvents()

    def _provider(self, project_id: str) -> GitWorktreeProvider:
        provider = self._providers.get(project_id)
        if provider is None:
            raise ProjectNotFoundError(project_id)
        return provider

    async def _project(self, provider: GitWorktreeProvider) -> Project:
        return Project(
            id=provider.project_id,
            path=str(provider.repo_path),
            name=provider.repo_path.name,
            workspaces=tuple(await provider.discover()),
        )

    # -- Projects --------------------------------------------------------------

    async def open(self, path: str) -> Project:
        """Open the repository at ``path``, remember it and discover its workspaces."""
        normalized = absolute_path(path)
        provider = await GitWorktreeProvider.create(normalized, self._git, self._paths.workspaces_dir(normalized))
        await self._store.save(normalized)
        self._providers[provider.project_id] = provider

        project = await self._project(provider)
        logger.info("Opened project {} ({} workspaces)", project.id, len(project.workspaces))
        self.events.project_opened.emit(project)
        return project

    async def close(self, project_id: str) -> None:
        provider = self._provider(project_id)
        await self._store.remove(str(provider.repo_path))
        del self._providers[project_id]
        logger.info("Closed project {}", project_id)
        self.events.project_closed.emit(project_id)

    async def list_projects(self) -> list[Project]:
        return [await self._project(provider) for provider in self._providers.values()]

    async def get(self, project_id: str) -> Project:
        return await self._project(self._provider(project_id))

    async def load_saved(self) -> list[Project]:
        """Reopen every saved project.  Paths that are no longer repositories are skipped."""
        projects: list[Project] = []
        for path in await self._store.load_all():
            try:
                projects.append(await self.open(path))
            except WorkspaceError as exc:
                if exc.kind is not WorkspaceErrorKind.NOT_A_REPOSITORY:
                    raise
                logger.warning("Skipping saved project {}: {}", path, exc)
        return projects

    # -- Workspaces ------------------------------------------------------------

    async def _find_workspace(self, project_id: str, name: str) -> Workspace:
        for workspace in await self._provider(project_id).discover():
            if workspace.name == name:
                return workspace
        raise WorkspaceError(WorkspaceErrorKind.NOT_FOUND, f"Workspace '{name}' not found in {project_id}")

    async def create_workspace(self, project_id: str, name: str, base: str) -> Workspace:
        workspace = await self._provider(project_id).create_workspace(name, base)
        self.events.workspace_created.emit(workspace)
        return workspace

    async def remove_workspace(self, project_id: str, name: str, *, keep_branch: bool = False) -> RemovalResult:
        workspace = await self._find_workspace(project_id, name)
        result = await self._provider(project_id).remove_workspace(workspace.path, delete_branch=not keep_branch)
        self.events.workspace_removed.emit(
            WorkspaceRef(project_id=project_id, workspace_name=workspace.name, path=workspace.path)
        )
        return result

    async def get_status(self, project_id: str, name: str) -> WorkspaceStatus:
        workspace = await self._find_workspace(project_id, name)
        return await self._git.get_status(workspace.path)

    async def list_bases(self, project_id: str) -> list[BranchInfo]:
        return await self._provider(project_id).list_bases()

    async def fetch_bases(self, project_id: str) -> list[BranchInfo]:
        """Fetch every remote, then return the refreshed bases."""
        provider = self._provider(project_id)
        await provider.update_bases()
        return await provider.list_bases()

    # -- Metadata --------------------------------------------------------------

    async def set_metadata(self, ref: WorkspaceRef, key: str, value: str | None) -> None:
        await self._provider(ref.project_id).set_metadata(ref.path, key, value)

    async def get_metadata(self, ref: WorkspaceRef) -> WorkspaceMetadata:
        return await self._provider(ref.project_id).get_metadata(ref.path)

    async def workspace_ref(self, project_id: str, name: str) -> WorkspaceRef:
        workspace = await self._find_workspace(project_id, name)
        return WorkspaceRef(project_id=project_id, workspace_name=workspace.name, path=workspace.path)

"""Project registry interface.

The registry remembers which repositories the user has opened so they can be
reopened on the next launch.  It stores paths only; workspaces are always
rediscovered from git.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ProjectStore(Protocol):
    """Async protocol for persisting opened project paths.

    Storage layout (keyed by project directory name)::

        {projects_dir}/{dir_name}/config.json
    """

    async def save(self, path: str) -> None:
        """Record ``path``.  Saving the same path twice leaves one record."""
        ...

    async def load_all(self) -> list[str]:
        """Every saved path.  Unreadable records are skipped."""
        ...

    async def remove(self, path: str) -> None:
        """Forget ``path``.  No-op if it was never saved."""
        ...

"""Branch-scoped key/value metadata stored in the repository's git config.

Keys live under ``branch.<branch>.<namespace>.<key>`` so they travel with the
branch and need no side file.  Git reports config variable names lowercased,
so keys are effectively case-insensitive on read.
"""

from __future__ import annotations

from pathlib import Path

import anyio

from codehydra.core.git.client import GitClient

DEFAULT_NAMESPACE = "codehydra"


class BranchMetadataStore:
    """Read/write metadata for branches of one repository.

    Writes are serialised per instance: git takes an exclusive ``config.lock``
    for every write and fails (rather than waits) when it is already held, so
    concurrent writes to distinct keys would otherwise race on the lock file.
    """

    def __init__(self, git: GitClient, repo_path: str | Path, namespace: str = DEFAULT_NAMESPACE) -> None:
        self._git = git
        self._repo_path = Path(repo_path)
        self._namespace = namespace
        self._write_lock = anyio.Lock()

    def _key(self, key: str) -> str:
        return f"{self._namespace}.{key}"

    async def get(self, branch: str, key: str) -> str | None:
        return await self._git.get_branch_config(self._repo_path, branch, self._key(key))

    async def get_all(self, branch: str) -> dict[str, str]:
        return await self._git.get_branch_configs_by_prefix(self._repo_path, branch, self._namespace)

    async def set(self, branch: str, key: str, value: str) -> None:
        async with self._write_lock:
            await self._git.set_branch_config(self._repo_path, branch, self._key(key), value)

    async def unset(self, branch: str, key: str) -> None:
        async with self._write_lock:
            await self._git.unset_branch_config(self._repo_path, branch, self._key(key))

    async def clear(self, branch: str) -> None:
        """Remove every key of ``branch``.

        Needed before deleting a branch: the keys sit in their own config
        subsection, which ``git branch -D`` leaves behind.
        """
        for key in await self.get_all(branch):
            await self.unset(branch, key)

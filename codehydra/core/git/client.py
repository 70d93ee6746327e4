"""Async wrapper around the ``git`` command line.

Every method runs one ``git`` invocation through ``anyio.run_process`` and
raises ``GitError`` on failure.  The exit codes git uses to signal "no such
config key" (1 for ``--get``/``--get-regexp``, 5 for ``--unset``) are
translated to empty results instead.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import anyio
from loguru import logger

from codehydra.core.errors import GitError
from codehydra.core.models.workspace import BranchInfo, WorkspaceStatus, WorktreeInfo

# Exit codes for ``git config``.
_CONFIG_KEY_MISSING = 1
_CONFIG_UNSET_MISSING = 5

_ERE_SPECIAL = set(".^$*+?()[]{}|\\")


def _ere_escape(value: str) -> str:
    """Escape ``value`` for a POSIX extended regex (what ``--get-regexp`` uses)."""
    return "".join(f"\\{ch}" if ch in _ERE_SPECIAL else ch for ch in value)


def parse_worktree_list(output: str) -> list[WorktreeInfo]:
    """Parse ``git worktree list --porcelain``.  The first entry is the main worktree."""
    worktrees: list[WorktreeInfo] = []
    for block in output.split("\n\n"):
        if not block.strip():
            continue
        path: str | None = None
        branch: str | None = None
        for line in block.splitlines():
            if line.startswith("worktree "):
                path = line[len("worktree ") :]
            elif line.startswith("branch "):
                branch = line[len("branch ") :].removeprefix("refs/heads/")
            elif line == "detached":
                branch = None
        if path is None:
            continue
        normalized = str(Path(path))
        worktrees.append(
            WorktreeInfo(
                name=Path(normalized).name,
                path=normalized,
                branch=branch,
                is_main=not worktrees,
            )
        )
    return worktrees


def parse_status(output: str) -> WorkspaceStatus:
    """Count changes from ``git status --porcelain`` output."""
    modified = staged = untracked = 0
    for line in output.splitlines():
        if len(line) < 2:
            continue
        index, worktree = line[0], line[1]
        if line.startswith("??"):
            untracked += 1
            continue
        if index not in (" ", "!"):
            staged += 1
        if worktree not in (" ", "!"):
            modified += 1
    return WorkspaceStatus(
        is_dirty=bool(modified or staged or untracked),
        modified_count=modified,
        staged_count=staged,
        untracked_count=untracked,
    )


class GitClient:
    """Thin async ``git`` runner.  Stateless; one instance can serve every repository."""

    def __init__(self, binary: str = "git") -> None:
        self._binary = binary

    async def _run(self, repo_path: str | Path, *args: str) -> subprocess.CompletedProcess[bytes]:
        cmd = [self._binary, *args]
        try:
            return await anyio.run_process(cmd, cwd=str(repo_path), check=False)
        except OSError as exc:
            logger.warning("Git error: op={} path={} error={}", args[0], repo_path, exc)
            raise GitError(f"Failed to run git {args[0]}: {exc}") from exc

    async def _check(self, repo_path: str | Path, *args: str, error: str) -> str:
        result = await self._run(repo_path, *args)
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            logger.warning("Git error: op={} path={} error={}", args[0], repo_path, stderr)
            raise GitError(f"{error}: {stderr}" if stderr else error, exit_code=result.returncode)
        return result.stdout.decode("utf-8", errors="replace")

    # -- Repository ------------------------------------------------------------

    async def is_git_repository(self, path: str | Path) -> bool:
        if not Path(path).is_dir():
            return False
        result = await self._run(path, "rev-parse", "--is-inside-work-tree")
        is_repo = result.returncode == 0 and result.stdout.strip() == b"true"
        logger.debug("IsGitRepository: path={} result={}", path, is_repo)
        return is_repo

    # -- Worktrees -------------------------------------------------------------

    async def list_worktrees(self, repo_path: str | Path) -> list[WorktreeInfo]:
        output = await self._check(repo_path, "worktree", "list", "--porcelain", error="Failed to list worktrees")
        worktrees = parse_worktree_list(output)
        logger.debug("ListWorktrees: path={} count={}", repo_path, len(worktrees))
        return worktrees

    async def add_worktree(self, repo_path: str | Path, worktree_path: str | Path, branch: str) -> None:
        await self._check(
            repo_path,
            "worktree",
            "add",
            str(worktree_path),
            branch,
            error=f"Failed to add worktree at {worktree_path}",
        )
        logger.debug("AddWorktree: path={} branch={}", worktree_path, branch)

    async def remove_worktree(self, repo_path: str | Path, worktree_path: str | Path) -> None:
        await self._check(
            repo_path,
            "worktree",
            "remove",
            "--force",
            str(worktree_path),
            error=f"Failed to remove worktree at {worktree_path}",
        )
        logger.debug("RemoveWorktree: path={}", worktree_path)

    async def prune_worktrees(self, repo_path: str | Path) -> None:
        await self._check(repo_path, "worktree", "prune", error="Failed to prune worktrees")

    # -- Branches --------------------------------------------------------------

    async def list_branches(self, repo_path: str | Path) -> list[BranchInfo]:
        output = await self._check(
            repo_path,
            "for-each-ref",
            "--format=%(refname)",
            "refs/heads",
            "refs/remotes",
            error="Failed to list branches",
        )
        branches: list[BranchInfo] = []
        for ref in output.splitlines():
            if ref.startswith("refs/heads/"):
                branches.append(BranchInfo(name=ref.removeprefix("refs/heads/"), is_remote=False))
            elif ref.startswith("refs/remotes/"):
                name = ref.removeprefix("refs/remotes/")
                if name.endswith("/HEAD"):
                    continue
                branches.append(BranchInfo(name=name, is_remote=True))
        logger.debug(
            "ListBranches: path={} local={} remote={}",
            repo_path,
            sum(not b.is_remote for b in branches),
            sum(b.is_remote for b in branches),
        )
        return branches

    async def create_branch(self, repo_path: str | Path, name: str, start_point: str) -> None:
        await self._check(repo_path, "branch", name, start_point, error=f"Failed to create branch {name}")

    async def delete_branch(self, repo_path: str | Path, name: str) -> None:
        await self._check(repo_path, "branch", "-D", name, error=f"Failed to delete branch {name}")

    async def get_current_branch(self, repo_path: str | Path) -> str | None:
        """Current branch name, or ``None`` on a detached HEAD."""
        result = await self._run(repo_path, "symbolic-ref", "--short", "-q", "HEAD")
        if result.returncode == 0:
            return result.stdout.decode("utf-8").strip() or None
        if result.returncode == 1:
            return None
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        logger.warning("Git error: op=symbolic-ref path={} error={}", repo_path, stderr)
        raise GitError(f"Failed to get current branch: {stderr}", exit_code=result.returncode)

    # -- Status / remotes ------------------------------------------------------

    async def get_status(self, repo_path: str | Path) -> WorkspaceStatus:
        output = await self._check(repo_path, "status", "--porcelain", error="Failed to get status")
        status = parse_status(output)
        logger.debug("GetStatus: path={} dirty={}", repo_path, status.is_dirty)
        return status

    async def fetch(self, repo_path: str | Path, remote: str | None = None) -> None:
        args = ["fetch", remote] if remote else ["fetch", "--all"]
        await self._check(repo_path, *args, error=f"Failed to fetch from {remote}" if remote else "Failed to fetch")
        logger.debug("Fetch: path={} remote={}", repo_path, remote or "all")

    async def list_remotes(self, repo_path: str | Path) -> list[str]:
        output = await self._check(repo_path, "remote", error="Failed to list remotes")
        return [line.strip() for line in output.splitlines() if line.strip()]

    # -- Branch config ---------------------------------------------------------

    async def get_branch_config(self, repo_path: str | Path, branch: str, key: str) -> str | None:
        """Value of ``branch.<branch>.<key>``, or ``None`` when unset."""
        result = await self._run(repo_path, "config", "--null", "--get", f"branch.{branch}.{key}")
        if result.returncode == _CONFIG_KEY_MISSING:
            return None
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            logger.warning("Git error: op=getBranchConfig path={} error={}", repo_path, stderr)
            raise GitError(f"Failed to get branch config: {stderr}", exit_code=result.returncode)
        return result.stdout.decode("utf-8").removesuffix("\0") or None

    async def get_branch_configs_by_prefix(self, repo_path: str | Path, branch: str, prefix: str) -> dict[str, str]:
        """All ``branch.<branch>.<prefix>.*`` values keyed by the part after the prefix.

        Git reports variable names lowercased.  Records are read with ``--null``
        (``key\\nvalue\\0``) so values may contain newlines.
        """
        pattern = f"^branch\\.{_ere_escape(branch)}\\.{_ere_escape(prefix)}\\."
        result = await self._run(repo_path, "config", "--null", "--get-regexp", pattern)
        if result.returncode == _CONFIG_KEY_MISSING:
            return {}
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            logger.warning("Git error: op=getBranchConfigsByPrefix path={} error={}", repo_path, stderr)
            raise GitError(f"Failed to get branch configs: {stderr}", exit_code=result.returncode)

        full_prefix = f"branch.{branch}.{prefix}."
        values: dict[str, str] = {}
        for record in result.stdout.decode("utf-8").split("\0"):
            full_key, sep, value = record.partition("\n")
            if not sep or not full_key.startswith(full_prefix):
                continue
            values[full_key[len(full_prefix) :]] = value
        return values

    async def set_branch_config(self, repo_path: str | Path, branch: str, key: str, value: str) -> None:
        await self._check(
            repo_path,
            "config",
            f"branch.{branch}.{key}",
            value,
            error=f"Failed to set branch config branch.{branch}.{key}",
        )

    async def unset_branch_config(self, repo_path: str | Path, branch: str, key: str) -> None:
        """Remove ``branch.<branch>.<key>``.  Missing keys are not an error."""
        result = await self._run(repo_path, "config", "--unset", f"branch.{branch}.{key}")
        if result.returncode in (0, _CONFIG_UNSET_MISSING):
            return
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        logger.warning("Git error: op=unsetBranchConfig path={} error={}", repo_path, stderr)
        raise GitError(f"Failed to unset branch config: {stderr}", exit_code=result.returncode)

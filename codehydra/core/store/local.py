"""Local filesystem project registry.

Stores one JSON record per project::

    {projects_dir}/{dir_name}/config.json   {"version": 1, "path": "..."}

``dir_name`` is the project id of the path, so the same directory also holds
that project's workspaces.  Uses ``anyio.to_thread.run_sync`` for
non-blocking file I/O.

Writes are atomic: data is written to a temporary file in the same directory,
then renamed to the target path.
"""

from __future__ import annotations

import contextlib
from functools import partial
from pathlib import Path

from anyio import to_thread
from loguru import logger
from pydantic import ValidationError

from codehydra.core.errors import ProjectStoreError
from codehydra.core.fileio import atomic_write
from codehydra.core.identity import absolute_path, project_dir_name
from codehydra.core.models.workspace import ProjectRecord

RECORD_FILENAME = "config.json"


class LocalProjectStore:
    """Local filesystem implementation of the ProjectStore protocol."""

    def __init__(self, projects_dir: str | Path) -> None:
        self._base = Path(projects_dir)

    def _record_path(self, path: str) -> Path:
        return self._base / project_dir_name(path) / RECORD_FILENAME

    # -- Write -----------------------------------------------------------------

    async def save(self, path: str) -> None:
        normalized = absolute_path(path)
        data = ProjectRecord(path=normalized).model_dump_json(indent=2)
        try:
            await to_thread.run_sync(partial(atomic_write, self._record_path(normalized), data))
        except OSError as exc:
            raise ProjectStoreError(f"Failed to save project {normalized}: {exc}") from exc
        logger.debug("Saved project {}", normalized)

    # -- Read ------------------------------------------------------------------

    async def load_all(self) -> list[str]:
        return await to_thread.run_sync(partial(_load_all, self._base))

    # -- Utilities -------------------------------------------------------------

    async def remove(self, path: str) -> None:
        normalized = absolute_path(path)
        await to_thread.run_sync(partial(_remove_record, self._record_path(normalized)))


# -- Sync helpers (run in thread pool) -----------------------------------------


def _load_all(base: Path) -> list[str]:
    if not base.is_dir():
        return []
    paths: list[str] = []
    for entry in sorted(base.iterdir()):
        record_file = entry / RECORD_FILENAME
        if not entry.is_dir() or not record_file.is_file():
            continue
        try:
            record = ProjectRecord.model_validate_json(record_file.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning("Skipping unreadable project record {}: {}", record_file, exc)
            continue
        paths.append(record.path)
    return paths


def _remove_record(record_file: Path) -> None:
    """Delete the record, then its directory if nothing else is left in it."""
    with contextlib.suppress(FileNotFoundError):
        record_file.unlink()
    with contextlib.suppress(OSError):
        if record_file.parent.is_dir() and not any(record_file.parent.iterdir()):
            record_file.parent.rmdir()

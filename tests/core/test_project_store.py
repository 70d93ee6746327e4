"""Unit tests for LocalProjectStore.

No git required -- uses a temporary directory.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from codehydra.core.errors import NotAbsoluteError
from codehydra.core.identity import project_dir_name
from codehydra.core.store.base import ProjectStore
from codehydra.core.store.local import LocalProjectStore


@pytest.fixture
def projects_dir(tmp_path: Path) -> Path:
    return tmp_path / "projects"


@pytest.fixture
def store(projects_dir: Path) -> LocalProjectStore:
    return LocalProjectStore(projects_dir)


def test_implements_protocol(store: LocalProjectStore) -> None:
    assert isinstance(store, ProjectStore)


async def test_save_writes_record(store: LocalProjectStore, projects_dir: Path) -> None:
    await store.save("/home/user/repo")

    record = projects_dir / project_dir_name("/home/user/repo") / "config.json"
    assert json.loads(record.read_text()) == {"version": 1, "path": "/home/user/repo"}


async def test_save_and_load(store: LocalProjectStore) -> None:
    await store.save("/home/user/a")
    await store.save("/home/user/b")

    assert sorted(await store.load_all()) == ["/home/user/a", "/home/user/b"]


async def test_save_is_idempotent(store: LocalProjectStore, projects_dir: Path) -> None:
    await store.save("/home/user/repo")
    await store.save("/home/user/repo/")

    assert await store.load_all() == ["/home/user/repo"]
    assert len(list(projects_dir.iterdir())) == 1


async def test_save_rejects_relative_path(store: LocalProjectStore) -> None:
    with pytest.raises(NotAbsoluteError):
        await store.save("relative/repo")


async def test_load_all_missing_dir(store: LocalProjectStore) -> None:
    assert await store.load_all() == []


async def test_load_all_skips_bad_records(store: LocalProjectStore, projects_dir: Path) -> None:
    await store.save("/home/user/good")

    (projects_dir / "no-record").mkdir(parents=True)
    (projects_dir / "bad-json").mkdir()
    (projects_dir / "bad-json" / "config.json").write_text("{not json")
    (projects_dir / "no-path").mkdir()
    (projects_dir / "no-path" / "config.json").write_text('{"version": 1}')
    (projects_dir / "stray-file").write_text("ignored")

    assert await store.load_all() == ["/home/user/good"]


async def test_remove_deletes_record_and_empty_dir(store: LocalProjectStore, projects_dir: Path) -> None:
    await store.save("/home/user/repo")
    await store.remove("/home/user/repo")

    assert await store.load_all() == []
    assert not (projects_dir / project_dir_name("/home/user/repo")).exists()


async def test_remove_keeps_dir_with_other_files(store: LocalProjectStore, projects_dir: Path) -> None:
    await store.save("/home/user/repo")
    project_dir = projects_dir / project_dir_name("/home/user/repo")
    (project_dir / "workspaces").mkdir()

    await store.remove("/home/user/repo")

    assert not (project_dir / "config.json").exists()
    assert (project_dir / "workspaces").is_dir()


async def test_remove_unsaved_is_noop(store: LocalProjectStore) -> None:
    await store.save("/home/user/kept")

    await store.remove("/home/user/never-saved")

    assert await store.load_all() == ["/home/user/kept"]

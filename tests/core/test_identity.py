"""Unit tests for project ids, workspace names and path validation."""

from __future__ import annotations

import re

import pytest

from codehydra.core.errors import InvalidNameError, NotAbsoluteError
from codehydra.core.identity import (
    absolute_path,
    is_project_id,
    is_valid_metadata_key,
    is_workspace_name,
    normalize_path,
    project_dir_name,
    project_id,
    workspace_name,
    workspace_ref_key,
)

# -- project_id ----------------------------------------------------------------


def test_project_id_format() -> None:
    assert re.fullmatch(r"My-Cool-App-[0-9a-f]{8}", project_id("/home/user/My Cool App"))


@pytest.mark.parametrize(
    "noisy",
    [
        "/home/user/repo/",
        "/home//user/repo",
        "/home/user/./repo",
        "/home/user/other/../repo",
    ],
)
def test_project_id_ignores_path_noise(noisy: str) -> None:
    assert project_id(noisy) == project_id("/home/user/repo")


def test_project_id_is_case_sensitive() -> None:
    assert project_id("/home/user/Repo") != project_id("/home/user/repo")


def test_project_id_differs_by_hash_for_same_basename() -> None:
    a = project_id("/a/repo")
    b = project_id("/b/repo")
    assert a.startswith("repo-")
    assert b.startswith("repo-")
    assert a != b


def test_project_id_name_sanitising() -> None:
    assert project_id("/x/.hidden.project").startswith("hidden-project-")
    assert project_id("/x/foo__bar  baz").startswith("foo-bar-baz-")
    assert project_id("/").startswith("root-")


def test_project_id_truncates_long_names() -> None:
    result = project_id("/x/" + "a" * 200)
    name, digest = result.rsplit("-", 1)
    assert name == "a" * 50
    assert len(digest) == 8


def test_project_dir_name_matches_id() -> None:
    assert project_dir_name("/home/user/repo") == project_id("/home/user/repo")


def test_is_project_id() -> None:
    assert is_project_id(project_id("/home/user/My Cool App"))
    assert not is_project_id("repo")
    assert not is_project_id("repo-ABCDEF12")
    assert not is_project_id("repo-0123abcd\n")


# -- workspace_name ------------------------------------------------------------


@pytest.mark.parametrize("name", ["feature/login", "fix-123", "v1.2", "a", "x" * 100, "under_score"])
def test_workspace_name_accepts(name: str) -> None:
    assert workspace_name(name) == name
    assert is_workspace_name(name)


@pytest.mark.parametrize("name", ["", "-feature", ".hidden", "has space", "tab\there", "x" * 101, "emoji-🚀", "a:b"])
def test_workspace_name_rejects(name: str) -> None:
    with pytest.raises(InvalidNameError):
        workspace_name(name)
    assert not is_workspace_name(name)


# -- absolute_path -------------------------------------------------------------


def test_absolute_path_normalises() -> None:
    assert absolute_path("/a//b/./c/../d/") == "/a/b/d"


@pytest.mark.parametrize("value", ["", "relative/path", "../up", "./here"])
def test_absolute_path_rejects_relative(value: str) -> None:
    with pytest.raises(NotAbsoluteError):
        absolute_path(value)


def test_normalize_path_windows_style() -> None:
    assert normalize_path("C:/Users/me//repo/") == "C:\\Users\\me\\repo"


# -- metadata keys -------------------------------------------------------------


@pytest.mark.parametrize("key", ["note", "a", "pr-url", "model2", "A-b-C"])
def test_valid_metadata_keys(key: str) -> None:
    assert is_valid_metadata_key(key)


@pytest.mark.parametrize("key", ["", "my_key", "-lead", "trail-", "1st", "has space", "a\n", "k" * 65])
def test_invalid_metadata_keys(key: str) -> None:
    assert not is_valid_metadata_key(key)


def test_workspace_ref_key() -> None:
    assert workspace_ref_key("repo-0123abcd", "feature/x") == "repo-0123abcd/feature/x"

"""Unit tests for PreflightChecker against a temporary data root."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from codehydra.core.models.enums import BinaryType, Platform, PreflightErrorType
from codehydra.core.models.setup import (
    CURRENT_SETUP_VERSION,
    ExtensionsConfig,
    ExtensionSpec,
    PreflightFailure,
    PreflightSuccess,
    SetupMarker,
)
from codehydra.core.paths import DataPaths
from codehydra.core.setup.preflight import PreflightChecker

VERSIONS = {BinaryType.CODE_SERVER: "4.106.3", BinaryType.OPENCODE: "1.0.163"}
EXTENSIONS = ExtensionsConfig(
    required=[
        ExtensionSpec(id="codehydra.sidekick", version="0.0.3"),
        ExtensionSpec(id="sst-dev.opencode", version="0.0.13"),
    ]
)


@pytest.fixture
def paths(tmp_path: Path) -> DataPaths:
    return DataPaths(tmp_path, Platform.LINUX)


@pytest.fixture
def checker(paths: DataPaths) -> PreflightChecker:
    return PreflightChecker(paths, VERSIONS, EXTENSIONS)


def _install_binaries(paths: DataPaths) -> None:
    for binary, version in VERSIONS.items():
        target = paths.binary_path(binary, version)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("#!/bin/sh\n")


def _install_extensions(paths: DataPaths, versions: dict[str, str]) -> None:
    for ext_id, version in versions.items():
        (paths.extensions_dir / f"{ext_id}-{version}").mkdir(parents=True)


def _write_marker(paths: DataPaths, checker: PreflightChecker, **overrides) -> None:
    expected = checker.expected_marker()
    marker = SetupMarker(
        schema_version=overrides.get("schema_version", CURRENT_SETUP_VERSION),
        completed_at=datetime.now(UTC),
        binaries=overrides.get("binaries", expected["binaries"]),
        extensions=overrides.get("extensions", expected["extensions"]),
    )
    paths.setup_marker.parent.mkdir(parents=True, exist_ok=True)
    paths.setup_marker.write_text(marker.model_dump_json())


def _install_all(paths: DataPaths, checker: PreflightChecker) -> None:
    _install_binaries(paths)
    _install_extensions(paths, {"codehydra.sidekick": "0.0.3", "sst-dev.opencode": "0.0.13"})
    _write_marker(paths, checker)


async def test_fresh_install_needs_everything(checker: PreflightChecker) -> None:
    result = await checker.check()

    assert isinstance(result, PreflightSuccess)
    assert result.needs_setup is True
    assert set(result.missing_binaries) == {BinaryType.CODE_SERVER, BinaryType.OPENCODE}
    assert result.missing_extensions == ("codehydra.sidekick", "sst-dev.opencode")
    assert result.outdated_extensions == ()
    assert result.config_stale is True


async def test_complete_install_needs_nothing(paths: DataPaths, checker: PreflightChecker) -> None:
    _install_all(paths, checker)

    result = await checker.check()

    assert isinstance(result, PreflightSuccess)
    assert result.needs_setup is False
    assert result.missing_binaries == ()
    assert result.missing_extensions == ()
    assert result.outdated_extensions == ()
    assert result.config_stale is False


async def test_missing_binary_only(paths: DataPaths, checker: PreflightChecker) -> None:
    _install_all(paths, checker)
    paths.binary_path(BinaryType.OPENCODE, VERSIONS[BinaryType.OPENCODE]).unlink()

    result = await checker.check()

    assert result.needs_setup is True
    assert result.missing_binaries == (BinaryType.OPENCODE,)
    assert result.missing_extensions == ()


async def test_outdated_extension(paths: DataPaths, checker: PreflightChecker) -> None:
    _install_binaries(paths)
    _install_extensions(paths, {"codehydra.sidekick": "0.0.3", "sst-dev.opencode": "0.0.12"})
    _write_marker(paths, checker)

    result = await checker.check()

    assert result.needs_setup is True
    assert result.outdated_extensions == ("sst-dev.opencode",)
    assert result.missing_extensions == ()


async def test_extension_ids_compare_case_insensitively(paths: DataPaths, checker: PreflightChecker) -> None:
    _install_binaries(paths)
    _install_extensions(paths, {"CodeHydra.Sidekick": "0.0.3", "sst-dev.opencode": "0.0.13"})
    _write_marker(paths, checker)

    result = await checker.check()
    assert result.needs_setup is False


@pytest.mark.parametrize(
    "overrides",
    [
        {"schema_version": CURRENT_SETUP_VERSION + 1},
        {"binaries": {"code-server": "0.0.1", "opencode": "1.0.163"}},
        {"extensions": {}},
    ],
)
async def test_stale_marker(paths: DataPaths, checker: PreflightChecker, overrides: dict) -> None:
    _install_binaries(paths)
    _install_extensions(paths, {"codehydra.sidekick": "0.0.3", "sst-dev.opencode": "0.0.13"})
    _write_marker(paths, checker, **overrides)

    result = await checker.check()

    assert result.needs_setup is True
    assert result.config_stale is True


async def test_malformed_marker_is_stale(paths: DataPaths, checker: PreflightChecker) -> None:
    _install_all(paths, checker)
    paths.setup_marker.write_text("{broken")

    result = await checker.check()
    assert result.needs_setup is True
    assert result.config_stale is True


async def test_unreadable_installation_is_failure(paths: DataPaths, checker: PreflightChecker) -> None:
    # A directory where the marker file should be cannot be read.
    paths.setup_marker.mkdir(parents=True)

    result = await checker.check()

    assert isinstance(result, PreflightFailure)
    assert result.error.type is PreflightErrorType.FILESYSTEM_UNREADABLE

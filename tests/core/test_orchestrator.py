"""Unit tests for SetupOrchestrator with mocked downloads and extension installs."""

from __future__ import annotations

import json
import subprocess
from collections.abc import Sequence
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from codehydra.core.errors import BinaryDownloadError
from codehydra.core.models.enums import BinaryType, Platform, SetupErrorType, SetupStep
from codehydra.core.models.setup import (
    ExtensionsConfig,
    ExtensionSpec,
    PreflightSuccess,
    SetupMarker,
    SetupProgress,
)
from codehydra.core.paths import DataPaths
from codehydra.core.setup.orchestrator import SetupOrchestrator, editor_settings
from codehydra.core.setup.preflight import PreflightChecker

VERSIONS = {BinaryType.CODE_SERVER: "4.106.3", BinaryType.OPENCODE: "1.0.163"}
EXTENSIONS = ExtensionsConfig(
    required=[
        ExtensionSpec(id="codehydra.sidekick", version="0.0.3", vsix="codehydra.sidekick-0.0.3.vsix"),
        ExtensionSpec(id="sst-dev.opencode", version="0.0.13"),
    ]
)


def make_downloader(paths: DataPaths, fail_with: Exception | None = None) -> AsyncMock:
    """Downloader mock that lays the executable down where preflight looks."""

    async def download(binary: BinaryType, version: str, on_progress=None) -> Path:
        if fail_with is not None:
            raise fail_with
        target = paths.binary_path(binary, version)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("#!/bin/sh\n")
        return target

    downloader = AsyncMock()
    downloader.download = AsyncMock(side_effect=download)
    return downloader


class FakeRunner:
    """Stands in for ``code-server --install-extension``."""

    def __init__(self, paths: DataPaths, returncode: int = 0, stderr: bytes = b"") -> None:
        self.paths = paths
        self.returncode = returncode
        self.stderr = stderr
        self.commands: list[list[str]] = []

    async def __call__(self, cmd: Sequence[str]) -> subprocess.CompletedProcess[bytes]:
        self.commands.append(list(cmd))
        if self.returncode == 0:
            source = cmd[2]
            name = Path(source).stem if source.endswith(".vsix") else source.replace("@", "-")
            (self.paths.extensions_dir / name).mkdir(parents=True, exist_ok=True)
        return subprocess.CompletedProcess(list(cmd), self.returncode, b"", self.stderr)


@pytest.fixture
def paths(tmp_path: Path) -> DataPaths:
    return DataPaths(tmp_path / "data", Platform.LINUX)


@pytest.fixture
def checker(paths: DataPaths) -> PreflightChecker:
    return PreflightChecker(paths, VERSIONS, EXTENSIONS)


def make_orchestrator(
    paths: DataPaths,
    checker: PreflightChecker,
    downloader: AsyncMock | None = None,
    runner: FakeRunner | None = None,
    bundle_dir: Path | None = None,
) -> SetupOrchestrator:
    return SetupOrchestrator(
        paths,
        checker,
        downloader or make_downloader(paths),
        VERSIONS,
        EXTENSIONS,
        python_path="/usr/bin/python3",
        extensions_bundle_dir=bundle_dir,
        run_process=runner or FakeRunner(paths),
    )


async def test_full_setup_then_preflight_is_clean(paths: DataPaths, checker: PreflightChecker) -> None:
    downloader = make_downloader(paths)
    runner = FakeRunner(paths)
    progress: list[SetupProgress] = []
    orchestrator = make_orchestrator(paths, checker, downloader, runner, bundle_dir=Path("/bundle"))

    outcome = await orchestrator.setup(on_progress=progress.append)

    assert outcome.success is True
    assert outcome.error is None
    assert [c.args for c in downloader.download.await_args_list] == [
        (BinaryType.CODE_SERVER, "4.106.3"),
        (BinaryType.OPENCODE, "1.0.163"),
    ]
    assert [cmd[2] for cmd in runner.commands] == [
        "/bundle/codehydra.sidekick-0.0.3.vsix",
        "sst-dev.opencode@0.0.13",
    ]
    assert [p.step for p in progress] == [
        SetupStep.BINARY_DOWNLOAD,
        SetupStep.BINARY_DOWNLOAD,
        SetupStep.EXTENSIONS,
        SetupStep.EXTENSIONS,
        SetupStep.CONFIG,
        SetupStep.FINALIZE,
    ]

    result = await orchestrator.preflight()
    assert result.needs_setup is False


async def test_install_command_line(paths: DataPaths, checker: PreflightChecker) -> None:
    runner = FakeRunner(paths)
    orchestrator = make_orchestrator(paths, checker, runner=runner)

    await orchestrator.setup(PreflightSuccess(needs_setup=True, missing_extensions=("sst-dev.opencode",)))

    assert runner.commands == [
        [
            str(paths.binary_path(BinaryType.CODE_SERVER, "4.106.3")),
            "--install-extension",
            "sst-dev.opencode@0.0.13",
            "--extensions-dir",
            str(paths.extensions_dir),
            "--user-data-dir",
            str(paths.user_data_dir),
        ]
    ]


async def test_without_bundle_dir_installs_from_marketplace(paths: DataPaths, checker: PreflightChecker) -> None:
    runner = FakeRunner(paths)
    orchestrator = make_orchestrator(paths, checker, runner=runner)

    await orchestrator.setup(PreflightSuccess(needs_setup=True, missing_extensions=("codehydra.sidekick",)))

    assert runner.commands[0][2] == "codehydra.sidekick@0.0.3"


async def test_only_requested_steps_run(paths: DataPaths, checker: PreflightChecker) -> None:
    downloader = make_downloader(paths)
    runner = FakeRunner(paths)
    progress: list[SetupProgress] = []
    orchestrator = make_orchestrator(paths, checker, downloader, runner)

    outcome = await orchestrator.setup(
        PreflightSuccess(needs_setup=True, missing_binaries=(BinaryType.OPENCODE,)),
        on_progress=progress.append,
    )

    assert outcome.success is True
    assert [c.args for c in downloader.download.await_args_list] == [(BinaryType.OPENCODE, "1.0.163")]
    assert runner.commands == []
    assert not paths.settings_file.exists()
    assert [p.step for p in progress] == [SetupStep.BINARY_DOWNLOAD, SetupStep.FINALIZE]
    assert paths.setup_marker.exists()


async def test_outdated_extension_is_removed_first(paths: DataPaths, checker: PreflightChecker) -> None:
    old = paths.extensions_dir / "sst-dev.opencode-0.0.12"
    old.mkdir(parents=True)
    (paths.extensions_dir / "extensions.json").write_text(
        json.dumps([{"identifier": {"id": "sst-dev.opencode"}}, {"identifier": {"id": "other.ext"}}])
    )
    runner = FakeRunner(paths)
    orchestrator = make_orchestrator(paths, checker, runner=runner)

    outcome = await orchestrator.setup(
        PreflightSuccess(needs_setup=True, outdated_extensions=("sst-dev.opencode",))
    )

    assert outcome.success is True
    assert not old.exists()
    assert (paths.extensions_dir / "sst-dev.opencode-0.0.13").is_dir()
    index = json.loads((paths.extensions_dir / "extensions.json").read_text())
    assert index == [{"identifier": {"id": "other.ext"}}]


async def test_config_step_writes_settings_and_scripts(paths: DataPaths, checker: PreflightChecker) -> None:
    orchestrator = make_orchestrator(paths, checker)

    outcome = await orchestrator.setup(PreflightSuccess(needs_setup=True, config_stale=True))

    assert outcome.success is True
    settings = json.loads(paths.settings_file.read_text())
    assert settings == editor_settings(paths)
    assert settings["terminal.integrated.env.linux"] == {"PATH": f"{paths.bin_dir}:${{env:PATH}}"}
    assert sorted(p.name for p in paths.bin_dir.iterdir()) == ["code", "opencode", "opencode.py"]


async def test_marker_records_expected_versions(paths: DataPaths, checker: PreflightChecker) -> None:
    orchestrator = make_orchestrator(paths, checker)

    await orchestrator.setup(PreflightSuccess(needs_setup=True, config_stale=True))

    marker = SetupMarker.model_validate_json(paths.setup_marker.read_text())
    assert marker.binaries == {"code-server": "4.106.3", "opencode": "1.0.163"}
    assert marker.extensions == {"codehydra.sidekick": "0.0.3", "sst-dev.opencode": "0.0.13"}


async def test_download_failure_is_reported(paths: DataPaths, checker: PreflightChecker) -> None:
    downloader = make_downloader(paths, fail_with=BinaryDownloadError("connection reset"))
    orchestrator = make_orchestrator(paths, checker, downloader)

    outcome = await orchestrator.setup()

    assert outcome.success is False
    assert outcome.error is not None
    assert outcome.error.type is SetupErrorType.NETWORK
    assert outcome.error.code == "network"
    assert not paths.setup_marker.exists()


async def test_extension_failure_is_reported(paths: DataPaths, checker: PreflightChecker) -> None:
    runner = FakeRunner(paths, returncode=1, stderr=b"marketplace unreachable\n")
    orchestrator = make_orchestrator(paths, checker, runner=runner)

    outcome = await orchestrator.setup(
        PreflightSuccess(needs_setup=True, missing_extensions=("sst-dev.opencode",))
    )

    assert outcome.success is False
    assert outcome.error.type is SetupErrorType.EXTENSION_INSTALL
    assert "sst-dev.opencode" in outcome.error.message
    assert "marketplace unreachable" in outcome.error.message
    assert not paths.setup_marker.exists()


async def test_permission_error_is_reported(paths: DataPaths, checker: PreflightChecker) -> None:
    downloader = make_downloader(paths, fail_with=PermissionError("denied"))
    orchestrator = make_orchestrator(paths, checker, downloader)

    outcome = await orchestrator.setup()

    assert outcome.success is False
    assert outcome.error.type is SetupErrorType.PERMISSION

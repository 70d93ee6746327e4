"""Selective installation of binaries, editor extensions and configuration.

``setup`` runs the steps a preflight result asks for, in order::

    binary-download -> extensions -> config -> finalize

and writes the setup marker only after every step succeeded, so an
interrupted run is simply redone on the next launch.
"""

from __future__ import annotations

import json
import subprocess
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from functools import partial
from pathlib import Path

import anyio
from anyio import to_thread
from loguru import logger

from codehydra.core.errors import ExtensionInstallError, SetupError
from codehydra.core.fileio import atomic_write
from codehydra.core.models.enums import BinaryType, SetupErrorType, SetupStep
from codehydra.core.models.setup import (
    CURRENT_SETUP_VERSION,
    ExtensionsConfig,
    ExtensionSpec,
    PreflightResult,
    PreflightSuccess,
    SetupFailure,
    SetupMarker,
    SetupOutcome,
    SetupProgress,
)
from codehydra.core.paths import DataPaths
from codehydra.core.setup.bin_scripts import BinTargetPaths, generate_scripts, write_scripts
from codehydra.core.setup.download import BinaryDownloader
from codehydra.core.setup.extensions import remove_extension_dirs, remove_from_extensions_json
from codehydra.core.setup.preflight import PreflightChecker

ProgressCallback = Callable[[SetupProgress], None]
ProcessRunner = Callable[[Sequence[str]], Awaitable[subprocess.CompletedProcess[bytes]]]

_PATH_ENV_KEYS = {"linux": "linux", "darwin": "osx", "win32": "windows"}


async def _run_process(cmd: Sequence[str]) -> subprocess.CompletedProcess[bytes]:
    return await anyio.run_process(list(cmd), check=False)


def editor_settings(paths: DataPaths) -> dict[str, object]:
    """User settings written for the embedded editor."""
    separator = ";" if paths.platform.is_windows else ":"
    env_key = f"terminal.integrated.env.{_PATH_ENV_KEYS[paths.platform.value]}"
    return {
        "workbench.startupEditor": "none",
        "workbench.colorTheme": "Default Dark Modern",
        "extensions.autoUpdate": False,
        "extensions.autoCheckUpdates": False,
        "telemetry.telemetryLevel": "off",
        "update.mode": "none",
        "git.openRepositoryInParentFolders": "always",
        env_key: {"PATH": f"{paths.bin_dir}{separator}${{env:PATH}}"},
    }


class SetupOrchestrator:
    """Install whatever a preflight result reports as missing or stale."""

    def __init__(
        self,
        paths: DataPaths,
        checker: PreflightChecker,
        downloader: BinaryDownloader,
        binary_versions: dict[BinaryType, str],
        extensions: ExtensionsConfig,
        *,
        python_path: str,
        extensions_bundle_dir: Path | None = None,
        run_process: ProcessRunner = _run_process,
    ) -> None:
        self._paths = paths
        self._checker = checker
        self._downloader = downloader
        self._binary_versions = binary_versions
        self._extensions = extensions
        self._python_path = python_path
        self._bundle_dir = extensions_bundle_dir
        self._run_process = run_process

    async def preflight(self) -> PreflightResult:
        return await self._checker.check()

    async def setup(
        self,
        preflight: PreflightSuccess | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> SetupOutcome:
        """Run the steps ``preflight`` calls for.  Without one, everything runs.

        Step failures are returned as an unsuccessful outcome, never raised.
        """

        def report(step: SetupStep, message: str) -> None:
            logger.info("[{}] {}", step.value, message)
            if on_progress is not None:
                on_progress(SetupProgress(step=step, message=message))

        if preflight is None:
            binaries = list(self._binary_versions)
            missing = [spec.id for spec in self._extensions.required]
            outdated: list[str] = []
            write_config = True
        else:
            binaries = list(preflight.missing_binaries)
            missing = list(preflight.missing_extensions)
            outdated = list(preflight.outdated_extensions)
            write_config = preflight.config_stale

        try:
            for binary in binaries:
                report(SetupStep.BINARY_DOWNLOAD, f"Downloading {binary.value}...")
                await self._downloader.download(binary, self._binary_versions[binary])

            if missing or outdated:
                await self._install_extensions(missing, outdated, report)

            if write_config:
                report(SetupStep.CONFIG, "Writing editor settings...")
                await self._write_config()

            report(SetupStep.FINALIZE, "Finalizing setup...")
            await self._write_marker()
        except SetupError as exc:
            logger.warning("Setup failed: {}", exc)
            return SetupOutcome(
                success=False,
                error=SetupFailure(type=exc.type, message=str(exc), code=exc.code),
            )
        except PermissionError as exc:
            logger.warning("Setup failed: {}", exc)
            return SetupOutcome(success=False, error=SetupFailure(type=SetupErrorType.PERMISSION, message=str(exc)))
        except OSError as exc:
            logger.warning("Setup failed: {}", exc)
            return SetupOutcome(success=False, error=SetupFailure(type=SetupErrorType.UNKNOWN, message=str(exc)))

        logger.info("Setup complete")
        return SetupOutcome(success=True)

    # -- Extensions ------------------------------------------------------------

    async def _install_extensions(
        self,
        missing: list[str],
        outdated: list[str],
        report: Callable[[SetupStep, str], None],
    ) -> None:
        if outdated:
            report(SetupStep.EXTENSIONS, f"Removing outdated extensions: {', '.join(outdated)}")
            extensions_dir = self._paths.extensions_dir
            await to_thread.run_sync(partial(remove_extension_dirs, extensions_dir, outdated))
            await to_thread.run_sync(partial(remove_from_extensions_json, extensions_dir, outdated))

        wanted = {ext_id.lower() for ext_id in [*missing, *outdated]}
        for spec in self._extensions.required:
            if spec.id.lower() not in wanted:
                continue
            report(SetupStep.EXTENSIONS, f"Installing {spec.id}...")
            await self._install_extension(spec)

    async def _install_extension(self, spec: ExtensionSpec) -> None:
        code_server = self._paths.binary_path(BinaryType.CODE_SERVER, self._binary_versions[BinaryType.CODE_SERVER])
        if spec.vsix is not None and self._bundle_dir is not None:
            source = str(self._bundle_dir / spec.vsix)
        else:
            source = f"{spec.id}@{spec.version}"
        cmd = [
            str(code_server),
            "--install-extension",
            source,
            "--extensions-dir",
            str(self._paths.extensions_dir),
            "--user-data-dir",
            str(self._paths.user_data_dir),
        ]
        try:
            result = await self._run_process(cmd)
        except OSError as exc:
            raise ExtensionInstallError(spec.id, str(exc)) from exc
        if result.returncode != 0:
            stderr = (result.stderr or b"").decode("utf-8", errors="replace").strip()
            raise ExtensionInstallError(spec.id, stderr or f"exit code {result.returncode}")

    # -- Config / marker -------------------------------------------------------

    async def _write_config(self) -> None:
        settings = json.dumps(editor_settings(self._paths), indent=2)
        await to_thread.run_sync(partial(atomic_write, self._paths.settings_file, settings))

        versions = self._binary_versions
        targets = BinTargetPaths(
            code_remote_cli=str(self._paths.code_remote_cli(versions[BinaryType.CODE_SERVER])),
            opencode_binary=(
                str(self._paths.binary_path(BinaryType.OPENCODE, versions[BinaryType.OPENCODE]))
                if BinaryType.OPENCODE in versions
                else None
            ),
            python_path=self._python_path,
        )
        scripts = generate_scripts(self._paths.platform, targets, self._paths.bin_dir)
        await write_scripts(self._paths.bin_dir, scripts)

    async def _write_marker(self) -> None:
        expected = self._checker.expected_marker()
        marker = SetupMarker(
            schema_version=CURRENT_SETUP_VERSION,
            completed_at=datetime.now(UTC),
            binaries=expected["binaries"],
            extensions=expected["extensions"],
        )
        await to_thread.run_sync(partial(atomic_write, self._paths.setup_marker, marker.model_dump_json(indent=2)))

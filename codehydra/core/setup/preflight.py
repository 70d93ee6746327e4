"""Decide what setup work, if any, this installation needs.

Preflight is read-only: it compares the binaries and extensions on disk and
the setup marker against the expected versions and reports the difference.
"""

from __future__ import annotations

from collections.abc import Mapping

from anyio import to_thread
from loguru import logger
from pydantic import ValidationError

from codehydra.core.models.enums import BinaryType, PreflightErrorType
from codehydra.core.models.setup import (
    CURRENT_SETUP_VERSION,
    ExtensionsConfig,
    PreflightError,
    PreflightFailure,
    PreflightResult,
    PreflightSuccess,
    SetupMarker,
)
from codehydra.core.paths import DataPaths
from codehydra.core.setup.extensions import list_installed_extensions


class PreflightChecker:
    """Compare the installation on disk with the expected component versions."""

    def __init__(
        self,
        paths: DataPaths,
        binary_versions: Mapping[BinaryType, str],
        extensions: ExtensionsConfig,
    ) -> None:
        self._paths = paths
        self._binary_versions = dict(binary_versions)
        self._extensions = extensions

    def expected_marker(self) -> dict[str, dict[str, str]]:
        """Component versions a valid marker must record."""
        return {
            "binaries": {binary.value: version for binary, version in self._binary_versions.items()},
            "extensions": {spec.id: spec.version for spec in self._extensions.required},
        }

    async def check(self) -> PreflightResult:
        try:
            result = await to_thread.run_sync(self._check)
        except OSError as exc:
            logger.warning("Preflight could not read the installation: {}", exc)
            return PreflightFailure(
                error=PreflightError(type=PreflightErrorType.FILESYSTEM_UNREADABLE, message=str(exc))
            )
        except Exception as exc:
            logger.exception("Preflight failed")
            return PreflightFailure(error=PreflightError(type=PreflightErrorType.UNKNOWN, message=str(exc)))

        if result.needs_setup:
            logger.info(
                "Setup needed: binaries={} missing_extensions={} outdated_extensions={} config_stale={}",
                list(result.missing_binaries),
                list(result.missing_extensions),
                list(result.outdated_extensions),
                result.config_stale,
            )
        return result

    # -- Sync checks (run in thread pool) --------------------------------------

    def _check(self) -> PreflightSuccess:
        missing_binaries = tuple(
            binary
            for binary, version in self._binary_versions.items()
            if not self._paths.binary_path(binary, version).exists()
        )

        installed = {
            ext_id.lower(): version
            for ext_id, version in list_installed_extensions(self._paths.extensions_dir).items()
        }
        missing: list[str] = []
        outdated: list[str] = []
        for spec in self._extensions.required:
            version = installed.get(spec.id.lower())
            if version is None:
                missing.append(spec.id)
            elif version != spec.version:
                outdated.append(spec.id)

        config_stale = not self._marker_valid()
        return PreflightSuccess(
            needs_setup=bool(missing_binaries or missing or outdated or config_stale),
            missing_binaries=missing_binaries,
            missing_extensions=tuple(missing),
            outdated_extensions=tuple(outdated),
            config_stale=config_stale,
        )

    def _marker_valid(self) -> bool:
        marker_file = self._paths.setup_marker
        try:
            marker = SetupMarker.model_validate_json(marker_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return False
        except ValidationError:
            logger.warning("Ignoring malformed setup marker {}", marker_file)
            return False

        expected = self.expected_marker()
        return (
            marker.schema_version == CURRENT_SETUP_VERSION
            and marker.binaries == expected["binaries"]
            and marker.extensions == expected["extensions"]
        )

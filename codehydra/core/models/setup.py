"""Setup, preflight and lifecycle models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from codehydra.core.models.enums import (
    ApiSetupStep,
    BinaryType,
    PreflightErrorType,
    SetupErrorType,
    SetupStep,
)

CURRENT_SETUP_VERSION = 1
"""Bumped whenever the on-disk layout written by setup changes."""


# ---------------------------------------------------------------------------
# Extensions manifest
# ---------------------------------------------------------------------------


class ExtensionSpec(BaseModel):
    """A required editor extension.

    ``vsix`` names a bundled file inside ``extensions_bundle_dir``; without it
    the extension is installed from the marketplace as ``id@version``.
    """

    id: str
    version: str
    vsix: str | None = None


class ExtensionsConfig(BaseModel):
    required: list[ExtensionSpec] = Field(default_factory=list)


DEFAULT_EXTENSIONS = ExtensionsConfig(
    required=[
        ExtensionSpec(id="codehydra.sidekick", version="0.0.3", vsix="codehydra.sidekick-0.0.3.vsix"),
        ExtensionSpec(id="sst-dev.opencode", version="0.0.13"),
    ]
)


# ---------------------------------------------------------------------------
# Preflight
# ---------------------------------------------------------------------------


class PreflightError(BaseModel):
    type: PreflightErrorType
    message: str


class PreflightSuccess(BaseModel):
    success: Literal[True] = True
    needs_setup: bool
    missing_binaries: tuple[BinaryType, ...] = ()
    missing_extensions: tuple[str, ...] = ()
    outdated_extensions: tuple[str, ...] = ()
    config_stale: bool = False


class PreflightFailure(BaseModel):
    success: Literal[False] = False
    error: PreflightError


PreflightResult = PreflightSuccess | PreflightFailure


# ---------------------------------------------------------------------------
# Marker
# ---------------------------------------------------------------------------


class SetupMarker(BaseModel):
    """Record of the last fully successful setup (``.setup-completed``)."""

    schema_version: int
    completed_at: datetime
    binaries: dict[str, str] = Field(default_factory=dict)
    extensions: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Progress and results
# ---------------------------------------------------------------------------


class SetupProgress(BaseModel):
    step: SetupStep
    message: str


class ApiSetupProgress(BaseModel):
    step: ApiSetupStep
    message: str


class SetupFailure(BaseModel):
    type: SetupErrorType
    message: str
    code: str | None = None


class SetupOutcome(BaseModel):
    """Result of ``SetupOrchestrator.setup``."""

    success: bool
    error: SetupFailure | None = None


class LifecycleResult(BaseModel):
    """User-visible result of ``setup()`` / ``start_services()``."""

    success: bool
    message: str | None = None
    code: str | None = None

    @classmethod
    def ok(cls) -> LifecycleResult:
        return cls(success=True)

    @classmethod
    def fail(cls, message: str, code: str) -> LifecycleResult:
        return cls(success=False, message=message, code=code)

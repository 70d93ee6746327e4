"""Data models for the core."""

from codehydra.core.models.enums import (
    ApiSetupStep,
    AppState,
    BinaryType,
    Platform,
    PreflightErrorType,
    ResultCode,
    SetupErrorType,
    SetupStep,
    WorkspaceErrorKind,
)
from codehydra.core.models.setup import (
    CURRENT_SETUP_VERSION,
    DEFAULT_EXTENSIONS,
    ApiSetupProgress,
    ExtensionsConfig,
    ExtensionSpec,
    LifecycleResult,
    PreflightError,
    PreflightFailure,
    PreflightResult,
    PreflightSuccess,
    SetupFailure,
    SetupMarker,
    SetupOutcome,
    SetupProgress,
)
from codehydra.core.models.workspace import (
    BranchInfo,
    Project,
    ProjectRecord,
    RemovalResult,
    Workspace,
    WorkspaceMetadata,
    WorkspaceRef,
    WorkspaceStatus,
    WorktreeInfo,
)

__all__ = [
    "CURRENT_SETUP_VERSION",
    "DEFAULT_EXTENSIONS",
    # Setup
    "ApiSetupProgress",
    # Enums
    "ApiSetupStep",
    "AppState",
    "BinaryType",
    # Workspace
    "BranchInfo",
    "ExtensionSpec",
    "ExtensionsConfig",
    "LifecycleResult",
    "Platform",
    "PreflightError",
    "PreflightErrorType",
    "PreflightFailure",
    "PreflightResult",
    "PreflightSuccess",
    "Project",
    "ProjectRecord",
    "RemovalResult",
    "ResultCode",
    "SetupErrorType",
    "SetupFailure",
    "SetupMarker",
    "SetupOutcome",
    "SetupProgress",
    "SetupStep",
    "Workspace",
    "WorkspaceErrorKind",
    "WorkspaceMetadata",
    "WorkspaceRef",
    "WorkspaceStatus",
    "WorktreeInfo",
]

"""Shared enumerations used across the core."""

from __future__ import annotations

import sys
from enum import StrEnum

# -- Lifecycle ---------------------------------------------------------------


class AppState(StrEnum):
    """Application state reported to the UI by ``LifecycleGate.get_state``."""

    SETUP = "setup"
    LOADING = "loading"


class SetupStep(StrEnum):
    """Installation steps reported by the setup orchestrator."""

    BINARY_DOWNLOAD = "binary-download"
    EXTENSIONS = "extensions"
    CONFIG = "config"
    FINALIZE = "finalize"


class ApiSetupStep(StrEnum):
    """Progress steps surfaced past the lifecycle boundary (no ``finalize``)."""

    BINARY_DOWNLOAD = "binary-download"
    EXTENSIONS = "extensions"
    SETTINGS = "settings"


class ResultCode(StrEnum):
    """Failure codes produced by the lifecycle gate itself."""

    SETUP_IN_PROGRESS = "SETUP_IN_PROGRESS"
    SERVICE_START_ERROR = "SERVICE_START_ERROR"
    UNKNOWN = "UNKNOWN"


# -- Setup -------------------------------------------------------------------


class BinaryType(StrEnum):
    CODE_SERVER = "code-server"
    OPENCODE = "opencode"


class PreflightErrorType(StrEnum):
    FILESYSTEM_UNREADABLE = "filesystem-unreadable"
    UNKNOWN = "unknown"


class SetupErrorType(StrEnum):
    NETWORK = "network"
    ARCHIVE = "archive"
    EXTENSION_INSTALL = "extension-install"
    PERMISSION = "permission"
    UNKNOWN = "unknown"


# -- Platform ----------------------------------------------------------------


class Platform(StrEnum):
    """Target platform for generated scripts and binary downloads."""

    LINUX = "linux"
    DARWIN = "darwin"
    WINDOWS = "win32"

    @property
    def is_windows(self) -> bool:
        return self is Platform.WINDOWS

    @classmethod
    def current(cls) -> Platform:
        if sys.platform == "win32":
            return cls.WINDOWS
        if sys.platform == "darwin":
            return cls.DARWIN
        return cls.LINUX


# -- Workspace ---------------------------------------------------------------


class WorkspaceErrorKind(StrEnum):
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INVALID_METADATA_KEY = "INVALID_METADATA_KEY"
    NOT_FOUND = "NOT_FOUND"
    NOT_A_REPOSITORY = "NOT_A_REPOSITORY"
    MAIN_WORKTREE = "MAIN_WORKTREE"

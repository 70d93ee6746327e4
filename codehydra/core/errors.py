"""Domain exceptions and their conversion to the user-visible error shape.

Every subsystem raises its own closed set of exceptions.  ``to_error_info``
is the single boundary that turns them into ``{kind, message, code}``;
callers above it never see raw exceptions.
"""

from __future__ import annotations

from pydantic import BaseModel

from codehydra.core.models.enums import SetupErrorType, WorkspaceErrorKind

# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class InvalidNameError(ValueError):
    """Workspace name fails validation."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Invalid workspace name '{name}': {reason}")
        self.name = name


class NotAbsoluteError(ValueError):
    """Path is not absolute after normalisation."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Path is not absolute: {path}")
        self.path = path


# ---------------------------------------------------------------------------
# Git / workspaces
# ---------------------------------------------------------------------------


class GitError(RuntimeError):
    """A git command failed."""

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class WorkspaceError(Exception):
    """Workspace operation rejected.  ``kind`` tells callers why."""

    def __init__(self, kind: WorkspaceErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind

    @property
    def code(self) -> str:
        return self.kind.value


# ---------------------------------------------------------------------------
# Project registry
# ---------------------------------------------------------------------------


class ProjectStoreError(OSError):
    """Saving a project record failed."""


class ProjectNotFoundError(LookupError):
    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project '{project_id}' not found")
        self.project_id = project_id


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


class SetupError(RuntimeError):
    """An installation step failed."""

    def __init__(self, type_: SetupErrorType, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.type = type_
        self.code = code


class BinaryDownloadError(SetupError):
    def __init__(self, message: str, *, code: str = "network") -> None:
        type_ = SetupErrorType.ARCHIVE if code == "archive" else SetupErrorType.NETWORK
        super().__init__(type_, message, code=code)


class ExtensionInstallError(SetupError):
    def __init__(self, extension_id: str, message: str) -> None:
        super().__init__(SetupErrorType.EXTENSION_INSTALL, f"Failed to install {extension_id}: {message}")
        self.extension_id = extension_id


# ---------------------------------------------------------------------------
# Boundary conversion
# ---------------------------------------------------------------------------


class ErrorInfo(BaseModel):
    kind: str
    message: str
    code: str | None = None


def to_error_info(exc: BaseException) -> ErrorInfo:
    """Map a domain exception to its structured, user-visible form."""
    message = str(exc)
    match exc:
        case InvalidNameError():
            return ErrorInfo(kind="InvalidName", message=message, code="INVALID_NAME")
        case NotAbsoluteError():
            return ErrorInfo(kind="NotAbsolute", message=message, code="NOT_ABSOLUTE")
        case WorkspaceError(kind=kind):
            return ErrorInfo(kind="WorkspaceError", message=message, code=kind.value)
        case GitError():
            return ErrorInfo(kind="GitError", message=message, code="GIT_ERROR")
        case ProjectNotFoundError():
            return ErrorInfo(kind="ProjectNotFound", message=message, code="PROJECT_NOT_FOUND")
        case ProjectStoreError():
            return ErrorInfo(kind="ProjectStoreError", message=message, code="PROJECT_STORE_ERROR")
        case SetupError(type=type_, code=code):
            return ErrorInfo(kind="SetupError", message=message, code=code or type_.value)
        case _:
            return ErrorInfo(kind="Unknown", message=message or type(exc).__name__, code="UNKNOWN")

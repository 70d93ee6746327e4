"""Project identity and input validation.

Pure functions, no I/O.  A project id is ``<sanitized-basename>-<hash8>``
where the hash is the first 8 hex chars of SHA-256 over the normalised
absolute path, so path-string noise (trailing slashes, doubled separators,
``.`` segments) never changes identity.
"""

from __future__ import annotations

import hashlib
import ntpath
import posixpath
import re

from codehydra.core.errors import InvalidNameError, NotAbsoluteError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

WORKSPACE_NAME_MAX_LENGTH = 100
METADATA_KEY_MAX_LENGTH = 64
PROJECT_NAME_MAX_LENGTH = 50

_NON_ALNUM_RUN = re.compile(r"[^A-Za-z0-9]+")
_WORKSPACE_NAME_CHARS = re.compile(r"^[A-Za-z0-9._/-]+$")
PROJECT_ID_REGEX = re.compile(r"^[A-Za-z0-9]+(?:-[A-Za-z0-9]+)*-[0-9a-f]{8}$")
METADATA_KEY_REGEX = re.compile(r"^[A-Za-z](?:[A-Za-z0-9-]*[A-Za-z0-9])?$")
_WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:[\\/]")


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def _is_windows_path(path: str) -> bool:
    return bool(_WINDOWS_DRIVE.match(path)) or path.startswith("\\\\")


def normalize_path(path: str) -> str:
    """Collapse separator runs and ``.``/``..`` segments; strip trailing separators."""
    if _is_windows_path(path):
        return ntpath.normpath(path)
    normalized = posixpath.normpath(path)
    # POSIX keeps a leading "//" as implementation-defined; treat it as "/".
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def absolute_path(value: str) -> str:
    """Normalise ``value`` and require it to be rooted.

    Raises ``NotAbsoluteError`` for relative input, including ``..``-prefixed
    paths, since normalisation cannot make a relative path absolute.
    """
    if not value:
        raise NotAbsoluteError(value)
    normalized = normalize_path(value)
    if _is_windows_path(normalized):
        return normalized
    if not posixpath.isabs(normalized):
        raise NotAbsoluteError(value)
    return normalized


def _basename(normalized: str) -> str:
    if _is_windows_path(normalized):
        return ntpath.basename(normalized)
    return posixpath.basename(normalized)


# ---------------------------------------------------------------------------
# Project id
# ---------------------------------------------------------------------------


def _sanitize_name(basename: str) -> str:
    name = _NON_ALNUM_RUN.sub("-", basename).lstrip("-.")
    name = name[:PROJECT_NAME_MAX_LENGTH].rstrip("-")
    return name or "root"


def project_id(path: str) -> str:
    """Deterministic, case-sensitive project id for a repository path."""
    normalized = normalize_path(path)
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:8]
    return f"{_sanitize_name(_basename(normalized))}-{digest}"


def project_dir_name(path: str) -> str:
    """Directory name for a project's registry entry (same scheme as the id)."""
    return project_id(path)


def is_project_id(value: str) -> bool:
    return bool(PROJECT_ID_REGEX.fullmatch(value))


# ---------------------------------------------------------------------------
# Workspace names and metadata keys
# ---------------------------------------------------------------------------


def workspace_name(value: str) -> str:
    """Validate a workspace (branch) name.  Never auto-corrects."""
    if not value:
        raise InvalidNameError(value, "must not be empty")
    if len(value) > WORKSPACE_NAME_MAX_LENGTH:
        raise InvalidNameError(value, f"must be at most {WORKSPACE_NAME_MAX_LENGTH} characters")
    if value[0] in "-.":
        raise InvalidNameError(value, "must not start with '-' or '.'")
    if not _WORKSPACE_NAME_CHARS.fullmatch(value):
        raise InvalidNameError(value, "may only contain letters, digits, '.', '_', '/' and '-'")
    return value


def is_workspace_name(value: str) -> bool:
    try:
        workspace_name(value)
    except InvalidNameError:
        return False
    return True


def is_valid_metadata_key(key: str) -> bool:
    return len(key) <= METADATA_KEY_MAX_LENGTH and bool(METADATA_KEY_REGEX.fullmatch(key))


def workspace_ref_key(project: str, name: str) -> str:
    """Composite ``projectId/workspaceName`` key for maps and sets."""
    return f"{project}/{name}"

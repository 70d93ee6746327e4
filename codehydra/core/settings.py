"""Configuration loaded from CODEHYDRA_* environment variables."""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class CodeHydraSettings(BaseSettings):
    """CodeHydra settings.

    All fields are read from environment variables with the ``CODEHYDRA_``
    prefix.  For example, ``CODEHYDRA_LOG_LEVEL=DEBUG`` maps to ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="CODEHYDRA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Data storage ----------------------------------------------------------
    data_root: Path = Path("~/.local/share/codehydra").expanduser()
    """Root directory for projects, workspaces, binaries and editor state."""

    # -- Setup -----------------------------------------------------------------
    setup_mode: Literal["managed", "none"] = "managed"
    """``none`` skips binary/extension provisioning entirely (development mode)."""

    code_server_version: str = "4.106.3"
    opencode_version: str = "1.0.163"

    extensions_config: Path | None = None
    """JSON manifest of required editor extensions.  Built-in default if unset."""

    extensions_bundle_dir: Path | None = None
    """Directory holding bundled ``.vsix`` files referenced by the manifest."""

    code_server_url_template: str = (
        "https://github.com/coder/code-server/releases/download/"
        "v{version}/code-server-{version}-{os}-{arch}.tar.gz"
    )
    opencode_url_template: str = (
        "https://github.com/sst/opencode/releases/download/v{version}/opencode-{os}-{arch}.zip"
    )
    download_timeout: float = 300.0

    # -- Wrapper scripts -------------------------------------------------------
    python_path: str = sys.executable
    """Interpreter invoked by the generated thin wrappers to run the resolver."""


@lru_cache(maxsize=1)
def get_settings() -> CodeHydraSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``get_settings.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return CodeHydraSettings()

"""On-disk layout derived from the data root.

::

    {data_root}/
        bin/                                  wrapper scripts (code, opencode, opencode.py)
        projects/{project_dir}/config.json    project registry record
        projects/{project_dir}/workspaces/    worktrees created for the project
        code-server/{version}/                editor server binary
        opencode/{version}/opencode           agent binary
        opencode/ports.json                   session port registry (written elsewhere)
        vscode/extensions/                    installed editor extensions
        vscode/user-data/User/settings.json   editor settings
        vscode/.setup-completed               setup marker
"""

from __future__ import annotations

from pathlib import Path

from codehydra.core.identity import project_dir_name
from codehydra.core.models.enums import BinaryType, Platform


class DataPaths:
    """Resolved data paths for one installation."""

    def __init__(self, data_root: str | Path, platform: Platform | None = None) -> None:
        self.root = Path(data_root)
        self.platform = platform or Platform.current()

    # -- Projects --------------------------------------------------------------

    @property
    def projects_dir(self) -> Path:
        return self.root / "projects"

    def project_dir(self, project_path: str) -> Path:
        return self.projects_dir / project_dir_name(project_path)

    def workspaces_dir(self, project_path: str) -> Path:
        """Where new worktrees for ``project_path`` are created."""
        return self.project_dir(project_path) / "workspaces"

    # -- Binaries --------------------------------------------------------------

    @property
    def bin_dir(self) -> Path:
        return self.root / "bin"

    def binary_dir(self, binary: BinaryType, version: str) -> Path:
        return self.root / binary.value / version

    def binary_path(self, binary: BinaryType, version: str) -> Path:
        base = self.binary_dir(binary, version)
        windows = self.platform.is_windows
        if binary is BinaryType.CODE_SERVER:
            return base / "bin" / ("code-server.cmd" if windows else "code-server")
        return base / ("opencode.exe" if windows else "opencode")

    def code_remote_cli(self, version: str) -> Path:
        """The editor's remote CLI, wrapped by the ``code`` script."""
        remote_cli = self.binary_dir(BinaryType.CODE_SERVER, version) / "lib" / "vscode" / "bin" / "remote-cli"
        match self.platform:
            case Platform.WINDOWS:
                return remote_cli / "code.cmd"
            case Platform.DARWIN:
                return remote_cli / "code-darwin.sh"
            case _:
                return remote_cli / "code-linux.sh"

    @property
    def ports_file(self) -> Path:
        return self.root / "opencode" / "ports.json"

    # -- Editor ----------------------------------------------------------------

    @property
    def vscode_dir(self) -> Path:
        return self.root / "vscode"

    @property
    def extensions_dir(self) -> Path:
        return self.vscode_dir / "extensions"

    @property
    def user_data_dir(self) -> Path:
        return self.vscode_dir / "user-data"

    @property
    def settings_file(self) -> Path:
        return self.user_data_dir / "User" / "settings.json"

    @property
    def setup_marker(self) -> Path:
        return self.vscode_dir / ".setup-completed"

"""Unit tests for DataPaths (path resolution only, no I/O)."""

from __future__ import annotations

from pathlib import Path

from codehydra.core.identity import project_id
from codehydra.core.models.enums import BinaryType, Platform
from codehydra.core.paths import DataPaths


def test_linux_layout() -> None:
    paths = DataPaths("/data", Platform.LINUX)

    assert paths.bin_dir == Path("/data/bin")
    assert paths.projects_dir == Path("/data/projects")
    assert paths.project_dir("/home/u/repo") == Path("/data/projects") / project_id("/home/u/repo")
    assert paths.workspaces_dir("/home/u/repo") == paths.project_dir("/home/u/repo") / "workspaces"
    assert paths.extensions_dir == Path("/data/vscode/extensions")
    assert paths.user_data_dir == Path("/data/vscode/user-data")
    assert paths.settings_file == Path("/data/vscode/user-data/User/settings.json")
    assert paths.setup_marker == Path("/data/vscode/.setup-completed")
    assert paths.ports_file == Path("/data/opencode/ports.json")


def test_binary_paths_per_platform() -> None:
    linux = DataPaths("/data", Platform.LINUX)
    windows = DataPaths("/data", Platform.WINDOWS)

    assert linux.binary_path(BinaryType.OPENCODE, "1.0.163") == Path("/data/opencode/1.0.163/opencode")
    assert windows.binary_path(BinaryType.OPENCODE, "1.0.163") == Path("/data/opencode/1.0.163/opencode.exe")
    assert linux.binary_path(BinaryType.CODE_SERVER, "4.106.3") == Path("/data/code-server/4.106.3/bin/code-server")


def test_code_remote_cli_per_platform() -> None:
    base = Path("/data/code-server/4.106.3/lib/vscode/bin/remote-cli")
    assert DataPaths("/data", Platform.LINUX).code_remote_cli("4.106.3") == base / "code-linux.sh"
    assert DataPaths("/data", Platform.DARWIN).code_remote_cli("4.106.3") == base / "code-darwin.sh"
    assert DataPaths("/data", Platform.WINDOWS).code_remote_cli("4.106.3") == base / "code.cmd"

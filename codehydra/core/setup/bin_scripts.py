"""Wrapper scripts placed on the PATH of workspace terminals.

``code`` passes straight through to the editor's remote CLI.  ``opencode``
is a thin platform wrapper around ``opencode.py``, a stdlib-only resolver
that finds the agent server running for the current workspace (via
``ports.json``) and attaches to it.  Both platforms share the one resolver;
only the outer wrapper differs.

Everything here is a pure render except ``write_scripts``.
"""

from __future__ import annotations

import re
import stat
from functools import partial
from pathlib import Path, PurePath

import jinja2
from anyio import to_thread
from loguru import logger
from pydantic import BaseModel

from codehydra.core.models.enums import Platform

RESOLVER_FILENAME = "opencode.py"

_VERSION_SEGMENT = re.compile(r"\d+(?:\.\d+)*(?:[-+][0-9A-Za-z.+-]+)?")


class GeneratedScript(BaseModel):
    filename: str
    content: str
    needs_executable: bool


class BinTargetPaths(BaseModel):
    """Binaries the wrappers point at."""

    code_remote_cli: str
    opencode_binary: str | None = None
    python_path: str


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

_UNIX_PASSTHROUGH = """\
#!/bin/sh
exec {{ target | shquote }} "$@"
"""

_WINDOWS_PASSTHROUGH = """\
@echo off
"{{ target | winpath }}" %*
"""

_UNIX_RESOLVER_WRAPPER = """\
#!/bin/sh
exec {{ python | shquote }} {{ resolver | shquote }} "$@"
"""

_WINDOWS_RESOLVER_WRAPPER = """\
@echo off
"{{ python | winpath }}" "{{ resolver | winpath }}" %*
exit /b %ERRORLEVEL%
"""

_RESOLVER = '''\
#!/usr/bin/env python3
"""Attach to the opencode server CodeHydra runs for the current workspace.

Generated by CodeHydra; changes are overwritten on the next setup.
"""

import json
import os
import subprocess
import sys

OPENCODE_VERSION = "{{ opencode_version }}"
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
PORTS_FILE = os.path.join(SCRIPT_DIR, "..", "opencode", "ports.json")
OPENCODE_BIN = os.path.join(
    SCRIPT_DIR,
    "..",
    "opencode",
    OPENCODE_VERSION,
    "opencode.exe" if sys.platform == "win32" else "opencode",
)


def fail(message, hint=None):
    sys.stderr.write(message + "\\n")
    if hint:
        sys.stderr.write(hint + "\\n")
    sys.exit(1)


def git_root():
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            universal_newlines=True,
        )
    except OSError:
        return None
    root = result.stdout.strip()
    if result.returncode != 0 or not root:
        return None
    return os.path.normpath(root)


def workspace_info(root):
    """Port of the server registered for ``root``; exits when there is none."""
    try:
        with open(PORTS_FILE, encoding="utf-8") as f:
            raw = f.read()
    except FileNotFoundError:
        fail("Error: No opencode servers are running")
    except OSError:
        fail("Error: Failed to read ports.json")

    try:
        workspaces = json.loads(raw)["workspaces"]
        ports = {os.path.normpath(path): entry["port"] for path, entry in workspaces.items()}
    except (ValueError, KeyError, TypeError, AttributeError):
        fail("Error: Failed to read ports.json")

    port = ports.get(root)
    if not isinstance(port, int) or isinstance(port, bool):
        fail(
            "Error: No opencode server found for workspace: " + root,
            "Make sure the workspace is open in CodeHydra.",
        )
    return port


def main():
    root = git_root()
    if root is None:
        fail("Error: Not in a git repository")
    port = workspace_info(root)

    args = [OPENCODE_BIN, "attach", "http://127.0.0.1:%d" % port]
    try:
        if os.name == "posix":
            sys.stdout.flush()
            os.execv(OPENCODE_BIN, args)
        result = subprocess.run(args)
    except OSError as exc:
        fail("Error: Failed to start opencode: " + str(exc))
    sys.exit(result.returncode)


if __name__ == "__main__":
    main()
'''


def _shquote(value: str) -> str:
    return "'" + str(value).replace("'", "'\\''") + "'"


def _winpath(value: str) -> str:
    return str(value).replace("/", "\\")


_env = jinja2.Environment(autoescape=False, keep_trailing_newline=True)  # noqa: S701
_env.filters["shquote"] = _shquote
_env.filters["winpath"] = _winpath


def _render(template: str, **context: str) -> str:
    return _env.from_string(template).render(**context)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def generate_script(name: str, target_path: str, platform: Platform) -> GeneratedScript:
    """Passthrough wrapper ``name`` that forwards all arguments to ``target_path``."""
    if platform.is_windows:
        return GeneratedScript(
            filename=f"{name}.cmd",
            content=_render(_WINDOWS_PASSTHROUGH, target=target_path),
            needs_executable=False,
        )
    return GeneratedScript(
        filename=name,
        content=_render(_UNIX_PASSTHROUGH, target=target_path),
        needs_executable=True,
    )


def render_resolver(opencode_version: str) -> str:
    """Source of the cross-platform ``opencode.py`` resolver."""
    return _render(_RESOLVER, opencode_version=opencode_version)


def generate_opencode_scripts(
    platform: Platform,
    opencode_version: str,
    python_path: str,
    bin_dir: str | PurePath,
) -> list[GeneratedScript]:
    """The resolver followed by the platform's thin wrapper that runs it."""
    resolver_path = str(PurePath(bin_dir) / RESOLVER_FILENAME)
    resolver = GeneratedScript(
        filename=RESOLVER_FILENAME,
        content=render_resolver(opencode_version),
        needs_executable=False,
    )
    if platform.is_windows:
        wrapper = GeneratedScript(
            filename="opencode.cmd",
            content=_render(_WINDOWS_RESOLVER_WRAPPER, python=python_path, resolver=resolver_path),
            needs_executable=False,
        )
    else:
        wrapper = GeneratedScript(
            filename="opencode",
            content=_render(_UNIX_RESOLVER_WRAPPER, python=python_path, resolver=resolver_path),
            needs_executable=True,
        )
    return [resolver, wrapper]


def opencode_version_from_path(opencode_binary: str) -> str | None:
    """Version segment of ``<data_root>/opencode/<version>/opencode[.exe]``."""
    parts = re.split(r"[/\\]", opencode_binary)
    if len(parts) < 2:
        return None
    candidate = parts[-2]
    return candidate if _VERSION_SEGMENT.fullmatch(candidate) else None


def generate_scripts(platform: Platform, targets: BinTargetPaths, bin_dir: str | PurePath) -> list[GeneratedScript]:
    """Every wrapper script for ``platform``.

    The opencode scripts are only produced when the binary path carries a
    version segment.
    """
    scripts = [generate_script("code", targets.code_remote_cli, platform)]
    if targets.opencode_binary is not None:
        version = opencode_version_from_path(targets.opencode_binary)
        if version is not None:
            scripts.extend(generate_opencode_scripts(platform, version, targets.python_path, bin_dir))
    return scripts


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


async def write_scripts(bin_dir: Path, scripts: list[GeneratedScript]) -> None:
    await to_thread.run_sync(partial(_write_scripts, bin_dir, scripts))
    logger.debug("Wrote {} wrapper scripts to {}", len(scripts), bin_dir)


def _write_scripts(bin_dir: Path, scripts: list[GeneratedScript]) -> None:
    bin_dir.mkdir(parents=True, exist_ok=True)
    for script in scripts:
        target = bin_dir / script.filename
        target.write_text(script.content, encoding="utf-8", newline="\n")
        if script.needs_executable:
            target.chmod(target.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

"""Read-only view of the session port registry.

The agent process manager rewrites ``ports.json`` whenever an agent starts or
stops::

    {"workspaces": {"/abs/workspace/path": {"port": 14001}, ...}}

This module only reads it.  The file may be absent, stale or rewritten
mid-read; anything that does not parse into that shape reads as "no
sessions".
"""

from __future__ import annotations

import json
from functools import partial
from pathlib import Path

from anyio import to_thread
from loguru import logger

from codehydra.core.identity import normalize_path


class SessionPortRegistry:
    """Map of workspace path to the port of the agent serving it."""

    def __init__(self, ports_file: str | Path) -> None:
        self.ports_file = Path(ports_file)

    async def load(self) -> dict[str, int]:
        return await to_thread.run_sync(partial(_read_ports, self.ports_file))

    async def port_for(self, workspace_path: str) -> int | None:
        ports = await self.load()
        return ports.get(normalize_path(workspace_path))


def _read_ports(ports_file: Path) -> dict[str, int]:
    try:
        raw = ports_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        logger.warning("Cannot read {}: {}", ports_file, exc)
        return {}

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed {}", ports_file)
        return {}

    workspaces = data.get("workspaces") if isinstance(data, dict) else None
    if not isinstance(workspaces, dict):
        return {}

    ports: dict[str, int] = {}
    for path, entry in workspaces.items():
        port = entry.get("port") if isinstance(entry, dict) else None
        # bool is an int subclass
        if isinstance(port, int) and not isinstance(port, bool):
            ports[normalize_path(path)] = port
    return ports

"""Helpers for the editor's extensions directory.

Installed extensions live in ``{extensions_dir}/{publisher}.{name}-{version}``
directories; the editor also keeps an index in ``extensions.json``.  These
helpers are synchronous and meant to run inside ``anyio.to_thread.run_sync``.
"""

from __future__ import annotations

import json
import re
import shutil
from pathlib import Path

from loguru import logger

from codehydra.core.models.setup import DEFAULT_EXTENSIONS, ExtensionsConfig

EXTENSIONS_INDEX = "extensions.json"

_EXTENSION_DIR = re.compile(
    r"^(?P<id>[A-Za-z0-9][A-Za-z0-9-]*\.[A-Za-z0-9][A-Za-z0-9-]*)"
    r"-(?P<version>\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.+-]*)?)$"
)


def parse_extension_dir(name: str) -> tuple[str, str] | None:
    """Split ``publisher.name-1.2.3[-pre][+build]`` into ``(id, version)``.

    Returns ``None`` for hidden entries and anything that is not an extension.
    """
    match = _EXTENSION_DIR.fullmatch(name)
    if match is None:
        return None
    return match["id"], match["version"]


def _version_key(version: str) -> tuple:
    # Build metadata is ignored; a release outranks its pre-releases.
    release, _, pre = version.split("+", 1)[0].partition("-")
    core = tuple(int(part) for part in release.split("."))
    identifiers = tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in pre.split(".")) if pre else ()
    return core, not pre, identifiers


def list_installed_extensions(extensions_dir: Path) -> dict[str, str]:
    """Map of extension id to installed version.  Missing directory -> empty.

    When several versions of one extension are on disk the highest wins.
    """
    if not extensions_dir.is_dir():
        return {}
    installed: dict[str, str] = {}
    for entry in extensions_dir.iterdir():
        if not entry.is_dir():
            continue
        parsed = parse_extension_dir(entry.name)
        if parsed is None:
            continue
        ext_id, version = parsed
        current = installed.get(ext_id)
        if current is None or _version_key(version) > _version_key(current):
            installed[ext_id] = version
    return installed


def remove_from_extensions_json(extensions_dir: Path, extension_ids: list[str]) -> None:
    """Drop entries for ``extension_ids`` (case-insensitive) from ``extensions.json``.

    The file is left untouched when missing, unparseable, not a list, or when
    nothing matches.
    """
    if not extension_ids:
        return
    index_file = extensions_dir / EXTENSIONS_INDEX
    try:
        entries = json.loads(index_file.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Leaving unreadable {} untouched: {}", index_file, exc)
        return
    if not isinstance(entries, list):
        return

    targets = {ext_id.lower() for ext_id in extension_ids}

    def _entry_id(entry: object) -> str | None:
        if isinstance(entry, dict) and isinstance(entry.get("identifier"), dict):
            value = entry["identifier"].get("id")
            return value.lower() if isinstance(value, str) else None
        return None

    kept = [entry for entry in entries if _entry_id(entry) not in targets]
    if len(kept) == len(entries):
        return
    index_file.write_text(json.dumps(kept), encoding="utf-8")
    logger.debug("Removed {} entries from {}", len(entries) - len(kept), index_file)


def remove_extension_dirs(extensions_dir: Path, extension_ids: list[str]) -> None:
    """Delete installed directories of ``extension_ids`` (any version)."""
    targets = {ext_id.lower() for ext_id in extension_ids}
    if not targets or not extensions_dir.is_dir():
        return
    for entry in extensions_dir.iterdir():
        parsed = parse_extension_dir(entry.name)
        if entry.is_dir() and parsed is not None and parsed[0].lower() in targets:
            shutil.rmtree(entry)


def load_extensions_config(path: Path | None) -> ExtensionsConfig:
    """Read the required-extensions manifest, or the built-in default."""
    if path is None:
        return DEFAULT_EXTENSIONS
    return ExtensionsConfig.model_validate_json(path.read_text(encoding="utf-8"))

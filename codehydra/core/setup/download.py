"""Download and unpack the managed binaries (code-server, opencode).

Archives are streamed with ``httpx`` into a temporary file next to the
target, unpacked into a staging directory in a worker thread, then renamed
into ``{data_root}/{binary}/{version}`` so a half-finished download never
looks installed.
"""

from __future__ import annotations

import contextlib
import os
import platform
import shutil
import stat
import tarfile
import tempfile
import zipfile
from collections.abc import Callable
from functools import partial
from pathlib import Path

import anyio
import httpx
from anyio import to_thread
from loguru import logger

from codehydra.core.errors import BinaryDownloadError
from codehydra.core.models.enums import BinaryType, Platform
from codehydra.core.paths import DataPaths

DownloadProgress = Callable[[int, int | None], None]
"""Called with ``(bytes_received, total_bytes)``; total is ``None`` when unknown."""

_ARCH_ALIASES = {"x86_64": "x64", "amd64": "x64", "aarch64": "arm64", "arm64": "arm64"}


def release_target(binary: BinaryType, target: Platform, machine: str | None = None) -> tuple[str, str]:
    """``(os, arch)`` strings used in the release asset names of ``binary``."""
    arch = _ARCH_ALIASES.get((machine or platform.machine()).lower(), "x64")
    if binary is BinaryType.CODE_SERVER:
        os_name = {Platform.LINUX: "linux", Platform.DARWIN: "macos", Platform.WINDOWS: "windows"}[target]
        return os_name, "amd64" if arch == "x64" else arch
    os_name = {Platform.LINUX: "linux", Platform.DARWIN: "darwin", Platform.WINDOWS: "windows"}[target]
    return os_name, arch


class BinaryDownloader:
    """Fetch a binary release archive and install it under the data root."""

    def __init__(
        self,
        paths: DataPaths,
        url_templates: dict[BinaryType, str],
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 300.0,
    ) -> None:
        self._paths = paths
        self._url_templates = url_templates
        self._client = client
        self._timeout = timeout

    def url_for(self, binary: BinaryType, version: str) -> str:
        os_name, arch = release_target(binary, self._paths.platform)
        return self._url_templates[binary].format(version=version, os=os_name, arch=arch)

    async def download(self, binary: BinaryType, version: str, on_progress: DownloadProgress | None = None) -> Path:
        """Install ``binary`` at ``version`` and return the executable path."""
        url = self.url_for(binary, version)
        dest = self._paths.binary_dir(binary, version)
        dest.parent.mkdir(parents=True, exist_ok=True)

        fd, archive_name = tempfile.mkstemp(dir=dest.parent, suffix=_archive_suffix(url))
        os.close(fd)
        archive = Path(archive_name)
        try:
            logger.info("Downloading {} {} from {}", binary.value, version, url)
            await self._fetch(url, archive, on_progress)
            try:
                await to_thread.run_sync(
                    partial(_install_archive, archive, dest, strip_top_level=binary is BinaryType.CODE_SERVER)
                )
            except (tarfile.TarError, zipfile.BadZipFile, ValueError) as exc:
                raise BinaryDownloadError(f"Failed to extract {binary.value}: {exc}", code="archive") from exc
        finally:
            with contextlib.suppress(OSError):
                archive.unlink()

        executable = self._paths.binary_path(binary, version)
        if not executable.exists():
            raise BinaryDownloadError(f"Archive for {binary.value} did not contain {executable.name}", code="archive")
        if not self._paths.platform.is_windows:
            executable.chmod(executable.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        logger.info("Installed {} {} at {}", binary.value, version, executable)
        return executable

    async def _fetch(self, url: str, target: Path, on_progress: DownloadProgress | None) -> None:
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            async with client.stream("GET", url, follow_redirects=True) as response:
                response.raise_for_status()
                total = int(response.headers["content-length"]) if "content-length" in response.headers else None
                received = 0
                async with await anyio.open_file(target, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        await f.write(chunk)
                        received += len(chunk)
                        if on_progress is not None:
                            on_progress(received, total)
        except httpx.HTTPStatusError as exc:
            raise BinaryDownloadError(f"Download failed: HTTP {exc.response.status_code} for {url}") from exc
        except httpx.HTTPError as exc:
            raise BinaryDownloadError(f"Download failed for {url}: {exc}") from exc
        finally:
            if self._client is None:
                await client.aclose()


# -- Sync helpers (run in thread pool) -----------------------------------------


def _archive_suffix(url: str) -> str:
    for suffix in (".tar.gz", ".tgz", ".zip"):
        if url.endswith(suffix):
            return suffix
    return ".archive"


def _install_archive(archive: Path, dest: Path, *, strip_top_level: bool) -> None:
    """Unpack ``archive`` and move the result to ``dest``, replacing it."""
    staging = Path(tempfile.mkdtemp(dir=dest.parent, prefix=f".{dest.name}-"))
    try:
        if zipfile.is_zipfile(archive):
            _extract_zip(archive, staging)
        else:
            with tarfile.open(archive) as tar:
                tar.extractall(staging, filter="data")

        source = staging
        children = list(staging.iterdir())
        if strip_top_level and len(children) == 1 and children[0].is_dir():
            source = children[0]

        if dest.exists():
            shutil.rmtree(dest)
        os.replace(source, dest)
    finally:
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)


def _extract_zip(archive: Path, target: Path) -> None:
    root = target.resolve()
    with zipfile.ZipFile(archive) as zf:
        for name in zf.namelist():
            resolved = (root / name).resolve()
            if resolved != root and root not in resolved.parents:
                raise ValueError(f"Archive entry escapes target directory: {name}")
        zf.extractall(target)

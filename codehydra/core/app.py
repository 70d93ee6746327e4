"""Wiring of the core services from settings."""

from __future__ import annotations

from loguru import logger

from codehydra.core.git.client import GitClient
from codehydra.core.lifecycle import EmitProgress, LifecycleGate
from codehydra.core.managers.projects import ProjectManager
from codehydra.core.models.enums import BinaryType
from codehydra.core.paths import DataPaths
from codehydra.core.ports import SessionPortRegistry
from codehydra.core.settings import CodeHydraSettings
from codehydra.core.setup.download import BinaryDownloader
from codehydra.core.setup.extensions import load_extensions_config
from codehydra.core.setup.orchestrator import SetupOrchestrator
from codehydra.core.setup.preflight import PreflightChecker
from codehydra.core.store.local import LocalProjectStore


def binary_versions(settings: CodeHydraSettings) -> dict[BinaryType, str]:
    return {
        BinaryType.CODE_SERVER: settings.code_server_version,
        BinaryType.OPENCODE: settings.opencode_version,
    }


def build_setup_service(settings: CodeHydraSettings, paths: DataPaths) -> SetupOrchestrator:
    versions = binary_versions(settings)
    extensions = load_extensions_config(settings.extensions_config)
    checker = PreflightChecker(paths, versions, extensions)
    downloader = BinaryDownloader(
        paths,
        {
            BinaryType.CODE_SERVER: settings.code_server_url_template,
            BinaryType.OPENCODE: settings.opencode_url_template,
        },
        timeout=settings.download_timeout,
    )
    return SetupOrchestrator(
        paths,
        checker,
        downloader,
        versions,
        extensions,
        python_path=settings.python_path,
        extensions_bundle_dir=settings.extensions_bundle_dir,
    )


class CodeHydraApp:
    """All core services for one data root."""

    def __init__(self, settings: CodeHydraSettings) -> None:
        self.settings = settings
        self.paths = DataPaths(settings.data_root)
        self.git = GitClient()
        self.projects = ProjectManager(LocalProjectStore(self.paths.projects_dir), self.git, self.paths)
        self.ports = SessionPortRegistry(self.paths.ports_file)
        self.setup_service = build_setup_service(settings, self.paths) if settings.setup_mode == "managed" else None

    def lifecycle(self, emit_progress: EmitProgress | None = None) -> LifecycleGate:
        return LifecycleGate(self.setup_service, self.start_services, emit_progress)

    async def start_services(self) -> None:
        projects = await self.projects.load_saved()
        logger.info("Services started ({} projects)", len(projects))

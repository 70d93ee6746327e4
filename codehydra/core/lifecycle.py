"""Application lifecycle gate: ``get_state -> setup -> start_services``.

The gate decides on launch whether setup must run, runs it at most once at a
time, and starts the application's services exactly once.  Its results are
always ``LifecycleResult`` values; exceptions from the setup service or the
start action never escape.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from loguru import logger

from codehydra.core.models.enums import ApiSetupStep, AppState, ResultCode, SetupStep
from codehydra.core.models.setup import (
    ApiSetupProgress,
    LifecycleResult,
    PreflightResult,
    PreflightSuccess,
    SetupOutcome,
    SetupProgress,
)

StartServices = Callable[[], Awaitable[None]]
EmitProgress = Callable[[ApiSetupProgress], None]

_STEP_MAP: dict[SetupStep, ApiSetupStep | None] = {
    SetupStep.BINARY_DOWNLOAD: ApiSetupStep.BINARY_DOWNLOAD,
    SetupStep.EXTENSIONS: ApiSetupStep.EXTENSIONS,
    SetupStep.CONFIG: ApiSetupStep.SETTINGS,
    SetupStep.FINALIZE: None,
}


@runtime_checkable
class SetupService(Protocol):
    """What the gate needs from the installer (``SetupOrchestrator``)."""

    async def preflight(self) -> PreflightResult: ...

    async def setup(
        self,
        preflight: PreflightSuccess | None = None,
        on_progress: Callable[[SetupProgress], None] | None = None,
    ) -> SetupOutcome: ...


def to_api_progress(progress: SetupProgress) -> ApiSetupProgress | None:
    """Map an installer step to the public step; ``finalize`` maps to ``None``."""
    step = _STEP_MAP.get(progress.step)
    if step is None:
        return None
    return ApiSetupProgress(step=step, message=progress.message)


class LifecycleGate:
    """Per-instance lifecycle state.  Separate instances never share flags."""

    def __init__(
        self,
        setup_service: SetupService | None,
        start_services: StartServices,
        emit_progress: EmitProgress | None = None,
    ) -> None:
        self._setup_service = setup_service
        self._start_services = start_services
        self._emit_progress = emit_progress

        self._setup_in_progress = False
        self._services_started = False
        self._cached_preflight: PreflightSuccess | None = None

    async def get_state(self) -> AppState:
        """``setup`` when installation work is needed, else ``loading``.

        A failed preflight counts as needing setup.  Only a successful result
        is kept for the next ``setup()``.
        """
        if self._setup_service is None:
            return AppState.LOADING

        result = await self._setup_service.preflight()
        self._cached_preflight = None

        if isinstance(result, PreflightSuccess):
            self._cached_preflight = result
            if result.needs_setup:
                logger.info(
                    "Preflight: setup required (binaries={}, missing extensions={}, outdated extensions={})",
                    ",".join(result.missing_binaries) or "none",
                    ",".join(result.missing_extensions) or "none",
                    ",".join(result.outdated_extensions) or "none",
                )
                return AppState.SETUP
            logger.debug("Preflight: no setup required")
            return AppState.LOADING

        logger.warning("Preflight failed: {}", result.error.message)
        return AppState.SETUP

    async def setup(self) -> LifecycleResult:
        """Run the installer if needed.  Does not start services.

        A concurrent second call returns ``SETUP_IN_PROGRESS`` immediately.
        """
        # The guard must be set before the first await.
        if self._setup_in_progress:
            return LifecycleResult.fail("Setup already in progress", ResultCode.SETUP_IN_PROGRESS)
        self._setup_in_progress = True

        try:
            if self._setup_service is None:
                return LifecycleResult.ok()

            preflight = self._cached_preflight
            self._cached_preflight = None
            if preflight is None:
                preflight = await self._setup_service.preflight()

            if isinstance(preflight, PreflightSuccess) and not preflight.needs_setup:
                return LifecycleResult.ok()

            outcome = await self._setup_service.setup(
                preflight if isinstance(preflight, PreflightSuccess) else None,
                self._forward_progress,
            )
            if outcome.success:
                logger.info("Setup complete")
                return LifecycleResult.ok()

            error = outcome.error
            message = error.message if error is not None else "Setup failed"
            code = (error.code or error.type.value) if error is not None else ResultCode.UNKNOWN.value
            logger.warning("Setup failed: {}", message)
            return LifecycleResult.fail(message, code)
        except Exception as exc:
            logger.opt(exception=exc).warning("Setup failed: {}", exc)
            return LifecycleResult.fail(str(exc) or type(exc).__name__, ResultCode.UNKNOWN)
        finally:
            self._setup_in_progress = False

    async def start_services(self) -> LifecycleResult:
        """Run the start action once.  A failure allows a later retry."""
        if self._services_started:
            return LifecycleResult.ok()
        self._services_started = True

        try:
            await self._start_services()
        except Exception as exc:
            self._services_started = False
            logger.opt(exception=exc).warning("Service start failed: {}", exc)
            return LifecycleResult.fail(str(exc) or type(exc).__name__, ResultCode.SERVICE_START_ERROR)
        return LifecycleResult.ok()

    def _forward_progress(self, progress: SetupProgress) -> None:
        logger.debug("Setup progress: {} {}", progress.step.value, progress.message)
        api_progress = to_api_progress(progress)
        if api_progress is not None and self._emit_progress is not None:
            self._emit_progress(api_progress)

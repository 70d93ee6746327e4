"""Provisioning of the binaries, editor extensions and wrapper scripts workspaces need."""

from codehydra.core.setup.orchestrator import SetupOrchestrator
from codehydra.core.setup.preflight import PreflightChecker

__all__ = ["PreflightChecker", "SetupOrchestrator"]

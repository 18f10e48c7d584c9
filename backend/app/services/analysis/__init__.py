"""
Analysis orchestration pipeline: session record, progress ledger, bulk
analysis client and background enhancement dispatch.
"""

from .progress_ledger import ProgressLedger
from .session_service import AnalysisSessionService
from .stage_executor import StageExecutor, HttpStageExecutor
from .dispatch import (
    EnhancementDispatcher, InProcessEnhancementDispatcher, CeleryEnhancementDispatcher,
    build_dispatcher
)
from .orchestrator import AnalysisOrchestrator

__all__ = [
    "ProgressLedger",
    "AnalysisSessionService",
    "StageExecutor",
    "HttpStageExecutor",
    "EnhancementDispatcher",
    "InProcessEnhancementDispatcher",
    "CeleryEnhancementDispatcher",
    "build_dispatcher",
    "AnalysisOrchestrator",
]

"""Pipeline orchestration."""

from .orchestrator import STAGE_NAMES, PipelineOrchestrator, PipelineStage, StageStats

__all__ = ["STAGE_NAMES", "PipelineOrchestrator", "PipelineStage", "StageStats"]

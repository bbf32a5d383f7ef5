"""Batch correlation runs: orchestration, state and statistics."""

from .models import (
    BatchRun,
    BatchRunStatus,
    BatchStatistics,
    SkippedIssue,
    compute_statistics,
)
from .orchestrator import BatchOrchestrator

__all__ = [
    "BatchOrchestrator",
    "BatchRun",
    "BatchRunStatus",
    "BatchStatistics",
    "SkippedIssue",
    "compute_statistics",
]

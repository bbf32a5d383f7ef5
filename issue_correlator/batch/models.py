"""Pydantic models for batch correlation runs."""

from collections import Counter
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from ..analysis.models import IssueAnalysis


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BatchRunStatus(str, Enum):
    """Status of a batch correlation run."""

    IDLE = "idle"
    FETCHING = "fetching"
    ANALYZING = "analyzing"
    CHECKPOINTING = "checkpointing"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset(
    {BatchRunStatus.COMPLETED, BatchRunStatus.STOPPED, BatchRunStatus.FAILED}
)

ALLOWED_TRANSITIONS: dict[BatchRunStatus, frozenset[BatchRunStatus]] = {
    BatchRunStatus.IDLE: frozenset(
        {BatchRunStatus.FETCHING, BatchRunStatus.STOPPED, BatchRunStatus.FAILED}
    ),
    BatchRunStatus.FETCHING: frozenset(
        {BatchRunStatus.ANALYZING, BatchRunStatus.STOPPED, BatchRunStatus.FAILED}
    ),
    BatchRunStatus.ANALYZING: frozenset(
        {BatchRunStatus.CHECKPOINTING, BatchRunStatus.FAILED}
    ),
    BatchRunStatus.CHECKPOINTING: frozenset(
        {
            BatchRunStatus.ANALYZING,
            BatchRunStatus.COMPLETED,
            BatchRunStatus.STOPPED,
            BatchRunStatus.FAILED,
        }
    ),
    BatchRunStatus.COMPLETED: frozenset(),
    BatchRunStatus.STOPPED: frozenset(),
    BatchRunStatus.FAILED: frozenset(),
}


class SkippedIssue(BaseModel):
    """An issue that could not be analyzed; a gap in the run."""

    index: int = Field(description="Position of the issue in the corpus")
    number: int = Field(description="Issue number")
    error: str = Field(description="Why the issue was skipped")


class BatchStatistics(BaseModel):
    """Aggregated statistics over a run's analyses."""

    total_issues: int = Field(0, description="Issues in the corpus")
    analyzed: int = Field(0, description="Issues with an analysis")
    skipped: int = Field(0, description="Issues recorded as gaps")
    total_candidates: int = 0
    total_precedents: int = 0
    total_community_views: int = 0
    issues_with_candidates: int = 0
    issues_with_answered_candidates: int = 0
    solution_coverage: float = Field(
        0.0, description="% of analyzed issues with candidates"
    )
    accepted_answer_rate: float = Field(
        0.0, description="% of analyzed issues with an answered candidate"
    )
    average_confidence: float = 0.0
    complexity_distribution: dict[str, int] = Field(default_factory=dict)
    solvability_distribution: dict[str, int] = Field(default_factory=dict)
    duration_seconds: float | None = Field(None, description="Wall time of the run")
    peak_memory_mb: float | None = Field(None, description="Peak sampled RSS")


class BatchRun(BaseModel):
    """State of one batch correlation run.

    Owned by a single BatchOrchestrator, which is its only writer and
    persists it through explicit checkpoints. A checkpoint holds the cursor,
    gaps and counters; analyses are appended to a separate results file.
    """

    run_id: str = Field(description="Unique identifier for the run")
    org: str = Field(description="GitHub organization name")
    repo: str = Field(description="GitHub repository name")
    state: str = Field("all", description="Issue state filter (open, closed, all)")
    batch_size: int = Field(5, ge=1, description="Fixed batch grid over the corpus")
    status: BatchRunStatus = Field(default=BatchRunStatus.IDLE)

    total_issues: int = Field(0, description="Issues in the corpus snapshot")
    next_index: int = Field(0, description="Corpus index to resume from")
    completed_batches: int = 0
    analyzed_count: int = Field(0, description="Analyses persisted to the results file")

    # Kept out of the checkpoint; stored line by line in the results file
    analyses: list[IssueAnalysis] = Field(
        default_factory=list, exclude=True, description="Results in corpus order"
    )
    skipped: list[SkippedIssue] = Field(default_factory=list)
    statistics: BatchStatistics | None = None

    started_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    finished_at: datetime | None = None
    error: str | None = Field(None, description="Failure reason when status is failed")

    @property
    def is_finished(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, status: BatchRunStatus) -> None:
        """Move to a new status.

        Raises:
            RuntimeError: If the transition is not allowed
        """
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise RuntimeError(
                f"Illegal batch run transition {self.status.value} -> {status.value}"
            )
        self.status = status
        self.updated_at = utc_now()
        if status in TERMINAL_STATUSES:
            self.finished_at = self.updated_at

    def reopen(self) -> None:
        """Reset an unfinished or stopped run to idle so it can be resumed."""
        if self.status == BatchRunStatus.COMPLETED:
            raise RuntimeError(f"Run {self.run_id} is already completed")
        self.status = BatchRunStatus.IDLE
        self.finished_at = None
        self.error = None
        self.updated_at = utc_now()


def compute_statistics(
    run: BatchRun,
    duration_seconds: float | None = None,
    peak_memory_mb: float | None = None,
) -> BatchStatistics:
    """Aggregate statistics over the analyses of a run."""
    analyses = run.analyses
    analyzed = len(analyses)

    with_candidates = sum(1 for a in analyses if a.candidates)
    with_answered = sum(
        1 for a in analyses if any(c.is_answered for c in a.candidates)
    )

    def percent(count: int) -> float:
        return round(count / analyzed * 100, 1) if analyzed else 0.0

    return BatchStatistics(
        total_issues=run.total_issues,
        analyzed=analyzed,
        skipped=len(run.skipped),
        total_candidates=sum(len(a.candidates) for a in analyses),
        total_precedents=sum(len(a.precedents) for a in analyses),
        total_community_views=sum(a.verdict.community_interest for a in analyses),
        issues_with_candidates=with_candidates,
        issues_with_answered_candidates=with_answered,
        solution_coverage=percent(with_candidates),
        accepted_answer_rate=percent(with_answered),
        average_confidence=(
            round(sum(a.verdict.confidence for a in analyses) / analyzed, 1)
            if analyzed
            else 0.0
        ),
        complexity_distribution=dict(
            Counter(a.verdict.complexity.value for a in analyses)
        ),
        solvability_distribution=dict(
            Counter(a.verdict.solvability.value for a in analyses)
        ),
        duration_seconds=duration_seconds,
        peak_memory_mb=peak_memory_mb,
    )

"""Batch orchestration of issue correlation.

One logical worker walks the corpus in fetch order, in batches on a fixed
grid. After every batch the new analyses are appended to the results file
and the BatchRun is checkpointed, so an interrupted run resumes where it
left off.
"""

import logging
import threading
import time
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

import psutil

from ..analysis.models import IssueAnalysis, IssueEngagement, SearchLinks
from ..analysis.precedents import PrecedentFinder
from ..analysis.search import KnowledgeSearchClient, SolutionSearcher
from ..analysis.signals import SignalExtractor
from ..analysis.synthesizer import AnalysisSynthesizer
from ..config import CorrelatorSettings
from ..exceptions import ConfigurationError, CorrelatorError
from ..github_client.models import GitHubComment, GitHubIssue
from ..retry import RateLimiter
from .models import BatchRun, BatchRunStatus, SkippedIssue, compute_statistics

if TYPE_CHECKING:
    from ..storage.manager import StorageManager

logger = logging.getLogger(__name__)


class IssueSource(Protocol):
    """What the orchestrator needs from an issue tracker client."""

    def list_issues(
        self,
        org: str,
        repo: str,
        state: str = "all",
        page: int = 1,
        page_size: int | None = None,
    ) -> list[GitHubIssue]: ...

    def get_comments(
        self, org: str, repo: str, issue_number: int
    ) -> list[GitHubComment]: ...


def current_memory_mb() -> float:
    """Resident set size of this process in MB."""
    return psutil.Process().memory_info().rss / (1024 * 1024)


class BatchOrchestrator:
    """Runs the correlation pipeline over a repository's issues."""

    def __init__(
        self,
        issue_source: IssueSource,
        knowledge_client: KnowledgeSearchClient,
        storage: "StorageManager",
        settings: CorrelatorSettings | None = None,
        limiter: RateLimiter | None = None,
        stop_event: threading.Event | None = None,
        memory_sampler: Callable[[], float] = current_memory_mb,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize batch orchestrator.

        Args:
            issue_source: Issue tracker client (GitHubClient)
            knowledge_client: Knowledge base client (StackExchangeClient)
            storage: Storage for checkpoints and corpus snapshots
            settings: Correlator settings
            limiter: Rate limiter shared with the clients
            stop_event: Event that requests a clean stop between items
            memory_sampler: Returns current memory use in MB
            clock: Monotonic clock used for run duration
        """
        self.issue_source = issue_source
        self.storage = storage
        self.settings = settings or CorrelatorSettings()
        batch = self.settings.batch
        self.limiter = limiter or RateLimiter(
            min_interval=batch.min_request_interval,
            cool_down_seconds=batch.rate_limit_cool_down,
            max_cool_down=batch.max_cool_down,
        )
        self.retry_policy = batch.retry
        self.stop_event = stop_event or threading.Event()
        self.memory_sampler = memory_sampler
        self.clock = clock
        self.peak_memory_mb = 0.0

        self.extractor = SignalExtractor(self.settings.signals)
        self.searcher = SolutionSearcher(knowledge_client, self.settings.search)
        self.precedent_finder = PrecedentFinder(self.settings.precedents)
        self.synthesizer = AnalysisSynthesizer(self.settings.synthesis)

    def request_stop(self) -> None:
        """Ask the run to stop after the current item."""
        logger.info("Stop requested, finishing current item")
        self.stop_event.set()

    def run(
        self,
        org: str,
        repo: str,
        state: str = "all",
        max_issues: int | None = None,
        batch_size: int | None = None,
        resume: bool = True,
    ) -> BatchRun:
        """Analyze a repository's issues.

        Args:
            org: Organization name
            repo: Repository name
            state: Issue state filter (open, closed, all)
            max_issues: Maximum number of issues to analyze
            batch_size: Issues per checkpointed batch (new runs only)
            resume: Continue from an existing checkpoint if there is one

        Returns:
            The BatchRun in a terminal status (completed, stopped or failed)

        Raises:
            ConfigurationError: Missing org/repo, or the issue source rejected
                our credentials or target
            Exception: Anything unexpected outside per-issue analysis, after
                the run is marked failed and checkpointed
        """
        if not org or not repo:
            raise ConfigurationError("Both org and repo are required", org=org, repo=repo)
        if state not in ("open", "closed", "all"):
            raise ConfigurationError(f"Invalid issue state '{state}'", state=state)

        max_issues = max_issues or self.settings.batch.max_issues
        batch_size = batch_size or self.settings.batch.batch_size

        run, corpus = self._prepare(org, repo, state, batch_size, resume)
        if run.status == BatchRunStatus.COMPLETED:
            logger.info(
                "Run %s for %s/%s already completed; use a fresh run to redo it",
                run.run_id,
                org,
                repo,
            )
            return run

        started = self.clock()
        self.peak_memory_mb = self._sample_memory()
        try:
            run.transition(BatchRunStatus.FETCHING)
            if corpus is None:
                corpus = self._fetch_corpus(org, repo, state, max_issues)
                if self.stop_event.is_set():
                    run.transition(BatchRunStatus.STOPPED)
                    self._finalize(run, started)
                    return run
                self.storage.save_corpus(
                    org, repo, state, corpus, {"max_issues": max_issues}
                )
            else:
                logger.info("Reusing corpus snapshot of %d issues", len(corpus))

            run.total_issues = len(corpus)
            run.transition(BatchRunStatus.ANALYZING)
            self._analyze(run, corpus)
        except ConfigurationError as e:
            self._fail(run, e, started)
            raise
        except CorrelatorError as e:
            self._fail(run, e, started)
            return run
        except Exception as e:
            logger.exception("Unexpected error in run %s", run.run_id)
            self._fail(run, e, started)
            raise

        self._finalize(run, started)
        return run

    def analyze_issue(
        self, org: str, repo: str, issue: GitHubIssue, corpus: list[GitHubIssue]
    ) -> IssueAnalysis:
        """Run the full pipeline for one issue.

        Raises:
            CorrelatorError: Comments could not be fetched (ExhaustedRetry or
                a non-transient error); the caller records a gap
        """
        comments = self.retry_policy.call(
            self.issue_source.get_comments,
            org,
            repo,
            issue.number,
            limiter=self.limiter,
        )
        issue = issue.with_comments(comments)

        signals = self.extractor.extract(issue)
        candidates = self.searcher.search(signals)
        precedents = self.precedent_finder.find(issue, corpus)
        verdict = self.synthesizer.synthesize(
            signals, candidates, precedents, IssueEngagement.from_issue(issue)
        )
        return IssueAnalysis(
            issue=issue,
            signals=signals,
            candidates=candidates,
            precedents=precedents,
            verdict=verdict,
            links=SearchLinks.for_issue(issue),
        )

    def _prepare(
        self, org: str, repo: str, state: str, batch_size: int, resume: bool
    ) -> tuple[BatchRun, list[GitHubIssue] | None]:
        """Load a resumable run with its corpus, or start a new one."""
        if resume:
            existing = self.storage.load_checkpoint(org, repo, state)
            if existing is not None:
                existing.analyses = self.storage.load_results(
                    org, repo, state, limit=existing.analyzed_count
                )
            if existing is not None and existing.status == BatchRunStatus.COMPLETED:
                return existing, None
            if existing is not None:
                snapshot = self.storage.load_corpus(org, repo, state)
                if snapshot is None:
                    logger.warning(
                        "Checkpoint for %s/%s has no corpus snapshot, starting over",
                        org,
                        repo,
                    )
                elif len(existing.analyses) < existing.analyzed_count:
                    logger.warning(
                        "Results for %s/%s hold %d of %d analyses, starting over",
                        org,
                        repo,
                        len(existing.analyses),
                        existing.analyzed_count,
                    )
                else:
                    # Drop lines appended after the last checkpoint
                    self.storage.rewrite_results(existing)
                    existing.reopen()
                    logger.info(
                        "Resuming run %s at issue %d of %d",
                        existing.run_id,
                        existing.next_index,
                        len(snapshot.issues),
                    )
                    return existing, snapshot.issues

        run = BatchRun(
            run_id=uuid.uuid4().hex[:12],
            org=org,
            repo=repo,
            state=state,
            batch_size=batch_size,
        )
        self.storage.delete_results(org, repo, state)
        logger.info("Starting run %s for %s/%s (%s issues)", run.run_id, org, repo, state)
        return run, None

    def _fetch_corpus(
        self, org: str, repo: str, state: str, max_issues: int
    ) -> list[GitHubIssue]:
        """Fetch issues page by page, dropping pull requests.

        A failure on the first page is fatal. A failure on a later page
        ends the fetch with what was collected so far.
        """
        page_size = self.settings.batch.page_size
        issues: list[GitHubIssue] = []
        page = 1

        while len(issues) < max_issues and not self.stop_event.is_set():
            try:
                records = self.retry_policy.call(
                    self.issue_source.list_issues,
                    org,
                    repo,
                    state=state,
                    page=page,
                    page_size=page_size,
                    limiter=self.limiter,
                )
            except ConfigurationError:
                raise
            except CorrelatorError as e:
                if not issues:
                    raise
                logger.warning(
                    "Fetching page %d failed, continuing with %d issues: %s",
                    page,
                    len(issues),
                    e,
                )
                break

            issues.extend(record for record in records if not record.is_pull_request)
            logger.info("Fetched page %d: %d issues so far", page, len(issues))
            if len(records) < page_size:
                break
            page += 1

        return issues[:max_issues]

    def _analyze(self, run: BatchRun, corpus: list[GitHubIssue]) -> None:
        """Process the corpus from ``run.next_index`` batch by batch."""
        total = len(corpus)
        while True:
            batch_end = min((run.next_index // run.batch_size + 1) * run.batch_size, total)
            while run.next_index < batch_end and not self.stop_event.is_set():
                self._process_item(run, corpus, run.next_index)
                run.next_index += 1

            if run.next_index == batch_end and batch_end > 0:
                run.completed_batches += 1
                logger.info(
                    "Batch %d done: %d/%d issues, %d skipped",
                    run.completed_batches,
                    run.next_index,
                    total,
                    len(run.skipped),
                )

            run.transition(BatchRunStatus.CHECKPOINTING)
            self._check_memory()
            self._persist(run)

            if self.stop_event.is_set() and run.next_index < total:
                run.transition(BatchRunStatus.STOPPED)
                logger.info("Run %s stopped at issue %d", run.run_id, run.next_index)
                return
            if run.next_index >= total:
                run.transition(BatchRunStatus.COMPLETED)
                return
            run.transition(BatchRunStatus.ANALYZING)

    def _process_item(self, run: BatchRun, corpus: list[GitHubIssue], index: int) -> None:
        issue = corpus[index]
        try:
            analysis = self.analyze_issue(run.org, run.repo, issue, corpus)
        except CorrelatorError as e:
            logger.warning("Skipping issue #%d: %s", issue.number, e)
            run.skipped.append(SkippedIssue(index=index, number=issue.number, error=str(e)))
            return
        except Exception as e:
            logger.exception("Unexpected error analyzing issue #%d", issue.number)
            run.skipped.append(
                SkippedIssue(
                    index=index,
                    number=issue.number,
                    error=f"{type(e).__name__}: {e}",
                )
            )
            return

        run.analyses.append(analysis)
        logger.debug(
            "Issue #%d: %d candidates, %d precedents, %s complexity",
            issue.number,
            len(analysis.candidates),
            len(analysis.precedents),
            analysis.verdict.complexity.value,
        )

    def _sample_memory(self) -> float:
        try:
            return self.memory_sampler()
        except psutil.Error as e:
            logger.debug("Could not sample memory: %s", e)
            return 0.0

    def _check_memory(self) -> None:
        """Record peak memory and warn above the threshold. Advisory only."""
        memory_mb = self._sample_memory()
        self.peak_memory_mb = max(self.peak_memory_mb, memory_mb)
        if memory_mb > self.settings.batch.memory_warning_mb:
            logger.warning(
                "High memory usage: %.1f MB (threshold %.0f MB)",
                memory_mb,
                self.settings.batch.memory_warning_mb,
            )

    def _finalize(self, run: BatchRun, started: float) -> None:
        run.statistics = compute_statistics(
            run,
            duration_seconds=round(self.clock() - started, 2),
            peak_memory_mb=round(self.peak_memory_mb, 1),
        )
        self._persist(run)
        logger.info(
            "Run %s %s: %d analyzed, %d skipped",
            run.run_id,
            run.status.value,
            run.statistics.analyzed,
            run.statistics.skipped,
        )

    def _fail(self, run: BatchRun, error: Exception, started: float) -> None:
        logger.error("Run %s failed: %s", run.run_id, error)
        run.error = str(error)
        if not run.is_finished:
            run.transition(BatchRunStatus.FAILED)
        run.statistics = compute_statistics(
            run, duration_seconds=round(self.clock() - started, 2)
        )
        try:
            self._persist(run)
        except OSError as e:
            logger.error("Could not persist failed run %s: %s", run.run_id, e)

    def _persist(self, run: BatchRun) -> None:
        """Append analyses not yet stored, then checkpoint the run.

        The checkpoint is written last, so it never counts analyses the
        results file does not hold.
        """
        pending = run.analyses[run.analyzed_count :]
        if pending:
            self.storage.append_results(run, pending)
            run.analyzed_count = len(run.analyses)
        self.storage.save_checkpoint(run)

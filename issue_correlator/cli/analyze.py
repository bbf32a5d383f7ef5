"""CLI commands for running and inspecting correlation runs."""

import signal
from pathlib import Path
from types import FrameType

import typer
from rich.console import Console
from rich.table import Table

from ..batch.models import BatchRun, BatchRunStatus
from ..batch.orchestrator import BatchOrchestrator
from ..config import load_settings
from ..exceptions import ConfigurationError
from ..github_client.client import GitHubClient
from ..knowledge.client import StackExchangeClient
from ..retry import RateLimiter
from ..storage.manager import StorageManager
from .options import (
    BATCH_SIZE_OPTION,
    CONFIG_OPTION,
    DATA_DIR_OPTION,
    MAX_ISSUES_OPTION,
    ORG_OPTION,
    ORG_OPTION_OPTIONAL,
    OUTPUT_OPTION,
    PAGE_SIZE_OPTION,
    REPO_OPTION,
    REPO_OPTION_OPTIONAL,
    RESUME_OPTION,
    STATE_OPTION,
    TOKEN_OPTION,
)

console = Console()


def analyze(
    org: str = ORG_OPTION,
    repo: str = REPO_OPTION,
    state: str = STATE_OPTION,
    max_issues: int | None = MAX_ISSUES_OPTION,
    batch_size: int | None = BATCH_SIZE_OPTION,
    page_size: int | None = PAGE_SIZE_OPTION,
    resume: bool = RESUME_OPTION,
    data_dir: str = DATA_DIR_OPTION,
    config: Path | None = CONFIG_OPTION,
    token: str | None = TOKEN_OPTION,
    output: Path | None = OUTPUT_OPTION,
) -> None:
    """Correlate a repository's issues with community solutions.

    Press Ctrl+C once to stop cleanly after the current issue; the run
    is checkpointed and continues from there on the next invocation.

    Examples:
        issue-correlator analyze --org facebook --repo react --max-issues 50
        issue-correlator analyze -o myorg -r myrepo --state open --no-resume
    """
    try:
        settings = load_settings(
            config,
            overrides={
                "max_issues": max_issues,
                "batch_size": batch_size,
                "page_size": page_size,
            },
        )
        batch_settings = settings.batch
        limiter = RateLimiter(
            min_interval=batch_settings.min_request_interval,
            cool_down_seconds=batch_settings.rate_limit_cool_down,
            max_cool_down=batch_settings.max_cool_down,
        )
        github = GitHubClient(
            token=token, per_page=batch_settings.page_size, limiter=limiter
        )
    except ConfigurationError as e:
        console.print(f"❌ Configuration error: {e}")
        raise typer.Exit(1)

    storage = StorageManager(data_dir)
    console.print(f"🔍 Analyzing {state} issues of {org}/{repo}")

    with StackExchangeClient(
        limiter=limiter, retry_policy=batch_settings.retry
    ) as knowledge:
        orchestrator = BatchOrchestrator(
            github, knowledge, storage, settings=settings, limiter=limiter
        )

        def handle_interrupt(signum: int, frame: FrameType | None) -> None:
            console.print("⏸️  Stopping after the current issue...")
            orchestrator.request_stop()

        previous_handler = signal.signal(signal.SIGINT, handle_interrupt)
        try:
            run = orchestrator.run(org, repo, state=state, resume=resume)
        except ConfigurationError as e:
            console.print(f"❌ Configuration error: {e}")
            raise typer.Exit(1)
        finally:
            signal.signal(signal.SIGINT, previous_handler)

    print_run_summary(run)

    if run.status == BatchRunStatus.FAILED:
        console.print(f"❌ Run failed: {run.error}")
        raise typer.Exit(1)

    export_path = storage.export_run(run, output)
    console.print(f"💾 Exported {len(run.analyses)} analyses to {export_path}")
    if run.status == BatchRunStatus.STOPPED:
        console.print("⏸️  Run stopped; re-run the same command to resume")


def status(
    org: str | None = ORG_OPTION_OPTIONAL,
    repo: str | None = REPO_OPTION_OPTIONAL,
    state: str = STATE_OPTION,
    data_dir: str = DATA_DIR_OPTION,
) -> None:
    """Show stored runs, or the checkpoint of one run."""
    storage = StorageManager(data_dir)

    if org and repo:
        run = storage.load_checkpoint(org, repo, state)
        if run is None:
            console.print(f"No checkpoint found for {org}/{repo} ({state})")
            raise typer.Exit(1)
        print_run_summary(run)
        return

    console.print("📊 Storage Status")
    stats = storage.get_storage_stats()

    stats_table = Table(title="Storage Statistics")
    stats_table.add_column("Metric", style="cyan")
    stats_table.add_column("Value", style="green")

    stats_table.add_row("Checkpoints", str(stats["checkpoints"]))
    stats_table.add_row("Corpus Snapshots", str(stats["corpora"]))
    stats_table.add_row("Result Files", str(stats["results"]))
    stats_table.add_row("Exports", str(stats["exports"]))
    stats_table.add_row("Storage Size", f"{stats['total_size_mb']} MB")
    stats_table.add_row("Storage Path", stats["storage_path"])

    console.print(stats_table)

    checkpoints = storage.list_checkpoints()
    if checkpoints:
        console.print("Checkpoints:")
        for name in checkpoints:
            console.print(f"  {name}")
    else:
        console.print("No runs found in storage.")


def print_run_summary(run: BatchRun) -> None:
    """Print run progress and statistics as tables."""
    table = Table(title=f"Run {run.run_id}: {run.org}/{run.repo}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Status", run.status.value)
    table.add_row("Progress", f"{run.next_index}/{run.total_issues}")
    table.add_row("Batches", str(run.completed_batches))
    table.add_row("Analyzed", str(run.analyzed_count))
    table.add_row("Skipped", str(len(run.skipped)))

    stats = run.statistics
    if stats is not None:
        table.add_row("Solution Coverage", f"{stats.solution_coverage}%")
        table.add_row("Accepted Answer Rate", f"{stats.accepted_answer_rate}%")
        table.add_row("Average Confidence", f"{stats.average_confidence}%")
        table.add_row("Total Candidates", str(stats.total_candidates))
        table.add_row("Total Precedents", str(stats.total_precedents))
        table.add_row("Community Views", f"{stats.total_community_views:,}")
        if stats.duration_seconds is not None:
            table.add_row("Duration", f"{stats.duration_seconds:.1f}s")
        if stats.peak_memory_mb:
            table.add_row("Peak Memory", f"{stats.peak_memory_mb} MB")

    console.print(table)

    if stats is not None and stats.complexity_distribution:
        dist_table = Table(title="Verdict Distribution")
        dist_table.add_column("Level", style="cyan")
        dist_table.add_column("Complexity", justify="right", style="green")
        dist_table.add_column("Solvability", justify="right", style="green")
        for level in ("High", "Medium", "Low"):
            dist_table.add_row(
                level,
                str(stats.complexity_distribution.get(level, 0)),
                str(stats.solvability_distribution.get(level, 0)),
            )
        console.print(dist_table)

"""Shared CLI option definitions so every command uses the same shorthands."""

import typer

# Target options
ORG_OPTION = typer.Option(..., "--org", "-o", help="GitHub organization name")
ORG_OPTION_OPTIONAL = typer.Option(None, "--org", "-o", help="GitHub organization name")

REPO_OPTION = typer.Option(..., "--repo", "-r", help="GitHub repository name")
REPO_OPTION_OPTIONAL = typer.Option(
    None, "--repo", "-r", help="GitHub repository name"
)

STATE_OPTION = typer.Option(
    "all", "--state", "-s", help="Issue state: open, closed, or all"
)

# Run size options; None falls back to the settings file or defaults
MAX_ISSUES_OPTION = typer.Option(
    None, "--max-issues", "-n", help="Maximum number of issues to analyze"
)

BATCH_SIZE_OPTION = typer.Option(
    None, "--batch-size", "-b", help="Issues per checkpointed batch"
)

PAGE_SIZE_OPTION = typer.Option(
    None, "--page-size", help="Issues fetched per API page (max 100)"
)

# Behavior options
RESUME_OPTION = typer.Option(
    True, "--resume/--no-resume", help="Continue from an existing checkpoint"
)

# Data options
DATA_DIR_OPTION = typer.Option(
    "data/runs", "--data-dir", help="Directory for checkpoints and exports"
)

CONFIG_OPTION = typer.Option(
    None, "--config", "-c", help="JSON settings file overriding the defaults"
)

OUTPUT_OPTION = typer.Option(
    None, "--output", help="Export file (defaults to <data-dir>/<run>_analysis.json)"
)

TOKEN_OPTION = typer.Option(
    None, "--token", "-t", help="GitHub API token (defaults to GITHUB_TOKEN env var)"
)

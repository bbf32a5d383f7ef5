"""Test main CLI functionality."""

import os
from unittest.mock import patch

from typer.testing import CliRunner

from issue_correlator.batch.models import BatchRun, BatchRunStatus, compute_statistics
from issue_correlator.cli.main import app
from issue_correlator.storage.manager import StorageManager

runner = CliRunner()


def test_version_command() -> None:
    """Test version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "Issue Correlator v" in result.stdout


def test_status_empty_storage(temp_data_dir) -> None:
    result = runner.invoke(app, ["status", "--data-dir", str(temp_data_dir)])
    assert result.exit_code == 0
    assert "Storage Statistics" in result.stdout
    assert "No runs found" in result.stdout


def test_status_for_missing_run(temp_data_dir) -> None:
    result = runner.invoke(
        app,
        ["status", "-o", "testorg", "-r", "testrepo", "--data-dir", str(temp_data_dir)],
    )
    assert result.exit_code == 1
    assert "No checkpoint found" in result.stdout


def test_status_for_stored_run(temp_data_dir) -> None:
    run = BatchRun(run_id="abc123", org="testorg", repo="testrepo", total_issues=4)
    run.statistics = compute_statistics(run)
    StorageManager(temp_data_dir).save_checkpoint(run)

    result = runner.invoke(
        app,
        ["status", "-o", "testorg", "-r", "testrepo", "--data-dir", str(temp_data_dir)],
    )

    assert result.exit_code == 0
    assert "abc123" in result.stdout
    assert "0/4" in result.stdout


@patch.dict(os.environ, {}, clear=True)
def test_analyze_without_token(temp_data_dir) -> None:
    result = runner.invoke(
        app,
        ["analyze", "-o", "testorg", "-r", "testrepo", "--data-dir", str(temp_data_dir)],
    )
    assert result.exit_code == 1
    assert "GitHub token is required" in result.stdout


def test_analyze_rejects_invalid_config(tmp_path, temp_data_dir) -> None:
    config_file = tmp_path / "settings.json"
    config_file.write_text('{"batch": {"batch_size": 0}}')

    result = runner.invoke(
        app,
        [
            "analyze",
            "-o",
            "testorg",
            "-r",
            "testrepo",
            "--config",
            str(config_file),
            "--token",
            "test_token",
        ],
    )

    assert result.exit_code == 1
    assert "Configuration error" in result.stdout


def test_analyze_exports_results(temp_data_dir) -> None:
    run = BatchRun(
        run_id="abc123",
        org="testorg",
        repo="testrepo",
        status=BatchRunStatus.COMPLETED,
    )
    run.statistics = compute_statistics(run)

    with (
        patch("issue_correlator.cli.analyze.GitHubClient") as mock_github,
        patch("issue_correlator.cli.analyze.StackExchangeClient"),
        patch("issue_correlator.cli.analyze.BatchOrchestrator") as mock_orchestrator,
    ):
        mock_orchestrator.return_value.run.return_value = run
        result = runner.invoke(
            app,
            [
                "analyze",
                "-o",
                "testorg",
                "-r",
                "testrepo",
                "--max-issues",
                "20",
                "--page-size",
                "50",
                "--token",
                "test_token",
                "--no-resume",
                "--data-dir",
                str(temp_data_dir),
            ],
        )

    assert result.exit_code == 0, result.stdout
    assert mock_github.call_args.kwargs["per_page"] == 50
    mock_orchestrator.return_value.run.assert_called_once_with(
        "testorg", "testrepo", state="all", resume=False
    )
    settings = mock_orchestrator.call_args.kwargs["settings"]
    assert settings.batch.max_issues == 20
    assert (temp_data_dir / "testorg_testrepo_all_analysis.json").exists()

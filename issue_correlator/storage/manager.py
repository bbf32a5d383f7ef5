"""Storage manager for batch runs, corpus snapshots and exported analyses."""

import json
import logging
import os
import tempfile
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import IO, Any

from pydantic import BaseModel, ValidationError

from .. import __version__
from ..analysis.models import IssueAnalysis
from ..batch.models import BatchRun
from ..github_client.models import CorpusSnapshot, GitHubIssue

logger = logging.getLogger(__name__)

CHECKPOINT_SUFFIX = "checkpoint"
CORPUS_SUFFIX = "corpus"
RESULTS_SUFFIX = "results"
ANALYSIS_SUFFIX = "analysis"


class StorageManager:
    """Manages run state as JSON files in one directory.

    A run is stored as three files: a small checkpoint (cursor, gaps and
    counters), the corpus snapshot written once per run, and a JSON Lines
    results file that each batch appends its analyses to.
    """

    def __init__(self, base_path: str | Path = "data/runs"):
        """Initialize storage manager.

        Args:
            base_path: Base directory for checkpoint, corpus and export files
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _generate_filename(
        self, org: str, repo: str, state: str, suffix: str, extension: str = "json"
    ) -> str:
        """Generate filename for a run artifact.

        Args:
            org: Organization name
            repo: Repository name
            state: Issue state filter of the run
            suffix: Artifact kind (checkpoint, corpus, results, analysis)
            extension: File extension

        Returns:
            Filename string
        """
        return f"{org}_{repo}_{state}_{suffix}.{extension}"

    def _get_file_path(
        self, org: str, repo: str, state: str, suffix: str, extension: str = "json"
    ) -> Path:
        return self.base_path / self._generate_filename(
            org, repo, state, suffix, extension
        )

    def _get_results_path(self, org: str, repo: str, state: str) -> Path:
        return self._get_file_path(org, repo, state, RESULTS_SUFFIX, "jsonl")

    def _write_atomic(self, file_path: Path, write: Callable[[IO[str]], None]) -> Path:
        """Write a file through a temp file and an atomic rename.

        A crash mid-write leaves the previous file intact.
        """
        file_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                write(f)
            os.replace(tmp_name, file_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return file_path

    def _write_json(self, file_path: Path, data: Any) -> Path:
        return self._write_atomic(
            file_path, lambda f: json.dump(data, f, indent=2, ensure_ascii=False)
        )

    def _read_model(self, file_path: Path, model: type[BaseModel]) -> Any:
        if not file_path.exists():
            return None

        try:
            with open(file_path, encoding="utf-8") as f:
                return model.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("Ignoring unreadable file %s: %s", file_path, e)
            return None

    def save_checkpoint(self, run: BatchRun) -> Path:
        """Persist the cursor, gaps and counters of a run.

        Analyses are not part of the checkpoint; see ``append_results``.

        Args:
            run: BatchRun to save

        Returns:
            Path to the checkpoint file
        """
        file_path = self._get_file_path(run.org, run.repo, run.state, CHECKPOINT_SUFFIX)
        self._write_json(file_path, run.model_dump(mode="json"))
        logger.debug(
            "Checkpointed run %s at index %d (%s)",
            run.run_id,
            run.next_index,
            run.status.value,
        )
        return file_path

    def load_checkpoint(self, org: str, repo: str, state: str = "all") -> BatchRun | None:
        """Load the checkpoint of a run, without its analyses.

        Returns:
            BatchRun or None if no readable checkpoint exists
        """
        return self._read_model(
            self._get_file_path(org, repo, state, CHECKPOINT_SUFFIX), BatchRun
        )

    def delete_checkpoint(self, org: str, repo: str, state: str = "all") -> bool:
        """Delete a checkpoint with its corpus snapshot and results.

        Returns:
            True if a checkpoint was deleted
        """
        checkpoint = self._get_file_path(org, repo, state, CHECKPOINT_SUFFIX)
        existed = checkpoint.exists()
        checkpoint.unlink(missing_ok=True)
        self._get_file_path(org, repo, state, CORPUS_SUFFIX).unlink(missing_ok=True)
        self.delete_results(org, repo, state)
        return existed

    def append_results(self, run: BatchRun, analyses: list[IssueAnalysis]) -> Path:
        """Append analyses to the run's results file, one JSON object per line.

        Args:
            run: BatchRun the analyses belong to
            analyses: New analyses in corpus order

        Returns:
            Path to the results file
        """
        file_path = self._get_results_path(run.org, run.repo, run.state)
        with open(file_path, "a", encoding="utf-8") as f:
            start = f.tell()
            try:
                for analysis in analyses:
                    f.write(analysis.model_dump_json() + "\n")
                f.flush()
                os.fsync(f.fileno())
            except BaseException:
                # Leave no partial batch behind
                f.truncate(start)
                raise
        logger.debug("Appended %d analyses to %s", len(analyses), file_path)
        return file_path

    def load_results(
        self, org: str, repo: str, state: str = "all", limit: int | None = None
    ) -> list[IssueAnalysis]:
        """Load stored analyses in the order they were appended.

        Reading stops at the first unreadable line, which is what an append
        cut short by a crash leaves behind.

        Args:
            org: Organization name
            repo: Repository name
            state: Issue state filter of the run
            limit: Maximum number of analyses to read

        Returns:
            List of IssueAnalysis objects
        """
        file_path = self._get_results_path(org, repo, state)
        if not file_path.exists():
            return []

        analyses: list[IssueAnalysis] = []
        with open(file_path, encoding="utf-8") as f:
            for line_number, line in enumerate(f, 1):
                if limit is not None and len(analyses) >= limit:
                    break
                try:
                    analyses.append(IssueAnalysis.model_validate_json(line))
                except ValidationError as e:
                    logger.warning(
                        "Stopping at unreadable line %d of %s: %s",
                        line_number,
                        file_path,
                        e,
                    )
                    break
        return analyses

    def rewrite_results(self, run: BatchRun) -> Path:
        """Replace the results file with exactly the run's analyses."""
        file_path = self._get_results_path(run.org, run.repo, run.state)

        def write(f: IO[str]) -> None:
            for analysis in run.analyses:
                f.write(analysis.model_dump_json() + "\n")

        return self._write_atomic(file_path, write)

    def delete_results(self, org: str, repo: str, state: str = "all") -> None:
        self._get_results_path(org, repo, state).unlink(missing_ok=True)

    def save_corpus(
        self,
        org: str,
        repo: str,
        state: str,
        issues: list[GitHubIssue],
        metadata: dict[str, Any] | None = None,
    ) -> Path:
        """Snapshot the fetched corpus so a resumed run reuses it.

        Args:
            org: Organization name
            repo: Repository name
            state: Issue state filter used for the fetch
            issues: Fetched issues in fetch order
            metadata: Additional metadata to include

        Returns:
            Path to the corpus file
        """
        metadata = dict(metadata or {})
        metadata.update(
            {
                "snapshot_timestamp": datetime.now().isoformat(),
                "tool_version": __version__,
            }
        )
        snapshot = CorpusSnapshot(
            org=org, repo=repo, state=state, issues=issues, metadata=metadata
        )
        file_path = self._get_file_path(org, repo, state, CORPUS_SUFFIX)
        self._write_json(file_path, snapshot.model_dump(mode="json"))
        logger.info("Saved corpus of %d issues to %s", len(issues), file_path)
        return file_path

    def load_corpus(
        self, org: str, repo: str, state: str = "all"
    ) -> CorpusSnapshot | None:
        return self._read_model(
            self._get_file_path(org, repo, state, CORPUS_SUFFIX), CorpusSnapshot
        )

    def export_run(self, run: BatchRun, path: str | Path | None = None) -> Path:
        """Export a run's analyses and statistics as one JSON document.

        Args:
            run: BatchRun to export, with its analyses loaded
            path: Target file (defaults to the run's analysis file)

        Returns:
            Path to the exported file
        """
        file_path = (
            Path(path)
            if path is not None
            else self._get_file_path(run.org, run.repo, run.state, ANALYSIS_SUFFIX)
        )
        document = {
            "run_id": run.run_id,
            "org": run.org,
            "repo": run.repo,
            "state": run.state,
            "status": run.status.value,
            "statistics": (
                run.statistics.model_dump(mode="json") if run.statistics else None
            ),
            "skipped": [gap.model_dump(mode="json") for gap in run.skipped],
            "analyses": [a.model_dump(mode="json") for a in run.analyses],
        }
        self._write_json(file_path, document)
        logger.info("Exported %d analyses to %s", len(run.analyses), file_path)
        return file_path

    def list_checkpoints(self) -> list[str]:
        """List all checkpoint filenames."""
        return sorted(f.name for f in self.base_path.glob(f"*_{CHECKPOINT_SUFFIX}.json"))

    def get_storage_stats(self) -> dict[str, Any]:
        """Get statistics about stored run files.

        Returns:
            Dictionary with storage statistics
        """
        all_files = [
            *self.base_path.glob("*.json"),
            *self.base_path.glob("*.jsonl"),
        ]
        total_size = sum(f.stat().st_size for f in all_files)

        def count(suffix: str) -> int:
            return sum(1 for f in all_files if f.stem.endswith(f"_{suffix}"))

        return {
            "total_files": len(all_files),
            "checkpoints": count(CHECKPOINT_SUFFIX),
            "corpora": count(CORPUS_SUFFIX),
            "results": count(RESULTS_SUFFIX),
            "exports": count(ANALYSIS_SUFFIX),
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "storage_path": str(self.base_path.absolute()),
        }

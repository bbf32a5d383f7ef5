"""Tunable settings for the correlation engine.

The scoring constants are heuristics carried over from the first version of
the analyzer. They are exposed here so they can be tuned per corpus rather
than treated as fixed truths.
"""

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError
from .retry import RetryPolicy


class SignalSettings(BaseModel):
    """Limits for diagnostic signal extraction."""

    min_error_length: int = Field(10, description="Messages must be longer than this")
    max_error_length: int = 300
    max_stack_traces: int = 3
    max_trace_length: int = 1000
    max_code_snippets: int = 5
    max_snippet_length: int = 500
    max_keywords: int = 20
    min_keyword_length: int = 3


class StrategyScores(BaseModel):
    """Fixed relevance ceiling per search strategy (strategy confidence)."""

    exact_error: int = Field(95, ge=0, le=100)
    exception_type: int = Field(85, ge=0, le=100)
    keyword: int = Field(70, ge=0, le=100)
    tag: int = Field(60, ge=0, le=100)


class SearchSettings(BaseModel):
    """Query construction and ranking limits for the knowledge base search."""

    scores: StrategyScores = Field(default_factory=StrategyScores)
    max_error_queries: int = 3
    max_exception_queries: int = 2
    keyword_query_terms: int = 5
    query_technologies: int = 2
    tag_query_limit: int = 3
    max_candidates: int = 10
    response_fetch_limit: int = Field(
        10, description="How many ranked candidates get their best response fetched"
    )
    responses_per_candidate: int = 3


class PrecedentSettings(BaseModel):
    """Weights for same-corpus precedent matching."""

    title_word_weight: int = 10
    label_weight: int = 20
    discussion_bonus: int = 15
    discussion_comment_threshold: int = Field(
        2, description="Precedent needs more comments than this for the bonus"
    )
    min_word_length: int = Field(3, description="Shared words must be longer")
    min_score: int = Field(20, description="Precedents must score above this")
    max_precedents: int = 3


class SynthesisSettings(BaseModel):
    """Weights and bands for the per-issue verdict."""

    # Complexity
    complexity_base: int = 5
    no_candidates_penalty: int = 3
    no_answered_penalty: int = 2
    busy_discussion_penalty: int = 2
    no_precedents_penalty: int = 2
    hard_label_penalty: int = 3
    easy_label_bonus: int = 2
    busy_comment_threshold: int = 20
    low_complexity_max: int = 5
    medium_complexity_max: int = 10
    hard_label_markers: list[str] = Field(default_factory=lambda: ["complex", "hard"])
    easy_label_markers: list[str] = Field(default_factory=lambda: ["easy"])

    # Solvability / popularity
    popular_score_threshold: int = Field(
        10, description="Candidate popularity above this counts as strong"
    )

    # Confidence
    confidence_base: int = 50
    answered_weight: int = 10
    answered_cap: int = 30
    popular_weight: int = 5
    popular_cap: int = 15
    precedent_weight: int = 5
    precedent_cap: int = 15
    candidate_weight: int = 2
    candidate_cap: int = 20

    # Effort
    effort_base_hours: int = 8
    strong_candidate_hours: int = 4
    precedent_hours: int = 2
    busy_discussion_hours: int = 4
    no_candidates_hours: int = 4
    min_effort_hours: int = 1
    max_effort_hours: int = 40
    quick_max_hours: int = 4
    standard_max_hours: int = 8
    moderate_max_hours: int = 16


class BatchSettings(BaseModel):
    """Batch orchestration, pacing and resumability."""

    page_size: int = Field(100, ge=1, le=100)
    max_issues: int = Field(1000, ge=1)
    batch_size: int = Field(5, ge=1)
    min_request_interval: float = Field(0.2, ge=0)
    rate_limit_cool_down: float = Field(60.0, ge=0)
    max_cool_down: float = Field(300.0, ge=0)
    memory_warning_mb: float = Field(500.0, ge=0)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)


class CorrelatorSettings(BaseModel):
    """All settings for one correlator run."""

    signals: SignalSettings = Field(default_factory=SignalSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    precedents: PrecedentSettings = Field(default_factory=PrecedentSettings)
    synthesis: SynthesisSettings = Field(default_factory=SynthesisSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)


def load_settings(
    path: str | Path | None = None, overrides: dict[str, Any] | None = None
) -> CorrelatorSettings:
    """Load settings from an optional JSON file.

    Args:
        path: JSON file with a (partial) settings document
        overrides: Top-level batch overrides (e.g. from CLI flags)

    Returns:
        Validated CorrelatorSettings

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(
                f"Config file {config_path} not found", path=str(config_path)
            )
        try:
            with open(config_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Could not read config file {config_path}: {e}",
                path=str(config_path),
            ) from e

    if overrides:
        batch = dict(data.get("batch", {}))
        batch.update({k: v for k, v in overrides.items() if v is not None})
        data["batch"] = batch

    try:
        return CorrelatorSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e

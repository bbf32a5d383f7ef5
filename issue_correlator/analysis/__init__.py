"""Per-issue analysis pipeline: signals, search, precedents and verdict."""

from .models import (
    Complexity,
    DiagnosticSignals,
    EffortBand,
    IssueAnalysis,
    IssueEngagement,
    PrecedentIssue,
    SearchLinks,
    Solvability,
    Verdict,
)
from .precedents import PrecedentFinder
from .search import SolutionSearcher, merge_candidates, rank_candidates
from .signals import SignalExtractor
from .synthesizer import AnalysisSynthesizer

__all__ = [
    "AnalysisSynthesizer",
    "Complexity",
    "DiagnosticSignals",
    "EffortBand",
    "IssueAnalysis",
    "IssueEngagement",
    "PrecedentFinder",
    "PrecedentIssue",
    "SearchLinks",
    "SignalExtractor",
    "Solvability",
    "SolutionSearcher",
    "Verdict",
    "merge_candidates",
    "rank_candidates",
]

"""Pydantic models for per-issue analysis results."""

from enum import Enum
from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field

from ..github_client.models import GitHubIssue
from ..knowledge.models import SearchCandidate


class Complexity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Solvability(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class EffortBand(str, Enum):
    QUICK = "quick"
    STANDARD = "standard"
    MODERATE = "moderate"
    COMPLEX = "complex"


class DiagnosticSignals(BaseModel):
    """Diagnostic signals extracted from an issue's text."""

    model_config = ConfigDict(frozen=True)

    error_messages: list[str] = Field(
        default_factory=list, description="'Label: message' lines, first-seen order"
    )
    exception_types: list[str] = Field(
        default_factory=list, description="Exception/error type names"
    )
    technologies: list[str] = Field(
        default_factory=list, description="Lower-cased labels and known technologies"
    )
    keywords: list[str] = Field(
        default_factory=list, description="Most frequent significant words"
    )
    stack_traces: list[str] = Field(
        default_factory=list, description="Trace-like fenced code blocks"
    )
    code_snippets: list[str] = Field(
        default_factory=list, description="All fenced code blocks"
    )

    @property
    def is_empty(self) -> bool:
        return not (
            self.error_messages
            or self.exception_types
            or self.technologies
            or self.keywords
            or self.stack_traces
        )


class PrecedentIssue(BaseModel):
    """A resolved issue from the same corpus similar to the analyzed one."""

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., description="Issue number of the precedent")
    title: str
    html_url: str = ""
    state: str = "closed"
    labels: list[str] = Field(default_factory=list)
    comment_count: int = 0
    similarity_score: int = Field(..., ge=0, description="Weighted overlap score")

    @classmethod
    def from_issue(cls, issue: GitHubIssue, similarity_score: int) -> "PrecedentIssue":
        return cls(
            number=issue.number,
            title=issue.title,
            html_url=issue.html_url,
            state=issue.state,
            labels=issue.label_names,
            comment_count=issue.total_comments,
            similarity_score=similarity_score,
        )


class IssueEngagement(BaseModel):
    """Raw engagement metrics of the analyzed issue."""

    model_config = ConfigDict(frozen=True)

    number: int
    title: str
    state: str
    comment_count: int = 0
    reaction_count: int = 0
    labels: list[str] = Field(default_factory=list)

    @classmethod
    def from_issue(cls, issue: GitHubIssue) -> "IssueEngagement":
        return cls(
            number=issue.number,
            title=issue.title,
            state=issue.state,
            comment_count=issue.total_comments,
            reaction_count=issue.reactions.total_count,
            labels=issue.label_names,
        )


class Verdict(BaseModel):
    """Decision-ready assessment of one issue."""

    model_config = ConfigDict(frozen=True)

    complexity: Complexity
    solvability: Solvability
    confidence: int = Field(..., ge=0, le=100)
    estimated_effort_hours: int = Field(..., ge=1, le=40)
    estimated_effort: EffortBand
    recommended_steps: list[str] = Field(default_factory=list)
    summary: str = ""
    insights: list[str] = Field(default_factory=list)
    community_interest: int = Field(0, description="Total views of candidates")


class SearchLinks(BaseModel):
    """Direct links for manual follow-up on an issue."""

    model_config = ConfigDict(frozen=True)

    issue: str = ""
    google_search: str
    stackoverflow_search: str
    github_search: str

    @classmethod
    def for_issue(cls, issue: GitHubIssue) -> "SearchLinks":
        query = quote_plus(issue.title)
        return cls(
            issue=issue.html_url,
            google_search=f"https://www.google.com/search?q={query}",
            stackoverflow_search=f"https://stackoverflow.com/search?q={query}",
            github_search=f"https://github.com/search?q={query}&type=issues",
        )


class IssueAnalysis(BaseModel):
    """Complete correlation result for one issue in one run."""

    model_config = ConfigDict(frozen=True)

    issue: GitHubIssue
    signals: DiagnosticSignals
    candidates: list[SearchCandidate] = Field(
        default_factory=list, description="Ranked, deduplicated candidates"
    )
    precedents: list[PrecedentIssue] = Field(
        default_factory=list, description="Ranked precedent issues"
    )
    verdict: Verdict
    links: SearchLinks

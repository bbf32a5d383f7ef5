"""Pydantic models for knowledge base (Stack Exchange) records.

API Reference: https://api.stackexchange.com/docs/types/question
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SearchStrategy(str, Enum):
    """Independent ways of querying the knowledge base."""

    EXACT_ERROR = "exact-error"
    EXCEPTION_TYPE = "exception-type"
    KEYWORD = "keyword"
    TAG = "tag"


class CommunityResponse(BaseModel):
    """Best community answer for a candidate.

    Maps to Stack Exchange API Answer object.
    API Reference: https://api.stackexchange.com/docs/types/answer
    """

    model_config = ConfigDict(frozen=True)

    response_id: str = Field(..., description="Answer identifier (string)")
    score: int = Field(0, description="Net votes on the answer")
    is_accepted: bool = Field(False, description="Accepted by the question author")
    excerpt: str = Field("", description="Plain-text excerpt of the answer body")
    author: str = Field("Unknown", description="Display name of the answer author")
    author_reputation: int = 0


class SearchCandidate(BaseModel):
    """External knowledge base record potentially relevant to an issue.

    Maps to Stack Exchange API Question object. ``relevance_score``,
    ``match_reason`` and ``strategy`` are assigned by the search strategy
    that produced the candidate, not by the API.
    """

    model_config = ConfigDict(frozen=True)

    candidate_id: str = Field(..., description="Stable external identifier")
    title: str = Field(..., description="Question title")
    tags: list[str] = Field(default_factory=list, description="Question tags")
    score: int = Field(0, description="Popularity/quality signal (net votes)")
    view_count: int = Field(0, description="View counter")
    answer_count: int = Field(0, description="Number of answers")
    is_answered: bool = Field(False, description="Has an accepted or upvoted answer")
    accepted_answer_id: str | None = Field(None, description="Accepted answer id")
    link: str = Field("", description="Canonical question URL")
    top_response: CommunityResponse | None = Field(
        None, description="Best community response, when fetched"
    )
    relevance_score: int = Field(
        0, ge=0, le=100, description="Strategy confidence (0-100)"
    )
    match_reason: str = Field("", description="Why the strategy matched")
    strategy: SearchStrategy | None = Field(
        None, description="Strategy that produced the winning score"
    )

    def scored(
        self, relevance_score: int, match_reason: str, strategy: SearchStrategy
    ) -> "SearchCandidate":
        """Return a copy scored by a strategy."""
        return self.model_copy(
            update={
                "relevance_score": max(0, min(relevance_score, 100)),
                "match_reason": match_reason,
                "strategy": strategy,
            }
        )

"""Pydantic models for GitHub data structures.

These models map to GitHub's REST API v3 issue responses.
API Reference: https://docs.github.com/en/rest/issues

Issues are immutable once fetched; comments are attached with
``GitHubIssue.with_comments`` which returns a new instance.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GitHubUser(BaseModel):
    """GitHub user model representing a user account.

    Maps to GitHub REST API User object.
    API Reference: https://docs.github.com/en/rest/users/users
    """

    model_config = ConfigDict(frozen=True)

    login: str = Field(..., description="GitHub username/login (string)")
    id: int = Field(..., description="Unique user identifier (integer)")


class GitHubLabel(BaseModel):
    """GitHub label model representing repository labels.

    Maps to GitHub REST API Label object.
    API Reference: https://docs.github.com/en/rest/issues/labels
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Name of the label (string)")
    color: str = Field(
        "", description="Hexadecimal color code without leading # (string)"
    )
    description: str | None = Field(
        None, description="Short description of the label (string, max 100 characters)"
    )


class GitHubComment(BaseModel):
    """GitHub comment model representing issue comments.

    Maps to GitHub REST API Issue Comment object.
    API Reference: https://docs.github.com/en/rest/issues/comments
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Unique comment identifier (integer)")
    user: GitHubUser | None = Field(None, description="Comment author details")
    body: str = Field("", description="Text content of the comment (string)")
    created_at: datetime = Field(
        ..., description="Timestamp of comment creation (ISO 8601)"
    )
    updated_at: datetime | None = Field(
        None, description="Timestamp of last comment update (ISO 8601)"
    )


class GitHubReactions(BaseModel):
    """Reaction counters on an issue.

    Maps to GitHub REST API Reaction Rollup object.
    API Reference: https://docs.github.com/en/rest/reactions
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    total_count: int = 0
    plus_one: int = Field(0, alias="+1")
    minus_one: int = Field(0, alias="-1")
    laugh: int = 0
    hooray: int = 0
    confused: int = 0
    heart: int = 0
    rocket: int = 0
    eyes: int = 0


class GitHubIssue(BaseModel):
    """GitHub issue model representing repository issues.

    Maps to GitHub REST API Issue object.
    API Reference: https://docs.github.com/en/rest/issues/issues
    """

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., description="Issue number within the repository (integer)")
    title: str = Field(..., description="Short description/title of the issue (string)")
    body: str | None = Field(
        None, description="Detailed description of the issue in markdown (string)"
    )
    state: str = Field(..., description="Current state: 'open', 'closed' (string)")
    labels: list[GitHubLabel] = Field(
        default_factory=list, description="Array of labels attached to the issue"
    )
    user: GitHubUser | None = Field(None, description="Creator/author of the issue")
    comments: list[GitHubComment] = Field(
        default_factory=list, description="Fetched comments on the issue"
    )
    comment_count: int = Field(
        0, description="Comment counter reported by the API (integer)"
    )
    reactions: GitHubReactions = Field(
        default_factory=GitHubReactions, description="Reaction counters"
    )
    created_at: datetime = Field(
        ..., description="Timestamp of issue creation (ISO 8601)"
    )
    updated_at: datetime | None = Field(
        None, description="Timestamp of last issue update (ISO 8601)"
    )
    closed_at: datetime | None = Field(
        None, description="Timestamp when the issue was closed (ISO 8601)"
    )
    html_url: str = Field("", description="Canonical URL of the issue")
    is_pull_request: bool = Field(
        False, description="True when the record is a pull request"
    )

    @property
    def label_names(self) -> list[str]:
        return [label.name for label in self.labels]

    @property
    def total_comments(self) -> int:
        """Comment count, trusting whichever of counter and list is larger."""
        return max(self.comment_count, len(self.comments))

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"

    def with_comments(self, comments: list[GitHubComment]) -> "GitHubIssue":
        """Return a copy of this issue with the given comments attached."""
        return self.model_copy(
            update={
                "comments": list(comments),
                "comment_count": max(self.comment_count, len(comments)),
            }
        )


class CorpusSnapshot(BaseModel):
    """Issue corpus as stored for a resumable run.

    Wrapper model that includes repository context and metadata so a resumed
    run analyzes exactly the corpus the interrupted run fetched.
    """

    org: str = Field(..., description="GitHub organization name")
    repo: str = Field(..., description="GitHub repository name")
    state: str = Field(..., description="Issue state filter used for the fetch")
    issues: list[GitHubIssue] = Field(
        default_factory=list, description="Fetched issues, in fetch order"
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Storage metadata (timestamp, pages fetched, tool_version)",
    )

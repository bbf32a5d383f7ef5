"""GitHub client package for API interaction."""

from .client import GitHubClient
from .models import (
    CorpusSnapshot,
    GitHubComment,
    GitHubIssue,
    GitHubLabel,
    GitHubReactions,
    GitHubUser,
)

__all__ = [
    "GitHubClient",
    "GitHubUser",
    "GitHubLabel",
    "GitHubComment",
    "GitHubReactions",
    "GitHubIssue",
    "CorpusSnapshot",
]

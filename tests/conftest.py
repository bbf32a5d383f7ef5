"""Test configuration and fixtures."""

from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from issue_correlator.exceptions import TransientExternalFailure
from issue_correlator.github_client.models import (
    GitHubComment,
    GitHubIssue,
    GitHubLabel,
    GitHubUser,
)
from issue_correlator.knowledge.models import CommunityResponse, SearchCandidate
from issue_correlator.retry import RateLimiter


class FakeClock:
    """Monotonic clock that only moves when something sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeIssueSource:
    """In-memory issue tracker serving fixed pages of issues."""

    def __init__(
        self,
        issues: list[GitHubIssue],
        comments: dict[int, list[GitHubComment]] | None = None,
        failures: dict[int, list[Exception]] | None = None,
    ) -> None:
        self.issues = issues
        self.comments = comments or {}
        self.failures = failures or {}
        self.list_calls: list[int] = []
        self.comment_calls: list[int] = []

    def list_issues(
        self,
        org: str,
        repo: str,
        state: str = "all",
        page: int = 1,
        page_size: int | None = None,
    ) -> list[GitHubIssue]:
        self.list_calls.append(page)
        size = page_size or 100
        start = (page - 1) * size
        return self.issues[start : start + size]

    def get_comments(
        self, org: str, repo: str, issue_number: int
    ) -> list[GitHubComment]:
        self.comment_calls.append(issue_number)
        pending = self.failures.get(issue_number)
        if pending:
            raise pending.pop(0)
        return self.comments.get(issue_number, [])


class FakeKnowledgeClient:
    """Knowledge base returning canned candidates per query."""

    def __init__(
        self,
        text_results: dict[str, list[SearchCandidate]] | None = None,
        tag_results: list[SearchCandidate] | None = None,
        responses: dict[str, list[CommunityResponse]] | None = None,
        default_text_results: list[SearchCandidate] | None = None,
    ) -> None:
        self.text_results = text_results or {}
        self.tag_results = tag_results or []
        self.responses = responses or {}
        self.default_text_results = default_text_results or []
        self.text_queries: list[str] = []
        self.tag_queries: list[list[str]] = []

    def search_by_text(
        self, query: str, tags: list[str] | None = None, page_size: int = 10
    ) -> list[SearchCandidate]:
        self.text_queries.append(query)
        return list(self.text_results.get(query, self.default_text_results))

    def search_by_tags(
        self, tags: list[str], page_size: int = 5
    ) -> list[SearchCandidate]:
        self.tag_queries.append(list(tags))
        return list(self.tag_results)

    def fetch_top_responses(
        self, candidate_id: str, limit: int = 3
    ) -> list[CommunityResponse]:
        return list(self.responses.get(candidate_id, []))[:limit]


@pytest.fixture
def temp_data_dir(tmp_path: Path) -> Path:
    """Create temporary data directory for run files."""
    data_dir = tmp_path / "data" / "runs"
    data_dir.mkdir(parents=True)
    return data_dir


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(fake_clock: FakeClock) -> RateLimiter:
    """Rate limiter that never really sleeps."""
    return RateLimiter(
        min_interval=0.2,
        cool_down_seconds=60.0,
        clock=fake_clock,
        sleep=fake_clock.sleep,
    )


@pytest.fixture
def make_issue() -> Callable[..., GitHubIssue]:
    """Factory for GitHub issues with sensible defaults."""

    def _make_issue(
        number: int,
        title: str = "Sample issue",
        body: str | None = "Sample body",
        state: str = "open",
        labels: list[str] | None = None,
        comment_count: int = 0,
        **kwargs: Any,
    ) -> GitHubIssue:
        return GitHubIssue(
            number=number,
            title=title,
            body=body,
            state=state,
            labels=[GitHubLabel(name=name) for name in labels or []],
            user=GitHubUser(login="testuser", id=12345),
            comment_count=comment_count,
            created_at=datetime(2024, 1, 1, 12, 0, 0),
            html_url=f"https://github.com/testorg/testrepo/issues/{number}",
            **kwargs,
        )

    return _make_issue


@pytest.fixture
def make_comment() -> Callable[..., GitHubComment]:
    def _make_comment(comment_id: int, body: str) -> GitHubComment:
        return GitHubComment(
            id=comment_id,
            user=GitHubUser(login="commenter", id=999),
            body=body,
            created_at=datetime(2024, 1, 2, 12, 0, 0),
        )

    return _make_comment


@pytest.fixture
def make_candidate() -> Callable[..., SearchCandidate]:
    """Factory for unscored knowledge base candidates."""

    def _make_candidate(candidate_id: str, **kwargs: Any) -> SearchCandidate:
        defaults: dict[str, Any] = {
            "title": f"Question {candidate_id}",
            "link": f"https://stackoverflow.com/q/{candidate_id}",
        }
        defaults.update(kwargs)
        return SearchCandidate(candidate_id=candidate_id, **defaults)

    return _make_candidate


@pytest.fixture
def issue_source_factory() -> type[FakeIssueSource]:
    return FakeIssueSource


@pytest.fixture
def knowledge_factory() -> type[FakeKnowledgeClient]:
    return FakeKnowledgeClient


@pytest.fixture
def transient_error() -> Callable[[], TransientExternalFailure]:
    return lambda: TransientExternalFailure("Temporary network failure")

"""GitHub API client using PyGitHub."""

import logging
import os
import time
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from github import Auth, Github
from github.GithubException import (
    BadAttributeException,
    BadCredentialsException,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)
from github.Issue import Issue
from github.IssueComment import IssueComment
from github.Label import Label
from github.NamedUser import NamedUser
from github.Repository import Repository

from pydantic import ValidationError

from ..exceptions import (
    ConfigurationError,
    CorrelatorError,
    MalformedExternalResponse,
    RateLimitExceeded,
    TransientExternalFailure,
)
from ..retry import RateLimiter
from .models import GitHubComment, GitHubIssue, GitHubLabel, GitHubReactions, GitHubUser

logger = logging.getLogger(__name__)

T = TypeVar("T")

# What a record of an unexpected shape raises while being converted
CONVERSION_ERRORS = (
    ValidationError,
    BadAttributeException,
    AttributeError,
    TypeError,
    ValueError,
)

REACTION_KEYS = (
    "total_count",
    "+1",
    "-1",
    "laugh",
    "hooray",
    "confused",
    "heart",
    "rocket",
    "eyes",
)


class GitHubClient:
    """Issue source backed by the GitHub REST API.

    Every public method makes a single attempt and raises from the
    correlator error taxonomy; retrying is the caller's job.
    """

    def __init__(
        self,
        token: str | None = None,
        per_page: int = 100,
        limiter: RateLimiter | None = None,
    ):
        """Initialize GitHub client with authentication.

        Args:
            token: GitHub personal access token. If None, reads from
                GITHUB_TOKEN env var.
            per_page: Page size used for paginated listings (max 100)
            limiter: Shared rate limiter pacing calls and cool-downs
        """
        self.token = token or os.getenv("GITHUB_TOKEN")
        if not self.token:
            raise ConfigurationError(
                "GitHub token is required. Set GITHUB_TOKEN environment variable."
            )

        self.per_page = per_page
        self.limiter = limiter or RateLimiter()
        self.github = Github(auth=Auth.Token(self.token), per_page=per_page)
        self._repositories: dict[str, Repository] = {}

    def _check_rate_limit(self) -> None:
        """Check rate limit and cool down if nearly exhausted."""
        try:
            remaining, _limit = self.github.rate_limiting
            reset_time = self.github.rate_limiting_resettime
        except Exception as e:
            # Not critical; the next call reports a hard limit if we hit one
            logger.debug("Could not check GitHub rate limit: %s", e)
            return

        logger.debug("GitHub API rate limit: %s requests remaining", remaining)
        if 0 <= remaining < 10:
            sleep_time = reset_time - time.time() + 1
            if sleep_time > 0:
                self.limiter.cool_down(sleep_time)

    def _call(self, action: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run one GitHub call and translate its failures.

        Args:
            action: Short description used in error messages
            func: PyGitHub callable
            *args: Positional arguments for ``func``
            **kwargs: Keyword arguments for ``func``

        Returns:
            Whatever ``func`` returns
        """
        self.limiter.wait()
        try:
            return func(*args, **kwargs)
        except RateLimitExceededException as e:
            raise RateLimitExceeded(
                f"GitHub rate limit exceeded while {action}",
                retry_after=self._retry_after(e.headers),
            ) from e
        except BadCredentialsException as e:
            raise ConfigurationError(f"GitHub rejected the token while {action}") from e
        except UnknownObjectException as e:
            raise ConfigurationError(f"Not found while {action}") from e
        except GithubException as e:
            if e.status >= 500 or e.status in (408, 429):
                raise TransientExternalFailure(
                    f"GitHub error {e.status} while {action}", status=e.status
                ) from e
            raise CorrelatorError(
                f"GitHub error {e.status} while {action}: {e.data}", status=e.status
            ) from e
        except OSError as e:
            # requests' connection and timeout errors derive from OSError
            raise TransientExternalFailure(
                f"Network error while {action}: {e}"
            ) from e

    @staticmethod
    def _retry_after(headers: dict[str, str] | None) -> float | None:
        """Extract a wait hint from rate-limit response headers."""
        if not headers:
            return None
        lowered = {k.lower(): v for k, v in headers.items()}
        try:
            if "retry-after" in lowered:
                return float(lowered["retry-after"])
            if "x-ratelimit-reset" in lowered:
                return max(float(lowered["x-ratelimit-reset"]) - time.time() + 1, 0.0)
        except ValueError:
            return None
        return None

    def _convert_user(self, github_user: NamedUser | None) -> GitHubUser | None:
        """Convert PyGitHub user to our model."""
        if github_user is None:
            return None
        return GitHubUser(login=github_user.login, id=github_user.id)

    def _convert_label(self, github_label: Label) -> GitHubLabel:
        """Convert PyGitHub label to our model."""
        return GitHubLabel(
            name=github_label.name,
            color=github_label.color or "",
            description=github_label.description,
        )

    def _convert_comment(self, github_comment: IssueComment) -> GitHubComment:
        """Convert PyGitHub comment to our model.

        Raises:
            MalformedExternalResponse: The record does not fit the model
        """
        try:
            return GitHubComment(
                id=github_comment.id,
                user=self._convert_user(github_comment.user),
                body=github_comment.body or "",
                created_at=github_comment.created_at,
                updated_at=github_comment.updated_at,
            )
        except CONVERSION_ERRORS as e:
            raise MalformedExternalResponse(
                f"Unexpected comment payload: {e}", record="comment"
            ) from e

    def _convert_reactions(self, raw: dict[str, Any] | None) -> GitHubReactions:
        """Convert the raw reaction rollup to our model."""
        if not raw:
            return GitHubReactions()
        return GitHubReactions.model_validate(
            {key: int(raw.get(key) or 0) for key in REACTION_KEYS}
        )

    def _convert_issue(self, github_issue: Issue) -> GitHubIssue:
        """Convert PyGitHub issue to our model, without fetching comments.

        Raises:
            MalformedExternalResponse: The record does not fit the model
        """
        try:
            labels = [self._convert_label(label) for label in github_issue.labels]

            return GitHubIssue(
                number=github_issue.number,
                title=github_issue.title or "",
                body=github_issue.body,
                state=github_issue.state,
                labels=labels,
                user=self._convert_user(github_issue.user),
                comment_count=github_issue.comments or 0,
                reactions=self._convert_reactions(github_issue.reactions),
                created_at=github_issue.created_at,
                updated_at=github_issue.updated_at,
                closed_at=github_issue.closed_at,
                html_url=github_issue.html_url or "",
                is_pull_request=github_issue.pull_request is not None,
            )
        except CONVERSION_ERRORS as e:
            raise MalformedExternalResponse(
                f"Unexpected issue payload: {e}", record="issue"
            ) from e

    def _convert_all(
        self, records: Iterable[Any], convert: Callable[[Any], T], what: str
    ) -> list[T]:
        """Convert records one by one, skipping the malformed ones."""
        converted = []
        for record in records:
            try:
                converted.append(convert(record))
            except MalformedExternalResponse as e:
                logger.warning("Skipping malformed %s record: %s", what, e)
                continue
        return converted

    def get_repository(self, org: str, repo: str) -> Repository:
        """Get repository object, cached per client."""
        key = f"{org}/{repo}"
        if key not in self._repositories:
            self._repositories[key] = self._call(
                f"loading repository {key}", self.github.get_repo, key
            )
        return self._repositories[key]

    def list_issues(
        self,
        org: str,
        repo: str,
        state: str = "all",
        page: int = 1,
        page_size: int | None = None,
    ) -> list[GitHubIssue]:
        """List one page of issues, newest first.

        Pull requests are returned too, flagged with ``is_pull_request``;
        filtering is up to the caller.

        Args:
            org: Organization name
            repo: Repository name
            state: Issue state (open, closed, all)
            page: 1-based page number
            page_size: Must match the client's page size when given

        Returns:
            List of GitHubIssue objects without comments attached. Records
            that do not fit the model are logged and left out.

        Raises:
            ConfigurationError: Invalid page, or a page size the client was
                not built with
        """
        if page < 1:
            raise ConfigurationError("page must be >= 1", page=page)
        if page_size is not None and page_size != self.per_page:
            raise ConfigurationError(
                f"page_size {page_size} does not match client page size "
                f"{self.per_page}",
                page_size=page_size,
            )

        self._check_rate_limit()
        repository = self.get_repository(org, repo)
        paginated = repository.get_issues(state=state, sort="created", direction="desc")
        raw_issues = self._call(
            f"listing {org}/{repo} issues page {page}", paginated.get_page, page - 1
        )

        issues = self._convert_all(raw_issues, self._convert_issue, "issue")
        logger.debug("Fetched page %d of %s/%s: %d records", page, org, repo, len(issues))
        return issues

    def get_comments(self, org: str, repo: str, issue_number: int) -> list[GitHubComment]:
        """Get all comments for an issue, oldest first.

        Malformed comments are logged and left out.
        """
        self._check_rate_limit()
        repository = self.get_repository(org, repo)
        github_issue = self._call(
            f"loading issue #{issue_number}", repository.get_issue, issue_number
        )
        raw_comments = self._call(
            f"listing comments for issue #{issue_number}",
            lambda: list(github_issue.get_comments()),
        )
        return self._convert_all(raw_comments, self._convert_comment, "comment")

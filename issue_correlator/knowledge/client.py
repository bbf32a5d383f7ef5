"""Stack Exchange API client used as the external knowledge base.

API Reference: https://api.stackexchange.com/docs

Every public method returns an empty list when the call fails for any
reason. Callers must never treat an empty result as fatal.
"""

import html
import logging
import os
import re
from typing import Any

import httpx
from pydantic import ValidationError

from ..exceptions import (
    CorrelatorError,
    MalformedExternalResponse,
    RateLimitExceeded,
    TransientExternalFailure,
)
from ..retry import RateLimiter, RetryPolicy
from .models import CommunityResponse, SearchCandidate

logger = logging.getLogger(__name__)

STACK_EXCHANGE_API = "https://api.stackexchange.com/2.3"

# Stack Exchange error ids
# https://api.stackexchange.com/docs/error-handling
THROTTLE_VIOLATION = 502
TRANSIENT_ERROR_IDS = {500, 503}

HTML_TAG_PATTERN = re.compile(r"<[^>]+>")
WHITESPACE_PATTERN = re.compile(r"\s+")
WAIT_SECONDS_PATTERN = re.compile(r"(\d+)\s*seconds?")


def to_excerpt(body: str, limit: int = 500) -> str:
    """Convert an HTML answer body to a short plain-text excerpt."""
    text = html.unescape(HTML_TAG_PATTERN.sub(" ", body or ""))
    text = WHITESPACE_PATTERN.sub(" ", text).strip()
    if len(text) > limit:
        return text[: limit - 3].rstrip() + "..."
    return text


def normalize_tags(tags: list[str] | None) -> list[str]:
    """Convert free-form labels into Stack Exchange tag syntax."""
    normalized = []
    for tag in tags or []:
        value = WHITESPACE_PATTERN.sub("-", tag.strip().lower())
        if value and value not in normalized:
            normalized.append(value)
    return normalized


class StackExchangeClient:
    """Knowledge base client with pacing, retry and cool-down handling."""

    def __init__(
        self,
        api_key: str | None = None,
        site: str = "stackoverflow",
        base_url: str = STACK_EXCHANGE_API,
        timeout: float = 30.0,
        limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        http_client: httpx.Client | None = None,
    ):
        """Initialize Stack Exchange client.

        Args:
            api_key: Stack Exchange API key. If None, reads from
                STACK_EXCHANGE_KEY env var; anonymous access otherwise.
            site: Stack Exchange site to query
            base_url: API root
            timeout: Request timeout in seconds
            limiter: Shared rate limiter pacing calls and cool-downs
            retry_policy: Backoff policy for transient failures
            http_client: Preconfigured httpx client (tests inject a mock
                transport here)
        """
        self.api_key = api_key or os.getenv("STACK_EXCHANGE_KEY")
        self.site = site
        self.limiter = limiter or RateLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.http = http_client or httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={"User-Agent": "issue-correlator/0.1.0"},
        )

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "StackExchangeClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def search_by_text(
        self, query: str, tags: list[str] | None = None, page_size: int = 10
    ) -> list[SearchCandidate]:
        """Full-text search, optionally restricted to questions with all tags.

        Args:
            query: Free-text query
            tags: Tags every result must carry
            page_size: Maximum number of results

        Returns:
            Unscored candidates in the API's relevance order
        """
        query = query.strip()
        if not query:
            return []

        params: dict[str, Any] = {
            "q": query,
            "order": "desc",
            "sort": "relevance",
            "pagesize": page_size,
        }
        tag_filter = normalize_tags(tags)
        if tag_filter:
            params["tagged"] = ";".join(tag_filter)

        items = self._get_items(f"searching '{query[:60]}'", "/search/advanced", params)
        return self._parse_questions(items)

    def search_by_tags(
        self, tags: list[str], page_size: int = 5
    ) -> list[SearchCandidate]:
        """Top-voted questions carrying all of the given tags."""
        tag_filter = normalize_tags(tags)
        if not tag_filter:
            return []

        params: dict[str, Any] = {
            "tagged": ";".join(tag_filter),
            "order": "desc",
            "sort": "votes",
            "pagesize": page_size,
        }
        items = self._get_items(
            f"listing questions tagged {params['tagged']}", "/questions", params
        )
        return self._parse_questions(items)

    def fetch_top_responses(
        self, candidate_id: str, limit: int = 3
    ) -> list[CommunityResponse]:
        """Top-voted answers for a question, best first."""
        params: dict[str, Any] = {
            "order": "desc",
            "sort": "votes",
            "pagesize": limit,
            "filter": "withbody",
        }
        items = self._get_items(
            f"fetching answers for {candidate_id}",
            f"/questions/{candidate_id}/answers",
            params,
        )

        responses = []
        for item in items:
            try:
                owner = item.get("owner") or {}
                responses.append(
                    CommunityResponse(
                        response_id=str(item["answer_id"]),
                        score=item.get("score", 0),
                        is_accepted=item.get("is_accepted", False),
                        excerpt=to_excerpt(item.get("body", "")),
                        author=html.unescape(owner.get("display_name") or "Unknown"),
                        author_reputation=owner.get("reputation") or 0,
                    )
                )
            except (KeyError, TypeError, ValidationError) as e:
                logger.warning("Skipping malformed answer for %s: %s", candidate_id, e)
        return responses

    def _get_items(
        self, action: str, path: str, params: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Run one API call under the retry policy; empty list on failure."""
        try:
            payload = self.retry_policy.call(
                self._request, path, params, limiter=self.limiter
            )
        except MalformedExternalResponse as e:
            logger.warning("Malformed response while %s: %s", action, e)
            return []
        except CorrelatorError as e:
            logger.warning("Knowledge base call failed while %s: %s", action, e)
            return []
        return payload["items"]

    def _request(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """Make a single request and classify the outcome."""
        query = dict(params)
        query["site"] = self.site
        if self.api_key:
            query["key"] = self.api_key

        self.limiter.wait()
        try:
            response = self.http.get(path, params=query)
        except httpx.TransportError as e:
            raise TransientExternalFailure(f"Network error calling {path}: {e}") from e

        if response.status_code == 429:
            raise RateLimitExceeded(
                f"HTTP 429 from {path}",
                retry_after=self._parse_retry_after(response.headers.get("retry-after")),
            )

        try:
            payload = response.json()
        except ValueError as e:
            if response.status_code >= 500:
                raise TransientExternalFailure(
                    f"HTTP {response.status_code} from {path}"
                ) from e
            raise MalformedExternalResponse(f"Non-JSON response from {path}") from e

        if not isinstance(payload, dict):
            raise MalformedExternalResponse(f"Unexpected payload type from {path}")

        error_id = payload.get("error_id")
        if error_id == THROTTLE_VIOLATION:
            message = payload.get("error_message", "")
            raise RateLimitExceeded(
                f"Throttled by Stack Exchange: {message}",
                retry_after=self._parse_retry_after(message),
            )
        if error_id in TRANSIENT_ERROR_IDS or response.status_code >= 500:
            raise TransientExternalFailure(
                f"Stack Exchange error {error_id or response.status_code} from {path}"
            )
        if error_id is not None or response.status_code >= 400:
            raise CorrelatorError(
                f"Stack Exchange rejected request to {path}: "
                f"{payload.get('error_name')} {payload.get('error_message', '')}",
                error_id=error_id,
            )

        backoff = payload.get("backoff")
        if isinstance(backoff, int | float) and backoff > 0:
            logger.info("Stack Exchange requested a %ss backoff", backoff)
            self.limiter.defer(float(backoff))

        if not isinstance(payload.get("items"), list):
            raise MalformedExternalResponse(f"Response from {path} has no item list")
        return payload

    @staticmethod
    def _parse_retry_after(value: str | None) -> float | None:
        """Read a wait hint from a header value or an error message."""
        if not value:
            return None
        try:
            return float(value)
        except ValueError:
            match = WAIT_SECONDS_PATTERN.search(value)
            return float(match.group(1)) if match else None

    def _parse_questions(self, items: list[dict[str, Any]]) -> list[SearchCandidate]:
        """Validate raw question items; malformed items are dropped."""
        candidates = []
        for item in items:
            try:
                accepted = item.get("accepted_answer_id")
                candidates.append(
                    SearchCandidate(
                        candidate_id=str(item["question_id"]),
                        title=html.unescape(item.get("title", "")),
                        tags=item.get("tags") or [],
                        score=item.get("score", 0),
                        view_count=item.get("view_count", 0),
                        answer_count=item.get("answer_count", 0),
                        is_answered=item.get("is_answered", False),
                        accepted_answer_id=str(accepted) if accepted else None,
                        link=item.get("link", ""),
                    )
                )
            except (KeyError, TypeError, AttributeError, ValidationError) as e:
                logger.warning("Skipping malformed question record: %s", e)
        return candidates

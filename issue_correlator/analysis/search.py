"""Multi-strategy search of the external knowledge base.

Each strategy queries the knowledge base independently and assigns its own
fixed relevance score to everything it finds. Results from all strategies
are merged by candidate id (highest score wins) and ranked.
"""

import logging
from collections.abc import Callable, Iterable
from typing import Protocol

from ..config import SearchSettings
from ..knowledge.models import CommunityResponse, SearchCandidate, SearchStrategy
from .models import DiagnosticSignals

logger = logging.getLogger(__name__)

StrategyFunc = Callable[[DiagnosticSignals], list[SearchCandidate]]


class KnowledgeSearchClient(Protocol):
    """What the searcher needs from a knowledge base client."""

    def search_by_text(
        self, query: str, tags: list[str] | None = None, page_size: int = 10
    ) -> list[SearchCandidate]: ...

    def search_by_tags(
        self, tags: list[str], page_size: int = 5
    ) -> list[SearchCandidate]: ...

    def fetch_top_responses(
        self, candidate_id: str, limit: int = 3
    ) -> list[CommunityResponse]: ...


def merge_candidates(groups: Iterable[Iterable[SearchCandidate]]) -> list[SearchCandidate]:
    """Merge candidate lists by candidate id.

    The entry with the higher relevance score survives together with its
    match reason and strategy. On an exact tie the first one seen is kept.
    Scores are never summed or averaged.

    Args:
        groups: Candidate lists, one per strategy, in strategy order

    Returns:
        Unique candidates in first-seen order
    """
    merged: dict[str, SearchCandidate] = {}
    for group in groups:
        for candidate in group:
            existing = merged.get(candidate.candidate_id)
            if existing is None or candidate.relevance_score > existing.relevance_score:
                merged[candidate.candidate_id] = candidate
    return list(merged.values())


def rank_candidates(
    candidates: Iterable[SearchCandidate], limit: int = 10
) -> list[SearchCandidate]:
    """Sort by relevance score descending, then candidate id ascending."""
    ranked = sorted(candidates, key=lambda c: (-c.relevance_score, c.candidate_id))
    return ranked[:limit]


def pick_best_response(responses: list[CommunityResponse]) -> CommunityResponse | None:
    """First accepted response, otherwise the first (top-voted) one."""
    for response in responses:
        if response.is_accepted:
            return response
    return responses[0] if responses else None


class SolutionSearcher:
    """Runs the four search strategies against a knowledge base client."""

    def __init__(
        self,
        client: KnowledgeSearchClient,
        settings: SearchSettings | None = None,
    ):
        self.client = client
        self.settings = settings or SearchSettings()

    def search(self, signals: DiagnosticSignals) -> list[SearchCandidate]:
        """Find, merge and rank candidates for one issue's signals.

        Args:
            signals: Extracted diagnostic signals

        Returns:
            Ranked candidates (at most ``max_candidates``), the answered ones
            with their best community response attached when available
        """
        strategies: list[tuple[SearchStrategy, StrategyFunc]] = [
            (SearchStrategy.EXACT_ERROR, self._search_exact_errors),
            (SearchStrategy.EXCEPTION_TYPE, self._search_exception_types),
            (SearchStrategy.KEYWORD, self._search_keywords),
            (SearchStrategy.TAG, self._search_tags),
        ]

        groups = []
        for strategy, run_strategy in strategies:
            try:
                found = run_strategy(signals)
            except Exception as e:
                logger.warning("Search strategy %s failed: %s", strategy.value, e)
                found = []
            logger.debug("Strategy %s produced %d candidates", strategy.value, len(found))
            groups.append(found)

        ranked = rank_candidates(merge_candidates(groups), self.settings.max_candidates)
        return self._attach_responses(ranked)

    def _search_exact_errors(self, signals: DiagnosticSignals) -> list[SearchCandidate]:
        score = self.settings.scores.exact_error
        found = []
        for error in signals.error_messages[: self.settings.max_error_queries]:
            for candidate in self.client.search_by_text(error):
                found.append(
                    candidate.scored(
                        score,
                        f"Exact error match: {error[:80]}",
                        SearchStrategy.EXACT_ERROR,
                    )
                )
        return found

    def _search_exception_types(
        self, signals: DiagnosticSignals
    ) -> list[SearchCandidate]:
        score = self.settings.scores.exception_type
        technologies = signals.technologies[: self.settings.query_technologies]
        found = []
        exception_types = signals.exception_types[: self.settings.max_exception_queries]
        for exception_type in exception_types:
            query = " ".join([exception_type, *technologies])
            for candidate in self.client.search_by_text(query):
                found.append(
                    candidate.scored(
                        score,
                        f"Exception type match: {exception_type}",
                        SearchStrategy.EXCEPTION_TYPE,
                    )
                )
        return found

    def _search_keywords(self, signals: DiagnosticSignals) -> list[SearchCandidate]:
        keywords = signals.keywords[: self.settings.keyword_query_terms]
        if not keywords:
            return []

        terms = keywords + signals.technologies[: self.settings.query_technologies]
        reason = f"Keyword match: {', '.join(keywords)}"
        return [
            candidate.scored(self.settings.scores.keyword, reason, SearchStrategy.KEYWORD)
            for candidate in self.client.search_by_text(" ".join(terms))
        ]

    def _search_tags(self, signals: DiagnosticSignals) -> list[SearchCandidate]:
        tags = signals.technologies[: self.settings.tag_query_limit]
        if not tags:
            return []

        reason = f"Tag match: {', '.join(tags)}"
        return [
            candidate.scored(self.settings.scores.tag, reason, SearchStrategy.TAG)
            for candidate in self.client.search_by_tags(tags)
        ]

    def _attach_responses(
        self, candidates: list[SearchCandidate]
    ) -> list[SearchCandidate]:
        """Fetch the best community response for candidates that have answers."""
        enriched = []
        for index, candidate in enumerate(candidates):
            if index >= self.settings.response_fetch_limit or candidate.answer_count <= 0:
                enriched.append(candidate)
                continue

            try:
                responses = self.client.fetch_top_responses(
                    candidate.candidate_id, self.settings.responses_per_candidate
                )
            except Exception as e:
                logger.warning(
                    "Could not fetch responses for %s: %s", candidate.candidate_id, e
                )
                responses = []

            best = pick_best_response(responses)
            if best is None:
                enriched.append(candidate)
            else:
                enriched.append(candidate.model_copy(update={"top_response": best}))
        return enriched

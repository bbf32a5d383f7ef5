"""Tests for multi-strategy knowledge base search."""

import httpx
import pytest

from issue_correlator.analysis.models import DiagnosticSignals
from issue_correlator.analysis.search import (
    SolutionSearcher,
    merge_candidates,
    pick_best_response,
    rank_candidates,
)
from issue_correlator.knowledge.client import StackExchangeClient
from issue_correlator.knowledge.models import CommunityResponse, SearchStrategy
from issue_correlator.retry import RetryPolicy


class TestMergeAndRank:
    """Test candidate merging and ranking."""

    def test_merge_keeps_highest_score(self, make_candidate) -> None:
        """Same id from two strategies survives once with the higher score."""
        low = make_candidate("Q123").scored(70, "keywords", SearchStrategy.KEYWORD)
        high = make_candidate("Q123").scored(95, "exact", SearchStrategy.EXACT_ERROR)

        merged = merge_candidates([[low], [high]])

        assert len(merged) == 1
        assert merged[0].relevance_score == 95
        assert merged[0].strategy == SearchStrategy.EXACT_ERROR
        assert merged[0].match_reason == "exact"

    def test_merge_tie_keeps_first_seen(self, make_candidate) -> None:
        first = make_candidate("Q1").scored(70, "first", SearchStrategy.KEYWORD)
        second = make_candidate("Q1").scored(70, "second", SearchStrategy.TAG)

        merged = merge_candidates([[first], [second]])

        assert merged[0].match_reason == "first"

    def test_merge_never_sums(self, make_candidate) -> None:
        groups = [
            [make_candidate("Q1").scored(60, "tag", SearchStrategy.TAG)],
            [make_candidate("Q1").scored(60, "tag", SearchStrategy.TAG)],
        ]
        assert merge_candidates(groups)[0].relevance_score == 60

    def test_rank_orders_by_score_then_id(self, make_candidate) -> None:
        candidates = [
            make_candidate("b").scored(70, "", SearchStrategy.KEYWORD),
            make_candidate("c").scored(95, "", SearchStrategy.EXACT_ERROR),
            make_candidate("a").scored(70, "", SearchStrategy.KEYWORD),
        ]
        ranked = rank_candidates(candidates)
        assert [c.candidate_id for c in ranked] == ["c", "a", "b"]

    def test_rank_is_idempotent_and_truncates(self, make_candidate) -> None:
        candidates = [
            make_candidate(str(i)).scored(50 + i, "", SearchStrategy.TAG)
            for i in range(15)
        ]
        ranked = rank_candidates(candidates, limit=10)
        assert len(ranked) == 10
        assert rank_candidates(ranked, limit=10) == ranked

    def test_pick_best_response_prefers_accepted(self) -> None:
        responses = [
            CommunityResponse(response_id="1", score=50),
            CommunityResponse(response_id="2", score=5, is_accepted=True),
        ]
        assert pick_best_response(responses).response_id == "2"
        assert pick_best_response(responses[:1]).response_id == "1"
        assert pick_best_response([]) is None


class TestSolutionSearcher:
    """Test strategy execution."""

    def test_exact_error_strategy_scores_95(
        self, knowledge_factory, make_candidate
    ) -> None:
        """An error string that matches yields an exact-error candidate at 95."""
        error = "TypeError: cannot read property 'x' of undefined"
        client = knowledge_factory(text_results={error: [make_candidate("Q1")]})
        signals = DiagnosticSignals(error_messages=[error], technologies=["react"])

        results = SolutionSearcher(client).search(signals)

        exact = [c for c in results if c.strategy == SearchStrategy.EXACT_ERROR]
        assert exact
        assert exact[0].relevance_score == 95
        assert error in client.text_queries

    def test_strategies_without_input_are_skipped(self, knowledge_factory) -> None:
        client = knowledge_factory()
        SolutionSearcher(client).search(DiagnosticSignals())
        assert client.text_queries == []
        assert client.tag_queries == []

    def test_query_construction(self, knowledge_factory) -> None:
        client = knowledge_factory()
        signals = DiagnosticSignals(
            exception_types=["KeyError", "ValueError", "OSError"],
            technologies=["python", "django", "redis", "celery"],
            keywords=["cache", "timeout", "worker", "queue", "retry", "broker"],
        )

        SolutionSearcher(client).search(signals)

        assert client.text_queries == [
            "KeyError python django",
            "ValueError python django",
            "cache timeout worker queue retry python django",
        ]
        assert client.tag_queries == [["python", "django", "redis"]]

    def test_failing_strategy_does_not_abort_others(
        self, knowledge_factory, make_candidate
    ) -> None:
        """A strategy that raises contributes nothing; the rest still run."""

        class BrokenTextClient(knowledge_factory):
            def search_by_text(self, query, tags=None, page_size=10):
                raise RuntimeError("boom")

        client = BrokenTextClient(tag_results=[make_candidate("T1")])
        signals = DiagnosticSignals(
            error_messages=["ValueError: something went badly wrong"],
            technologies=["python"],
        )

        results = SolutionSearcher(client).search(signals)

        assert [c.candidate_id for c in results] == ["T1"]
        assert results[0].strategy == SearchStrategy.TAG

    def test_best_response_attached_for_answered(
        self, knowledge_factory, make_candidate
    ) -> None:
        answered = make_candidate("Q1", answer_count=2, is_answered=True)
        unanswered = make_candidate("Q2", answer_count=0)
        client = knowledge_factory(
            tag_results=[answered, unanswered],
            responses={
                "Q1": [
                    CommunityResponse(response_id="A1", score=10),
                    CommunityResponse(response_id="A2", is_accepted=True),
                ]
            },
        )

        results = SolutionSearcher(client).search(
            DiagnosticSignals(technologies=["python"])
        )

        by_id = {c.candidate_id: c for c in results}
        assert by_id["Q1"].top_response.response_id == "A2"
        assert by_id["Q2"].top_response is None


def _question(question_id: int) -> dict:
    return {
        "question_id": question_id,
        "title": f"Question {question_id}",
        "tags": ["python"],
        "score": 3,
        "view_count": 100,
        "answer_count": 0,
        "is_answered": False,
        "link": f"https://stackoverflow.com/q/{question_id}",
    }


class TestRateLimitDuringSearch:
    """A throttle during one strategy costs one cool-down and nothing else."""

    @pytest.fixture
    def throttled_client(self, limiter):
        state = {"throttled": False}

        def handler(request: httpx.Request) -> httpx.Response:
            query = request.url.params.get("q", "")
            if request.url.path.endswith("/search/advanced") and query.startswith(
                "KeyError"
            ):
                if not state["throttled"]:
                    state["throttled"] = True
                    return httpx.Response(
                        400,
                        json={
                            "error_id": 502,
                            "error_name": "throttle_violation",
                            "error_message": "too many requests, retry in 30 seconds",
                        },
                    )
                return httpx.Response(200, json={"items": [_question(2)]})
            if request.url.path.endswith("/search/advanced"):
                return httpx.Response(200, json={"items": [_question(1)]})
            return httpx.Response(200, json={"items": [_question(3)]})

        http = httpx.Client(
            base_url="https://api.stackexchange.com/2.3",
            transport=httpx.MockTransport(handler),
        )
        client = StackExchangeClient(
            limiter=limiter,
            retry_policy=RetryPolicy(base_delay=0.0),
            http_client=http,
        )
        yield client
        client.close()

    def test_single_cool_down_and_all_strategies_complete(
        self, throttled_client, limiter, fake_clock
    ) -> None:
        signals = DiagnosticSignals(
            error_messages=["ValueError: something went badly wrong"],
            exception_types=["KeyError"],
            technologies=["python"],
            keywords=["cache"],
        )

        results = SolutionSearcher(throttled_client).search(signals)

        assert limiter.cool_downs == 1
        assert 30.0 in fake_clock.sleeps
        strategies = {c.candidate_id: c.strategy for c in results}
        assert strategies["1"] == SearchStrategy.EXACT_ERROR
        assert strategies["2"] == SearchStrategy.EXCEPTION_TYPE
        assert strategies["3"] == SearchStrategy.TAG

"""Tests for precedent matching."""

from issue_correlator.analysis.precedents import PrecedentFinder, title_words


class TestTitleWords:
    def test_short_words_dropped(self) -> None:
        assert title_words("Fix the app crash on save") == {"crash", "save"}


class TestPrecedentFinder:
    """Test PrecedentFinder scoring and filtering."""

    def test_issue_never_its_own_precedent(self, make_issue) -> None:
        issue = make_issue(
            1, title="Login crash with token", state="closed", labels=["auth"]
        )
        results = PrecedentFinder().find(issue, [issue])
        assert results == []

    def test_scores_words_labels_and_discussion(self, make_issue) -> None:
        issue = make_issue(1, title="Login crash with expired token", labels=["auth"])
        precedent = make_issue(
            2,
            title="Crash when token expired",
            state="closed",
            labels=["auth"],
            comment_count=5,
        )

        finder = PrecedentFinder()
        # shared words: crash, token, expired -> 30; shared label -> 20; busy -> 15
        assert finder.score(issue, precedent) == 65

        results = finder.find(issue, [issue, precedent])
        assert len(results) == 1
        assert results[0].number == 2
        assert results[0].similarity_score == 65

    def test_open_issues_and_pull_requests_excluded(self, make_issue) -> None:
        issue = make_issue(1, title="Login crash with expired token")
        open_issue = make_issue(2, title="Login crash with expired token")
        pull_request = make_issue(
            3, title="Login crash with expired token", state="closed", is_pull_request=True
        )
        assert PrecedentFinder().find(issue, [open_issue, pull_request]) == []

    def test_threshold_is_exclusive(self, make_issue) -> None:
        """A score of exactly 20 does not qualify."""
        issue = make_issue(1, title="Memory leak in renderer")
        candidate = make_issue(2, title="Memory leak elsewhere", state="closed")
        finder = PrecedentFinder()
        assert finder.score(issue, candidate) == 20
        assert finder.find(issue, [candidate]) == []

    def test_ranked_and_capped(self, make_issue) -> None:
        issue = make_issue(1, title="alpha bravo charlie delta", labels=["ui"])
        corpus = [
            make_issue(10, title="alpha bravo charlie", state="closed"),
            make_issue(11, title="alpha bravo charlie delta", state="closed"),
            make_issue(12, title="alpha bravo charlie", state="closed"),
            make_issue(13, title="bravo charlie delta", state="closed", labels=["ui"]),
            make_issue(14, title="alpha bravo", state="closed"),
        ]

        results = PrecedentFinder().find(issue, corpus)

        assert [p.number for p in results] == [13, 11, 10]
        assert [p.similarity_score for p in results] == [50, 40, 30]

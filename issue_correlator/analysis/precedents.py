"""Same-corpus precedent matching.

A precedent is a closed issue from the same repository that shares title
words or labels with the issue being analyzed.
"""

from collections.abc import Iterable

from ..config import PrecedentSettings
from ..github_client.models import GitHubIssue
from .models import PrecedentIssue


def title_words(title: str, min_length: int = 3) -> set[str]:
    """Lower-cased whitespace-separated title words longer than ``min_length``."""
    return {word for word in title.lower().split() if len(word) > min_length}


class PrecedentFinder:
    """Scores closed issues of the corpus against one issue. Pure, no I/O."""

    def __init__(self, settings: PrecedentSettings | None = None):
        self.settings = settings or PrecedentSettings()

    def score(self, issue: GitHubIssue, candidate: GitHubIssue) -> int:
        """Weighted overlap between two issues."""
        settings = self.settings
        shared_words = title_words(issue.title, settings.min_word_length) & title_words(
            candidate.title, settings.min_word_length
        )
        shared_labels = set(issue.label_names) & set(candidate.label_names)

        score = len(shared_words) * settings.title_word_weight
        score += len(shared_labels) * settings.label_weight
        if candidate.total_comments > settings.discussion_comment_threshold:
            score += settings.discussion_bonus
        return score

    def find(
        self, issue: GitHubIssue, corpus: Iterable[GitHubIssue]
    ) -> list[PrecedentIssue]:
        """Find the closest resolved precedents for an issue.

        Args:
            issue: Issue being analyzed
            corpus: All issues of the run, in any order

        Returns:
            Up to ``max_precedents`` precedents scoring above ``min_score``,
            best first, ties by issue number
        """
        scored = []
        for candidate in corpus:
            if candidate.number == issue.number:
                continue
            if candidate.is_pull_request or not candidate.is_closed:
                continue

            score = self.score(issue, candidate)
            if score > self.settings.min_score:
                scored.append((score, candidate))

        scored.sort(key=lambda item: (-item[0], item[1].number))
        return [
            PrecedentIssue.from_issue(candidate, score)
            for score, candidate in scored[: self.settings.max_precedents]
        ]

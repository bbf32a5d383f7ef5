"""Verdict synthesis from signals, candidates and precedents.

All scores are additive heuristics over the evidence found for one issue.
Nothing here performs I/O or raises on sparse input.
"""

from ..config import SynthesisSettings
from ..knowledge.models import SearchCandidate
from .models import (
    Complexity,
    DiagnosticSignals,
    EffortBand,
    IssueEngagement,
    PrecedentIssue,
    Solvability,
    Verdict,
)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


class AnalysisSynthesizer:
    """Combines the evidence for one issue into a Verdict."""

    def __init__(self, settings: SynthesisSettings | None = None):
        self.settings = settings or SynthesisSettings()

    def synthesize(
        self,
        signals: DiagnosticSignals,
        candidates: list[SearchCandidate],
        precedents: list[PrecedentIssue],
        engagement: IssueEngagement,
    ) -> Verdict:
        """Build the verdict for one issue.

        Args:
            signals: Extracted diagnostic signals
            candidates: Ranked knowledge base candidates
            precedents: Ranked closed precedent issues
            engagement: Comment, reaction and label data of the issue

        Returns:
            Verdict with bounded confidence and effort
        """
        complexity = self.assess_complexity(candidates, precedents, engagement)
        solvability = self.assess_solvability(candidates, precedents)
        confidence = self.calculate_confidence(candidates, precedents)
        hours = self.estimate_effort_hours(candidates, precedents, engagement)

        return Verdict(
            complexity=complexity,
            solvability=solvability,
            confidence=confidence,
            estimated_effort_hours=hours,
            estimated_effort=self.effort_band(hours),
            recommended_steps=self.recommend_steps(candidates, precedents),
            summary=self.summarize(
                candidates, precedents, engagement, complexity, solvability, confidence
            ),
            insights=self.collect_insights(signals, candidates, precedents, engagement),
            community_interest=sum(c.view_count for c in candidates),
        )

    def _answered(self, candidates: list[SearchCandidate]) -> list[SearchCandidate]:
        return [c for c in candidates if c.is_answered]

    def _popular(self, candidates: list[SearchCandidate]) -> list[SearchCandidate]:
        return [c for c in candidates if c.score > self.settings.popular_score_threshold]

    def _closed(self, precedents: list[PrecedentIssue]) -> list[PrecedentIssue]:
        return [p for p in precedents if p.state == "closed"]

    def _has_label(self, labels: list[str], markers: list[str]) -> bool:
        return any(marker in label.lower() for label in labels for marker in markers)

    def assess_complexity(
        self,
        candidates: list[SearchCandidate],
        precedents: list[PrecedentIssue],
        engagement: IssueEngagement,
    ) -> Complexity:
        settings = self.settings
        points = settings.complexity_base
        if not candidates:
            points += settings.no_candidates_penalty
        if not self._answered(candidates):
            points += settings.no_answered_penalty
        if engagement.comment_count > settings.busy_comment_threshold:
            points += settings.busy_discussion_penalty
        if not self._closed(precedents):
            points += settings.no_precedents_penalty
        if self._has_label(engagement.labels, settings.hard_label_markers):
            points += settings.hard_label_penalty
        if self._has_label(engagement.labels, settings.easy_label_markers):
            points -= settings.easy_label_bonus

        if points <= settings.low_complexity_max:
            return Complexity.LOW
        if points <= settings.medium_complexity_max:
            return Complexity.MEDIUM
        return Complexity.HIGH

    def assess_solvability(
        self, candidates: list[SearchCandidate], precedents: list[PrecedentIssue]
    ) -> Solvability:
        answered = self._answered(candidates)
        if self._popular(answered):
            return Solvability.HIGH
        if answered or self._closed(precedents):
            return Solvability.MEDIUM
        return Solvability.LOW

    def calculate_confidence(
        self, candidates: list[SearchCandidate], precedents: list[PrecedentIssue]
    ) -> int:
        """Confidence in [0, 100]; each evidence kind contributes up to a cap."""
        settings = self.settings
        confidence = settings.confidence_base
        confidence += min(
            len(self._answered(candidates)) * settings.answered_weight,
            settings.answered_cap,
        )
        confidence += min(
            len(self._popular(candidates)) * settings.popular_weight,
            settings.popular_cap,
        )
        confidence += min(
            len(self._closed(precedents)) * settings.precedent_weight,
            settings.precedent_cap,
        )
        confidence += min(
            len(candidates) * settings.candidate_weight, settings.candidate_cap
        )
        return _clamp(confidence, 0, 100)

    def estimate_effort_hours(
        self,
        candidates: list[SearchCandidate],
        precedents: list[PrecedentIssue],
        engagement: IssueEngagement,
    ) -> int:
        settings = self.settings
        hours = settings.effort_base_hours
        if self._popular(self._answered(candidates)):
            hours -= settings.strong_candidate_hours
        if precedents:
            hours -= settings.precedent_hours
        if engagement.comment_count > settings.busy_comment_threshold:
            hours += settings.busy_discussion_hours
        if not candidates:
            hours += settings.no_candidates_hours
        return _clamp(hours, settings.min_effort_hours, settings.max_effort_hours)

    def effort_band(self, hours: int) -> EffortBand:
        if hours <= self.settings.quick_max_hours:
            return EffortBand.QUICK
        if hours <= self.settings.standard_max_hours:
            return EffortBand.STANDARD
        if hours <= self.settings.moderate_max_hours:
            return EffortBand.MODERATE
        return EffortBand.COMPLEX

    def recommend_steps(
        self, candidates: list[SearchCandidate], precedents: list[PrecedentIssue]
    ) -> list[str]:
        """Ordered next steps, each included only when its data exists."""
        steps = ["Review the issue description, comments and any error output"]

        if candidates:
            top = candidates[0]
            steps.append(f"Check the top community solution: {top.title} ({top.link})")
            if top.is_answered:
                steps.append("Apply the approach from the accepted or top-voted answer")

        if precedents:
            nearest = precedents[0]
            steps.append(
                f"Review similar resolved issue #{nearest.number}: {nearest.title}"
            )
            steps.append(f"Apply the resolution pattern from issue #{nearest.number}")

        steps.append("Test the fix against the reported scenario")
        steps.append("Document the resolution on the issue")
        return steps

    def summarize(
        self,
        candidates: list[SearchCandidate],
        precedents: list[PrecedentIssue],
        engagement: IssueEngagement,
        complexity: Complexity,
        solvability: Solvability,
        confidence: int,
    ) -> str:
        answered = len(self._answered(candidates))
        parts = [
            f"Issue #{engagement.number} looks {complexity.value.lower()} complexity "
            f"with {solvability.value.lower()} solvability ({confidence}% confidence)."
        ]
        if candidates:
            parts.append(
                f"Found {len(candidates)} community candidates, {answered} answered."
            )
        else:
            parts.append("No community candidates were found.")
        if precedents:
            parts.append(
                f"{len(precedents)} similar resolved issues exist in this repository."
            )
        return " ".join(parts)

    def collect_insights(
        self,
        signals: DiagnosticSignals,
        candidates: list[SearchCandidate],
        precedents: list[PrecedentIssue],
        engagement: IssueEngagement,
    ) -> list[str]:
        insights = []
        if signals.error_messages:
            insights.append(
                f"Reports {len(signals.error_messages)} distinct error messages"
            )
        if signals.stack_traces:
            insights.append("Includes stack traces")
        if signals.technologies:
            insights.append(f"Technologies: {', '.join(signals.technologies[:5])}")

        accepted = [c for c in candidates if c.accepted_answer_id]
        if accepted:
            insights.append(f"{len(accepted)} candidates have an accepted answer")
        popular = self._popular(candidates)
        if popular:
            views = sum(c.view_count for c in popular)
            insights.append(f"{len(popular)} popular candidates with {views} total views")
        if precedents:
            insights.append(f"Nearest precedent: #{precedents[0].number}")
        if engagement.comment_count > self.settings.busy_comment_threshold:
            insights.append(f"Busy discussion with {engagement.comment_count} comments")
        if engagement.reaction_count:
            insights.append(f"{engagement.reaction_count} reactions from users")
        return insights

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..core.config import PolicySettings, SelfCorrectionSettings
from ..schemas.policy import OutcomeEvaluation
from ..schemas.results import AnyResult

ALTERNATIVE_NOVELTY_KEYWORDS: tuple[str, ...] = (
    "innovative",
    "creative",
    "novel",
    "unconventional",
    "experimental",
    "breakthrough",
    "revolutionary",
    "paradigm",
    "synthesis",
    "emergent",
)
ALTERNATIVE_RELIABILITY_KEYWORDS: tuple[str, ...] = (
    "established",
    "proven",
    "tested",
    "validated",
    "standard",
    "documented",
    "reliable",
    "consistent",
    "predictable",
    "stable",
)
OUTCOME_NOVELTY_KEYWORDS: tuple[str, ...] = (
    "novel",
    "innovative",
    "creative",
    "unique",
    "original",
    "breakthrough",
    "unconventional",
    "unexpected",
    "surprising",
    "revolutionary",
)
OUTCOME_FEASIBILITY_KEYWORDS: tuple[str, ...] = (
    "practical",
    "implementable",
    "achievable",
    "realistic",
    "doable",
    "step-by-step",
    "concrete",
    "actionable",
    "specific",
)


def count_present(text: str, keywords: Iterable[str]) -> int:
    """Number of distinct keywords appearing (as substrings) in ``text``."""
    lowered = text.lower()
    return sum(1 for keyword in keywords if keyword in lowered)


def count_occurrences(text: str, keywords: Iterable[str]) -> int:
    """Total non-overlapping occurrences of every keyword in ``text``."""
    lowered = text.lower()
    return sum(lowered.count(keyword) for keyword in keywords)


def _clamp(value: float) -> float:
    if value < 0.0:
        return 0.0
    if value > 1.0:
        return 1.0
    return value


@dataclass(slots=True)
class AlternativeScore:
    novelty: float
    reliability: float
    compliance: float
    score: float

    def as_dict(self) -> dict[str, float]:
        return {
            "novelty": self.novelty,
            "reliability": self.reliability,
            "compliance": self.compliance,
            "score": self.score,
        }


class AlternativeScorer:
    """Weighted novelty/reliability/compliance score for self-correction candidates."""

    def __init__(self, settings: SelfCorrectionSettings) -> None:
        self._settings = settings

    @staticmethod
    def novelty(output: str) -> float:
        return min(count_present(output, ALTERNATIVE_NOVELTY_KEYWORDS) * 0.1, 1.0)

    @staticmethod
    def reliability(output: str) -> float:
        return min(count_present(output, ALTERNATIVE_RELIABILITY_KEYWORDS) * 0.1, 1.0)

    def score(self, output: str, *, compliance: float) -> AlternativeScore:
        criteria = set(self._settings.evaluation_criteria)
        novelty = self.novelty(output)
        reliability = self.reliability(output)
        total = 0.0
        if "novelty" in criteria:
            total += novelty * self._settings.novelty_weight
        if "reliability" in criteria:
            total += reliability * self._settings.reliability_weight
        if "ethical_alignment" in criteria:
            total += compliance * self._settings.compliance_weight
        return AlternativeScore(
            novelty=novelty,
            reliability=reliability,
            compliance=compliance,
            score=total,
        )


class OutcomeScorer:
    """Post-hoc outcome value of a result against the goal that produced it."""

    def __init__(self, settings: PolicySettings) -> None:
        self._settings = settings

    @staticmethod
    def goal_alignment(result: AnyResult, primary_goal: str) -> float:
        if not result.success:
            return 0.1
        goal_words = primary_goal.lower().split()
        if not goal_words:
            return 0.0
        result_words = set(result.output.lower().split())
        overlap = sum(1 for word in goal_words if word in result_words)
        return min((overlap / len(goal_words)) * result.confidence, 1.0)

    @staticmethod
    def novelty(result: AnyResult) -> float:
        base = min(count_present(result.output, OUTCOME_NOVELTY_KEYWORDS) * 0.1, 0.8)
        return base if result.success else base * 0.5

    @staticmethod
    def feasibility(result: AnyResult) -> float:
        base = min(count_present(result.output, OUTCOME_FEASIBILITY_KEYWORDS) * 0.15, 0.9)
        return max(base, 0.5) if result.success else base * 0.3

    def evaluate(self, result: AnyResult, *, primary_goal: str, compliance: float) -> OutcomeEvaluation:
        goal_alignment = self.goal_alignment(result, primary_goal)
        novelty = self.novelty(result)
        feasibility = self.feasibility(result)
        compliance = _clamp(compliance)
        overall = (
            goal_alignment * self._settings.goal_alignment_weight
            + novelty * self._settings.novelty_weight
            + feasibility * self._settings.feasibility_weight
            + compliance * self._settings.compliance_weight
        )
        return OutcomeEvaluation(
            goal_alignment=goal_alignment,
            novelty_score=novelty,
            feasibility=feasibility,
            constitutional_compliance=compliance,
            overall_value=_clamp(overall),
        )


__all__ = [
    "AlternativeScore",
    "AlternativeScorer",
    "OutcomeScorer",
    "count_occurrences",
    "count_present",
]

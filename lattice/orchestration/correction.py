from __future__ import annotations

from dataclasses import dataclass, field

from ..core.config import SelfCorrectionSettings
from ..core.logging import get_logger
from ..core.metrics import record_self_correction
from ..schemas.validation import CorrectionCandidate, ValidationInput, ValidationVerdict
from ..services.scoring import AlternativeScorer
from .validation import ValidationEngine

logger = get_logger(name=__name__)

EXPLORATORY_ENHANCEMENT = """EXPLORATORY ENHANCEMENT:
This response takes a bold approach by exploring unconventional possibilities:
- Novel connections between concepts that might not be immediately obvious
- Experimental ideas that push beyond conventional wisdom
- Creative synthesis that combines disparate elements in new ways
- Future-oriented thinking that anticipates emerging possibilities

Note: This exploratory enhancement deliberately ventures into less certain territory to stimulate innovative thinking while maintaining core principle alignment."""

CONSERVATIVE_ENHANCEMENT = """CONSERVATIVE ENHANCEMENT:
This response emphasizes reliability and proven approaches:
- Well-established methods with demonstrated track records
- Clear acknowledgment of limitations and uncertainties
- Step-by-step guidance with predictable outcomes
- Risk mitigation strategies for safe implementation

Note: This conservative enhancement prioritizes safety and predictability while ensuring principle compliance."""


@dataclass(slots=True)
class CorrectionOutcome:
    output: str
    approach: str
    candidates: list[CorrectionCandidate] = field(default_factory=list)


class SelfCorrector:
    """Rewrites a non-compliant output by generating and scoring alternatives."""

    def __init__(
        self,
        engine: ValidationEngine,
        settings: SelfCorrectionSettings | None = None,
        *,
        metrics_enabled: bool = True,
    ) -> None:
        self._engine = engine
        self._settings = settings or SelfCorrectionSettings()
        self._scorer = AlternativeScorer(self._settings)
        self._metrics_enabled = metrics_enabled

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    def alternatives(self, payload: ValidationInput, output: str, verdict: ValidationVerdict) -> list[tuple[str, str]]:
        generated = [
            ("principle_guided", self._engine.principle_guided_response(payload, output, verdict=verdict)),
            ("bold_exploration", f"{output}\n\n{EXPLORATORY_ENHANCEMENT}"),
            ("conservative_reliable", f"{output}\n\n{CONSERVATIVE_ENHANCEMENT}"),
        ]
        return generated[: self._settings.alternative_count]

    def correct(self, payload: ValidationInput, output: str, verdict: ValidationVerdict) -> CorrectionOutcome:
        if not self._settings.generate_alternatives:
            outcome = CorrectionOutcome(
                output=self._engine.principle_guided_response(payload, output, verdict=verdict),
                approach="principle_guided",
            )
            self._record(payload, outcome)
            return outcome

        candidates: list[CorrectionCandidate] = []
        for approach, text in self.alternatives(payload, output, verdict):
            compliance = self._engine.validate(payload, text, phase="correction").aggregate_confidence
            scored = self._scorer.score(text, compliance=compliance)
            candidates.append(
                CorrectionCandidate(approach=approach, output=text, **scored.as_dict())
            )

        best = candidates[0]
        for candidate in candidates[1:]:
            if candidate.score > best.score:
                best = candidate
        outcome = CorrectionOutcome(output=best.output, approach=best.approach, candidates=candidates)
        self._record(payload, outcome)
        return outcome

    def _record(self, payload: ValidationInput, outcome: CorrectionOutcome) -> None:
        logger.info(
            "self_correction_applied",
            tool=payload.tool_name,
            approach=outcome.approach,
            candidates=len(outcome.candidates),
        )
        if self._metrics_enabled:
            record_self_correction(approach=outcome.approach)


__all__ = ["CONSERVATIVE_ENHANCEMENT", "CorrectionOutcome", "EXPLORATORY_ENHANCEMENT", "SelfCorrector"]

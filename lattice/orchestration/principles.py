from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Protocol

from ..schemas.validation import RuleResult, ValidationInput
from ..services.scoring import count_occurrences, count_present

UNCERTAINTY_KEYWORDS = ("uncertain", "not sure", "maybe", "might", "could be", "unclear")
FABRICATION_PATTERNS = tuple(
    re.compile(pattern) for pattern in (r"definitely", r"certainly", r"absolutely", r"always", r"never", r"\d{4}")
)
ERROR_KEYWORDS = ("error", "failed", "wrong", "mistake", "problem", "issue")
ELIMINATION_KEYWORDS = ("fix", "remove", "delete", "eliminate", "stop")
LEARNING_KEYWORDS = ("learn", "understand", "explore", "discover", "navigate")
PROBLEM_KEYWORDS = ("problem", "issue", "challenge", "difficulty", "trouble", "fix", "solve", "resolve", "address")
CREATIVE_KEYWORDS = (
    "create",
    "build",
    "design",
    "develop",
    "generate",
    "imagine",
    "vision",
    "possibility",
    "potential",
    "opportunity",
)
DEFENSIVE_KEYWORDS = ("prevent", "avoid", "block", "stop", "protect")
GENERATIVE_KEYWORDS = ("enhance", "strengthen", "develop", "expand", "grow")


class Rule(Protocol):
    """Pluggable principle check.

    ``evaluate`` must be a pure function of its arguments. Returning ``None``
    means the rule could not evaluate the pair; the engine then records a
    compliant result with reduced confidence.
    """

    name: str
    description: str

    def evaluate(self, payload: ValidationInput, output: str | None) -> RuleResult | None:
        ...

    def correct(self, violation: str) -> str:
        ...


Check = Callable[[ValidationInput, str | None], RuleResult | None]


@dataclass(slots=True, frozen=True)
class PrincipleRule:
    name: str
    title: str
    description: str
    check: Check
    guidance_heading: str
    guidance: tuple[str, ...]

    def evaluate(self, payload: ValidationInput, output: str | None) -> RuleResult | None:
        return self.check(payload, output)

    def correct(self, violation: str) -> str:
        lines = "\n".join(f"- {line}" for line in self.guidance)
        return f"PRINCIPLE CORRECTION - {self.title}:\n{violation}\n\n{self.guidance_heading}:\n{lines}\n"


def _check_non_fabrication(payload: ValidationInput, output: str | None) -> RuleResult | None:
    if output is None:
        return None
    has_uncertainty = count_present(payload.input, UNCERTAINTY_KEYWORDS) > 0
    lowered = output.lower()
    has_fabrication = any(pattern.search(lowered) for pattern in FABRICATION_PATTERNS)
    if has_uncertainty and has_fabrication:
        return RuleResult(
            compliant=False,
            confidence=0.8,
            detail="Input shows uncertainty but output presents definitive claims",
            correction="Add uncertainty qualifiers and acknowledge limitations",
        )
    return RuleResult(compliant=True, confidence=0.9, detail="No fabrication indicators detected")


def _check_error_as_compass(payload: ValidationInput, output: str | None) -> RuleResult | None:
    has_error_context = count_present(payload.input, ERROR_KEYWORDS) > 0
    if has_error_context:
        if output is None:
            return None
        has_elimination = count_present(output, ELIMINATION_KEYWORDS) > 0
        has_learning = count_present(output, LEARNING_KEYWORDS) > 0
        if has_elimination and not has_learning:
            return RuleResult(
                compliant=False,
                confidence=0.7,
                detail="Response focuses on elimination rather than learning from errors",
                correction="Reframe errors as learning opportunities and navigational cues",
            )
    return RuleResult(compliant=True, confidence=0.8, detail="Error-as-compass principle maintained")


def _check_creative_orientation(payload: ValidationInput, output: str | None) -> RuleResult | None:
    problem_count = count_occurrences(payload.input, PROBLEM_KEYWORDS)
    creative_count = count_occurrences(payload.input, CREATIVE_KEYWORDS)
    if problem_count > 2 and creative_count == 0:
        return RuleResult(
            compliant=False,
            confidence=0.8,
            detail="Request is heavily problem-focused without creative orientation",
            correction="Reframe from 'what problem to solve' to 'what outcome to create'",
        )
    return RuleResult(compliant=True, confidence=0.9, detail="Creative orientation maintained")


def _check_generative_resilience(payload: ValidationInput, output: str | None) -> RuleResult | None:
    if output is None:
        return None
    defensive_count = count_occurrences(output, DEFENSIVE_KEYWORDS)
    generative_count = count_occurrences(output, GENERATIVE_KEYWORDS)
    if defensive_count > 2 and generative_count == 0:
        return RuleResult(
            compliant=False,
            confidence=0.7,
            detail="Response is focused on threat elimination rather than capability enhancement",
            correction="Include capability-building alongside protective measures",
        )
    return RuleResult(compliant=True, confidence=0.8, detail="Generative resilience principle maintained")


NON_FABRICATION = PrincipleRule(
    name="non-fabrication",
    title="Non-Fabrication",
    description="Acknowledge uncertainty rather than inventing facts when grounds are insufficient",
    check=_check_non_fabrication,
    guidance_heading="Suggested approach",
    guidance=(
        'Use uncertainty qualifiers: "appears to", "seems like", "based on available information"',
        'Acknowledge limitations: "I don\'t have complete information about..."',
        'Provide confidence levels: "With moderate confidence..." or "Tentatively..."',
        "Distinguish between facts and interpretation",
    ),
)

ERROR_AS_COMPASS = PrincipleRule(
    name="error-as-compass",
    title="Error as Compass",
    description="Treat failures as navigational cues for improvement rather than problems to eliminate",
    check=_check_error_as_compass,
    guidance_heading="Suggested reframe",
    guidance=(
        '"This error indicates..." instead of "This error should be fixed by..."',
        '"What can we learn from this?" rather than "How do we eliminate this?"',
        '"This suggests a different approach..." instead of "This is wrong and needs removal"',
        'Focus on discovery: "This reveals an opportunity to..."',
    ),
)

CREATIVE_ORIENTATION = PrincipleRule(
    name="creative-orientation",
    title="Creative Orientation",
    description="Focus on 'what to create' rather than 'problems to solve'",
    check=_check_creative_orientation,
    guidance_heading="Suggested reframe",
    guidance=(
        '"What do you want to create?" instead of "What problem needs solving?"',
        '"What outcome are you envisioning?" rather than "What\'s going wrong?"',
        '"What would success look like?" instead of "What needs fixing?"',
        "Focus on desired future state rather than current deficiencies",
    ),
)

GENERATIVE_RESILIENCE = PrincipleRule(
    name="generative-resilience",
    title="Generative Resilience",
    description="Enhance capabilities rather than just eliminate threats",
    check=_check_generative_resilience,
    guidance_heading="Suggested enhancement",
    guidance=(
        '"Build capability to..." alongside "Prevent..."',
        '"Strengthen the system by..." rather than just "Block the threat by..."',
        '"This creates an opportunity to enhance..." in addition to protective measures',
        "Focus on what capabilities emerge from addressing the challenge",
    ),
)

DEFAULT_PRINCIPLES: tuple[PrincipleRule, ...] = (
    NON_FABRICATION,
    ERROR_AS_COMPASS,
    CREATIVE_ORIENTATION,
    GENERATIVE_RESILIENCE,
)


__all__ = [
    "CREATIVE_ORIENTATION",
    "DEFAULT_PRINCIPLES",
    "ERROR_AS_COMPASS",
    "GENERATIVE_RESILIENCE",
    "NON_FABRICATION",
    "PrincipleRule",
    "Rule",
]

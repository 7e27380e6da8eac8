from __future__ import annotations

from typing import Any, Sequence

from ..core.config import ValidationSettings
from ..core.logging import get_logger
from ..core.metrics import record_validation_verdict
from ..schemas.validation import PreValidationOutcome, RuleResult, ValidationInput, ValidationVerdict
from .principles import CREATIVE_ORIENTATION, DEFAULT_PRINCIPLES, Rule

logger = get_logger(name=__name__)

CREATIVE_PROMPT_PREFIX = "What would you like to create? "


class ValidationEngine:
    """Runs every principle rule over an input/output pair and aggregates the verdict.

    The engine holds no per-call state: identical arguments always yield an
    identical verdict. Rule failures never escape; a rule that raises or cannot
    evaluate is recorded as compliant with ``unevaluable_confidence``.
    """

    def __init__(
        self,
        rules: Sequence[Rule] = DEFAULT_PRINCIPLES,
        *,
        settings: ValidationSettings | None = None,
        metrics_enabled: bool = True,
    ) -> None:
        if not rules:
            raise ValueError("ValidationEngine requires at least one rule")
        self._rules: tuple[Rule, ...] = tuple(rules)
        self._settings = settings or ValidationSettings()
        self._metrics_enabled = metrics_enabled

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def validate(self, payload: ValidationInput, output: str | None = None, *, phase: str = "post") -> ValidationVerdict:
        per_rule: dict[str, RuleResult] = {}
        corrections: list[str] = []
        for rule in self._rules:
            result = self._evaluate_rule(rule, payload, output)
            per_rule[rule.name] = result
            if not result.compliant and result.correction:
                corrections.append(rule.correct(result.detail))

        aggregate = sum(result.confidence for result in per_rule.values()) / len(per_rule)
        verdict = ValidationVerdict(
            per_rule_results=per_rule,
            overall_compliant=all(result.compliant for result in per_rule.values()),
            aggregate_confidence=aggregate,
            corrections=corrections,
        )
        if self._metrics_enabled:
            record_validation_verdict(
                phase=phase,
                compliant=verdict.overall_compliant,
                violated_rules=verdict.violations,
            )
        return verdict

    def _evaluate_rule(self, rule: Rule, payload: ValidationInput, output: str | None) -> RuleResult:
        try:
            result = rule.evaluate(payload, output)
        except Exception as exc:  # rule errors degrade to an unevaluable result
            logger.warning("principle_evaluation_failed", rule=rule.name, tool=payload.tool_name, error=str(exc))
            result = None
        if result is None:
            return RuleResult(
                compliant=True,
                confidence=self._settings.unevaluable_confidence,
                detail=f"{rule.name} could not be evaluated for this input",
            )
        return result

    def pre_validate(self, payload: ValidationInput) -> PreValidationOutcome:
        verdict = self.validate(payload, None, phase="pre")
        if verdict.overall_compliant:
            return PreValidationOutcome(verdict=verdict)
        guidance = self.execution_guidance(verdict)
        modified_args = self.suggest_argument_modifications(payload.args, verdict)
        logger.info(
            "pre_validation_guidance",
            tool=payload.tool_name,
            violations=verdict.violations,
            args_modified=modified_args != payload.args,
        )
        return PreValidationOutcome(verdict=verdict, guidance=guidance, modified_args=modified_args)

    def post_validate(self, payload: ValidationInput, output: str) -> ValidationVerdict:
        return self.validate(payload, output, phase="post")

    @staticmethod
    def execution_guidance(verdict: ValidationVerdict) -> str:
        violations = "\n".join(
            f"- {name}: {result.detail}" for name, result in verdict.per_rule_results.items() if not result.compliant
        )
        return (
            "CONSTITUTIONAL GUIDANCE:\n"
            "The following principles need attention before execution:\n\n"
            f"{violations}\n\n"
            "Please consider these principle-aligned approaches before proceeding."
        )

    @staticmethod
    def suggest_argument_modifications(args: dict[str, Any], verdict: ValidationVerdict) -> dict[str, Any]:
        modified = dict(args)
        creative = verdict.per_rule_results.get(CREATIVE_ORIENTATION.name)
        if creative is not None and not creative.compliant and modified.get("prompt"):
            modified["prompt"] = f"{CREATIVE_PROMPT_PREFIX}{modified['prompt']}"
        return modified

    def principle_guided_response(
        self,
        payload: ValidationInput,
        output: str,
        *,
        verdict: ValidationVerdict | None = None,
    ) -> str:
        """Append each violated rule's correction text to ``output``."""
        verdict = verdict or self.validate(payload, output, phase="correction")
        if verdict.overall_compliant:
            return output
        corrected = output
        for correction in verdict.corrections:
            corrected += "\n\n" + correction
        return corrected


__all__ = ["CREATIVE_PROMPT_PREFIX", "ValidationEngine"]

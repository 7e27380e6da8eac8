from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class RuleResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    compliant: bool
    confidence: float = Field(..., ge=0.0, le=1.0)
    detail: str
    correction: str | None = None


class ValidationVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    per_rule_results: dict[str, RuleResult]
    overall_compliant: bool
    aggregate_confidence: float = Field(..., ge=0.0, le=1.0)
    corrections: list[str] = Field(default_factory=list)

    @property
    def violations(self) -> list[str]:
        return [name for name, result in self.per_rule_results.items() if not result.compliant]


class ValidationInput(BaseModel):
    """Call context handed to every principle rule alongside the optional output."""

    model_config = ConfigDict(frozen=True)

    input: str
    tool_name: str = "unknown"
    args: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)


class PreValidationOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    verdict: ValidationVerdict
    guidance: str | None = None
    modified_args: dict[str, Any] | None = None


class CorrectionCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    approach: Literal["principle_guided", "bold_exploration", "conservative_reliable"]
    output: str
    novelty: float
    reliability: float
    compliance: float
    score: float


class AuditRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"audit_{uuid4().hex}")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    executor_id: str
    task_id: str | None = None
    input: str
    original_output: str
    verdict: ValidationVerdict
    correction_applied: bool = False
    correction_approach: str | None = None
    final_output: str


class RuleComplianceStats(BaseModel):
    total: int = 0
    compliant: int = 0
    rate: float = 0.0


__all__ = [
    "AuditRecord",
    "CorrectionCandidate",
    "PreValidationOutcome",
    "RuleComplianceStats",
    "RuleResult",
    "ValidationInput",
    "ValidationVerdict",
]

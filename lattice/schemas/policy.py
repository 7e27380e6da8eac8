from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .results import Result
from .tasks import Task


class Strategy(str, Enum):
    GOAL_DIRECTED = "goal_directed"
    EXPLORATORY = "exploratory"
    BALANCED = "balanced"
    ADAPTIVE = "adaptive"


class DecisionContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary_goal: str = Field(..., min_length=1)
    current_situation: str = ""
    task_complexity: int = Field(5, ge=1, le=10)
    time_constraint_minutes: float | None = Field(default=None, gt=0.0)
    risk_tolerance: float = Field(0.5, ge=0.0, le=1.0)
    novelty_required: bool = False
    available_executors: list[str] | None = Field(
        default=None,
        description="Restrict assignment to these executor ids; every registered executor when unset.",
    )


class ExplorationBalance(BaseModel):
    model_config = ConfigDict(frozen=True)

    exploitation: float = Field(..., ge=0.0, le=1.0)
    exploration: float = Field(..., ge=0.0, le=1.0)
    tension: float = Field(..., ge=0.0, le=1.0)
    rationale: str

    @model_validator(mode="after")
    def _check_sum(self) -> "ExplorationBalance":
        if abs(self.exploitation + self.exploration - 1.0) > 1e-9:
            raise ValueError("exploitation and exploration must sum to 1")
        return self


class Decision(BaseModel):
    model_config = ConfigDict(frozen=True)

    decision_id: str = Field(default_factory=lambda: f"decision_{uuid4().hex[:12]}")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    strategy: Strategy
    balance: ExplorationBalance
    assignments: dict[str, list[Task]] = Field(default_factory=dict)
    expected_outcomes: list[str] = Field(default_factory=list)
    contingency_plans: list[str] = Field(default_factory=list)
    context: DecisionContext

    @property
    def task_count(self) -> int:
        return sum(len(tasks) for tasks in self.assignments.values())


class OutcomeEvaluation(BaseModel):
    model_config = ConfigDict(frozen=True)

    goal_alignment: float = Field(..., ge=0.0, le=1.0)
    novelty_score: float = Field(..., ge=0.0, le=1.0)
    feasibility: float = Field(..., ge=0.0, le=1.0)
    constitutional_compliance: float = Field(..., ge=0.0, le=1.0)
    overall_value: float = Field(..., ge=0.0, le=1.0)


class ExplorationTrend(BaseModel):
    average: float
    direction: Literal["increasing", "decreasing", "stable"] = "stable"


class PolicyStatistics(BaseModel):
    total_decisions: int
    strategy_distribution: dict[Strategy, int]
    average_outcome_value: float
    exploration_trend: ExplorationTrend


class ExecutionReport(BaseModel):
    decision_id: str
    strategy: Strategy
    results: list[Result] = Field(default_factory=list)
    evaluations: dict[str, OutcomeEvaluation] = Field(default_factory=dict)
    evaluation_summary: str

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


__all__ = [
    "Decision",
    "DecisionContext",
    "ExecutionReport",
    "ExplorationBalance",
    "ExplorationTrend",
    "OutcomeEvaluation",
    "PolicyStatistics",
    "Strategy",
]

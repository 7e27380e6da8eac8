from __future__ import annotations

import math
from datetime import datetime
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def new_task_id(prefix: str = "task") -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


class Capability(BaseModel):
    """A named skill declared by an executor."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    cost: float = Field(..., ge=1.0, le=10.0)
    reliability: float = Field(..., ge=0.0, le=1.0)
    description: str = ""


class FileAnalysisDirective(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["file_analysis"] = "file_analysis"
    phase: Literal["extraction", "analysis"]


class CreativePhaseDirective(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["creative_phase"] = "creative_phase"
    phase: Literal["germination", "assessment"]


class QueryPartDirective(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["query_part"] = "query_part"
    part_index: int = Field(..., ge=0)


class StrategyDirective(BaseModel):
    """Marks a task produced by the policy manager for a given strategy."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["strategy"] = "strategy"
    strategy: str
    focus: str
    primary_goal: str
    exploitation_weight: float | None = Field(default=None, ge=0.0, le=1.0)
    exploration_weight: float | None = Field(default=None, ge=0.0, le=1.0)
    tension: float | None = Field(default=None, ge=0.0, le=1.0)


TaskDirective = Annotated[
    Union[FileAnalysisDirective, CreativePhaseDirective, QueryPartDirective, StrategyDirective],
    Field(discriminator="kind"),
]


class Task(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_task_id, min_length=1)
    description: str
    priority: int = Field(5, ge=1, le=10)
    required_capabilities: frozenset[str] = Field(default_factory=frozenset)
    context: dict[str, Any] = Field(default_factory=dict)
    deadline: datetime | None = None
    parent_task_id: str | None = None
    directive: TaskDirective | None = None

    @field_validator("required_capabilities", mode="before")
    @classmethod
    def _coerce_capabilities(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            return frozenset({value})
        return value

    def child(self, suffix: str, **updates: Any) -> "Task":
        """Build a subtask whose id derives from this task and which points back at it."""
        payload: dict[str, Any] = {
            "id": f"{self.id}_{suffix}",
            "description": self.description,
            "priority": self.priority,
            "context": dict(self.context),
            "deadline": self.deadline,
            "parent_task_id": self.id,
        }
        payload.update(updates)
        return Task(**payload)


class ExecutionEstimate(BaseModel):
    model_config = ConfigDict(frozen=True)

    cost: float
    reliability: float = Field(..., ge=0.0, le=1.0)

    @property
    def feasible(self) -> bool:
        return self.reliability > 0.0 and math.isfinite(self.cost)

    @property
    def score(self) -> float:
        if not self.feasible:
            return 0.0
        return self.reliability / max(self.cost, 1.0)

    @classmethod
    def infeasible(cls) -> "ExecutionEstimate":
        return cls(cost=math.inf, reliability=0.0)


__all__ = [
    "Capability",
    "CreativePhaseDirective",
    "ExecutionEstimate",
    "FileAnalysisDirective",
    "QueryPartDirective",
    "StrategyDirective",
    "Task",
    "TaskDirective",
    "new_task_id",
]

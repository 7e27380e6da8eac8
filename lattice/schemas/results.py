from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .tasks import Task


class CollaborationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    required_capabilities: list[str] = Field(default_factory=list)
    suggested_executors: list[str] = Field(default_factory=list)
    reason: str | None = None


class _ResultBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    task_id: str
    executor_id: str
    success: bool
    output: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    resources_used: list[str] = Field(default_factory=list)


class PlainResult(_ResultBase):
    kind: Literal["plain"] = "plain"


class FollowUpResult(_ResultBase):
    """A result that proposes further tasks for the caller to schedule."""

    kind: Literal["follow_up"] = "follow_up"
    child_tasks_proposed: list[Task] = Field(..., min_length=1)


class CollaborationResult(_ResultBase):
    kind: Literal["collaboration"] = "collaboration"
    collaboration_request: CollaborationRequest


Result = Annotated[
    Union[PlainResult, FollowUpResult, CollaborationResult],
    Field(discriminator="kind"),
]

AnyResult = Union[PlainResult, FollowUpResult, CollaborationResult]


def failed_result(task_id: str, executor_id: str, message: str) -> PlainResult:
    return PlainResult(
        task_id=task_id,
        executor_id=executor_id,
        success=False,
        output=f"Task execution failed: {message}",
        confidence=0.0,
        resources_used=[],
    )


__all__ = [
    "AnyResult",
    "CollaborationRequest",
    "CollaborationResult",
    "FollowUpResult",
    "PlainResult",
    "Result",
    "failed_result",
]

from __future__ import annotations

from typing import Sequence

from ..core.logging import get_logger
from ..schemas.results import (
    AnyResult,
    CollaborationRequest,
    CollaborationResult,
    FollowUpResult,
    PlainResult,
)
from ..schemas.tasks import Task

logger = get_logger(name=__name__)

HIGH_CONFIDENCE = 0.7


def _unique(values: Sequence[str]) -> list[str]:
    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return list(seen)


class ResultSynthesizer:
    """Combines subtask results into a single result attributed to the coordinator."""

    def __init__(self, executor_id: str) -> None:
        self._executor_id = executor_id

    def synthesize(self, task: Task, results: Sequence[AnyResult], *, dropped: Sequence[str] = ()) -> AnyResult:
        successes = [result for result in results if result.success]
        failures = [result for result in results if not result.success]
        resources = [resource for result in results for resource in result.resources_used]

        if not results:
            logger.warning("synthesis_no_assignments", task_id=task.id, dropped=list(dropped))
            return PlainResult(
                task_id=task.id,
                executor_id=self._executor_id,
                success=False,
                output=(
                    "No executor could handle any subtask of this task "
                    f"(unassigned: {', '.join(dropped) or 'none'})"
                ),
                confidence=0.0,
                resources_used=[],
            )

        if not successes:
            logger.warning("synthesis_all_failed", task_id=task.id, failed=[result.task_id for result in failures])
            return PlainResult(
                task_id=task.id,
                executor_id=self._executor_id,
                success=False,
                output=(
                    "All subtasks failed to complete successfully: "
                    + ", ".join(result.task_id for result in failures)
                ),
                confidence=0.0,
                resources_used=resources,
            )

        if len(successes) == 1:
            output = successes[0].output
        else:
            sections = [
                f"### Analysis {index} from {result.executor_id} on {result.task_id} "
                f"(Confidence: {result.confidence * 100:.1f}%)\n{result.output}"
                for index, result in enumerate(successes, start=1)
            ]
            output = "\n\n".join(sections) + "\n\n### Synthesis\n" + self.conclusion(successes)

        output += self._notes(failures, dropped)
        confidence = sum(result.confidence for result in successes) / len(successes)
        logger.info(
            "synthesis_completed",
            task_id=task.id,
            succeeded=len(successes),
            failed=len(failures),
            dropped=len(dropped),
            confidence=round(confidence, 4),
        )
        return self._build(task, successes, output=output, confidence=confidence, resources=resources)

    @staticmethod
    def conclusion(successes: Sequence[AnyResult]) -> str:
        high = [result for result in successes if result.confidence > HIGH_CONFIDENCE]
        text = ""
        if high:
            text += f"Based on {len(high)} high-confidence analysis(es), "
        if len(successes) > 1:
            text += "the combined results converge around the core findings. "
        text += "This coordinated approach provides multiple perspectives while every contribution passed principle validation."
        return text

    @staticmethod
    def _notes(failures: Sequence[AnyResult], dropped: Sequence[str]) -> str:
        notes = ""
        if failures:
            notes += (
                f"\n\n### Note: {len(failures)} subtask(s) failed to complete: "
                + ", ".join(result.task_id for result in failures)
            )
        if dropped:
            notes += f"\n\n### Note: {len(dropped)} subtask(s) had no capable executor: " + ", ".join(dropped)
        return notes

    def _build(
        self,
        task: Task,
        successes: Sequence[AnyResult],
        *,
        output: str,
        confidence: float,
        resources: list[str],
    ) -> AnyResult:
        base = {
            "task_id": task.id,
            "executor_id": self._executor_id,
            "success": True,
            "output": output,
            "confidence": confidence,
            "resources_used": resources,
        }
        follow_ups = [child for result in successes if isinstance(result, FollowUpResult) for child in result.child_tasks_proposed]
        if follow_ups:
            return FollowUpResult(**base, child_tasks_proposed=follow_ups)

        requests = [result.collaboration_request for result in successes if isinstance(result, CollaborationResult)]
        if requests:
            merged = CollaborationRequest(
                required_capabilities=_unique([name for request in requests for name in request.required_capabilities]),
                suggested_executors=_unique([name for request in requests for name in request.suggested_executors]),
                reason="; ".join(request.reason for request in requests if request.reason) or None,
            )
            return CollaborationResult(**base, collaboration_request=merged)

        return PlainResult(**base)


__all__ = ["ResultSynthesizer"]

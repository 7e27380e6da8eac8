from __future__ import annotations

import asyncio
from time import perf_counter
from typing import Any

from ..agents.base import BaseExecutor
from ..core.audit import AuditLog
from ..core.exceptions import ExecutorError, InvalidTransitionError
from ..core.logging import get_logger
from ..core.metrics import increment_executor_event, observe_executor_latency
from ..schemas.results import AnyResult, CollaborationResult, FollowUpResult, PlainResult, failed_result
from ..schemas.tasks import Task
from ..schemas.validation import AuditRecord, PreValidationOutcome, ValidationInput
from .correction import SelfCorrector
from .enums import LifecycleStatus
from .lifecycle import LifecycleRecorder
from .validation import ValidationEngine

logger = get_logger(name=__name__)

GUIDANCE_CONTEXT_KEY = "validation_guidance"
_RESULT_TYPES = (PlainResult, FollowUpResult, CollaborationResult)


class ExecutionWrapper:
    """Dispatches a task to one executor between a pre- and a post-validation pass.

    Every call walks the lifecycle ``queued -> pre_validated -> running ->
    post_validated -> completed | failed``, appends exactly one audit record once
    the executor has answered, and returns a result. Executor errors become failed results; nothing is retried.
    A run that is cancelled or breaks part way is moved to ``failed`` so the same
    task can be queued again, and a task already in flight on the executor is
    refused with a failed result.
    """

    def __init__(
        self,
        engine: ValidationEngine,
        corrector: SelfCorrector,
        audit_log: AuditLog,
        *,
        recorder: LifecycleRecorder | None = None,
        metrics_enabled: bool = True,
    ) -> None:
        self._engine = engine
        self._corrector = corrector
        self._audit_log = audit_log
        self._recorder = recorder or LifecycleRecorder()
        self._metrics_enabled = metrics_enabled

    @property
    def engine(self) -> ValidationEngine:
        return self._engine

    @property
    def recorder(self) -> LifecycleRecorder:
        return self._recorder

    @staticmethod
    def build_payload(executor: BaseExecutor, task: Task) -> ValidationInput:
        return ValidationInput(
            input=task.description,
            tool_name=executor.name,
            args=dict(task.context),
            metadata={
                "task_id": task.id,
                "executor_id": executor.id,
                "priority": task.priority,
                "parent_task_id": task.parent_task_id,
            },
        )

    @staticmethod
    def apply_guidance(task: Task, outcome: PreValidationOutcome) -> Task:
        if outcome.verdict.overall_compliant:
            return task
        context: dict[str, Any] = dict(outcome.modified_args if outcome.modified_args is not None else task.context)
        context[GUIDANCE_CONTEXT_KEY] = outcome.guidance
        return task.model_copy(update={"context": context})

    async def run(self, executor: BaseExecutor, task: Task) -> AnyResult:
        payload = self.build_payload(executor, task)
        try:
            await self._recorder.record(task.id, executor.id, LifecycleStatus.QUEUED, priority=task.priority)
        except InvalidTransitionError as exc:
            logger.warning("task_already_in_flight", task_id=task.id, executor=executor.id, error=str(exc))
            return failed_result(task.id, executor.id, f"task {task.id} is already in flight on {executor.id}")

        try:
            return await self._run_queued(executor, task, payload)
        except asyncio.CancelledError:
            await self._recorder.abort(task.id, executor.id, reason="cancelled")
            raise
        except Exception as exc:  # the boundary returns a failed result instead of raising
            logger.exception("execution_aborted", executor=executor.id, task_id=task.id, error=str(exc))
            await self._recorder.abort(task.id, executor.id, reason=str(exc))
            return failed_result(task.id, executor.id, str(exc))

    async def _run_queued(self, executor: BaseExecutor, task: Task, payload: ValidationInput) -> AnyResult:
        pre = self._engine.pre_validate(payload)
        dispatched = self.apply_guidance(task, pre)
        await self._recorder.record(
            task.id,
            executor.id,
            LifecycleStatus.PRE_VALIDATED,
            compliant=pre.verdict.overall_compliant,
            violations=pre.verdict.violations,
        )

        await self._recorder.record(task.id, executor.id, LifecycleStatus.RUNNING)
        started = perf_counter()
        raw = await self.dispatch(executor, dispatched)
        latency = perf_counter() - started

        verdict = self._engine.post_validate(payload, raw.output)
        result = raw
        correction_approach: str | None = None
        if not verdict.overall_compliant and self._corrector.enabled:
            correction = self._corrector.correct(payload, raw.output, verdict)
            correction_approach = correction.approach
            result = raw.model_copy(update={"output": correction.output})
        await self._recorder.record(
            task.id,
            executor.id,
            LifecycleStatus.POST_VALIDATED,
            compliant=verdict.overall_compliant,
            correction_applied=correction_approach is not None,
        )

        self._audit_log.append(
            AuditRecord(
                executor_id=executor.id,
                task_id=task.id,
                input=payload.input,
                original_output=raw.output,
                verdict=verdict,
                correction_applied=correction_approach is not None,
                correction_approach=correction_approach,
                final_output=result.output,
            )
        )

        final_status = LifecycleStatus.COMPLETED if result.success else LifecycleStatus.FAILED
        await self._recorder.record(
            task.id,
            executor.id,
            final_status,
            confidence=result.confidence,
            latency_ms=round(latency * 1000, 3),
        )
        if self._metrics_enabled:
            increment_executor_event(executor=executor.id, event=final_status.value)
            observe_executor_latency(executor=executor.id, latency=latency)
        return result

    async def dispatch(self, executor: BaseExecutor, task: Task) -> AnyResult:
        """Run ``task`` on ``executor`` under load tracking, converting any error to a failed result."""
        try:
            async with executor.track(task):
                raw = await executor.execute(task)
            if not isinstance(raw, _RESULT_TYPES):
                raise ExecutorError(f"executor {executor.id} returned {type(raw).__name__} instead of a result")
        except Exception as exc:  # executor failures become failed results
            logger.exception("executor_failed", executor=executor.id, task_id=task.id, error=str(exc))
            return failed_result(task.id, executor.id, str(exc))

        updates: dict[str, Any] = {}
        if raw.task_id != task.id:
            updates["task_id"] = task.id
        # A coordinator may return a result produced by the executor it delegated to.
        if raw.executor_id != executor.id and not executor.is_coordinator:
            updates["executor_id"] = executor.id
        return raw.model_copy(update=updates) if updates else raw


__all__ = ["ExecutionWrapper", "GUIDANCE_CONTEXT_KEY"]

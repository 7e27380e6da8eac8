from __future__ import annotations

import asyncio
from collections import OrderedDict
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Sequence

from ..agents.base import BaseExecutor
from ..agents.contracts import ExecutorKind, get_profile
from ..agents.registry import CapabilityRegistry
from ..core.config import ExecutorSettings
from ..core.logging import get_logger
from ..core.metrics import increment_unassigned_subtask, record_orchestration_run
from ..schemas.results import AnyResult, failed_result
from ..schemas.tasks import Capability, ExecutionEstimate, Task
from .decomposition import TaskDecomposer
from .enums import RunMode
from .execution import ExecutionWrapper
from .synthesis import ResultSynthesizer

logger = get_logger(name=__name__)

CAPABILITY_SPLIT = "capability_split"


@dataclass(slots=True)
class CoordinationReport:
    task_id: str
    mode: RunMode
    strategy: str | None = None
    assignments: dict[str, list[str]] = field(default_factory=dict)
    dropped: list[str] = field(default_factory=list)
    success: bool = False
    latency: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "mode": self.mode.value,
            "strategy": self.strategy,
            "assignments": {executor: list(tasks) for executor, tasks in self.assignments.items()},
            "dropped": list(self.dropped),
            "success": self.success,
            "latency": round(self.latency, 6),
        }


class Orchestrator:
    """Decomposes a task, assigns subtasks to the best executors, runs them and synthesizes one result.

    The orchestrator owns a coordinator-class executor (:class:`OrchestratorExecutor`)
    registered in the shared registry. :meth:`run_task` dispatches through that
    executor so the final result receives exactly one post-validation pass, while
    every subtask is validated on its own as it runs.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        wrapper: ExecutionWrapper,
        decomposer: TaskDecomposer,
        *,
        executor_id: str | None = None,
        settings: ExecutorSettings | None = None,
        register: bool = True,
        max_reports: int | None = None,
        metrics_enabled: bool = True,
    ) -> None:
        profile = get_profile(ExecutorKind.ORCHESTRATOR)
        self._registry = registry
        self._wrapper = wrapper
        self._decomposer = decomposer
        self._metrics_enabled = metrics_enabled
        self._executor = OrchestratorExecutor(
            self,
            executor_id or profile.default_id,
            profile.name,
            profile.capabilities,
            settings=settings,
            metrics_enabled=metrics_enabled,
        )
        self._synthesizer = ResultSynthesizer(self._executor.id)
        self._reports: OrderedDict[str, CoordinationReport] = OrderedDict()
        self._max_reports = max_reports
        if register:
            registry.register(self._executor)

    @property
    def executor(self) -> "OrchestratorExecutor":
        return self._executor

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    def report(self, task_id: str) -> CoordinationReport | None:
        return self._reports.get(task_id)

    async def run_task(self, task: Task) -> AnyResult:
        return await self._wrapper.run(self._executor, task)

    async def coordinate(self, task: Task) -> AnyResult:
        started = perf_counter()
        strategy, subtasks = self._decomposer.decompose(task)
        if not subtasks:
            subtasks = self._capability_split(task)
            strategy = CAPABILITY_SPLIT if subtasks else None

        if not subtasks:
            report = CoordinationReport(task_id=task.id, mode=RunMode.DIRECT)
            result = await self._execute_direct(task, report)
        else:
            report = CoordinationReport(task_id=task.id, mode=RunMode.DECOMPOSED, strategy=strategy)
            assignments, dropped = self.assign(subtasks)
            report.assignments = {executor_id: [t.id for t in tasks] for executor_id, tasks in assignments.items()}
            report.dropped = dropped
            results = await self.execute_assignments(assignments, order=[subtask.id for subtask in subtasks])
            result = self._synthesizer.synthesize(task, results, dropped=dropped)

        report.success = result.success
        report.latency = perf_counter() - started
        self._store_report(report)
        if self._metrics_enabled:
            record_orchestration_run(
                mode=report.mode.value,
                status="completed" if result.success else "failed",
                latency=report.latency,
            )
        logger.info("orchestration_completed", **report.as_dict())
        return result

    def _store_report(self, report: CoordinationReport) -> None:
        self._reports[report.task_id] = report
        self._reports.move_to_end(report.task_id)
        if self._max_reports is not None:
            while len(self._reports) > self._max_reports:
                self._reports.popitem(last=False)

    def _capability_split(self, task: Task) -> list[Task]:
        """Split a multi-capability task that no single executor covers into one subtask per capability."""
        if len(task.required_capabilities) < 2:
            return []
        if self._registry.select_best(task, include_coordinators=False) is not None:
            return []
        return [
            task.child(f"capability_{name}", required_capabilities={name})
            for name in sorted(task.required_capabilities)
        ]

    def assign(self, subtasks: Sequence[Task]) -> tuple[dict[str, list[Task]], list[str]]:
        assignments: dict[str, list[Task]] = {}
        dropped: list[str] = []
        for subtask in subtasks:
            match = self._registry.select_best(subtask, include_coordinators=False)
            if match is None:
                logger.warning(
                    "subtask_unassigned",
                    task_id=subtask.id,
                    parent_task_id=subtask.parent_task_id,
                    required_capabilities=sorted(subtask.required_capabilities),
                )
                if self._metrics_enabled:
                    increment_unassigned_subtask()
                dropped.append(subtask.id)
                continue
            assignments.setdefault(match.executor.id, []).append(subtask)
        return assignments, dropped

    async def execute_assignments(
        self,
        assignments: dict[str, list[Task]],
        *,
        order: Sequence[str] | None = None,
    ) -> list[AnyResult]:
        """Run each executor's chain sequentially, all chains concurrently, and wait for every chain."""
        executor_ids = list(assignments)
        chains = [self._run_chain(self._registry.get(executor_id), assignments[executor_id]) for executor_id in executor_ids]
        outcomes = await asyncio.gather(*chains, return_exceptions=True)

        by_task: dict[str, AnyResult] = {}
        for executor_id, outcome in zip(executor_ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("execution_chain_failed", executor=executor_id, error=str(outcome))
                for subtask in assignments[executor_id]:
                    by_task.setdefault(subtask.id, failed_result(subtask.id, executor_id, str(outcome)))
                continue
            for result in outcome:
                by_task[result.task_id] = result

        ordering = list(order) if order is not None else [t.id for tasks in assignments.values() for t in tasks]
        return [by_task[task_id] for task_id in ordering if task_id in by_task]

    async def _run_chain(self, executor: BaseExecutor, tasks: Sequence[Task]) -> list[AnyResult]:
        results: list[AnyResult] = []
        for subtask in tasks:
            results.append(await self._wrapper.run(executor, subtask))
        return results

    async def _execute_direct(self, task: Task, report: CoordinationReport) -> AnyResult:
        match = self._registry.select_best(task, include_coordinators=False)
        if match is None:
            logger.warning(
                "task_unassigned",
                task_id=task.id,
                required_capabilities=sorted(task.required_capabilities),
            )
            report.dropped = [task.id]
            return failed_result(
                task.id,
                self._executor.id,
                "no executor can handle required capabilities "
                + (", ".join(sorted(task.required_capabilities)) or "(none)"),
            )
        report.assignments = {match.executor.id: [task.id]}
        return await self._wrapper.dispatch(match.executor, task)

    def reset(self) -> None:
        self._reports.clear()


class OrchestratorExecutor(BaseExecutor):
    """Exposes an :class:`Orchestrator` behind the executor contract.

    It can take any task whose required capabilities are declared either by
    itself or by an active non-coordinator executor in the registry. Delegated
    work is estimated as the coordinator's own overhead plus the best delegate
    capability for each missing requirement, so specialists win when they can
    handle a task alone.
    """

    is_coordinator = True

    def __init__(
        self,
        orchestrator: Orchestrator,
        executor_id: str,
        name: str,
        capabilities: Sequence[Capability],
        *,
        settings: ExecutorSettings | None = None,
        metrics_enabled: bool = True,
    ) -> None:
        super().__init__(executor_id, name, capabilities, settings=settings, metrics_enabled=metrics_enabled)
        self._orchestrator = orchestrator

    def can_handle(self, task: Task) -> bool:
        if not self.is_available():
            return False
        return self.estimate(task).feasible

    def estimate(self, task: Task) -> ExecutionEstimate:
        required = task.required_capabilities
        own = [capability for capability in self.capabilities if capability.name in required]
        if not required or len(own) == len(required):
            return super().estimate(task)

        missing = required - {capability.name for capability in own}
        delegates = [self._best_delegate(name) for name in sorted(missing)]
        if any(delegate is None for delegate in delegates):
            return ExecutionEstimate.infeasible()
        overhead = self._estimate_from(self.capabilities)
        delegated = [delegate for delegate in delegates if delegate is not None]
        avg_cost = sum(capability.cost for capability in delegated) / len(delegated)
        avg_reliability = sum(capability.reliability for capability in delegated) / len(delegated)
        return ExecutionEstimate(cost=overhead.cost + avg_cost, reliability=overhead.reliability * avg_reliability)

    def _best_delegate(self, name: str) -> Capability | None:
        best: Capability | None = None
        best_score = 0.0
        for executor in self._orchestrator.registry.executors(include_coordinators=False):
            if not executor.is_available():
                continue
            for capability in executor.capabilities:
                if capability.name != name or capability.reliability <= 0.0:
                    continue
                score = capability.reliability / max(capability.cost, 1.0)
                if score > best_score:
                    best, best_score = capability, score
        return best

    async def execute(self, task: Task) -> AnyResult:
        return await self._orchestrator.coordinate(task)


__all__ = ["CAPABILITY_SPLIT", "CoordinationReport", "Orchestrator", "OrchestratorExecutor"]

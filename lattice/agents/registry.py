from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from ..core.exceptions import DuplicateExecutorError, ExecutorNotFoundError
from ..core.logging import get_logger
from ..schemas.tasks import ExecutionEstimate, Task
from .base import BaseExecutor

logger = get_logger(name=__name__)


@dataclass(slots=True)
class ExecutorMatch:
    executor: BaseExecutor
    estimate: ExecutionEstimate

    @property
    def score(self) -> float:
        return self.estimate.score

    def as_dict(self) -> dict[str, float | str]:
        return {
            "executor": self.executor.id,
            "cost": self.estimate.cost,
            "reliability": self.estimate.reliability,
            "score": self.score,
        }


class CapabilityRegistry:
    """Registered executors in registration order plus best-match selection."""

    def __init__(self, executors: Iterable[BaseExecutor] = ()) -> None:
        self._executors: dict[str, BaseExecutor] = {}
        for executor in executors:
            self.register(executor)

    def register(self, executor: BaseExecutor) -> BaseExecutor:
        if executor.id in self._executors:
            raise DuplicateExecutorError(f"executor '{executor.id}' is already registered")
        self._executors[executor.id] = executor
        logger.info(
            "executor_registered",
            executor=executor.id,
            name=executor.name,
            capabilities=sorted(executor.capability_names),
            coordinator=executor.is_coordinator,
        )
        return executor

    def unregister(self, executor_id: str) -> BaseExecutor:
        executor = self._executors.pop(executor_id, None)
        if executor is None:
            raise ExecutorNotFoundError(f"executor '{executor_id}' is not registered")
        logger.info("executor_unregistered", executor=executor_id)
        return executor

    def get(self, executor_id: str) -> BaseExecutor:
        try:
            return self._executors[executor_id]
        except KeyError as exc:
            raise ExecutorNotFoundError(f"executor '{executor_id}' is not registered") from exc

    def find(self, executor_id: str) -> BaseExecutor | None:
        return self._executors.get(executor_id)

    def find_by_name(self, name: str) -> BaseExecutor | None:
        for executor in self._executors.values():
            if executor.name == name:
                return executor
        return None

    def executors(self, *, include_coordinators: bool = True) -> list[BaseExecutor]:
        return [
            executor
            for executor in self._executors.values()
            if include_coordinators or not executor.is_coordinator
        ]

    def declared_capabilities(self, *, include_coordinators: bool = False) -> frozenset[str]:
        names: set[str] = set()
        for executor in self.executors(include_coordinators=include_coordinators):
            if executor.active:
                names.update(executor.capability_names)
        return frozenset(names)

    def candidates(
        self,
        task: Task,
        *,
        include_coordinators: bool = True,
        executor_ids: Iterable[str] | None = None,
    ) -> list[ExecutorMatch]:
        allowed = set(executor_ids) if executor_ids is not None else None
        matches: list[ExecutorMatch] = []
        for executor in self.executors(include_coordinators=include_coordinators):
            if allowed is not None and executor.id not in allowed:
                continue
            if executor.can_handle(task):
                matches.append(ExecutorMatch(executor=executor, estimate=executor.estimate(task)))
        return matches

    def select_best(
        self,
        task: Task,
        *,
        include_coordinators: bool = True,
        executor_ids: Iterable[str] | None = None,
    ) -> ExecutorMatch | None:
        """Pick the candidate maximizing ``reliability / max(cost, 1)``.

        Only a strictly higher score replaces the current best, so ties resolve
        to the earliest registered executor.
        """
        best: ExecutorMatch | None = None
        best_score = -1.0
        for match in self.candidates(task, include_coordinators=include_coordinators, executor_ids=executor_ids):
            if match.score > best_score:
                best = match
                best_score = match.score
        if best is not None:
            logger.debug("executor_selected", task_id=task.id, **best.as_dict())
        return best

    def reset(self) -> None:
        for executor in self._executors.values():
            executor.reset()

    def __contains__(self, executor_id: object) -> bool:
        return executor_id in self._executors

    def __iter__(self) -> Iterator[BaseExecutor]:
        return iter(list(self._executors.values()))

    def __len__(self) -> int:
        return len(self._executors)


__all__ = ["CapabilityRegistry", "ExecutorMatch"]

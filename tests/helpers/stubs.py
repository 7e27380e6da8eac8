from __future__ import annotations

import asyncio
from typing import Callable, Sequence

from lattice.agents.base import BaseExecutor
from lattice.core.exceptions import ExecutorError
from lattice.schemas.results import AnyResult, PlainResult
from lattice.schemas.tasks import Capability, Task


def capabilities(*names: str, cost: float = 5.0, reliability: float = 0.8) -> list[Capability]:
    return [Capability(name=name, cost=cost, reliability=reliability) for name in names]


class StubExecutor(BaseExecutor):
    """Executor returning canned text and recording every task it receives."""

    def __init__(
        self,
        executor_id: str,
        caps: Sequence[Capability],
        *,
        name: str | None = None,
        output: str | Callable[[Task], str] | None = None,
        confidence: float = 0.8,
        delay: float = 0.0,
        journal: list[tuple[str, str, str]] | None = None,
    ) -> None:
        super().__init__(executor_id, name or executor_id, caps, metrics_enabled=False)
        self._output = output
        self._confidence = confidence
        self._delay = delay
        self.journal = journal if journal is not None else []
        self.received: list[Task] = []

    async def execute(self, task: Task) -> AnyResult:
        self.received.append(task)
        self.journal.append(("start", self.id, task.id))
        if self._delay:
            await asyncio.sleep(self._delay)
        self.journal.append(("end", self.id, task.id))
        if callable(self._output):
            text = self._output(task)
        elif self._output is not None:
            text = self._output
        else:
            text = f"{self.id} handled: {task.description}"
        return PlainResult(
            task_id=task.id,
            executor_id=self.id,
            success=True,
            output=text,
            confidence=self._confidence,
            resources_used=[capability.name for capability in self.matching_capabilities(task)],
        )


class FailingExecutor(StubExecutor):
    async def execute(self, task: Task) -> AnyResult:
        self.received.append(task)
        raise ExecutorError(f"{self.id} exploded")


class WrongTypeExecutor(StubExecutor):
    async def execute(self, task: Task) -> AnyResult:  # type: ignore[override]
        self.received.append(task)
        return {"output": "not a result"}  # type: ignore[return-value]


class ForeignResultExecutor(StubExecutor):
    """Returns a result stamped with some other task and executor id."""

    async def execute(self, task: Task) -> AnyResult:
        self.received.append(task)
        return PlainResult(
            task_id="someone-else",
            executor_id="impostor",
            success=True,
            output="done",
            confidence=0.6,
        )

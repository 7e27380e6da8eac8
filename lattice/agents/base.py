from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, AsyncIterator, Awaitable, Callable, Sequence, Union

from ..core.config import ExecutorSettings
from ..core.exceptions import ExecutorError
from ..core.logging import get_logger
from ..core.metrics import increment_executor_event, set_executor_load
from ..schemas.results import AnyResult, PlainResult
from ..schemas.tasks import Capability, ExecutionEstimate, Task

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .contracts import ExecutorProfile

logger = get_logger(name=__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ExecutorState:
    id: str
    name: str
    active: bool
    load: float
    capabilities: tuple[Capability, ...]
    active_tasks: list[str] = field(default_factory=list)
    last_activity: datetime = field(default_factory=_utcnow)


class BaseExecutor(ABC):
    """Executor with a fixed capability set and coarse load-based admission control.

    Subclasses implement :meth:`execute`; everything else (capability matching,
    estimation, load accounting) lives here. Capabilities are fixed at construction.
    """

    is_coordinator: bool = False

    def __init__(
        self,
        executor_id: str,
        name: str,
        capabilities: Sequence[Capability],
        *,
        settings: ExecutorSettings | None = None,
        metrics_enabled: bool = True,
    ) -> None:
        self.id = executor_id
        self.name = name
        self._capabilities: tuple[Capability, ...] = tuple(capabilities)
        self._capability_index = {capability.name: capability for capability in self._capabilities}
        self._settings = settings or ExecutorSettings()
        self._metrics_enabled = metrics_enabled
        self._active = True
        self._load = 0.0
        self._active_tasks: list[str] = []
        self._last_activity = _utcnow()
        logger.debug(
            "executor_initialized",
            executor=self.id,
            name=self.name,
            capabilities=len(self._capabilities),
        )

    @property
    def capabilities(self) -> tuple[Capability, ...]:
        return self._capabilities

    @property
    def capability_names(self) -> frozenset[str]:
        return frozenset(self._capability_index)

    @property
    def load(self) -> float:
        return self._load

    @property
    def active(self) -> bool:
        return self._active

    @property
    def state(self) -> ExecutorState:
        return ExecutorState(
            id=self.id,
            name=self.name,
            active=self._active,
            load=self._load,
            capabilities=self._capabilities,
            active_tasks=list(self._active_tasks),
            last_activity=self._last_activity,
        )

    def matching_capabilities(self, task: Task) -> list[Capability]:
        if not task.required_capabilities:
            return list(self._capabilities)
        return [capability for capability in self._capabilities if capability.name in task.required_capabilities]

    def is_available(self) -> bool:
        return self._active and self._load < self._settings.saturation_threshold

    def can_handle(self, task: Task) -> bool:
        if not self.is_available():
            return False
        if not task.required_capabilities <= self.capability_names:
            return False
        return self.estimate(task).feasible

    def estimate(self, task: Task) -> ExecutionEstimate:
        matched = self.matching_capabilities(task)
        if not matched:
            return ExecutionEstimate.infeasible()
        return self._estimate_from(matched)

    def _estimate_from(self, matched: Sequence[Capability]) -> ExecutionEstimate:
        avg_cost = sum(capability.cost for capability in matched) / len(matched)
        avg_reliability = sum(capability.reliability for capability in matched) / len(matched)
        return ExecutionEstimate(
            cost=avg_cost * (1.0 + self._load),
            reliability=avg_reliability * (1.0 - self._settings.reliability_load_penalty * self._load),
        )

    @asynccontextmanager
    async def track(self, task: Task) -> AsyncIterator["BaseExecutor"]:
        """Account for ``task`` in the executor load while the block runs."""
        increment = self._settings.load_increment
        self._active_tasks.append(task.id)
        self._set_load(min(self._load + increment, 1.0))
        self._last_activity = _utcnow()
        if self._metrics_enabled:
            increment_executor_event(executor=self.id, event="started")
        try:
            yield self
        finally:
            if task.id in self._active_tasks:
                self._active_tasks.remove(task.id)
            self._set_load(max(self._load - increment, 0.0))
            self._last_activity = _utcnow()

    def _set_load(self, value: float) -> None:
        # Rounding keeps repeated +/- increments from drifting off zero.
        self._load = round(value, 10)
        if self._metrics_enabled:
            set_executor_load(executor=self.id, load=self._load)

    @abstractmethod
    async def execute(self, task: Task) -> AnyResult:
        """Perform ``task``; raise :class:`ExecutorError` (or any exception) on failure."""

    async def shutdown(self) -> None:
        self._active = False
        logger.info("executor_shutdown", executor=self.id, name=self.name)

    def reset(self) -> None:
        self._active_tasks.clear()
        self._load = 0.0
        self._last_activity = _utcnow()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, name={self.name!r}, load={self._load:.2f})"


Handler = Callable[[Task], Awaitable[Union[str, AnyResult]]]


class CallableExecutor(BaseExecutor):
    """Executor that delegates the actual work to an external async handler.

    A handler returning plain text produces a successful :class:`PlainResult`
    with ``default_confidence``; a handler returning a result is passed through.
    """

    def __init__(
        self,
        executor_id: str,
        name: str,
        capabilities: Sequence[Capability],
        handler: Handler,
        *,
        default_confidence: float = 0.8,
        settings: ExecutorSettings | None = None,
        metrics_enabled: bool = True,
    ) -> None:
        super().__init__(executor_id, name, capabilities, settings=settings, metrics_enabled=metrics_enabled)
        self._handler = handler
        self._default_confidence = default_confidence

    @classmethod
    def from_profile(
        cls,
        profile: "ExecutorProfile",
        handler: Handler,
        *,
        executor_id: str | None = None,
        settings: ExecutorSettings | None = None,
        metrics_enabled: bool = True,
    ) -> "CallableExecutor":
        return cls(
            executor_id or profile.default_id,
            profile.name,
            profile.capabilities,
            handler,
            default_confidence=profile.default_confidence,
            settings=settings,
            metrics_enabled=metrics_enabled,
        )

    async def execute(self, task: Task) -> AnyResult:
        outcome = await self._handler(task)
        if isinstance(outcome, str):
            return PlainResult(
                task_id=task.id,
                executor_id=self.id,
                success=True,
                output=outcome,
                confidence=self._default_confidence,
                resources_used=[capability.name for capability in self.matching_capabilities(task)],
            )
        if outcome is None:
            raise ExecutorError(f"handler for {self.id} returned no result")
        return outcome


__all__ = ["BaseExecutor", "CallableExecutor", "ExecutorState", "Handler"]

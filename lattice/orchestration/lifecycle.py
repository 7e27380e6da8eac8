from __future__ import annotations

from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict

from ..core.exceptions import InvalidTransitionError
from ..core.logging import get_logger
from .enums import LifecycleStatus

logger = get_logger(name=__name__)

# queued, pre_validated, running, post_validated and a final status.
EVENTS_PER_RUN = 5

_ALLOWED: dict[LifecycleStatus | None, frozenset[LifecycleStatus]] = {
    None: frozenset({LifecycleStatus.QUEUED}),
    LifecycleStatus.QUEUED: frozenset({LifecycleStatus.PRE_VALIDATED, LifecycleStatus.FAILED}),
    LifecycleStatus.PRE_VALIDATED: frozenset({LifecycleStatus.RUNNING, LifecycleStatus.FAILED}),
    LifecycleStatus.RUNNING: frozenset({LifecycleStatus.POST_VALIDATED, LifecycleStatus.FAILED}),
    LifecycleStatus.POST_VALIDATED: frozenset({LifecycleStatus.COMPLETED, LifecycleStatus.FAILED}),
    # A finished task may be queued again as a fresh attempt.
    LifecycleStatus.COMPLETED: frozenset({LifecycleStatus.QUEUED}),
    LifecycleStatus.FAILED: frozenset({LifecycleStatus.QUEUED}),
}


@dataclass(slots=True)
class LifecycleEvent:
    task_id: str
    executor_id: str
    status: LifecycleStatus
    sequence: int = 0
    detail: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


LifecycleCallback = Callable[[LifecycleEvent], Awaitable[None]]


class LifecycleRecorder:
    """Tracks the status of each (task, executor) pair and rejects out-of-order transitions.

    Pairs that reach a terminal status are remembered up to ``max_tracked``;
    the oldest finished pairs are forgotten first. In-flight pairs are never evicted.
    """

    def __init__(
        self,
        *,
        on_event: LifecycleCallback | None = None,
        max_events: int | None = None,
        max_tracked: int | None = None,
    ) -> None:
        self._on_event = on_event
        self._events: deque[LifecycleEvent] = deque(maxlen=max_events)
        self._max_tracked = max_tracked
        self._current: dict[tuple[str, str], LifecycleStatus] = {}
        self._sequence: dict[tuple[str, str], int] = {}
        self._finished: OrderedDict[tuple[str, str], None] = OrderedDict()

    async def record(
        self,
        task_id: str,
        executor_id: str,
        status: LifecycleStatus,
        **detail: Any,
    ) -> LifecycleEvent:
        key = (task_id, executor_id)
        previous = self._current.get(key)
        if status not in _ALLOWED[previous]:
            raise InvalidTransitionError(
                f"task {task_id} on {executor_id}: cannot move from "
                f"{previous.value if previous else 'start'} to {status.value}"
            )
        sequence = self._sequence.get(key, 0)
        event = LifecycleEvent(
            task_id=task_id,
            executor_id=executor_id,
            status=status,
            sequence=sequence,
            detail=detail,
        )
        self._current[key] = status
        self._sequence[key] = sequence + 1
        self._track(key, status)
        self._events.append(event)
        logger.debug("lifecycle_transition", task_id=task_id, executor=executor_id, status=status.value)
        if self._on_event is not None:
            try:
                await self._on_event(event)
            except Exception:  # observer failures must not break the task lifecycle
                logger.exception("lifecycle_callback_failed", task_id=task_id, status=status.value)
        return event

    async def abort(self, task_id: str, executor_id: str, *, reason: str) -> LifecycleEvent | None:
        """Move an in-flight pair straight to ``failed``; finished or unknown pairs are left alone."""
        current = self._current.get((task_id, executor_id))
        if current is None or current.terminal:
            return None
        logger.warning("lifecycle_aborted", task_id=task_id, executor=executor_id, status=current.value, reason=reason)
        return await self.record(task_id, executor_id, LifecycleStatus.FAILED, aborted_from=current.value, reason=reason)

    def _track(self, key: tuple[str, str], status: LifecycleStatus) -> None:
        if not status.terminal:
            self._finished.pop(key, None)
            return
        self._finished[key] = None
        self._finished.move_to_end(key)
        if self._max_tracked is None:
            return
        while len(self._finished) > self._max_tracked:
            stale, _ = self._finished.popitem(last=False)
            self._current.pop(stale, None)
            self._sequence.pop(stale, None)

    def status(self, task_id: str, executor_id: str) -> LifecycleStatus | None:
        return self._current.get((task_id, executor_id))

    def tracked(self) -> int:
        return len(self._current)

    def events(self, task_id: str | None = None) -> list[LifecycleEvent]:
        if task_id is None:
            return list(self._events)
        return [event for event in self._events if event.task_id == task_id]

    def reset(self) -> None:
        self._events.clear()
        self._current.clear()
        self._sequence.clear()
        self._finished.clear()


__all__ = ["EVENTS_PER_RUN", "LifecycleCallback", "LifecycleEvent", "LifecycleRecorder"]

from __future__ import annotations

from enum import Enum


class LifecycleStatus(str, Enum):
    QUEUED = "queued"
    PRE_VALIDATED = "pre_validated"
    RUNNING = "running"
    POST_VALIDATED = "post_validated"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (LifecycleStatus.COMPLETED, LifecycleStatus.FAILED)


class RunMode(str, Enum):
    DIRECT = "direct"
    DECOMPOSED = "decomposed"


__all__ = ["LifecycleStatus", "RunMode"]

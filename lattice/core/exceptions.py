from __future__ import annotations


class LatticeError(RuntimeError):
    """Base class for coordination core failures."""


class ExecutorError(LatticeError):
    """Raised by an executor to report that it could not complete a task."""


class ExecutorNotFoundError(LatticeError):
    """Raised when a requested executor id is not registered."""


class DuplicateExecutorError(LatticeError):
    """Raised when an executor id is registered twice."""


class DecompositionError(LatticeError):
    """Raised by a decomposition strategy that cannot inspect a task."""


class InvalidTransitionError(LatticeError):
    """Raised when a task lifecycle moves out of its fixed order."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .agents.base import BaseExecutor
from .agents.registry import CapabilityRegistry
from .core.audit import AuditLog
from .core.config import Settings, get_settings
from .core.logging import configure_from_settings, get_logger
from .orchestration.correction import SelfCorrector
from .orchestration.decomposition import TaskDecomposer
from .orchestration.execution import ExecutionWrapper
from .orchestration.lifecycle import EVENTS_PER_RUN, LifecycleCallback, LifecycleRecorder
from .orchestration.orchestrator import Orchestrator
from .orchestration.policy import PolicyManager
from .orchestration.validation import ValidationEngine
from .schemas.policy import Decision, DecisionContext, ExecutionReport, PolicyStatistics
from .schemas.results import AnyResult
from .schemas.tasks import Task
from .schemas.validation import AuditRecord

logger = get_logger(name=__name__)


@dataclass(slots=True)
class Runtime:
    """Wired coordination core: the three upward entry points plus read-only introspection."""

    settings: Settings
    audit_log: AuditLog
    engine: ValidationEngine
    corrector: SelfCorrector
    recorder: LifecycleRecorder
    wrapper: ExecutionWrapper
    registry: CapabilityRegistry
    decomposer: TaskDecomposer
    orchestrator: Orchestrator
    policy: PolicyManager

    def register(self, executor: BaseExecutor) -> BaseExecutor:
        return self.registry.register(executor)

    async def run_task(self, task: Task) -> AnyResult:
        return await self.orchestrator.run_task(task)

    def decide(self, context: DecisionContext) -> Decision:
        return self.policy.decide(context)

    async def execute(self, decision: Decision) -> ExecutionReport:
        return await self.policy.execute(decision)

    def get_statistics(self) -> PolicyStatistics:
        return self.policy.statistics()

    def get_audit_history(self, limit: int | None = None) -> list[AuditRecord]:
        return self.audit_log.history(limit)

    def reset(self) -> None:
        self.audit_log.clear()
        self.recorder.reset()
        self.policy.reset()
        self.orchestrator.reset()
        self.registry.reset()
        logger.info("runtime_reset")


def build_runtime(
    settings: Settings | None = None,
    executors: Iterable[BaseExecutor] = (),
    *,
    on_event: LifecycleCallback | None = None,
    configure_logs: bool = False,
) -> Runtime:
    """Wire every component from ``settings``; the orchestrator registers before ``executors``."""
    settings = settings or get_settings()
    if configure_logs:
        configure_from_settings(settings.observability)
    metrics_enabled = settings.observability.prometheus_enabled

    audit_log = AuditLog(
        max_records=settings.validation.max_audit_records,
        enabled=settings.validation.audit_log_enabled,
    )
    engine = ValidationEngine(settings=settings.validation, metrics_enabled=metrics_enabled)
    corrector = SelfCorrector(engine, settings.self_correction, metrics_enabled=metrics_enabled)
    bound = settings.validation.max_audit_records
    recorder = LifecycleRecorder(
        on_event=on_event,
        max_events=bound * EVENTS_PER_RUN if bound is not None else None,
        max_tracked=bound,
    )
    wrapper = ExecutionWrapper(engine, corrector, audit_log, recorder=recorder, metrics_enabled=metrics_enabled)
    registry = CapabilityRegistry()
    decomposer = TaskDecomposer.from_settings(settings.decomposition, metrics_enabled=metrics_enabled)
    orchestrator = Orchestrator(
        registry,
        wrapper,
        decomposer,
        settings=settings.executors,
        max_reports=bound,
        metrics_enabled=metrics_enabled,
    )
    for executor in executors:
        registry.register(executor)
    policy = PolicyManager(orchestrator, engine, settings=settings.policy, metrics_enabled=metrics_enabled)

    logger.info(
        "runtime_built",
        environment=settings.environment,
        executors=[executor.id for executor in registry],
        strategies=[strategy.name for strategy in decomposer.strategies],
    )
    return Runtime(
        settings=settings,
        audit_log=audit_log,
        engine=engine,
        corrector=corrector,
        recorder=recorder,
        wrapper=wrapper,
        registry=registry,
        decomposer=decomposer,
        orchestrator=orchestrator,
        policy=policy,
    )


__all__ = ["Runtime", "build_runtime"]

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from lattice import build_runtime
from lattice.agents.base import CallableExecutor
from lattice.agents.contracts import ExecutorKind, get_profile
from lattice.core.config import Settings, get_settings
from lattice.orchestration.enums import LifecycleStatus
from lattice.orchestration.lifecycle import EVENTS_PER_RUN, LifecycleEvent
from lattice.schemas.policy import DecisionContext, Strategy
from lattice.schemas.tasks import Task

from tests.helpers.stubs import StubExecutor, capabilities


async def _answer(task: Task) -> str:
    return f"Practical notes on {task.description}"


def _executors() -> list[CallableExecutor]:
    return [
        CallableExecutor.from_profile(get_profile(kind), _answer, metrics_enabled=False)
        for kind in (ExecutorKind.ANALYSIS, ExecutorKind.CREATIVE, ExecutorKind.DISCOVERY)
    ]


def _settings(**overrides: Any) -> Settings:
    return get_settings({"environment": "test", "observability": {"prometheus_enabled": False}, **overrides})


def test_orchestrator_is_registered_before_user_executors() -> None:
    runtime = build_runtime(_settings(), _executors())

    assert [executor.id for executor in runtime.registry] == [
        "orchestrator-001",
        "analysis-001",
        "creative-001",
        "discovery-001",
    ]
    assert runtime.orchestrator.executor.is_coordinator is True


@pytest.mark.asyncio
async def test_entry_points_share_one_audit_log_and_reset_clears_state() -> None:
    events: list[LifecycleEvent] = []

    async def collect(event: LifecycleEvent) -> None:
        events.append(event)

    runtime = build_runtime(_settings(), _executors(), on_event=collect)
    task = Task(id="r1", description="Summarize the release notes", required_capabilities={"analysis"})

    result = await runtime.run_task(task)
    decision = runtime.decide(DecisionContext(primary_goal="Analyze churn", task_complexity=2, risk_tolerance=0.1))
    report = await runtime.execute(decision)

    assert result.success is True
    assert result.task_id == "r1"
    assert decision.strategy is Strategy.GOAL_DIRECTED
    assert all(item.success for item in report.results)
    assert len(runtime.get_audit_history()) == 2
    assert runtime.get_audit_history(limit=1)[0].task_id == report.results[0].task_id
    assert events[-1].status is LifecycleStatus.COMPLETED
    stats = runtime.get_statistics()
    assert stats.total_decisions == 1
    assert stats.strategy_distribution[Strategy.GOAL_DIRECTED] == 1

    runtime.reset()

    assert runtime.get_audit_history() == []
    assert runtime.get_statistics().total_decisions == 0
    assert runtime.recorder.events() == []
    assert runtime.orchestrator.report("r1") is None
    assert all(executor.load == 0.0 for executor in runtime.registry)


@pytest.mark.asyncio
async def test_audit_bound_comes_from_settings() -> None:
    runtime = build_runtime(_settings(validation={"max_audit_records": 1}), _executors())

    await runtime.run_task(Task(description="Summarize the notes", required_capabilities={"analysis"}))
    await runtime.run_task(Task(id="last", description="Summarize the notes", required_capabilities={"analysis"}))

    history = runtime.get_audit_history()
    assert len(history) == 1
    assert history[0].task_id == "last"


def test_register_adds_executors_after_build() -> None:
    runtime = build_runtime(_settings())
    executor = CallableExecutor.from_profile(get_profile(ExecutorKind.CREATIVE), _answer, metrics_enabled=False)

    runtime.register(executor)

    assert runtime.registry.get("creative-001") is executor


@pytest.mark.asyncio
async def test_timed_out_task_can_be_retried() -> None:
    slow = StubExecutor("slow", capabilities("analysis"), delay=0.2)
    runtime = build_runtime(_settings(), [slow])
    task = Task(id="t-timeout", description="Summarize the notes", required_capabilities={"analysis"})

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(runtime.run_task(task), 0.01)

    assert runtime.recorder.status("t-timeout", "orchestrator-001") is LifecycleStatus.FAILED
    assert runtime.recorder.events("t-timeout")[-1].detail["reason"] == "cancelled"
    assert slow.load == 0.0
    assert runtime.get_audit_history() == []

    result = await runtime.run_task(task)

    assert result.success is True
    assert runtime.recorder.status("t-timeout", "orchestrator-001") is LifecycleStatus.COMPLETED
    assert len(runtime.get_audit_history()) == 1


@pytest.mark.asyncio
async def test_concurrent_duplicate_run_is_refused_without_raising() -> None:
    runtime = build_runtime(_settings(), [StubExecutor("slow", capabilities("analysis"), delay=0.05)])
    task = Task(id="dup", description="Summarize the notes", required_capabilities={"analysis"})

    first, second = await asyncio.gather(runtime.run_task(task), runtime.run_task(task))

    assert first.success is True
    assert second.success is False
    assert second.output == "Task execution failed: task dup is already in flight on orchestrator-001"
    assert len(runtime.get_audit_history()) == 1
    assert runtime.recorder.status("dup", "orchestrator-001") is LifecycleStatus.COMPLETED


@pytest.mark.asyncio
async def test_audit_bound_also_limits_lifecycle_and_reports() -> None:
    runtime = build_runtime(_settings(validation={"max_audit_records": 2}), _executors())

    for index in range(5):
        task = Task(id=f"b{index}", description="Summarize the notes", required_capabilities={"analysis"})
        await runtime.run_task(task)

    assert len(runtime.get_audit_history()) == 2
    assert runtime.recorder.tracked() == 2
    assert len(runtime.recorder.events()) == 2 * EVENTS_PER_RUN
    assert runtime.orchestrator.report("b0") is None
    assert runtime.orchestrator.report("b4") is not None
    assert runtime.recorder.status("b0", "orchestrator-001") is None

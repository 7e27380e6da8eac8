from __future__ import annotations

import pytest

from lattice.agents.registry import CapabilityRegistry
from lattice.core.audit import AuditLog
from lattice.core.config import DecompositionSettings
from lattice.orchestration.correction import SelfCorrector
from lattice.orchestration.decomposition import TaskDecomposer
from lattice.orchestration.enums import RunMode
from lattice.orchestration.execution import ExecutionWrapper
from lattice.orchestration.orchestrator import CAPABILITY_SPLIT, Orchestrator
from lattice.orchestration.synthesis import ResultSynthesizer
from lattice.orchestration.validation import ValidationEngine
from lattice.schemas.results import (
    CollaborationRequest,
    CollaborationResult,
    FollowUpResult,
    PlainResult,
)
from lattice.schemas.tasks import Task

from tests.helpers.stubs import FailingExecutor, StubExecutor, capabilities


def _orchestrator(*executors) -> tuple[Orchestrator, AuditLog]:
    engine = ValidationEngine(metrics_enabled=False)
    audit_log = AuditLog()
    wrapper = ExecutionWrapper(engine, SelfCorrector(engine, metrics_enabled=False), audit_log, metrics_enabled=False)
    registry = CapabilityRegistry()
    decomposer = TaskDecomposer.from_settings(DecompositionSettings(), metrics_enabled=False)
    orchestrator = Orchestrator(registry, wrapper, decomposer, metrics_enabled=False)
    for executor in executors:
        registry.register(executor)
    return orchestrator, audit_log


FILE_TASK = Task(id="t1", description="Please analyze @src/app.py for dead code")


@pytest.mark.asyncio
async def test_undecomposed_task_round_trips_through_one_executor() -> None:
    analyst = StubExecutor("analyst", capabilities("analysis"), output="Release notes summarized.")
    orchestrator, audit_log = _orchestrator(analyst)
    task = Task(id="plain", description="Summarize the release notes", required_capabilities={"analysis"})

    result = await orchestrator.run_task(task)

    assert result.task_id == "plain"
    assert result.executor_id == "analyst"
    assert result.output == "Release notes summarized."
    assert len(analyst.received) == 1
    assert len(audit_log) == 1
    report = orchestrator.report("plain")
    assert report is not None
    assert report.mode is RunMode.DIRECT
    assert report.assignments == {"analyst": ["plain"]}
    assert orchestrator.executor.load == 0.0


@pytest.mark.asyncio
async def test_subtasks_on_different_executors_run_concurrently() -> None:
    journal: list[tuple[str, str, str]] = []
    extractor = StubExecutor("extractor", capabilities("file_analysis"), delay=0.02, journal=journal)
    reviewer = StubExecutor("reviewer", capabilities("deep_analysis"), delay=0.02, journal=journal)
    orchestrator, audit_log = _orchestrator(extractor, reviewer)

    result = await orchestrator.run_task(FILE_TASK)

    assert [entry[0] for entry in journal[:2]] == ["start", "start"]
    assert result.success is True
    assert result.executor_id == orchestrator.executor.id
    assert len(audit_log) == 3
    report = orchestrator.report("t1")
    assert report is not None
    assert report.mode is RunMode.DECOMPOSED
    assert report.strategy == "file_analysis"
    assert report.assignments == {"extractor": ["t1_file_extraction"], "reviewer": ["t1_content_analysis"]}


@pytest.mark.asyncio
async def test_subtasks_on_the_same_executor_run_in_order() -> None:
    journal: list[tuple[str, str, str]] = []
    analyst = StubExecutor("analyst", capabilities("analysis"), delay=0.01, journal=journal)
    orchestrator, _ = _orchestrator(analyst)
    task = Task(id="q", description="Summarize sales, list owners and rank regions")

    result = await orchestrator.run_task(task)

    assert journal == [
        ("start", "analyst", "q_part_1"),
        ("end", "analyst", "q_part_1"),
        ("start", "analyst", "q_part_2"),
        ("end", "analyst", "q_part_2"),
        ("start", "analyst", "q_part_3"),
        ("end", "analyst", "q_part_3"),
    ]
    assert result.success is True


@pytest.mark.asyncio
async def test_synthesized_confidence_is_the_mean_of_successes() -> None:
    extractor = StubExecutor("extractor", capabilities("file_analysis"), confidence=0.9, output="Found 3 modules.")
    reviewer = StubExecutor("reviewer", capabilities("deep_analysis"), confidence=0.6, output="Two are unused.")
    orchestrator, _ = _orchestrator(extractor, reviewer)

    result = await orchestrator.run_task(FILE_TASK)

    assert result.success is True
    assert result.confidence == pytest.approx(0.75)
    assert "### Analysis 1 from extractor on t1_file_extraction (Confidence: 90.0%)" in result.output
    assert "### Analysis 2 from reviewer on t1_content_analysis (Confidence: 60.0%)" in result.output
    assert "### Synthesis\nBased on 1 high-confidence analysis(es), " in result.output


@pytest.mark.asyncio
async def test_partial_failure_reports_success_with_note() -> None:
    extractor = StubExecutor("extractor", capabilities("file_analysis"), confidence=0.9, output="Found 3 modules.")
    reviewer = FailingExecutor("reviewer", capabilities("deep_analysis"))
    orchestrator, _ = _orchestrator(extractor, reviewer)

    result = await orchestrator.run_task(FILE_TASK)

    assert result.success is True
    assert result.confidence == pytest.approx(0.9)
    assert result.output.startswith("Found 3 modules.")
    assert "### Note: 1 subtask(s) failed to complete: t1_content_analysis" in result.output


@pytest.mark.asyncio
async def test_all_subtasks_failing_yields_one_failed_result() -> None:
    orchestrator, _ = _orchestrator(
        FailingExecutor("extractor", capabilities("file_analysis")),
        FailingExecutor("reviewer", capabilities("deep_analysis")),
    )

    result = await orchestrator.run_task(FILE_TASK)

    assert result.success is False
    assert result.confidence == 0.0
    assert result.task_id == "t1"
    assert result.output.startswith("All subtasks failed to complete successfully: ")
    assert orchestrator.report("t1").success is False


@pytest.mark.asyncio
async def test_subtasks_without_a_capable_executor_are_dropped() -> None:
    extractor = StubExecutor("extractor", capabilities("file_analysis"), output="Found 3 modules.")
    orchestrator, _ = _orchestrator(extractor)

    result = await orchestrator.run_task(FILE_TASK)

    assert result.success is True
    assert "### Note: 1 subtask(s) had no capable executor: t1_content_analysis" in result.output
    assert orchestrator.report("t1").dropped == ["t1_content_analysis"]


@pytest.mark.asyncio
async def test_task_nobody_can_handle_fails_without_raising() -> None:
    orchestrator, _ = _orchestrator(StubExecutor("analyst", capabilities("analysis")))
    task = Task(id="odd", description="Summarize the notes", required_capabilities={"telepathy"})

    result = await orchestrator.run_task(task)

    assert result.success is False
    assert result.task_id == "odd"
    assert "no executor can handle required capabilities telepathy" in result.output
    assert orchestrator.report("odd").dropped == ["odd"]


@pytest.mark.asyncio
async def test_multi_capability_task_is_split_across_specialists() -> None:
    analyst = StubExecutor("analyst", capabilities("analysis"), confidence=0.8)
    ideator = StubExecutor("ideator", capabilities("ideation"), confidence=0.7)
    orchestrator, _ = _orchestrator(analyst, ideator)
    task = Task(id="mix", description="Summarize the notes", required_capabilities={"analysis", "ideation"})

    result = await orchestrator.run_task(task)

    report = orchestrator.report("mix")
    assert report.strategy == CAPABILITY_SPLIT
    assert report.assignments == {"analyst": ["mix_capability_analysis"], "ideator": ["mix_capability_ideation"]}
    assert result.success is True
    assert result.confidence == pytest.approx(0.75)


def test_coordinator_estimate_prefers_specialists() -> None:
    analyst = StubExecutor("analyst", capabilities("analysis"))
    ideator = StubExecutor("ideator", capabilities("ideation"))
    orchestrator, _ = _orchestrator(analyst, ideator)
    registry = orchestrator.registry

    single = Task(description="x", required_capabilities={"analysis"})
    combined = Task(description="x", required_capabilities={"analysis", "ideation"})
    impossible = Task(description="x", required_capabilities={"analysis", "telepathy"})

    assert registry.select_best(single).executor is analyst
    assert registry.select_best(combined).executor is orchestrator.executor
    assert not orchestrator.executor.can_handle(impossible)
    assert registry.select_best(impossible) is None


def test_synthesizer_prefers_follow_up_then_collaboration() -> None:
    parent = Task(id="p", description="parent")
    synthesizer = ResultSynthesizer("coordinator")
    plain = PlainResult(task_id="p_1", executor_id="a", success=True, output="one", confidence=0.8)
    follow_up = FollowUpResult(
        task_id="p_2",
        executor_id="b",
        success=True,
        output="two",
        confidence=0.6,
        child_tasks_proposed=[Task(description="next step")],
    )
    collaboration = CollaborationResult(
        task_id="p_3",
        executor_id="c",
        success=True,
        output="three",
        confidence=0.7,
        collaboration_request=CollaborationRequest(required_capabilities=["ideation"], reason="needs ideas"),
    )

    merged = synthesizer.synthesize(parent, [plain, follow_up, collaboration])
    assert isinstance(merged, FollowUpResult)
    assert merged.child_tasks_proposed[0].description == "next step"
    assert merged.confidence == pytest.approx(0.7)

    asked = synthesizer.synthesize(parent, [plain, collaboration])
    assert isinstance(asked, CollaborationResult)
    assert asked.collaboration_request.required_capabilities == ["ideation"]
    assert asked.collaboration_request.reason == "needs ideas"

    assert synthesizer.synthesize(parent, [plain]).output == "one"


def test_synthesizer_without_results_reports_unassigned() -> None:
    result = ResultSynthesizer("coordinator").synthesize(Task(id="p", description="x"), [], dropped=["p_1"])
    assert result.success is False
    assert result.output == "No executor could handle any subtask of this task (unassigned: p_1)"

from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from lattice.core.metrics import (
    increment_unassigned_subtask,
    observe_outcome_value,
    record_orchestration_run,
    record_validation_verdict,
    set_executor_load,
)
from lattice.orchestration.validation import ValidationEngine
from lattice.schemas.validation import ValidationInput


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def test_validation_verdict_counts_rule_violations_by_phase() -> None:
    verdict_labels = {"phase": "metrics-test", "compliant": "false"}
    rule_labels = {"rule": "non-fabrication", "phase": "metrics-test"}
    verdict_before = _sample("lattice_validation_verdict_total", verdict_labels)
    rule_before = _sample("lattice_rule_violation_total", rule_labels)

    record_validation_verdict(phase="metrics-test", compliant=False, violated_rules=["non-fabrication"])

    assert _sample("lattice_validation_verdict_total", verdict_labels) == pytest.approx(verdict_before + 1.0)
    assert _sample("lattice_rule_violation_total", rule_labels) == pytest.approx(rule_before + 1.0)


def test_engine_records_verdicts_when_metrics_enabled() -> None:
    labels = {"phase": "engine-metrics", "compliant": "true"}
    before = _sample("lattice_validation_verdict_total", labels)

    ValidationEngine().validate(ValidationInput(input="Summarize"), "ok", phase="engine-metrics")
    ValidationEngine(metrics_enabled=False).validate(ValidationInput(input="Summarize"), "ok", phase="engine-metrics")

    assert _sample("lattice_validation_verdict_total", labels) == pytest.approx(before + 1.0)


def test_orchestration_run_records_count_and_latency() -> None:
    labels = {"mode": "metrics-mode", "status": "completed"}
    count_before = _sample("lattice_orchestration_runs_total", labels)
    latency_before = _sample("lattice_orchestration_latency_seconds_sum", {"mode": "metrics-mode"})

    record_orchestration_run(mode="metrics-mode", status="completed", latency=0.25)

    assert _sample("lattice_orchestration_runs_total", labels) == pytest.approx(count_before + 1.0)
    assert _sample("lattice_orchestration_latency_seconds_sum", {"mode": "metrics-mode"}) == pytest.approx(
        latency_before + 0.25
    )


def test_outcome_value_is_clamped_into_unit_range() -> None:
    labels = {"strategy": "metrics-strategy"}
    before = _sample("lattice_outcome_value_sum", labels)

    observe_outcome_value(strategy="metrics-strategy", value=1.7)

    assert _sample("lattice_outcome_value_sum", labels) == pytest.approx(before + 1.0)


def test_gauge_and_unlabelled_counter() -> None:
    set_executor_load(executor="metrics-executor", load=0.4)
    assert REGISTRY.get_sample_value("lattice_executor_load", {"executor": "metrics-executor"}) == pytest.approx(0.4)

    before = _sample("lattice_unassigned_subtasks_total")
    increment_unassigned_subtask()
    assert _sample("lattice_unassigned_subtasks_total") == pytest.approx(before + 1.0)

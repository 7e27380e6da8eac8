from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

EXECUTOR_EVENT_TOTAL = Counter(
    "lattice_executor_event_total",
    "Count of executor lifecycle events (started/completed/failed)",
    labelnames=("executor", "event"),
)

EXECUTOR_LOAD = Gauge(
    "lattice_executor_load",
    "Current admission-control load per executor",
    labelnames=("executor",),
)

EXECUTOR_LATENCY_SECONDS = Histogram(
    "lattice_executor_latency_seconds",
    "Latency of executor task execution",
    labelnames=("executor",),
)

VALIDATION_VERDICT_TOTAL = Counter(
    "lattice_validation_verdict_total",
    "Validation verdicts grouped by phase and overall compliance",
    labelnames=("phase", "compliant"),
)

RULE_VIOLATION_TOTAL = Counter(
    "lattice_rule_violation_total",
    "Individual principle violations grouped by rule and phase",
    labelnames=("rule", "phase"),
)

SELF_CORRECTION_TOTAL = Counter(
    "lattice_self_correction_total",
    "Self-corrections applied grouped by the winning approach",
    labelnames=("approach",),
)

ORCHESTRATION_RUNS_TOTAL = Counter(
    "lattice_orchestration_runs_total",
    "Orchestrator runs grouped by mode and status",
    labelnames=("mode", "status"),
)

ORCHESTRATION_LATENCY_SECONDS = Histogram(
    "lattice_orchestration_latency_seconds",
    "End-to-end orchestrator runtime",
    labelnames=("mode",),
    buckets=(0.01, 0.05, 0.1, 0.5, 1, 2, 5, 10, 30, 60, 120, float("inf")),
)

DECOMPOSITION_SUBTASKS = Histogram(
    "lattice_decomposition_subtasks",
    "Number of subtasks produced per decomposition",
    labelnames=("strategy",),
    buckets=(0, 1, 2, 3, 4, 5, 8, 13),
)

UNASSIGNED_SUBTASKS_TOTAL = Counter(
    "lattice_unassigned_subtasks_total",
    "Subtasks dropped because no executor could handle them",
)

POLICY_DECISIONS_TOTAL = Counter(
    "lattice_policy_decisions_total",
    "Policy decisions grouped by selected strategy",
    labelnames=("strategy",),
)

OUTCOME_VALUE = Histogram(
    "lattice_outcome_value",
    "Distribution of evaluated outcome values",
    labelnames=("strategy",),
    buckets=(0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0),
)


def increment_executor_event(*, executor: str, event: str) -> None:
    EXECUTOR_EVENT_TOTAL.labels(executor=executor, event=event).inc()


def set_executor_load(*, executor: str, load: float) -> None:
    EXECUTOR_LOAD.labels(executor=executor).set(load)


def observe_executor_latency(*, executor: str, latency: float) -> None:
    EXECUTOR_LATENCY_SECONDS.labels(executor=executor).observe(latency)


def record_validation_verdict(*, phase: str, compliant: bool, violated_rules: list[str] | tuple[str, ...] = ()) -> None:
    VALIDATION_VERDICT_TOTAL.labels(phase=phase, compliant=str(compliant).lower()).inc()
    for rule in violated_rules:
        RULE_VIOLATION_TOTAL.labels(rule=rule, phase=phase).inc()


def record_self_correction(*, approach: str) -> None:
    SELF_CORRECTION_TOTAL.labels(approach=approach).inc()


def record_orchestration_run(*, mode: str, status: str, latency: float) -> None:
    ORCHESTRATION_RUNS_TOTAL.labels(mode=mode, status=status).inc()
    ORCHESTRATION_LATENCY_SECONDS.labels(mode=mode).observe(latency)


def observe_decomposition(*, strategy: str, subtasks: int) -> None:
    DECOMPOSITION_SUBTASKS.labels(strategy=strategy).observe(subtasks)


def increment_unassigned_subtask() -> None:
    UNASSIGNED_SUBTASKS_TOTAL.inc()


def record_policy_decision(*, strategy: str) -> None:
    POLICY_DECISIONS_TOTAL.labels(strategy=strategy).inc()


def observe_outcome_value(*, strategy: str, value: float) -> None:
    OUTCOME_VALUE.labels(strategy=strategy).observe(max(0.0, min(1.0, value)))

from __future__ import annotations

from collections import OrderedDict, deque
from typing import Iterable

from ..agents.registry import CapabilityRegistry
from ..core.config import PolicySettings
from ..core.logging import get_logger
from ..core.metrics import observe_outcome_value, record_policy_decision
from ..schemas.policy import (
    Decision,
    DecisionContext,
    ExecutionReport,
    ExplorationBalance,
    ExplorationTrend,
    OutcomeEvaluation,
    PolicyStatistics,
    Strategy,
)
from ..schemas.results import AnyResult, failed_result
from ..schemas.tasks import StrategyDirective, Task, new_task_id
from ..schemas.validation import ValidationInput
from ..services.scoring import OutcomeScorer
from .orchestrator import Orchestrator
from .validation import ValidationEngine

logger = get_logger(name=__name__)

EXPECTED_OUTCOMES: dict[Strategy, tuple[str, ...]] = {
    Strategy.GOAL_DIRECTED: (
        "Efficient achievement of primary goal",
        "Reliable, tested approaches",
        "Minimal risk of unexpected results",
    ),
    Strategy.EXPLORATORY: (
        "Novel insights and creative solutions",
        "Discovery of unexpected opportunities",
        "Higher risk but potentially breakthrough results",
    ),
    Strategy.BALANCED: (
        "Good balance of reliability and creativity",
        "Moderate innovation with controlled risk",
        "Multiple pathways to goal achievement",
    ),
    Strategy.ADAPTIVE: (
        "Dynamic optimization based on emerging information",
        "Ability to pivot between approaches as needed",
        "Resilient adaptation to unexpected challenges",
    ),
}

COMMON_CONTINGENCIES: tuple[str, ...] = (
    "If primary executor fails, reassign to backup executor with similar capabilities",
    "If time constraints become critical, shift to goal-directed strategy",
    "If unexpected opportunities emerge, deploy discovery executor",
)

STRATEGY_CONTINGENCIES: dict[Strategy, tuple[str, ...]] = {
    Strategy.GOAL_DIRECTED: (
        "If efficient path is blocked, temporarily increase exploration",
        "If outcome lacks innovation, inject creative executor input",
    ),
    Strategy.EXPLORATORY: (
        "If exploration yields no viable options, fallback to proven approaches",
        "If risk becomes too high, implement safety constraints",
    ),
    Strategy.BALANCED: (
        "If balance becomes ineffective, shift to pure exploitation or exploration",
        "Monitor tension levels and adjust weights dynamically",
    ),
    Strategy.ADAPTIVE: (
        "If adaptation cycles become chaotic, implement stability controls",
        "If tension becomes destructive, reduce exploration weight",
    ),
}

_CAPABILITY_HINTS: tuple[tuple[tuple[str, ...], tuple[str, str]], ...] = (
    (("analyze", "understand"), ("analysis", "pattern_recognition")),
    (("create", "design", "develop"), ("creative_process", "ideation")),
    (("explore", "discover", "find"), ("novelty_search", "exploration")),
    (("code", "program", "software"), ("code_understanding", "technical_analysis")),
)
_DEFAULT_CAPABILITIES = ("analysis", "creative_process")


def infer_capabilities(goal: str) -> list[str]:
    lowered = goal.lower()
    capabilities: list[str] = []
    for keywords, inferred in _CAPABILITY_HINTS:
        if any(keyword in lowered for keyword in keywords):
            capabilities.extend(inferred)
    return capabilities or list(_DEFAULT_CAPABILITIES)


def compute_balance(context: DecisionContext, settings: PolicySettings) -> ExplorationBalance:
    """Shift the exploitation/exploration split by each context signal, then normalize.

    Adjustments apply in a fixed order and accumulate. Negative components are
    clamped to zero before normalizing; a degenerate total falls back to an even split.
    """
    exploitation = settings.base_balance
    exploration = settings.base_balance
    factors: list[str] = []

    if context.task_complexity > settings.high_complexity:
        exploration += settings.complexity_shift
        exploitation -= settings.complexity_shift
        factors.append("high complexity")
    elif context.task_complexity < settings.low_complexity:
        exploitation += settings.complexity_shift
        exploration -= settings.complexity_shift
        factors.append("low complexity")

    if context.time_constraint_minutes is not None and context.time_constraint_minutes < settings.time_constraint_minutes:
        exploitation += settings.time_constraint_shift
        exploration -= settings.time_constraint_shift
        factors.append("time constraints")

    if context.risk_tolerance > settings.high_risk_tolerance:
        exploration += settings.risk_shift
        factors.append("high risk tolerance")
    elif context.risk_tolerance < settings.low_risk_tolerance:
        exploitation += settings.risk_shift
        exploration -= settings.risk_shift
        factors.append("low risk tolerance")

    if context.novelty_required:
        exploration += settings.novelty_shift
        exploitation -= settings.novelty_shift
        factors.append("novelty requirement")

    exploitation = max(exploitation, 0.0)
    exploration = max(exploration, 0.0)
    total = exploitation + exploration
    if total <= 0.0:
        exploitation, exploration = 0.5, 0.5
    else:
        exploitation = exploitation / total
        exploration = 1.0 - exploitation

    tension = min(abs(exploitation - exploration) * 2.0, 1.0)

    if exploitation > settings.rationale_threshold:
        rationale = "Favors exploitation due to "
    elif exploration > settings.rationale_threshold:
        rationale = "Favors exploration due to "
    else:
        rationale = "Balanced for "
    rationale += ", ".join(factors) if factors else "balanced context"

    return ExplorationBalance(
        exploitation=exploitation,
        exploration=exploration,
        tension=tension,
        rationale=rationale,
    )


def select_strategy(balance: ExplorationBalance, settings: PolicySettings) -> Strategy:
    if balance.exploitation > settings.exploitation_threshold:
        return Strategy.GOAL_DIRECTED
    if balance.exploration > settings.exploration_threshold:
        return Strategy.EXPLORATORY
    if balance.tension > settings.tension_threshold:
        return Strategy.ADAPTIVE
    return Strategy.BALANCED


class PolicyManager:
    """Chooses a coordination strategy per decision context and scores what it produced."""

    def __init__(
        self,
        orchestrator: Orchestrator,
        engine: ValidationEngine,
        *,
        settings: PolicySettings | None = None,
        metrics_enabled: bool = True,
    ) -> None:
        self._orchestrator = orchestrator
        self._registry: CapabilityRegistry = orchestrator.registry
        self._engine = engine
        self._settings = settings or PolicySettings()
        self._scorer = OutcomeScorer(self._settings)
        self._metrics_enabled = metrics_enabled
        self._decisions: deque[Decision] = deque(maxlen=self._settings.history_limit)
        self._evaluations: OrderedDict[str, OutcomeEvaluation] = OrderedDict()

    @property
    def decisions(self) -> list[Decision]:
        return list(self._decisions)

    @property
    def evaluations(self) -> dict[str, OutcomeEvaluation]:
        return dict(self._evaluations)

    def decide(self, context: DecisionContext) -> Decision:
        balance = compute_balance(context, self._settings)
        strategy = select_strategy(balance, self._settings)
        assignments = self._build_assignments(context, strategy, balance)
        decision = Decision(
            strategy=strategy,
            balance=balance,
            assignments=assignments,
            expected_outcomes=list(EXPECTED_OUTCOMES[strategy]),
            contingency_plans=[*COMMON_CONTINGENCIES, *STRATEGY_CONTINGENCIES[strategy]],
            context=context,
        )
        self._decisions.append(decision)
        if self._metrics_enabled:
            record_policy_decision(strategy=strategy.value)
        logger.info(
            "policy_decision",
            decision_id=decision.decision_id,
            strategy=strategy.value,
            exploitation=round(balance.exploitation, 4),
            exploration=round(balance.exploration, 4),
            tension=round(balance.tension, 4),
            assignments={executor_id: [task.id for task in tasks] for executor_id, tasks in assignments.items()},
            task_count=decision.task_count,
        )
        if not decision.task_count:
            logger.warning("policy_decision_unassigned", decision_id=decision.decision_id, goal=context.primary_goal)
        return decision

    def _build_assignments(
        self,
        context: DecisionContext,
        strategy: Strategy,
        balance: ExplorationBalance,
    ) -> dict[str, list[Task]]:
        goal = context.primary_goal
        if strategy is Strategy.GOAL_DIRECTED:
            task = self._strategy_task(
                "goal",
                goal,
                priority=10,
                capabilities=infer_capabilities(goal),
                directive=StrategyDirective(strategy=strategy.value, focus="efficiency", primary_goal=goal),
            )
            return self._assign_each(context, [task])

        if strategy is Strategy.EXPLORATORY:
            tasks = [
                self._strategy_task(
                    "explore_novelty",
                    f"Explore novel approaches to: {goal}",
                    priority=8,
                    capabilities=["novelty_search", "lateral_thinking"],
                    directive=StrategyDirective(strategy=strategy.value, focus="novelty", primary_goal=goal),
                ),
                self._strategy_task(
                    "explore_alternatives",
                    f"Find alternative perspectives on: {goal}",
                    priority=7,
                    capabilities=["boundary_exploration", "analogical_reasoning"],
                    directive=StrategyDirective(strategy=strategy.value, focus="alternatives", primary_goal=goal),
                ),
            ]
            return self._assign_each(context, tasks, spread=True)

        if strategy is Strategy.BALANCED:
            goal_task = self._strategy_task(
                "balanced_goal",
                goal,
                priority=8,
                capabilities=infer_capabilities(goal),
                directive=StrategyDirective(
                    strategy=strategy.value,
                    focus="goal",
                    primary_goal=goal,
                    exploitation_weight=balance.exploitation,
                ),
            )
            explore_task = self._strategy_task(
                "balanced_explore",
                f"Explore creative possibilities related to: {goal}",
                priority=6,
                capabilities=["novelty_search", "creative_process"],
                directive=StrategyDirective(
                    strategy=strategy.value,
                    focus="exploration",
                    primary_goal=goal,
                    exploration_weight=balance.exploration,
                ),
            )
            assignments: dict[str, list[Task]] = {}
            goal_match = self._registry.select_best(goal_task, executor_ids=self._allowed(context))
            explore_match = self._registry.select_best(explore_task, executor_ids=self._allowed(context))
            if goal_match is not None:
                assignments[goal_match.executor.id] = [goal_task]
            if explore_match is not None and explore_match.executor.id not in assignments:
                assignments[explore_match.executor.id] = [explore_task]
            return assignments

        adaptive_task = self._strategy_task(
            "adaptive",
            f"Adaptively pursue: {goal}",
            priority=9,
            capabilities=["creative_process", "analysis", "novelty_search"],
            directive=StrategyDirective(
                strategy=strategy.value,
                focus="adaptive",
                primary_goal=goal,
                exploitation_weight=balance.exploitation,
                exploration_weight=balance.exploration,
                tension=balance.tension,
            ),
        )
        coordinator = self._registry.find_by_name(self._settings.coordinator_name)
        allowed = self._allowed(context)
        if (
            coordinator is not None
            and (allowed is None or coordinator.id in allowed)
            and coordinator.can_handle(adaptive_task)
        ):
            return {coordinator.id: [adaptive_task]}
        return self._assign_each(context, [adaptive_task])

    @staticmethod
    def _strategy_task(
        prefix: str,
        description: str,
        *,
        priority: int,
        capabilities: Iterable[str],
        directive: StrategyDirective,
    ) -> Task:
        return Task(
            id=new_task_id(prefix),
            description=description,
            priority=priority,
            required_capabilities=frozenset(capabilities),
            directive=directive,
        )

    @staticmethod
    def _allowed(context: DecisionContext) -> set[str] | None:
        return set(context.available_executors) if context.available_executors is not None else None

    def _assign_each(
        self,
        context: DecisionContext,
        tasks: Iterable[Task],
        *,
        spread: bool = False,
    ) -> dict[str, list[Task]]:
        allowed = self._allowed(context)
        assignments: dict[str, list[Task]] = {}
        for task in tasks:
            match = None
            if spread and assignments:
                pool = allowed if allowed is not None else {executor.id for executor in self._registry}
                match = self._registry.select_best(
                    task,
                    include_coordinators=False,
                    executor_ids=pool - set(assignments),
                )
            if match is None:
                match = self._registry.select_best(task, executor_ids=allowed)
            if match is None:
                logger.warning(
                    "policy_task_unassigned",
                    task_id=task.id,
                    required_capabilities=sorted(task.required_capabilities),
                )
                continue
            assignments.setdefault(match.executor.id, []).append(task)
        return assignments

    async def execute(self, decision: Decision) -> ExecutionReport:
        runnable: dict[str, list[Task]] = {}
        missing: list[AnyResult] = []
        for executor_id, tasks in decision.assignments.items():
            if executor_id in self._registry:
                runnable[executor_id] = list(tasks)
                continue
            logger.warning("policy_executor_missing", decision_id=decision.decision_id, executor=executor_id)
            missing.extend(
                failed_result(task.id, executor_id, f"executor {executor_id} not found or not available")
                for task in tasks
            )

        order = [task.id for tasks in decision.assignments.values() for task in tasks]
        executed = await self._orchestrator.execute_assignments(runnable, order=order) if runnable else []
        by_task = {result.task_id: result for result in [*executed, *missing]}
        results = [by_task[task_id] for task_id in order if task_id in by_task]

        evaluations = {
            result.task_id: self.evaluate_outcome(result.task_id, result, decision.context, strategy=decision.strategy)
            for result in results
        }
        return ExecutionReport(
            decision_id=decision.decision_id,
            strategy=decision.strategy,
            results=results,
            evaluations=evaluations,
            evaluation_summary=self.summarize(decision, results, evaluations),
        )

    def evaluate_outcome(
        self,
        task_id: str,
        result: AnyResult,
        context: DecisionContext,
        *,
        strategy: Strategy | None = None,
    ) -> OutcomeEvaluation:
        payload = ValidationInput(input=context.primary_goal, tool_name="policy_manager")
        compliance = self._engine.validate(payload, result.output, phase="evaluation").aggregate_confidence
        evaluation = self._scorer.evaluate(result, primary_goal=context.primary_goal, compliance=compliance)

        self._evaluations.pop(task_id, None)
        self._evaluations[task_id] = evaluation
        limit = self._settings.history_limit
        while limit is not None and len(self._evaluations) > limit:
            self._evaluations.popitem(last=False)

        if self._metrics_enabled:
            observe_outcome_value(strategy=strategy.value if strategy else "unknown", value=evaluation.overall_value)
        logger.info(
            "outcome_evaluated",
            task_id=task_id,
            goal_alignment=round(evaluation.goal_alignment, 4),
            novelty=round(evaluation.novelty_score, 4),
            feasibility=round(evaluation.feasibility, 4),
            compliance=round(evaluation.constitutional_compliance, 4),
            overall=round(evaluation.overall_value, 4),
        )
        return evaluation

    @staticmethod
    def summarize(
        decision: Decision,
        results: list[AnyResult],
        evaluations: dict[str, OutcomeEvaluation],
    ) -> str:
        successes = [result for result in results if result.success]
        failures = [result for result in results if not result.success]
        rate = (len(successes) / len(results) * 100) if results else 0.0

        lines = [
            "## Coordination Execution Results",
            "",
            f"**Success Rate:** {len(successes)}/{len(results)} ({rate:.1f}%)",
            f"**Strategy Effectiveness:** {decision.strategy.value} strategy executed across "
            f"{len(decision.assignments)} executor(s)",
        ]
        if evaluations:
            mean_value = sum(evaluation.overall_value for evaluation in evaluations.values()) / len(evaluations)
            lines.append(f"**Mean Outcome Value:** {mean_value * 100:.1f}%")
        lines.append("")

        if successes:
            lines.extend(["### Successful Executions", ""])
            for result in successes:
                lines.append(f"**Executor {result.executor_id}** (Task: {result.task_id})")
                lines.append(f"*Confidence: {result.confidence * 100:.1f}%*")
                lines.extend(["", result.output, "", "---", ""])

        if failures:
            lines.extend(["### Execution Issues", ""])
            for result in failures:
                lines.extend([f"**Executor {result.executor_id}:** {result.output}", ""])

        return "\n".join(lines).rstrip() + "\n"

    def statistics(self) -> PolicyStatistics:
        distribution = {strategy: 0 for strategy in Strategy}
        for decision in self._decisions:
            distribution[decision.strategy] += 1

        values = [evaluation.overall_value for evaluation in self._evaluations.values()]
        average_value = sum(values) / len(values) if values else 0.0

        recent = list(self._decisions)[-self._settings.trend_window :]
        explorations = [decision.balance.exploration for decision in recent]
        average_exploration = sum(explorations) / len(explorations) if explorations else 0.5
        direction = "stable"
        if len(explorations) >= self._settings.trend_min_samples:
            middle = len(explorations) // 2
            first = sum(explorations[:middle]) / middle
            second = sum(explorations[middle:]) / (len(explorations) - middle)
            if second > first + self._settings.trend_hysteresis:
                direction = "increasing"
            elif first > second + self._settings.trend_hysteresis:
                direction = "decreasing"

        return PolicyStatistics(
            total_decisions=len(self._decisions),
            strategy_distribution=distribution,
            average_outcome_value=average_value,
            exploration_trend=ExplorationTrend(average=average_exploration, direction=direction),
        )

    def reset(self) -> None:
        self._decisions.clear()
        self._evaluations.clear()


__all__ = [
    "COMMON_CONTINGENCIES",
    "EXPECTED_OUTCOMES",
    "PolicyManager",
    "STRATEGY_CONTINGENCIES",
    "compute_balance",
    "infer_capabilities",
    "select_strategy",
]

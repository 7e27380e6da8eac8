from __future__ import annotations

import pytest

from lattice.agents.base import CallableExecutor
from lattice.agents.contracts import ExecutorKind, get_profile, list_profiles
from lattice.agents.registry import CapabilityRegistry
from lattice.core.exceptions import DuplicateExecutorError, ExecutorNotFoundError
from lattice.schemas.tasks import Capability, Task

from tests.helpers.stubs import StubExecutor, capabilities


def _task(*required: str) -> Task:
    return Task(description="inspect the module", required_capabilities=set(required))


def test_register_rejects_duplicate_ids() -> None:
    registry = CapabilityRegistry([StubExecutor("a", capabilities("analysis"))])
    with pytest.raises(DuplicateExecutorError):
        registry.register(StubExecutor("a", capabilities("analysis")))
    assert len(registry) == 1


def test_unregister_and_get_unknown_executor_raise() -> None:
    registry = CapabilityRegistry()
    with pytest.raises(ExecutorNotFoundError):
        registry.unregister("ghost")
    with pytest.raises(ExecutorNotFoundError):
        registry.get("ghost")
    assert registry.find("ghost") is None


def test_select_best_prefers_reliability_per_cost() -> None:
    cheap = StubExecutor("cheap", capabilities("analysis", cost=2.0, reliability=0.6))
    pricey = StubExecutor("pricey", capabilities("analysis", cost=8.0, reliability=0.95))
    registry = CapabilityRegistry([pricey, cheap])

    match = registry.select_best(_task("analysis"))

    assert match is not None
    assert match.executor is cheap
    assert match.score == pytest.approx(0.6 / 2.0)


def test_select_best_breaks_ties_by_registration_order() -> None:
    first = StubExecutor("first", capabilities("analysis"))
    second = StubExecutor("second", capabilities("analysis"))
    registry = CapabilityRegistry([first, second])

    match = registry.select_best(_task("analysis"))

    assert match is not None
    assert match.executor is first


def test_executor_must_declare_every_required_capability() -> None:
    partial = StubExecutor("partial", capabilities("analysis"))
    full = StubExecutor("full", capabilities("analysis", "ideation", cost=9.0, reliability=0.5))
    registry = CapabilityRegistry([partial, full])

    match = registry.select_best(_task("analysis", "ideation"))

    assert match is not None
    assert match.executor is full
    assert registry.select_best(_task("telepathy")) is None


def test_task_without_requirements_matches_on_all_capabilities() -> None:
    executor = StubExecutor(
        "generalist",
        [
            Capability(name="analysis", cost=2.0, reliability=0.9),
            Capability(name="ideation", cost=4.0, reliability=0.7),
        ],
    )
    estimate = executor.estimate(_task())
    assert estimate.cost == pytest.approx(3.0)
    assert estimate.reliability == pytest.approx(0.8)
    assert executor.can_handle(_task())


def test_zero_reliability_executor_is_never_selected() -> None:
    broken = StubExecutor("broken", capabilities("analysis", cost=1.0, reliability=0.0))
    working = StubExecutor("working", capabilities("analysis", cost=10.0, reliability=0.1))
    registry = CapabilityRegistry([broken, working])

    match = registry.select_best(_task("analysis"))

    assert not broken.can_handle(_task("analysis"))
    assert match is not None
    assert match.executor is working


def test_executor_ids_filter_restricts_candidates() -> None:
    a = StubExecutor("a", capabilities("analysis", cost=1.0))
    b = StubExecutor("b", capabilities("analysis", cost=9.0))
    registry = CapabilityRegistry([a, b])

    match = registry.select_best(_task("analysis"), executor_ids=["b"])

    assert match is not None
    assert match.executor is b


@pytest.mark.asyncio
async def test_inactive_executor_is_not_a_candidate() -> None:
    executor = StubExecutor("sleepy", capabilities("analysis"))
    registry = CapabilityRegistry([executor])
    await executor.shutdown()

    assert registry.select_best(_task("analysis")) is None
    assert registry.declared_capabilities() == frozenset()


@pytest.mark.asyncio
async def test_load_raises_cost_and_lowers_reliability_while_tracked() -> None:
    executor = StubExecutor("busy", capabilities("analysis", cost=4.0, reliability=1.0))
    task = _task("analysis")

    async with executor.track(task):
        assert executor.load == pytest.approx(0.2)
        assert executor.state.active_tasks == [task.id]
        busy = executor.estimate(task)

    assert busy.cost == pytest.approx(4.0 * 1.2)
    assert busy.reliability == pytest.approx(1.0 - 0.3 * 0.2)
    assert executor.load == 0.0
    assert executor.state.active_tasks == []


def test_find_by_name_and_reset() -> None:
    executor = StubExecutor("a1", capabilities("analysis"), name="analysis")
    registry = CapabilityRegistry([executor])
    assert registry.find_by_name("analysis") is executor
    assert registry.find_by_name("missing") is None
    registry.reset()
    assert executor.load == 0.0


@pytest.mark.asyncio
async def test_callable_executor_from_profile_wraps_plain_text() -> None:
    async def handler(task: Task) -> str:
        return f"looked at {task.description}"

    profile = get_profile(ExecutorKind.ANALYSIS)
    executor = CallableExecutor.from_profile(profile, handler, metrics_enabled=False)
    task = _task("analysis")

    result = await executor.execute(task)

    assert executor.id == profile.default_id
    assert result.success is True
    assert result.output == "looked at inspect the module"
    assert result.confidence == pytest.approx(profile.default_confidence)
    assert result.resources_used == ["analysis"]


def test_profiles_cover_every_kind() -> None:
    kinds = {profile.kind for profile in list_profiles()}
    assert kinds == set(ExecutorKind)
    assert "creative_process" in get_profile("creative").capability_names

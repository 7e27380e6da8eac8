from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict

from ..schemas.tasks import Capability


class ExecutorKind(str, Enum):
    ORCHESTRATOR = "orchestrator"
    ANALYSIS = "analysis"
    CREATIVE = "creative"
    DISCOVERY = "discovery"


@dataclass(slots=True, frozen=True)
class ExecutorProfile:
    kind: ExecutorKind
    name: str
    default_id: str
    description: str
    capabilities: tuple[Capability, ...]
    default_confidence: float = 0.8

    @property
    def capability_names(self) -> list[str]:
        return [capability.name for capability in self.capabilities]


def _cap(name: str, cost: float, reliability: float, description: str) -> Capability:
    return Capability(name=name, cost=cost, reliability=reliability, description=description)


def _build_profiles() -> Dict[ExecutorKind, ExecutorProfile]:
    return {
        ExecutorKind.ORCHESTRATOR: ExecutorProfile(
            kind=ExecutorKind.ORCHESTRATOR,
            name="orchestrator",
            default_id="orchestrator-001",
            description="Decomposes complex tasks, coordinates specialists and synthesizes their results.",
            capabilities=(
                _cap("task_decomposition", 3, 0.9, "Break complex tasks into manageable subtasks"),
                _cap("agent_coordination", 4, 0.85, "Coordinate multiple executors for complex workflows"),
                _cap("result_synthesis", 5, 0.8, "Combine results from multiple executors"),
                _cap("conflict_resolution", 6, 0.75, "Resolve conflicts between executor outputs"),
            ),
            default_confidence=0.8,
        ),
        ExecutorKind.ANALYSIS: ExecutorProfile(
            kind=ExecutorKind.ANALYSIS,
            name="analysis",
            default_id="analysis-001",
            description="Structured file, code and content analysis.",
            capabilities=(
                _cap("analysis", 5, 0.85, "General structured analysis of a request"),
                _cap("file_analysis", 6, 0.9, "Extract and analyze file contents"),
                _cap("deep_analysis", 7, 0.85, "Deep multi-perspective content analysis"),
                _cap("code_understanding", 5, 0.8, "Understand code structure and intent"),
                _cap("pattern_recognition", 6, 0.75, "Identify recurring patterns"),
                _cap("sandbox_execution", 8, 0.7, "Run isolated experiments"),
            ),
            default_confidence=0.85,
        ),
        ExecutorKind.CREATIVE: ExecutorProfile(
            kind=ExecutorKind.CREATIVE,
            name="creative",
            default_id="creative-001",
            description="Creative orientation: vision clarification, structural tension and ideation.",
            capabilities=(
                _cap("creative_process", 5, 0.9, "Guide a creation from vision to result"),
                _cap("vision_clarification", 4, 0.85, "Clarify what the caller wants to create"),
                _cap("structural_tension", 3, 0.8, "Hold the gap between vision and current reality"),
                _cap("ideation", 6, 0.75, "Generate candidate ideas"),
                _cap("momentum_building", 4, 0.8, "Sustain progress through iterative steps"),
            ),
            default_confidence=0.8,
        ),
        ExecutorKind.DISCOVERY: ExecutorProfile(
            kind=ExecutorKind.DISCOVERY,
            name="discovery",
            default_id="discovery-001",
            description="Novelty search, lateral thinking and boundary exploration.",
            capabilities=(
                _cap("novelty_search", 7, 0.7, "Search for novel approaches"),
                _cap("lateral_thinking", 6, 0.75, "Approach problems from unexpected angles"),
                _cap("analogical_reasoning", 5, 0.8, "Transfer structure from other domains"),
                _cap("boundary_exploration", 8, 0.65, "Probe the edges of the problem space"),
                _cap("synthesis_discovery", 6, 0.7, "Discover syntheses between ideas"),
                _cap("constraint_liberation", 7, 0.6, "Question assumed constraints"),
            ),
            default_confidence=0.7,
        ),
    }


_PROFILES = _build_profiles()


def get_profile(kind: ExecutorKind | str) -> ExecutorProfile:
    return _PROFILES[ExecutorKind(kind)]


def list_profiles() -> list[ExecutorProfile]:
    return list(_PROFILES.values())


__all__ = ["ExecutorKind", "ExecutorProfile", "get_profile", "list_profiles"]

from __future__ import annotations

import re
from typing import Protocol, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.config import DecompositionSettings
from ..core.exceptions import DecompositionError
from ..core.logging import get_logger
from ..core.metrics import observe_decomposition
from ..schemas.tasks import CreativePhaseDirective, FileAnalysisDirective, QueryPartDirective, Task

logger = get_logger(name=__name__)


class DecompositionStrategy(Protocol):
    name: str

    def decompose(self, task: Task) -> list[Task]:
        """Return subtasks for ``task``, or an empty list when the strategy does not apply."""
        ...


class FileAnalysisConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    trigger_keyword: str = Field("analyze", min_length=1)
    file_marker: str = Field("@", min_length=1)
    extraction_capability: str = Field("file_analysis", min_length=1)
    analysis_capability: str = Field("deep_analysis", min_length=1)


class CreativeProcessConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    trigger_keywords: tuple[str, ...] = Field(("create", "design", "develop"), min_length=1)
    vision_capability: str = Field("creative_process", min_length=1)
    assessment_capability: str = Field("analysis", min_length=1)


class ComplexQueryConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    connectives: tuple[str, ...] = Field((" and ", ", "), min_length=1)
    split_pattern: str = r"\s+and\s+|,\s+"
    min_length: int = Field(200, ge=1)
    min_connectives: int = Field(1, ge=1)
    min_parts: int = Field(2, ge=2)
    part_capability: str = Field("analysis", min_length=1)

    @field_validator("split_pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid split_pattern: {exc}") from exc
        return value


class FileAnalysisStrategy:
    name = "file_analysis"

    def __init__(self, config: FileAnalysisConfig | None = None) -> None:
        self.config = config or FileAnalysisConfig()

    def decompose(self, task: Task) -> list[Task]:
        description = task.description.lower()
        if self.config.trigger_keyword not in description or self.config.file_marker not in description:
            return []
        return [
            task.child(
                "file_extraction",
                description="Extract and prepare file contents for analysis",
                required_capabilities={self.config.extraction_capability},
                directive=FileAnalysisDirective(phase="extraction"),
            ),
            task.child(
                "content_analysis",
                description="Perform deep analysis of file contents",
                required_capabilities={self.config.analysis_capability},
                directive=FileAnalysisDirective(phase="analysis"),
            ),
        ]


class CreativeProcessStrategy:
    name = "creative_process"

    def __init__(self, config: CreativeProcessConfig | None = None) -> None:
        self.config = config or CreativeProcessConfig()

    def decompose(self, task: Task) -> list[Task]:
        description = task.description.lower()
        if not any(keyword in description for keyword in self.config.trigger_keywords):
            return []
        return [
            task.child(
                "vision_clarification",
                description="Clarify creative vision and desired outcome",
                required_capabilities={self.config.vision_capability},
                directive=CreativePhaseDirective(phase="germination"),
            ),
            task.child(
                "resource_analysis",
                description="Analyze available resources and current reality",
                required_capabilities={self.config.assessment_capability},
                directive=CreativePhaseDirective(phase="assessment"),
            ),
        ]


class ComplexQueryStrategy:
    """Split long or multi-part requests on conjunctions and commas."""

    name = "complex_query"

    def __init__(self, config: ComplexQueryConfig | None = None) -> None:
        self.config = config or ComplexQueryConfig()
        self._splitter = re.compile(self.config.split_pattern)

    def matches(self, task: Task) -> bool:
        description = task.description
        connectives = sum(description.count(connective) for connective in self.config.connectives)
        return connectives >= self.config.min_connectives or len(description) > self.config.min_length

    def decompose(self, task: Task) -> list[Task]:
        if not self.matches(task):
            return []
        parts = [part.strip() for part in self._splitter.split(task.description)]
        parts = [part for part in parts if part]
        if len(parts) < self.config.min_parts:
            return []
        return [
            task.child(
                f"part_{index + 1}",
                description=part,
                required_capabilities={self.config.part_capability},
                directive=QueryPartDirective(part_index=index),
            )
            for index, part in enumerate(parts)
        ]


_STRATEGY_TYPES: dict[str, type] = {
    FileAnalysisStrategy.name: FileAnalysisStrategy,
    CreativeProcessStrategy.name: CreativeProcessStrategy,
    ComplexQueryStrategy.name: ComplexQueryStrategy,
}


def build_strategies(settings: DecompositionSettings) -> list[DecompositionStrategy]:
    strategies: list[DecompositionStrategy] = []
    for name in settings.enabled_strategies:
        if name == ComplexQueryStrategy.name:
            strategies.append(
                ComplexQueryStrategy(
                    ComplexQueryConfig(
                        min_length=settings.complex_query_min_length,
                        min_connectives=settings.complex_query_min_connectives,
                    )
                )
            )
            continue
        strategy_type = _STRATEGY_TYPES.get(name)
        if strategy_type is None:
            raise DecompositionError(f"unknown decomposition strategy '{name}'")
        strategies.append(strategy_type())
    return strategies


class TaskDecomposer:
    """Applies an ordered list of strategies; the first one producing subtasks wins.

    A strategy that raises is logged and skipped, so a broken strategy degrades
    to the next one (and ultimately to direct execution) rather than failing.
    """

    def __init__(self, strategies: Sequence[DecompositionStrategy], *, metrics_enabled: bool = True) -> None:
        self._strategies = list(strategies)
        self._metrics_enabled = metrics_enabled

    @classmethod
    def from_settings(cls, settings: DecompositionSettings, *, metrics_enabled: bool = True) -> "TaskDecomposer":
        return cls(build_strategies(settings), metrics_enabled=metrics_enabled)

    @property
    def strategies(self) -> list[DecompositionStrategy]:
        return list(self._strategies)

    def decompose(self, task: Task) -> tuple[str | None, list[Task]]:
        for strategy in self._strategies:
            try:
                subtasks = strategy.decompose(task)
            except Exception as exc:  # strategy failures fall through to the next strategy
                logger.warning(
                    "decomposition_strategy_failed",
                    strategy=strategy.name,
                    task_id=task.id,
                    error=str(exc),
                )
                continue
            if subtasks:
                logger.info(
                    "task_decomposed",
                    task_id=task.id,
                    strategy=strategy.name,
                    subtasks=[subtask.id for subtask in subtasks],
                )
                if self._metrics_enabled:
                    observe_decomposition(strategy=strategy.name, subtasks=len(subtasks))
                return strategy.name, subtasks
        return None, []


__all__ = [
    "ComplexQueryConfig",
    "ComplexQueryStrategy",
    "CreativeProcessConfig",
    "CreativeProcessStrategy",
    "DecompositionStrategy",
    "FileAnalysisConfig",
    "FileAnalysisStrategy",
    "TaskDecomposer",
    "build_strategies",
]

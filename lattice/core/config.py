from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExecutorSettings(BaseModel):
    load_increment: float = Field(0.2, gt=0.0, le=1.0, description="Load added while an executor runs a task.")
    saturation_threshold: float = Field(
        0.9,
        gt=0.0,
        le=1.0,
        description="Executors at or above this load refuse new tasks.",
    )
    reliability_load_penalty: float = Field(
        0.3,
        ge=0.0,
        le=1.0,
        description="Fraction of reliability lost at full load.",
    )


class ValidationSettings(BaseModel):
    audit_log_enabled: bool = Field(True)
    max_audit_records: int | None = Field(
        None,
        ge=1,
        description=(
            "Optional ring-buffer bound for the audit log, finished lifecycle pairs and "
            "coordination reports; unbounded when unset."
        ),
    )
    unevaluable_confidence: float = Field(
        0.5,
        ge=0.0,
        le=1.0,
        description="Confidence reported by a rule that could not evaluate its input.",
    )


class SelfCorrectionSettings(BaseModel):
    enabled: bool = Field(True, description="Rewrite non-compliant outputs after execution.")
    generate_alternatives: bool = Field(True)
    alternative_count: int = Field(3, ge=1, le=3)
    evaluation_criteria: list[Literal["novelty", "reliability", "ethical_alignment"]] = Field(
        default_factory=lambda: ["novelty", "reliability", "ethical_alignment"],
    )
    novelty_weight: float = Field(0.3, ge=0.0, le=1.0)
    reliability_weight: float = Field(0.4, ge=0.0, le=1.0)
    compliance_weight: float = Field(0.3, ge=0.0, le=1.0)


class DecompositionSettings(BaseModel):
    complex_query_min_length: int = Field(200, ge=1)
    complex_query_min_connectives: int = Field(1, ge=1)
    enabled_strategies: list[str] = Field(
        default_factory=lambda: ["file_analysis", "creative_process", "complex_query"],
        description="Decomposition strategies tried in order; the first match wins.",
    )


class PolicySettings(BaseModel):
    base_balance: float = Field(0.5, ge=0.0, le=1.0)
    high_complexity: int = Field(7, ge=1, le=10)
    low_complexity: int = Field(4, ge=1, le=10)
    complexity_shift: float = Field(0.2, ge=0.0, le=1.0)
    time_constraint_minutes: float = Field(30.0, gt=0.0)
    time_constraint_shift: float = Field(0.3, ge=0.0, le=1.0)
    high_risk_tolerance: float = Field(0.7, ge=0.0, le=1.0)
    low_risk_tolerance: float = Field(0.3, ge=0.0, le=1.0)
    risk_shift: float = Field(0.2, ge=0.0, le=1.0)
    novelty_shift: float = Field(0.3, ge=0.0, le=1.0)
    exploitation_threshold: float = Field(0.7, ge=0.0, le=1.0)
    exploration_threshold: float = Field(0.7, ge=0.0, le=1.0)
    tension_threshold: float = Field(0.7, ge=0.0, le=1.0)
    rationale_threshold: float = Field(0.6, ge=0.0, le=1.0)
    goal_alignment_weight: float = Field(0.3, ge=0.0, le=1.0)
    novelty_weight: float = Field(0.2, ge=0.0, le=1.0)
    feasibility_weight: float = Field(0.3, ge=0.0, le=1.0)
    compliance_weight: float = Field(0.2, ge=0.0, le=1.0)
    trend_window: int = Field(10, ge=2)
    trend_min_samples: int = Field(6, ge=2)
    trend_hysteresis: float = Field(0.1, ge=0.0, le=1.0)
    history_limit: int | None = Field(
        None,
        ge=1,
        description="Optional bound for decision history and outcome evaluations; unbounded when unset.",
    )
    coordinator_name: str = Field(
        "orchestrator",
        min_length=1,
        description="Name of the coordinator-class executor preferred by the adaptive strategy.",
    )

    @model_validator(mode="after")
    def _check_ranges(self) -> "PolicySettings":
        if self.low_complexity > self.high_complexity:
            raise ValueError("low_complexity must not exceed high_complexity")
        if self.low_risk_tolerance > self.high_risk_tolerance:
            raise ValueError("low_risk_tolerance must not exceed high_risk_tolerance")
        return self


class ObservabilitySettings(BaseModel):
    prometheus_enabled: bool = Field(True)
    json_logs: bool = Field(True)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


class Settings(BaseSettings):
    environment: Literal["local", "test", "production"] = Field("local")

    executors: ExecutorSettings = Field(default_factory=ExecutorSettings)  # type: ignore[arg-type]
    validation: ValidationSettings = Field(default_factory=ValidationSettings)  # type: ignore[arg-type]
    self_correction: SelfCorrectionSettings = Field(default_factory=SelfCorrectionSettings)  # type: ignore[arg-type]
    decomposition: DecompositionSettings = Field(default_factory=DecompositionSettings)  # type: ignore[arg-type]
    policy: PolicySettings = Field(default_factory=PolicySettings)  # type: ignore[arg-type]
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)  # type: ignore[arg-type]

    model_config = SettingsConfigDict(
        env_prefix="LATTICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def _get_cached_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def get_settings(overrides: Mapping[str, Any] | None = None) -> Settings:
    """Return settings, using cached defaults unless overrides are provided."""
    if overrides:
        return Settings(**dict(overrides))
    return _get_cached_settings()

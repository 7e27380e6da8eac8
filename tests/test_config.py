from __future__ import annotations

import pytest
from pydantic import ValidationError

from lattice.core.config import PolicySettings, SelfCorrectionSettings, Settings, get_settings


def test_defaults_hold_the_heuristic_constants() -> None:
    settings = Settings()

    assert settings.executors.load_increment == pytest.approx(0.2)
    assert settings.executors.saturation_threshold == pytest.approx(0.9)
    assert settings.self_correction.alternative_count == 3
    assert settings.self_correction.reliability_weight == pytest.approx(0.4)
    assert settings.decomposition.enabled_strategies == ["file_analysis", "creative_process", "complex_query"]
    assert settings.policy.exploitation_threshold == pytest.approx(0.7)
    assert settings.policy.history_limit is None
    assert settings.validation.max_audit_records is None


def test_nested_environment_variables_override_sections(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LATTICE_POLICY__HISTORY_LIMIT", "5")
    monkeypatch.setenv("LATTICE_EXECUTORS__SATURATION_THRESHOLD", "0.5")
    monkeypatch.setenv("LATTICE_OBSERVABILITY__JSON_LOGS", "false")

    settings = Settings()

    assert settings.policy.history_limit == 5
    assert settings.executors.saturation_threshold == pytest.approx(0.5)
    assert settings.observability.json_logs is False


def test_overrides_build_a_fresh_instance() -> None:
    cached = get_settings()
    assert get_settings() is cached

    custom = get_settings({"environment": "test", "self_correction": {"enabled": False}})

    assert custom is not cached
    assert custom.environment == "test"
    assert custom.self_correction.enabled is False


def test_out_of_range_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        SelfCorrectionSettings(alternative_count=4)
    with pytest.raises(ValidationError):
        SelfCorrectionSettings(evaluation_criteria=["speed"])
    with pytest.raises(ValidationError):
        PolicySettings(low_complexity=8, high_complexity=7)
    with pytest.raises(ValidationError):
        Settings(environment="staging")

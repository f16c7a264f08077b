"""Unit tests for configuration loading and validation."""

import pytest
from utils.config import load_config, validate_config


@pytest.mark.unit
def test_load_config_defaults(monkeypatch):
    for name in ("RENDER_STRATEGY", "CREDITS_DEBIT_POLICY", "GENERATION_COST_CREDITS", "CORS_ORIGINS"):
        monkeypatch.delenv(name, raising=False)

    config = load_config()

    assert config["render_strategy"] == "composition"
    assert config["credits_debit_policy"] == "on_submit"
    assert config["generation_cost_credits"] == 10
    assert config["render_poll_interval_seconds"] == 5.0
    assert config["render_max_poll_attempts"] == 60
    assert config["cors_origins"] == ["http://localhost:5173", "http://localhost:3000"]


@pytest.mark.unit
def test_load_config_reads_environment(monkeypatch):
    monkeypatch.setenv("RENDER_STRATEGY", "Timeline")
    monkeypatch.setenv("CORS_ORIGINS", "https://app.example.com, ,https://admin.example.com")
    monkeypatch.setenv("LOG_JSON", "true")

    config = load_config()

    assert config["render_strategy"] == "timeline"
    assert config["cors_origins"] == ["https://app.example.com", "https://admin.example.com"]
    assert config["log_json"] is True


@pytest.mark.unit
def test_valid_config_has_no_errors(sample_config):
    assert validate_config(sample_config) == []


@pytest.mark.unit
def test_missing_keys_are_reported(sample_config):
    config = {**sample_config, "ai_gateway_api_key": "", "composition_render_api_key": ""}

    errors = validate_config(config)

    assert any("AI_GATEWAY_API_KEY" in e for e in errors)
    assert any("COMPOSITION_RENDER_API_KEY" in e for e in errors)


@pytest.mark.unit
@pytest.mark.parametrize(
    "override,fragment",
    [
        ({"render_strategy": "ffmpeg"}, "RENDER_STRATEGY"),
        ({"credits_debit_policy": "later"}, "CREDITS_DEBIT_POLICY"),
        ({"storage_backend": "s3"}, "STORAGE_BACKEND"),
        ({"storage_backend": "r2"}, "R2 storage requires"),
        ({"generation_cost_credits": -1}, "GENERATION_COST_CREDITS"),
    ],
)
def test_invalid_values_are_reported(sample_config, override, fragment):
    errors = validate_config({**sample_config, **override})

    assert any(fragment in e for e in errors)

"""Tests for models.yaml loading, ModelConfig merging and AgentConfig."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from function_agent.config import (
    AgentConfig,
    ModelConfig,
    RetryPolicy,
    Settings,
    _load_models_yaml,
    get_model_config,
)


@pytest.fixture(autouse=True)
def _reset_cache():
    """Reset the module-level YAML cache before each test."""
    import function_agent.config as cfg
    cfg._models_config_cache = None
    yield
    cfg._models_config_cache = None


# ---------------------------------------------------------------------------
# ModelConfig dataclass
# ---------------------------------------------------------------------------

def test_model_config_defaults():
    mc = ModelConfig()
    assert mc.model == ""
    assert mc.temperature is None
    assert mc.max_tokens is None
    assert mc.base_url == ""


# ---------------------------------------------------------------------------
# _load_models_yaml
# ---------------------------------------------------------------------------

def test_load_yaml_missing_file(tmp_path):
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(tmp_path / "nope.yaml")}):
        result = _load_models_yaml()
    assert result == {}


def test_load_yaml_empty_file(tmp_path):
    yaml_file = tmp_path / "models.yaml"
    yaml_file.write_text("")
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(yaml_file)}):
        result = _load_models_yaml()
    assert result == {}


def test_load_yaml_caches_result(tmp_path):
    yaml_file = tmp_path / "models.yaml"
    yaml_file.write_text("default:\n  model: m1\n")
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(yaml_file)}):
        first = _load_models_yaml()
        yaml_file.write_text("default:\n  model: m2\n")
        second = _load_models_yaml()
    assert first is second
    assert first["default"]["model"] == "m1"


# ---------------------------------------------------------------------------
# get_model_config
# ---------------------------------------------------------------------------

YAML_WITH_AGENTS = (
    "default:\n"
    "  model: llama3.2\n"
    "  temperature: 0.2\n"
    "  base_url: http://ollama.local:11434/v1\n"
    "agents:\n"
    "  functions:\n"
    "    model: qwen2.5\n"
    "    temperature: 0.0\n"
)


def test_no_yaml_falls_back_to_settings(tmp_path):
    from function_agent.config import settings

    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(tmp_path / "missing.yaml")}):
        mc = get_model_config("functions")
    assert mc.model == settings.llm_model
    assert mc.base_url == settings.llm_base_url
    assert mc.temperature is None


def test_agent_override_merges_with_default(tmp_path):
    (tmp_path / "m.yaml").write_text(YAML_WITH_AGENTS)
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(tmp_path / "m.yaml")}):
        mc = get_model_config("functions")
    assert mc.model == "qwen2.5"
    assert mc.temperature == 0.0
    assert mc.base_url == "http://ollama.local:11434/v1"
    assert mc.max_tokens is None


def test_unknown_agent_gets_default(tmp_path):
    (tmp_path / "m.yaml").write_text(YAML_WITH_AGENTS)
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(tmp_path / "m.yaml")}):
        mc = get_model_config("other")
    assert mc.model == "llama3.2"
    assert mc.temperature == 0.2


def test_yaml_no_default_section(tmp_path):
    (tmp_path / "m.yaml").write_text("agents:\n  functions:\n    model: mistral\n")
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(tmp_path / "m.yaml")}):
        mc = get_model_config("functions")
    assert mc.model == "mistral"


# ---------------------------------------------------------------------------
# Settings / AgentConfig
# ---------------------------------------------------------------------------

def test_settings_defaults():
    s = Settings(_env_file=None)
    assert s.llm_model == "llama3.2"
    assert s.llm_base_url == "http://localhost:11434/v1"
    assert s.max_retries == 3
    assert s.retry_policy == RetryPolicy.ALL_TURNS
    assert s.weather_location == "Beijing"


def test_settings_from_env():
    env = {"MAX_RETRIES": "5", "RETRY_POLICY": "errors_only", "LLM_MODEL": "qwen2.5"}
    with patch.dict("os.environ", env):
        s = Settings(_env_file=None)
    assert s.max_retries == 5
    assert s.retry_policy == RetryPolicy.ERRORS_ONLY
    assert s.llm_model == "qwen2.5"


def test_agent_config_defaults():
    cfg = AgentConfig()
    assert cfg.max_retries == 3
    assert cfg.retry_policy == RetryPolicy.ALL_TURNS
    assert cfg.stream is False
    assert cfg.deadline_s is None


def test_agent_config_rejects_negative_retries():
    with pytest.raises(ValueError):
        AgentConfig(max_retries=-1)


def test_agent_config_rejects_zero_turns():
    with pytest.raises(ValueError):
        AgentConfig(max_turns=0)


def test_agent_config_from_settings_with_overrides():
    s = Settings(_env_file=None, max_retries=7, max_turns=4)
    cfg = AgentConfig.from_settings(s, max_retries=2, retry_policy=None, stream=True)
    assert cfg.max_retries == 2
    assert cfg.max_turns == 4
    assert cfg.retry_policy == RetryPolicy.ALL_TURNS
    assert cfg.stream is True


def test_agent_config_from_settings_keeps_zero_retries():
    s = Settings(_env_file=None)
    cfg = AgentConfig.from_settings(s, max_retries=0)
    assert cfg.max_retries == 0

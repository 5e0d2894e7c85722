"""Tests for the typer CLI."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from function_agent.cli import app
from function_agent.config import RetryPolicy
from function_agent.models.agent_schemas import (
    AgentResult,
    LoopState,
    RetriesExhaustedError,
    TransportError,
)

runner = CliRunner()


@pytest.fixture(autouse=True)
def _reset_config_cache():
    import function_agent.config as cfg
    cfg._models_config_cache = None
    yield
    cfg._models_config_cache = None


def _agent(result=None, error=None):
    agent = MagicMock()
    if error is not None:
        agent.run.side_effect = error
    else:
        agent.run.return_value = result or AgentResult(output="Sunny, 6 degrees", turns=2, tool_calls_made=1)
    return agent


def test_weather_success():
    agent = _agent()
    with patch("function_agent.cli._build_agent", return_value=agent) as build:
        result = runner.invoke(app, ["weather", "--location", "Paris", "--dummy-weather"])
    assert result.exit_code == 0
    assert "Sunny, 6 degrees" in result.output
    agent.run.assert_called_once_with("What's the weather like in Paris?")
    assert build.call_args[1]["dummy_weather"] is True


def test_weather_default_location():
    agent = _agent()
    with patch("function_agent.cli._build_agent", return_value=agent):
        runner.invoke(app, ["weather"])
    agent.run.assert_called_once_with("What's the weather like in Beijing?")


def test_ask_passes_options():
    agent = _agent()
    with patch("function_agent.cli._build_agent", return_value=agent) as build:
        result = runner.invoke(
            app,
            [
                "ask", "Is it windy in Oslo?",
                "--model", "qwen2.5",
                "--url", "http://gpu-box:11434/v1",
                "--max-retries", "0",
                "--retry-policy", "errors_only",
                "--max-turns", "4",
                "--stream",
            ],
        )
    assert result.exit_code == 0
    kwargs = build.call_args[1]
    assert kwargs["model"] == "qwen2.5"
    assert kwargs["url"] == "http://gpu-box:11434/v1"
    assert kwargs["max_retries"] == 0
    assert kwargs["retry_policy"] == RetryPolicy.ERRORS_ONLY
    assert kwargs["max_turns"] == 4
    assert kwargs["stream"] is True
    agent.run.assert_called_once_with("Is it windy in Oslo?")


def test_retries_exhausted_exits_non_zero():
    state = LoopState(messages=[], retries_remaining=0, turns=3)
    agent = _agent(error=RetriesExhaustedError(state))
    with patch("function_agent.cli._build_agent", return_value=agent):
        result = runner.invoke(app, ["ask", "hello"])
    assert result.exit_code == 1
    assert "RetriesExhaustedError" in result.output


def test_transport_error_exits_non_zero():
    agent = _agent(error=TransportError("Connection refused"))
    with patch("function_agent.cli._build_agent", return_value=agent):
        result = runner.invoke(app, ["ask", "hello"])
    assert result.exit_code == 1
    assert "Connection refused" in result.output


def test_tools_lists_registry():
    result = runner.invoke(app, ["tools", "--dummy-weather", "--prompt"])
    assert result.exit_code == 0
    assert "getCurrentWeather" in result.output
    assert "finalResponse" in result.output
    assert "tool_input" in result.output


def test_build_agent_uses_functions_model_config(tmp_path):
    yaml_path = tmp_path / "models.yaml"
    yaml_path.write_text(
        "default:\n"
        "  model: default-model\n"
        "agents:\n"
        "  functions:\n"
        "    model: functions-model\n"
        "    max_tokens: 256\n"
    )
    captured = {}

    from function_agent.services.llm_service import LLMService as RealLLMService

    def spy_init(self, config=None):
        captured["config"] = config

    with (
        patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(yaml_path)}),
        patch.object(RealLLMService, "__init__", spy_init),
    ):
        from function_agent.cli import _build_agent
        agent = _build_agent(max_retries=2, dummy_weather=True)

    assert captured["config"].model == "functions-model"
    assert captured["config"].max_tokens == 256
    assert agent.config.max_retries == 2
    assert "getCurrentWeather" in agent.registry


def test_build_agent_cli_overrides_model_and_url(tmp_path):
    captured = {}

    from function_agent.services.llm_service import LLMService as RealLLMService

    def spy_init(self, config=None):
        captured["config"] = config

    with (
        patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(tmp_path / "none.yaml")}),
        patch.object(RealLLMService, "__init__", spy_init),
    ):
        from function_agent.cli import _build_agent
        _build_agent(model="mistral", url="http://other:11434/v1", dummy_weather=True)

    assert captured["config"].model == "mistral"
    assert captured["config"].base_url == "http://other:11434/v1"

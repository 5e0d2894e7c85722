from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pydantic_settings import BaseSettings


class RetryPolicy(str, Enum):
    """Which turns spend the retry budget."""

    ALL_TURNS = "all_turns"
    ERRORS_ONLY = "errors_only"


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    llm_api_key: str = "ollama"
    promptlayer_api_key: str = ""
    llm_base_url: str = "http://localhost:11434/v1"
    llm_model: str = "llama3.2"
    llm_timeout: float = 120.0

    # Loop settings
    max_retries: int = 3
    max_turns: int = 10
    retry_policy: RetryPolicy = RetryPolicy.ALL_TURNS

    # Weather tool
    weather_api_key: str = ""
    weather_location: str = "Beijing"


settings = Settings()


@dataclass
class ModelConfig:
    model: str = ""
    temperature: float | None = None
    max_tokens: int | None = None
    base_url: str = ""


@dataclass
class AgentConfig:
    """Loop limits handed to FunctionAgent at construction time."""

    max_retries: int = 3
    retry_policy: RetryPolicy = RetryPolicy.ALL_TURNS
    max_turns: int = 10
    temperature: float | None = None
    stream: bool = False
    deadline_s: float | None = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.max_turns < 1:
            raise ValueError("max_turns must be >= 1")

    @classmethod
    def from_settings(cls, s: Settings | None = None, **overrides) -> AgentConfig:
        s = s or settings
        values = {
            "max_retries": s.max_retries,
            "retry_policy": s.retry_policy,
            "max_turns": s.max_turns,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


_models_config_cache: dict | None = None


def _load_models_yaml() -> dict:
    global _models_config_cache
    if _models_config_cache is not None:
        return _models_config_cache

    config_path = os.environ.get("MODELS_CONFIG_PATH", "models.yaml")
    path = Path(config_path)
    if not path.is_file():
        _models_config_cache = {}
        return _models_config_cache

    import yaml

    with open(path) as f:
        _models_config_cache = yaml.safe_load(f) or {}
    return _models_config_cache


def get_model_config(agent_name: str = "") -> ModelConfig:
    """Get model config for an agent, merging default + agent override.

    Falls back to Settings env variables if models.yaml doesn't exist.
    """
    data = _load_models_yaml()

    if not data:
        return ModelConfig(
            model=settings.llm_model,
            base_url=settings.llm_base_url,
        )

    default = data.get("default", {})
    merged = {
        "model": default.get("model", settings.llm_model),
        "temperature": default.get("temperature"),
        "max_tokens": default.get("max_tokens"),
        "base_url": default.get("base_url", settings.llm_base_url),
    }

    if agent_name:
        agents = data.get("agents", {})
        agent_override = agents.get(agent_name, {})
        for key, value in agent_override.items():
            if key in merged:
                merged[key] = value

    return ModelConfig(
        model=merged["model"],
        temperature=merged["temperature"],
        max_tokens=merged["max_tokens"],
        base_url=merged["base_url"],
    )

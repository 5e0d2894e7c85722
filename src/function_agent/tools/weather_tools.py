"""Weather lookup tools backed by weatherapi.com."""

from __future__ import annotations

import json
import logging
from typing import Any

import requests

from function_agent.tools import InvalidToolInput, Tool

logger = logging.getLogger(__name__)

WEATHER_API_URL = "http://api.weatherapi.com/v1/forecast.json"
UNITS = ("celsius", "fahrenheit")

WEATHER_PARAMETERS = {
    "type": "object",
    "properties": {
        "location": {"type": "string", "description": "The city and state, e.g. San Francisco, CA"},
        "unit": {"type": "string", "enum": list(UNITS)},
    },
    "required": ["location", "unit"],
}


def _require_str(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidToolInput(f"'{key}' must be a non-empty string")
    return value.strip()


def _read_args(args: dict[str, Any]) -> tuple[str, str]:
    location = _require_str(args, "location")
    unit = _require_str(args, "unit").lower()
    if unit not in UNITS:
        raise InvalidToolInput(f"'unit' must be one of {', '.join(UNITS)}")
    return location, unit


def _c_to_f(temp_c: float) -> float:
    return round(temp_c * 9 / 5 + 32, 1)


def create_weather_tools(api_key: str = "", timeout: float = 10.0) -> list[Tool]:
    def get_current_weather(args: dict) -> str:
        location, unit = _read_args(args)
        if not api_key:
            raise RuntimeError("weather API key is not configured (set WEATHER_API_KEY)")
        resp = requests.get(
            WEATHER_API_URL,
            params={"key": api_key, "q": location, "days": 1, "aqi": "no", "alerts": "no"},
            timeout=timeout,
        )
        resp.raise_for_status()
        data = resp.json()

        current = data.get("current", {})
        temp_c = current.get("temp_c")
        if temp_c is None:
            raise RuntimeError("weather API response has no current temperature")
        temperature = temp_c if unit == "celsius" else _c_to_f(temp_c)
        condition = current.get("condition", {}).get("text", "")
        info = {
            "location": data.get("location", {}).get("name", location),
            "temperature": temperature,
            "unit": unit,
            "forecast": [condition] if condition else [],
        }
        logger.info("Weather for %s: %s", location, info)
        return json.dumps(info)

    return [
        Tool(
            name="getCurrentWeather",
            description="Get the current weather in a given location",
            parameters=WEATHER_PARAMETERS,
            execute=get_current_weather,
        ),
    ]


def create_dummy_weather_tools() -> list[Tool]:
    """Same tool contract, canned data. Used when no API key is available."""

    def get_dummy_weather(args: dict) -> str:
        location, unit = _read_args(args)
        info: dict[str, Any] = {
            "location": location,
            "temperature": "6",
            "unit": unit,
            "forecast": ["sunny", "windy"],
        }
        if unit == "fahrenheit":
            info["temperature"] = 43
        return json.dumps(info)

    return [
        Tool(
            name="getCurrentWeather",
            description="Get the current weather in a given location",
            parameters=WEATHER_PARAMETERS,
            execute=get_dummy_weather,
        ),
    ]

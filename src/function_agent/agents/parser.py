"""Interpret raw model output as a tool call, a final answer, or neither."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Union

from pydantic import ValidationError

from function_agent.models.agent_schemas import SENTINEL_TOOL, ToolCallRequest

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)
_WIRE_KEYS = ("tool", "tool_input", "response")


@dataclass(frozen=True)
class ToolCall:
    request: ToolCallRequest


@dataclass(frozen=True)
class FinalAnswer:
    text: str


@dataclass(frozen=True)
class Unparseable:
    reason: str


ParseOutcome = Union[ToolCall, FinalAnswer, Unparseable]


def _strip_fence(text: str) -> str:
    text = text.strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text


def parse_response(text: str) -> ParseOutcome:
    """Parse one model reply. Never raises."""
    if not text or not text.strip():
        return Unparseable("empty response")

    try:
        data: Any = json.loads(_strip_fence(text))
    except (json.JSONDecodeError, ValueError, RecursionError) as e:
        return Unparseable(f"not valid JSON: {e}")

    if not isinstance(data, dict):
        return Unparseable(f"expected a JSON object, got {type(data).__name__}")

    if not data.get("tool") and isinstance(data.get(SENTINEL_TOOL), str):
        return FinalAnswer(data[SENTINEL_TOOL])

    tool = data.get("tool")
    if not isinstance(tool, str) or not tool.strip():
        return Unparseable("missing tool name")
    wire = {key: data[key] for key in _WIRE_KEYS if data.get(key) is not None}

    try:
        request = ToolCallRequest.model_validate(wire)
    except ValidationError as e:
        logger.debug("Tool call failed validation: %s", e)
        return Unparseable(f"invalid tool call: {e.error_count()} field error(s)")

    if request.tool_name == SENTINEL_TOOL:
        return FinalAnswer(request.final_text())
    return ToolCall(request)

"""Tool registry for the function-calling loop."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from function_agent.models.agent_schemas import SENTINEL_TOOL

logger = logging.getLogger(__name__)


class UnknownToolError(KeyError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"unknown tool '{self.name}'"


class InvalidToolInput(ValueError):
    """Raised by a handler when its input is missing fields or has wrong types."""


class ToolInvocationError(RuntimeError):
    def __init__(self, name: str, cause: BaseException) -> None:
        self.name = name
        self.cause = cause
        super().__init__(f"{name}: {cause}")


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    parameters: dict[str, Any]
    execute: Callable[[dict[str, Any]], str]


def _final_response(args: dict[str, Any]) -> str:
    return str(args.get("response", ""))


FINAL_RESPONSE_TOOL = Tool(
    name=SENTINEL_TOOL,
    description="Provide the final response to the user query",
    parameters={
        "type": "object",
        "properties": {
            "response": {"type": "string", "description": "The final response to the user query"},
        },
        "required": ["response"],
    },
    execute=_final_response,
)


class ToolRegistry:
    """Name -> tool table. The final-response sentinel is always registered first."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {SENTINEL_TOOL: FINAL_RESPONSE_TOOL}

    def register(self, tool: Tool) -> None:
        if not tool.name:
            raise ValueError("tool name must not be empty")
        if tool.name == SENTINEL_TOOL:
            raise ValueError(f"'{SENTINEL_TOOL}' is reserved")
        if tool.name in self._tools:
            raise ValueError(f"tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        logger.debug("Registered tool: %s", tool.name)

    def register_many(self, tools: list[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def unregister(self, name: str) -> None:
        if name == SENTINEL_TOOL:
            raise ValueError(f"'{SENTINEL_TOOL}' cannot be removed")
        if name not in self._tools:
            raise UnknownToolError(name)
        del self._tools[name]

    def lookup(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def list_all(self) -> list[Tool]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def to_prompt_json(self) -> str:
        """Tool definitions as the JSON array embedded in the system prompt."""
        return json.dumps(
            [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                }
                for tool in self._tools.values()
            ],
            indent=2,
        )

    def invoke(self, name: str, args: dict[str, Any]) -> str:
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        try:
            result = tool.execute(dict(args))
        except InvalidToolInput:
            raise
        except Exception as e:
            logger.error("Tool '%s' failed: %s", name, e)
            raise ToolInvocationError(name, e) from e
        if not isinstance(result, str):
            cause = TypeError(f"handler returned {type(result).__name__}, expected str")
            logger.error("Tool '%s' failed: %s", name, cause)
            raise ToolInvocationError(name, cause)
        return result

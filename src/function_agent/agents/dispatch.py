"""Route a parsed tool call to its handler and decide how the loop proceeds."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Union

from function_agent.models.agent_schemas import SENTINEL_TOOL, Message, ToolCallRequest
from function_agent.tools import InvalidToolInput, ToolInvocationError, ToolRegistry

logger = logging.getLogger(__name__)


class RejectReason(str, Enum):
    UNKNOWN_TOOL = "unknown_tool"
    INVALID_INPUT = "invalid_input"


@dataclass(frozen=True)
class Continue:
    message: Message
    failed: bool = False


@dataclass(frozen=True)
class Terminate:
    final_text: str


@dataclass(frozen=True)
class Reject:
    message: Message
    reason: RejectReason


DispatchOutcome = Union[Continue, Terminate, Reject]


def unknown_tool_message(request: ToolCallRequest, registry: ToolRegistry) -> Message:
    available = ", ".join(registry.names())
    return Message.human(
        f"Tool '{request.tool_name}' does not exist, please try again. "
        f"Available tools: {available}."
    )


def dispatch(request: ToolCallRequest, registry: ToolRegistry) -> DispatchOutcome:
    if request.tool_name == SENTINEL_TOOL:
        answer = request.final_text()
        logger.info("Final response: %s", answer)
        return Terminate(answer)

    if request.tool_name not in registry:
        logger.warning("Invalid function call: %r, prompting model to try again", request.tool_name)
        return Reject(unknown_tool_message(request, registry), RejectReason.UNKNOWN_TOOL)

    try:
        result = registry.invoke(request.tool_name, request.input)
    except InvalidToolInput as e:
        logger.warning("Invalid input for %s: %s", request.tool_name, e)
        return Reject(
            Message.human(
                f"Invalid input for tool '{request.tool_name}': {e}. "
                "Please call it again with tool_input matching its parameter schema."
            ),
            RejectReason.INVALID_INPUT,
        )
    except ToolInvocationError as e:
        return Continue(
            Message.human(
                f"Tool '{request.tool_name}' failed: {e.cause}. "
                "You may try again or give a final response."
            ),
            failed=True,
        )

    return Continue(Message.human(result))

"""Models for the function-calling loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

SENTINEL_TOOL = "finalResponse"


class Role(str, Enum):
    SYSTEM = "system"
    HUMAN = "human"
    AI = "ai"


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def human(cls, content: str) -> Message:
        return cls(role=Role.HUMAN, content=content)

    @classmethod
    def ai(cls, content: str) -> Message:
        return cls(role=Role.AI, content=content)


class ToolCallRequest(BaseModel):
    """One tool call decoded from model output.

    Populated from the wire keys ``tool``, ``tool_input`` and ``response``;
    any other keys are ignored.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    tool_name: str = Field(alias="tool")
    input: dict[str, Any] = Field(default_factory=dict, alias="tool_input")
    raw_direct_response: str | None = Field(default=None, alias="response")

    def final_text(self) -> str:
        """Answer carried by a final-response call, top-level ``response`` first."""
        if self.raw_direct_response:
            return self.raw_direct_response
        response = self.input.get("response")
        return response if isinstance(response, str) else ""

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"tool": self.tool_name, "tool_input": dict(self.input)}
        if self.raw_direct_response is not None:
            data["response"] = self.raw_direct_response
        return data


class TerminalReason(str, Enum):
    SUCCESS = "success"
    RETRIES_EXHAUSTED = "retries_exhausted"
    TURN_LIMIT = "turn_limit"
    CANCELLED = "cancelled"


@dataclass
class LoopState:
    messages: list[Message]
    retries_remaining: int
    turns: int = 0
    tool_calls: int = 0
    terminal: bool = False
    terminal_reason: TerminalReason | None = None
    answer: str = ""
    errors: list[str] = field(default_factory=list)

    def append(self, message: Message) -> None:
        self.messages.append(message)

    def finish(self, reason: TerminalReason, answer: str = "") -> None:
        self.terminal = True
        self.terminal_reason = reason
        self.answer = answer


class AgentResult(BaseModel):
    output: str
    turns: int
    tool_calls_made: int
    messages: list[Message] = []


class AgentError(Exception):
    """Base class for failures that end a conversation."""


class RetriesExhaustedError(AgentError):
    """Raised when the retry budget runs out while the loop is still running."""

    def __init__(self, state: LoopState) -> None:
        self.state = state
        super().__init__(f"retries exhausted after {state.turns} turn(s)")


class TurnLimitExceededError(AgentError):
    """Raised when the conversation exceeds the configured number of turns."""

    def __init__(self, state: LoopState) -> None:
        self.state = state
        super().__init__(f"turn limit reached after {state.turns} turn(s)")


class AgentCancelledError(AgentError):
    def __init__(self, state: LoopState, reason: str = "cancelled") -> None:
        self.state = state
        super().__init__(reason)


class TransportError(AgentError):
    """The model endpoint could not be reached or returned an error."""

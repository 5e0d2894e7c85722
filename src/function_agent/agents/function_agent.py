"""Prompt-driven function-calling loop with a bounded retry budget."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Protocol

from function_agent.agents.dispatch import Continue, Reject, Terminate, dispatch
from function_agent.agents.parser import FinalAnswer, Unparseable, parse_response
from function_agent.config import AgentConfig, RetryPolicy
from function_agent.models.agent_schemas import (
    AgentCancelledError,
    AgentResult,
    LoopState,
    Message,
    RetriesExhaustedError,
    TerminalReason,
    TurnLimitExceededError,
)
from function_agent.prompts.prompt_layer import load_prompt, system_prompt
from function_agent.services.llm_service import LLMService
from function_agent.tools import ToolRegistry

logger = logging.getLogger(__name__)


class StepCallback(Protocol):
    def on_turn_start(self, turn: int, retries_remaining: int) -> None: ...
    def on_chunk(self, text: str) -> None: ...
    def on_model_output(self, text: str) -> None: ...
    def on_tool_call(self, name: str, args: dict[str, Any]) -> None: ...
    def on_tool_result(self, name: str, result: str) -> None: ...
    def on_corrective(self, text: str) -> None: ...
    def on_finish(self, text: str, turns: int, tool_calls: int) -> None: ...


class NullCallback:
    def on_turn_start(self, turn: int, retries_remaining: int) -> None: ...
    def on_chunk(self, text: str) -> None: ...
    def on_model_output(self, text: str) -> None: ...
    def on_tool_call(self, name: str, args: dict[str, Any]) -> None: ...
    def on_tool_result(self, name: str, result: str) -> None: ...
    def on_corrective(self, text: str) -> None: ...
    def on_finish(self, text: str, turns: int, tool_calls: int) -> None: ...


class FunctionAgent:
    """Drives the model through turns until it gives a final response.

    Each turn sends the whole conversation, appends the reply as an AI
    message and then at most one more message: a tool result or a
    corrective prompt. Which turns spend the retry budget is decided by
    ``AgentConfig.retry_policy``. State lives in a fresh ``LoopState`` per
    ``run()`` call, so an agent can be reused for consecutive queries.
    """

    def __init__(
        self,
        llm: LLMService,
        registry: ToolRegistry,
        config: AgentConfig | None = None,
        callback: StepCallback | None = None,
    ) -> None:
        self.llm = llm
        self.registry = registry
        self.config = config or AgentConfig()
        self.cb: StepCallback = callback or NullCallback()

    def initial_messages(self, query: str) -> list[Message]:
        return [
            Message.system(system_prompt(self.registry)),
            Message.human(query),
        ]

    def run(self, query: str, cancel: threading.Event | None = None) -> AgentResult:
        state = LoopState(
            messages=self.initial_messages(query),
            retries_remaining=self.config.max_retries,
        )
        deadline = None
        if self.config.deadline_s is not None:
            deadline = time.monotonic() + self.config.deadline_s

        while not state.terminal:
            self._check_cancelled(state, cancel, deadline)
            if (
                self.config.retry_policy == RetryPolicy.ERRORS_ONLY
                and state.turns >= self.config.max_turns
            ):
                state.finish(TerminalReason.TURN_LIMIT)
                logger.error("Turn limit reached (%d)", self.config.max_turns)
                raise TurnLimitExceededError(state)

            state.turns += 1
            self.cb.on_turn_start(state.turns, state.retries_remaining)

            on_chunk = self.cb.on_chunk if self.config.stream else None
            text = self.llm.generate(
                state.messages,
                temperature=self.config.temperature,
                on_chunk=on_chunk,
            )
            state.append(Message.ai(text))
            self.cb.on_model_output(text)
            logger.debug("Turn %d raw output: %s", state.turns, text)

            self._step(state, text, cancel, deadline)

        self.cb.on_finish(state.answer, state.turns, state.tool_calls)
        return AgentResult(
            output=state.answer,
            turns=state.turns,
            tool_calls_made=state.tool_calls,
            messages=list(state.messages),
        )

    def _step(
        self,
        state: LoopState,
        text: str,
        cancel: threading.Event | None,
        deadline: float | None,
    ) -> None:
        outcome = parse_response(text)

        if isinstance(outcome, FinalAnswer):
            logger.info("Final response: %s", outcome.text)
            state.finish(TerminalReason.SUCCESS, outcome.text)
            return

        if isinstance(outcome, Unparseable):
            # The model doesn't always respond with a tool call; let it try again.
            logger.info("Not a call (%s): %s", outcome.reason, text)
            state.errors.append(outcome.reason)
            self._correct(state, Message.human(load_prompt("not_understood")))
            return

        request = outcome.request
        logger.info("Call: %s", request.tool_name)
        self.cb.on_tool_call(request.tool_name, dict(request.input))
        self._check_cancelled(state, cancel, deadline)

        result = dispatch(request, self.registry)
        if isinstance(result, Terminate):
            state.finish(TerminalReason.SUCCESS, result.final_text)
        elif isinstance(result, Reject):
            state.errors.append(result.reason.value)
            self._correct(state, result.message)
        elif isinstance(result, Continue):
            state.tool_calls += 1
            state.append(result.message)
            self.cb.on_tool_result(request.tool_name, result.message.content)
            if result.failed:
                state.errors.append(f"{request.tool_name} failed")
            if self.config.retry_policy == RetryPolicy.ALL_TURNS or result.failed:
                self._consume_retry(state)

    def _correct(self, state: LoopState, message: Message) -> None:
        state.append(message)
        self.cb.on_corrective(message.content)
        self._consume_retry(state)

    def _consume_retry(self, state: LoopState) -> None:
        if state.retries_remaining > 0:
            state.retries_remaining -= 1
            if state.retries_remaining > 0:
                return
        state.finish(TerminalReason.RETRIES_EXHAUSTED)
        logger.error("Retries exhausted after %d turn(s)", state.turns)
        raise RetriesExhaustedError(state)

    def _check_cancelled(
        self,
        state: LoopState,
        cancel: threading.Event | None,
        deadline: float | None,
    ) -> None:
        reason = ""
        if cancel is not None and cancel.is_set():
            reason = "cancelled by caller"
        elif deadline is not None and time.monotonic() >= deadline:
            reason = f"deadline of {self.config.deadline_s}s exceeded"
        if reason:
            state.finish(TerminalReason.CANCELLED)
            logger.warning("Stopping after %d turn(s): %s", state.turns, reason)
            raise AgentCancelledError(state, reason)

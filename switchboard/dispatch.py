"""Tool dispatch loop: run the function calls Gemini asks for.

One user turn is a sequence of rounds. Each round sends the outbound message
to the model; if the reply requests functions, every call is executed in
order against its MCP server and the results become the next outbound
message. The loop ends when the model answers with text, or fails after
``max_rounds`` rounds that all requested tools.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .client import RemoteToolClient, Timeouts
from .errors import (
    ExhaustedRoundsError,
    ModelError,
    NotConnectedError,
    ServerConnectionError,
    ToolExecutionError,
    UnresolvedFunctionError,
)
from .gemini import ChatSession, FunctionCall
from .registry import ClientFactory, ToolMapping, ToolRegistry

logger = logging.getLogger(__name__)

MAX_ROUNDS = 5

EMPTY_RESPONSE_TEXT = "I received a response, but it was empty."
NO_RESPONSE_TEXT = "I'm sorry, I couldn't get a response."
EXHAUSTED_TEXT = "I tried several times, but I'm having trouble completing your request with tools."


@dataclass
class DispatchResult:
    """Final answer for one user turn plus the log of tools it used."""

    text: str
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)


def function_response(name: str, response: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap a result as a Gemini ``functionResponse`` part."""
    return {"functionResponse": {"name": name, "response": response}}


class ToolDispatcher:
    """Drive the request -> function call -> result loop for a chat session."""

    def __init__(
        self,
        registry: ToolRegistry,
        client_factory: ClientFactory = RemoteToolClient,
        max_rounds: int = MAX_ROUNDS,
        timeouts: Optional[Timeouts] = None,
    ):
        self.registry = registry
        self.max_rounds = max_rounds
        self._client_factory = client_factory
        self._timeouts = timeouts or Timeouts()

    def send(self, chat: ChatSession, message: Union[str, List[dict]]) -> DispatchResult:
        """Run one user turn and return the text to show the user.

        Model failures and round exhaustion are reported as plain-language
        answers. The turn is then dropped from the chat history, so the
        history never ends on a function call that went unanswered.
        """
        tool_log: List[Dict[str, Any]] = []
        history_length = len(chat.history)
        try:
            text = self._run_rounds(chat, message, tool_log)
        except ExhaustedRoundsError as exc:
            logger.error("%s", exc)
            chat.rollback(history_length)
            text = EXHAUSTED_TEXT
        except ModelError as exc:
            logger.error("%s", exc)
            chat.rollback(history_length)
            text = NO_RESPONSE_TEXT
        return DispatchResult(text=text, tool_calls=tool_log)

    def _run_rounds(
        self,
        chat: ChatSession,
        message: Union[str, List[dict]],
        tool_log: List[Dict[str, Any]],
    ) -> str:
        outbound = message
        for round_number in range(1, self.max_rounds + 1):
            logger.debug("Gemini call, round %d", round_number)
            reply = chat.send_message(outbound)

            if not reply.function_calls:
                if not reply.text:
                    logger.warning("Received a response with no text content.")
                    return EMPTY_RESPONSE_TEXT
                return reply.text

            if round_number == self.max_rounds:
                # No round left to send results back in
                raise ExhaustedRoundsError(self.max_rounds)

            logger.info(
                "Gemini requested %s",
                ", ".join(call.name for call in reply.function_calls),
            )
            responses = []
            for call in reply.function_calls:
                part = self.execute(call)
                tool_log.append({
                    "tool": call.name,
                    "input": call.args,
                    "output": part["functionResponse"]["response"],
                })
                responses.append(part)
            outbound = responses

        raise ExhaustedRoundsError(self.max_rounds)

    def execute(self, call: FunctionCall) -> Dict[str, Any]:
        """Execute one requested call and return its ``functionResponse`` part.

        Never raises: unknown names and unreachable servers become error
        responses for the model.
        """
        try:
            mapping = self.registry.resolve(call.name)
        except UnresolvedFunctionError as exc:
            logger.error("No tool mapped for Gemini function %r", call.name)
            return function_response(call.name, {"error": str(exc)})

        try:
            result = self._call_remote(mapping, call.args)
        except ToolExecutionError as exc:
            logger.error("%s", exc)
            return function_response(call.name, {"error": str(exc)})

        logger.info(
            'MCP tool "%s" on server "%s" executed.', mapping.tool_name, mapping.server_name,
        )
        return function_response(call.name, result)

    def _call_remote(self, mapping: ToolMapping, arguments: Dict[str, Any]) -> Dict[str, Any]:
        # One connection per call, closed whatever happens
        client = self._client_factory(mapping.server_url, timeouts=self._timeouts)
        try:
            client.connect()
            return client.call_tool(mapping.tool_name, arguments)
        except (ServerConnectionError, NotConnectedError) as exc:
            raise ToolExecutionError(mapping.tool_name, str(exc)) from exc
        finally:
            client.disconnect()

"""Tests for the function-call dispatch loop."""

import itertools
from unittest.mock import MagicMock, patch

import httpx

from fakes import ADD_TOOL, ScriptedChat, object_schema
from switchboard.client import error_result
from switchboard.dispatch import (
    EMPTY_RESPONSE_TEXT,
    EXHAUSTED_TEXT,
    NO_RESPONSE_TEXT,
    ToolDispatcher,
    function_response,
)
from switchboard.errors import ModelError
from switchboard.gemini import FunctionCall, GeminiModel, ModelConfig, ModelReply
from switchboard.registry import ServerDescriptor, ToolRegistry


def _text(text):
    return ModelReply(text=text, parts=[{"text": text}] if text else [])


def _calls(*calls):
    return ModelReply(
        text=None,
        function_calls=[FunctionCall(name, args) for name, args in calls],
    )


def _dispatcher(network, servers=(("srv", "http://srv"),), max_rounds=5):
    registry = ToolRegistry(network)
    registry.discover([ServerDescriptor(name, url) for name, url in servers])
    return ToolDispatcher(registry, network, max_rounds=max_rounds)


class TestTextReplies:
    """Turns that end without any function call."""

    def test_text_returned_directly(self, network):
        chat = ScriptedChat([_text("Hello!")])
        result = _dispatcher(network).send(chat, "hi")

        assert result.text == "Hello!"
        assert result.tool_calls == []
        assert chat.sent == ["hi"]

    def test_missing_text_uses_fallback(self, network):
        chat = ScriptedChat([ModelReply(text=None)])
        assert _dispatcher(network).send(chat, "hi").text == EMPTY_RESPONSE_TEXT

    def test_model_error_reported_as_text(self, network):
        chat = ScriptedChat([ModelError("boom")])
        assert _dispatcher(network).send(chat, "hi").text == NO_RESPONSE_TEXT


class TestFunctionCalls:
    """Rounds that execute tools and feed results back."""

    def test_round_trip(self, network):
        server = network.add("http://srv", tools=[ADD_TOOL], handlers={
            "add": lambda args: {"content": [{"type": "text", "text": str(args["a"] + args["b"])}]},
        })
        dispatcher = _dispatcher(network)
        chat = ScriptedChat([_calls(("srv_add", {"a": 2, "b": 3})), _text("2 + 3 = 5")])

        result = dispatcher.send(chat, "what is 2 + 3?")

        assert result.text == "2 + 3 = 5"
        assert server.calls == [("add", {"a": 2, "b": 3})]
        assert chat.sent[1] == [{
            "functionResponse": {
                "name": "srv_add",
                "response": {"content": [{"type": "text", "text": "5"}]},
            },
        }]
        assert result.tool_calls == [{
            "tool": "srv_add",
            "input": {"a": 2, "b": 3},
            "output": {"content": [{"type": "text", "text": "5"}]},
        }]

    def test_unregistered_function_becomes_error_response(self, network):
        chat = ScriptedChat([_calls(("nope", {})), _text("sorry")])
        result = _dispatcher(network).send(chat, "hi")

        assert result.text == "sorry"
        assert chat.sent[1] == [function_response(
            "nope", {"error": "Function nope is not implemented or mapped."},
        )]

    def test_order_preserved_with_bad_name_in_middle(self, network):
        network.add("http://srv", tools=[
            ADD_TOOL,
            {"name": "echo", "inputSchema": object_schema({"text": {"type": "string"}})},
        ])
        chat = ScriptedChat([
            _calls(("srv_echo", {"text": "a"}), ("ghost", {}), ("srv_add", {"a": 1, "b": 1})),
            _text("done"),
        ])
        _dispatcher(network).send(chat, "go")

        names = [part["functionResponse"]["name"] for part in chat.sent[1]]
        assert names == ["srv_echo", "ghost", "srv_add"]
        assert "error" in chat.sent[1][1]["functionResponse"]["response"]

    def test_each_call_uses_fresh_connection(self, network):
        server = network.add("http://srv", tools=[ADD_TOOL])
        dispatcher = _dispatcher(network)
        server.connects = server.disconnects = 0

        chat = ScriptedChat([
            _calls(("srv_add", {"a": 1, "b": 2}), ("srv_add", {"a": 3, "b": 4})),
            _text("ok"),
        ])
        dispatcher.send(chat, "go")

        assert server.connects == 2
        assert server.disconnects == 2
        assert not any(client.is_connected for client in network.clients)

    def test_unreachable_server_becomes_error_response(self, network):
        server = network.add("http://srv", tools=[ADD_TOOL])
        dispatcher = _dispatcher(network)
        server.fail_connect = True

        chat = ScriptedChat([_calls(("srv_add", {"a": 1, "b": 2})), _text("could not")])
        result = dispatcher.send(chat, "go")

        response = chat.sent[1][0]["functionResponse"]["response"]
        assert response["error"].startswith("Error executing MCP tool add:")
        assert result.text == "could not"
        assert server.disconnects >= 1

    def test_tool_error_result_passed_through(self, network):
        failed = error_result("Error calling MCP tool add: timeout")
        network.add("http://srv", tools=[ADD_TOOL], handlers={"add": lambda args: failed})
        chat = ScriptedChat([_calls(("srv_add", {"a": 1, "b": 2})), _text("failed")])

        _dispatcher(network).send(chat, "go")

        assert chat.sent[1][0]["functionResponse"]["response"] == failed


class TestRoundLimit:
    """The loop must stop when the model never stops calling tools."""

    def test_exhausted_rounds(self, network):
        server = network.add("http://srv", tools=[ADD_TOOL])
        chat = ScriptedChat(itertools.repeat(_calls(("srv_add", {"a": 1, "b": 1}))))

        result = _dispatcher(network, max_rounds=3).send(chat, "loop forever")

        assert result.text == EXHAUSTED_TEXT
        assert len(chat.sent) == 3
        # Last-round calls are not executed
        assert len(result.tool_calls) == 2
        assert len(server.calls) == 2
        assert chat.history == []

    def test_answer_on_last_round_is_returned(self, network):
        network.add("http://srv", tools=[ADD_TOOL])
        chat = ScriptedChat([
            _calls(("srv_add", {"a": 1, "b": 1})),
            _text("finally"),
        ])
        assert _dispatcher(network, max_rounds=2).send(chat, "go").text == "finally"


def _gemini_response(parts):
    response = MagicMock()
    response.json.return_value = {"candidates": [{"content": {"role": "model", "parts": parts}}]}
    response.raise_for_status = MagicMock()
    return response


def _roles(chat):
    return [
        (turn["role"], [next(iter(part)) for part in turn["parts"]])
        for turn in chat.history
    ]


class TestHistoryRecovery:
    """A failed turn must leave the Gemini history usable for the next one."""

    CALL = [{"functionCall": {"name": "srv_add", "args": {"a": 1, "b": 1}}}]

    def _session(self, network, max_rounds=2):
        network.add("http://srv", tools=[ADD_TOOL])
        dispatcher = _dispatcher(network, max_rounds=max_rounds)
        model = GeminiModel(
            ModelConfig(api_key="k", model="m"), dispatcher.registry.function_declarations(),
        )
        return dispatcher, model, model.start_chat()

    def test_exhausted_turn_is_dropped(self, network):
        dispatcher, model, chat = self._session(network)
        replies = [
            _gemini_response([{"text": "hello"}]),
            _gemini_response(self.CALL),
            _gemini_response(self.CALL),
            _gemini_response([{"text": "fine"}]),
        ]

        with patch.object(model.client, "post", side_effect=replies) as mock_post:
            assert dispatcher.send(chat, "hi").text == "hello"
            assert dispatcher.send(chat, "loop").text == EXHAUSTED_TEXT
            assert _roles(chat) == [("user", ["text"]), ("model", ["text"])]

            assert dispatcher.send(chat, "again").text == "fine"

        sent = mock_post.call_args.kwargs["json"]["contents"]
        assert [turn["role"] for turn in sent] == ["user", "model", "user"]
        assert sent[-1]["parts"] == [{"text": "again"}]

    def test_model_error_after_tool_round_is_dropped(self, network):
        dispatcher, model, chat = self._session(network, max_rounds=5)
        failing = MagicMock()
        failing.raise_for_status.side_effect = httpx.HTTPStatusError(
            "503 Service Unavailable",
            request=httpx.Request("POST", "http://gemini.test"),
            response=httpx.Response(503),
        )

        with patch.object(model.client, "post", side_effect=[_gemini_response(self.CALL), failing]):
            result = dispatcher.send(chat, "add")

        assert result.text == NO_RESPONSE_TEXT
        assert len(result.tool_calls) == 1
        assert chat.history == []

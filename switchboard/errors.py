"""Error taxonomy for Switchboard.

Failures local to one server, one tool or one schema property never abort a
larger operation. Most of these are caught close to where they are raised and
turned into log lines or error function-responses for the model.
"""


class SwitchboardError(Exception):
    """Base class for all Switchboard errors."""


class TransportError(SwitchboardError):
    """A JSON-RPC request to a tool server failed (HTTP, framing, or RPC error)."""


class ServerConnectionError(SwitchboardError, ConnectionError):
    """A tool server could not be reached or refused the handshake."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Could not connect to {url}: {reason}")
        self.url = url
        self.reason = reason


class NotConnectedError(SwitchboardError):
    """An operation that needs a live connection was attempted before connect()."""


class SchemaTranslationWarning(UserWarning):
    """Part of a tool schema could not be expressed as a Gemini declaration."""


class UnresolvedFunctionError(SwitchboardError, LookupError):
    """The model asked for a function name that was never registered."""

    def __init__(self, function_name: str):
        super().__init__(f"Function {function_name} is not implemented or mapped.")
        self.function_name = function_name


class ToolExecutionError(SwitchboardError):
    """A tool call could not be set up against its server.

    Raised when connecting fails before the tool runs. A tool that ran and
    failed comes back as an ``isError`` result instead.
    """

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Error executing MCP tool {tool_name}: {message}")
        self.tool_name = tool_name


class ExhaustedRoundsError(SwitchboardError):
    """The model kept requesting tools past the round limit."""

    def __init__(self, rounds: int):
        super().__init__(f"Exceeded maximum tool call rounds ({rounds})")
        self.rounds = rounds


class ModelError(SwitchboardError):
    """The Gemini request failed or returned an unusable body."""


class ServerConfigError(SwitchboardError):
    """A server-store operation was rejected."""


class SettingsError(SwitchboardError):
    """Required settings (API key, model name) are missing."""

"""Remote tool client: one connection to one MCP tool-provider server.

Setup failures and in-flight failures are reported differently. Calling a
tool before ``connect()`` raises ``NotConnectedError``, while a tool call
that fails on the wire comes back as an error-shaped result the model can
read.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from . import __version__
from .errors import NotConnectedError, ServerConnectionError, TransportError
from .transport import PROTOCOL_VERSION, StreamableHTTPTransport

logger = logging.getLogger(__name__)

CLIENT_NAME = "switchboard-cli"


@dataclass(frozen=True)
class Timeouts:
    """Per-operation timeouts in seconds for remote tool servers."""

    connect: float = 10.0
    list_tools: float = 30.0
    call_tool: float = 60.0


@dataclass(frozen=True)
class RemoteToolDescriptor:
    """A tool as reported by a server's ``tools/list``."""

    name: str
    description: Optional[str] = None
    input_schema: Any = None
    annotations: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "RemoteToolDescriptor":
        return cls(
            name=raw["name"],
            description=raw.get("description"),
            input_schema=raw.get("inputSchema"),
            annotations=raw.get("annotations") or {},
        )


def error_result(message: str) -> Dict[str, Any]:
    """Build an error-shaped tool result for a call that failed in flight."""
    return {
        "id": f"error-{int(time.time() * 1000)}",
        "isError": True,
        "content": [{"type": "text", "text": message}],
    }


class RemoteToolClient:
    """Connect to, list, and call tools on one MCP server."""

    def __init__(
        self,
        url: str,
        timeouts: Optional[Timeouts] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.timeouts = timeouts or Timeouts()
        self.server_info: Dict[str, Any] = {}
        self._http_client = http_client
        self._transport: Optional[StreamableHTTPTransport] = None

    @property
    def is_connected(self) -> bool:
        return self._transport is not None

    def connect(self) -> None:
        """Open a session with the server. No-op if already connected.

        Raises:
            ServerConnectionError: The server could not be reached or
                rejected the ``initialize`` handshake.
        """
        if self._transport is not None:
            return

        transport = StreamableHTTPTransport(
            self.url, timeout=self.timeouts.connect, client=self._http_client,
        )
        try:
            result = transport.request(
                "initialize",
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": {"name": CLIENT_NAME, "version": __version__},
                },
                timeout=self.timeouts.connect,
            )
            transport.notify("notifications/initialized", timeout=self.timeouts.connect)
        except TransportError as exc:
            logger.error("Connect error to %s: %s", self.url, exc)
            try:
                transport.close()
            except TransportError as close_exc:
                logger.debug("Ignoring close error after failed connect: %s", close_exc)
            raise ServerConnectionError(self.url, str(exc)) from exc

        self.server_info = result.get("serverInfo") or {}
        self._transport = transport

    def disconnect(self) -> None:
        """Close the session. Always leaves the client disconnected."""
        if self._transport is None:
            return
        try:
            self._transport.close()
        except TransportError as exc:
            logger.error("Disconnect error from %s: %s", self.url, exc)
        finally:
            self._transport = None

    def list_tools(self) -> Optional[List[RemoteToolDescriptor]]:
        """Return the server's tools, or ``None`` if they could not be listed.

        ``None`` is distinct from an empty list: the latter means the server
        answered and has no tools.
        """
        if self._transport is None:
            logger.error("Not connected to %s. Cannot list tools.", self.url)
            return None

        logger.debug("Listing tools from %s", self.url)
        tools: List[RemoteToolDescriptor] = []
        cursor = None
        try:
            while True:
                params = {"cursor": cursor} if cursor else None
                result = self._transport.request(
                    "tools/list", params, timeout=self.timeouts.list_tools,
                )
                for raw in result.get("tools") or []:
                    tools.append(RemoteToolDescriptor.from_dict(raw))
                cursor = result.get("nextCursor")
                if not cursor:
                    break
        except (TransportError, KeyError, TypeError) as exc:
            logger.error("Error listing tools from %s: %s", self.url, exc)
            return None
        return tools

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Invoke a tool and return its raw MCP result.

        Raises:
            NotConnectedError: ``connect()`` has not succeeded.
        """
        if self._transport is None:
            raise NotConnectedError("Not connected to MCP server. Cannot call tool.")

        logger.info("Calling MCP tool %r on %s", name, self.url)
        try:
            return self._transport.request(
                "tools/call",
                {"name": name, "arguments": arguments or {}},
                timeout=self.timeouts.call_tool,
            )
        except TransportError as exc:
            logger.error("Error calling MCP tool %r: %s", name, exc)
            return error_result(f"Error calling MCP tool {name}: {exc}")

    def __enter__(self) -> "RemoteToolClient":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

"""Session tool registry: discover MCP tools and map them to Gemini functions.

``discover()`` walks every configured server in order, lists its tools, and
builds one ``ToolMapping`` per usable tool. The resulting table is swapped in
whole, so readers never see a half-built registry.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

from .client import RemoteToolClient, RemoteToolDescriptor, Timeouts
from .errors import ServerConnectionError, UnresolvedFunctionError
from .schema import translate_schema

logger = logging.getLogger(__name__)

MAX_FUNCTION_NAME_LENGTH = 63

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_]")


@dataclass(frozen=True)
class ServerDescriptor:
    """A configured tool-provider server."""

    name: str
    url: str
    is_default: bool = False


@dataclass(frozen=True)
class ToolMapping:
    """Links a Gemini function name back to the server tool it calls."""

    function_name: str
    server_name: str
    server_url: str
    tool_name: str
    declaration: dict


ClientFactory = Callable[..., RemoteToolClient]


def derive_function_name(server_name: str, tool_name: str) -> str:
    """Build the Gemini-safe function name for a server's tool.

    Both parts are reduced to ``[A-Za-z0-9_]`` and joined with ``_``; the
    result is cut to 63 characters.
    """
    safe_server = _UNSAFE_CHARS.sub("_", server_name)
    safe_tool = _UNSAFE_CHARS.sub("_", tool_name)
    return f"{safe_server}_{safe_tool}"[:MAX_FUNCTION_NAME_LENGTH]


def tool_to_declaration(tool: RemoteToolDescriptor, server_name: str) -> Optional[dict]:
    """Convert one remote tool to a Gemini function declaration.

    Returns None when the tool's input schema is missing, boolean, or not
    object-typed. Such tools are not registered at all.
    """
    schema = tool.input_schema
    if not isinstance(schema, dict):
        logger.warning(
            'Tool "%s" from server "%s" has no usable inputSchema. Skipping.',
            tool.name, server_name,
        )
        return None
    if schema.get("type") != "object":
        logger.warning(
            'Tool "%s" from server "%s" has inputSchema type %r instead of "object". Skipping.',
            tool.name, server_name, schema.get("type"),
        )
        return None

    description = tool.description
    if not description:
        title = tool.annotations.get("title") or ""
        description = f"Calls {tool.name} on MCP server {server_name}. {title}".rstrip()

    return {
        "name": derive_function_name(server_name, tool.name),
        "description": description,
        "parameters": translate_schema(schema),
    }


class ToolRegistry:
    """Owns the function-name -> server tool table for one chat session."""

    def __init__(
        self,
        client_factory: ClientFactory = RemoteToolClient,
        timeouts: Optional[Timeouts] = None,
    ):
        self._client_factory = client_factory
        self._timeouts = timeouts or Timeouts()
        self._mappings: List[ToolMapping] = []

    def __len__(self) -> int:
        return len(self._mappings)

    @property
    def mappings(self) -> List[ToolMapping]:
        return list(self._mappings)

    def discover(self, servers: Sequence[ServerDescriptor]) -> None:
        """Replace the table with the tools found on ``servers``.

        A server that cannot be reached or listed contributes no tools;
        discovery carries on with the next one.
        """
        logger.info("Discovering tools from %d configured MCP servers", len(servers))
        mappings: List[ToolMapping] = []
        for server in servers:
            mappings.extend(self._discover_server(server))

        _warn_on_collisions(mappings)
        self._mappings = mappings
        logger.info("Tool discovery complete. %d MCP tools mapped.", len(mappings))

    def _discover_server(self, server: ServerDescriptor) -> List[ToolMapping]:
        logger.info("Checking server: %s (%s)", server.name, server.url)
        client = self._client_factory(server.url, timeouts=self._timeouts)
        try:
            client.connect()
            tools = client.list_tools()
        except ServerConnectionError as exc:
            logger.warning("Skipping server %s: %s", server.name, exc)
            return []
        finally:
            client.disconnect()

        if not tools:
            logger.warning("No tools found or an error occurred on %s.", server.name)
            return []

        logger.info("Found %d tools on %s", len(tools), server.name)
        mappings = []
        for tool in tools:
            declaration = tool_to_declaration(tool, server.name)
            if declaration is None:
                continue
            mappings.append(ToolMapping(
                function_name=declaration["name"],
                server_name=server.name,
                server_url=server.url,
                tool_name=tool.name,
                declaration=declaration,
            ))
            logger.debug("Mapped %s/%s -> %s", server.name, tool.name, declaration["name"])
        return mappings

    def function_declarations(self) -> List[dict]:
        """Snapshot of the Gemini declarations for every registered tool."""
        return [mapping.declaration for mapping in self._mappings]

    def find_by_function_name(self, name: str) -> Optional[ToolMapping]:
        """Return the first mapping with this function name, if any."""
        for mapping in self._mappings:
            if mapping.function_name == name:
                return mapping
        return None

    def resolve(self, name: str) -> ToolMapping:
        """Like ``find_by_function_name`` but raises for unknown names."""
        mapping = self.find_by_function_name(name)
        if mapping is None:
            raise UnresolvedFunctionError(name)
        return mapping


def _warn_on_collisions(mappings: Iterable[ToolMapping]) -> None:
    # First registration wins lookups; later ones are unreachable
    seen = {}
    for mapping in mappings:
        first = seen.setdefault(mapping.function_name, mapping)
        if first is not mapping:
            logger.warning(
                "Function name %s for %s/%s collides with %s/%s and will be unreachable",
                mapping.function_name, mapping.server_name, mapping.tool_name,
                first.server_name, first.tool_name,
            )

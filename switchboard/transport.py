"""MCP streamable-HTTP transport: JSON-RPC 2.0 requests over httpx.

Each request is a POST to the server endpoint. The server answers either
with a single JSON body or with an SSE stream that carries the JSON-RPC
response as one of its ``data:`` events. The ``Mcp-Session-Id`` header
returned by ``initialize`` is echoed on every later request and the session
is ended with a DELETE on close.
"""

import itertools
import json
import logging
from typing import Any, Dict, Iterator, Optional

import httpx

from .errors import TransportError

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-03-26"
SESSION_HEADER = "Mcp-Session-Id"


def iter_sse_data(body: str) -> Iterator[str]:
    """Yield the joined ``data:`` payload of each event in an SSE body."""
    data_lines: list[str] = []
    for line in body.splitlines():
        if not line:
            if data_lines:
                yield "\n".join(data_lines)
                data_lines = []
            continue
        if line.startswith("data:"):
            value = line[5:]
            if value.startswith(" "):
                value = value[1:]
            data_lines.append(value)
    if data_lines:
        yield "\n".join(data_lines)


class StreamableHTTPTransport:
    """Synchronous JSON-RPC session with one MCP server."""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None
        self._session_id: Optional[str] = None
        self._ids = itertools.count(1)

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            "MCP-Protocol-Version": PROTOCOL_VERSION,
        }
        if self._session_id:
            headers[SESSION_HEADER] = self._session_id
        return headers

    # JSON-RPC

    def request(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Send a JSON-RPC request and return its ``result`` member."""
        request_id = next(self._ids)
        message: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            message["params"] = params

        response = self._post(message, timeout)
        reply = self._read_reply(response, request_id)

        if "error" in reply:
            err = reply["error"] or {}
            raise TransportError(f"MCP error {err.get('code')}: {err.get('message')}")
        result = reply.get("result")
        if result is None:
            return {}
        if not isinstance(result, dict):
            raise TransportError(f"Malformed {method} result: expected an object, got {result!r}")
        return result

    def notify(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Send a JSON-RPC notification (no reply expected)."""
        message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        self._post(message, timeout)

    def _post(self, message: Dict[str, Any], timeout: Optional[float]) -> httpx.Response:
        kwargs: Dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        logger.debug("-> %s %s", self.url, message.get("method"))
        try:
            response = self._client.post(self.url, json=message, headers=self._headers(), **kwargs)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(f"{message.get('method')} failed: {exc}") from exc

        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self._session_id = session_id
        return response

    def _read_reply(self, response: httpx.Response, request_id: int) -> Dict[str, Any]:
        content_type = response.headers.get("content-type", "")

        if content_type.startswith("text/event-stream"):
            for payload in iter_sse_data(response.text):
                try:
                    event = json.loads(payload)
                except json.JSONDecodeError:
                    continue
                if isinstance(event, dict) and event.get("id") == request_id:
                    return event
            raise TransportError(f"No reply to request {request_id} in event stream")

        try:
            data = response.json()
        except ValueError as exc:
            raise TransportError(f"Malformed JSON-RPC reply: {exc}") from exc

        # Batched replies are a list of response objects
        if isinstance(data, list):
            for item in data:
                if isinstance(item, dict) and item.get("id") == request_id:
                    return item
            raise TransportError(f"No reply to request {request_id} in batch")

        if not isinstance(data, dict):
            raise TransportError(f"Unexpected JSON-RPC reply: {data!r}")
        return data

    # Lifecycle

    def close(self) -> None:
        """End the server session and release the HTTP client."""
        try:
            if self._session_id:
                try:
                    response = self._client.delete(self.url, headers=self._headers())
                except httpx.HTTPError as exc:
                    raise TransportError(f"Session close failed: {exc}") from exc
                # Servers that do not support explicit termination answer 405
                if response.status_code >= 400 and response.status_code not in (404, 405):
                    raise TransportError(
                        f"Session close failed: HTTP {response.status_code}"
                    )
        finally:
            self._session_id = None
            if self._owns_client:
                self._client.close()

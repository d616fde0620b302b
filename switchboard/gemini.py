"""Gemini chat session over the REST ``generateContent`` endpoint."""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

import httpx

from .errors import ModelError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
]


@dataclass
class ModelConfig:
    """Configuration for the Gemini model."""
    api_key: str
    model: str
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    timeout: float = 60.0


@dataclass(frozen=True)
class FunctionCall:
    """A function call requested by the model."""

    name: str
    args: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ModelReply:
    """One model turn: its text (if any) and requested function calls."""

    text: Optional[str]
    function_calls: List[FunctionCall] = field(default_factory=list)
    parts: List[dict] = field(default_factory=list)


def to_parts(content: Union[str, List[dict]]) -> List[dict]:
    """Normalize outbound content into a list of Gemini parts."""
    if isinstance(content, str):
        return [{"text": content}]
    return list(content)


def parse_reply(data: dict) -> ModelReply:
    """Extract text and function calls from a ``generateContent`` body."""
    candidates = data.get("candidates") or []
    if not candidates:
        reason = (data.get("promptFeedback") or {}).get("blockReason")
        raise ModelError(f"Gemini returned no candidates (block reason: {reason})")

    parts = (candidates[0].get("content") or {}).get("parts") or []

    text_parts = []
    function_calls = []
    for part in parts:
        if "text" in part:
            text_parts.append(part["text"])
        elif "functionCall" in part:
            fc = part["functionCall"]
            function_calls.append(FunctionCall(name=fc.get("name", ""), args=fc.get("args") or {}))

    text = "".join(text_parts) if text_parts else None
    return ModelReply(text=text, function_calls=function_calls, parts=parts)


class GeminiModel:
    """A Gemini model configured with a fixed set of function declarations."""

    def __init__(
        self,
        config: ModelConfig,
        function_declarations: Optional[List[dict]] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.config = config
        self.base_url = config.base_url or DEFAULT_BASE_URL
        self.function_declarations = list(function_declarations or [])
        self.client = client or httpx.Client(timeout=config.timeout)
        # OAuth tokens start with "ya29." and use Bearer auth
        # API keys use ?key= query param
        self._use_bearer = config.api_key.startswith("ya29.")

    def _auth_params(self) -> tuple[dict, dict]:
        """Return (headers, params) for authentication."""
        headers = {"Content-Type": "application/json"}
        if self._use_bearer:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
            return headers, {}
        return headers, {"key": self.config.api_key}

    def build_payload(self, contents: List[dict]) -> dict:
        generation_config: dict[str, Any] = {"temperature": self.config.temperature}
        if self.config.max_tokens:
            generation_config["maxOutputTokens"] = self.config.max_tokens

        payload: dict[str, Any] = {
            "contents": contents,
            "safetySettings": SAFETY_SETTINGS,
            "generationConfig": generation_config,
        }
        if self.function_declarations:
            payload["tools"] = [{"function_declarations": self.function_declarations}]
        return payload

    def generate(self, contents: List[dict]) -> ModelReply:
        """Run one ``generateContent`` call over the given history."""
        url = f"{self.base_url}/{self.config.model}:generateContent"
        headers, params = self._auth_params()
        try:
            response = self.client.post(
                url, json=self.build_payload(contents), params=params, headers=headers,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ModelError(f"Gemini request failed: {e}") from e
        return parse_reply(data)

    def start_chat(self) -> "ChatSession":
        return ChatSession(self)

    def close(self) -> None:
        self.client.close()


class ChatSession:
    """Multi-turn conversation that keeps the ``contents`` history."""

    def __init__(self, model: GeminiModel):
        self.model = model
        self.history: List[dict] = []

    def send_message(self, content: Union[str, List[dict]]) -> ModelReply:
        """Send a user turn (text, attachment parts, or function responses).

        The history only grows once the model has answered, so a failed
        request can be retried without leaving a dangling user turn.
        """
        turn = {"role": "user", "parts": to_parts(content)}
        reply = self.model.generate(self.history + [turn])

        self.history.append(turn)
        if reply.parts:
            self.history.append({"role": "model", "parts": reply.parts})
        return reply

    def rollback(self, length: int) -> None:
        """Drop every turn after the first ``length`` ones."""
        del self.history[length:]

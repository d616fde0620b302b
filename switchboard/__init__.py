"""Switchboard - chat with Gemini using tools discovered from MCP servers."""

__version__ = "0.1.0"

from .client import RemoteToolClient, RemoteToolDescriptor, Timeouts
from .dispatch import DispatchResult, ToolDispatcher
from .gemini import ChatSession, GeminiModel, ModelConfig
from .registry import ServerDescriptor, ToolMapping, ToolRegistry, derive_function_name
from .schema import translate_schema

__all__ = [
    "RemoteToolClient",
    "RemoteToolDescriptor",
    "Timeouts",
    "DispatchResult",
    "ToolDispatcher",
    "ChatSession",
    "GeminiModel",
    "ModelConfig",
    "ServerDescriptor",
    "ToolMapping",
    "ToolRegistry",
    "derive_function_name",
    "translate_schema",
]

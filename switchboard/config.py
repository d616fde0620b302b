"""Configuration management for Switchboard.

Settings and the list of MCP servers live in one YAML file. Secrets are
referenced as ``${VAR_NAME}`` and resolved from the environment (which the
CLI first populates from a ``.env`` file).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import yaml

from .client import Timeouts
from .dispatch import MAX_ROUNDS
from .errors import ServerConfigError, SettingsError
from .gemini import DEFAULT_BASE_URL, ModelConfig
from .registry import ServerDescriptor

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.config/switchboard/config.yaml"


def validate_url(url: str) -> None:
    """Reject anything that is not an absolute http(s) URL with a host."""
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ServerConfigError(f"Invalid URL format: {url}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ServerConfigError(f"Invalid URL format: {url}")


class ConfigManager:
    """Manage Switchboard configuration from YAML."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
        self.data = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            self._create_default_config()
        return self._read_yaml()

    def _read_yaml(self) -> Dict[str, Any]:
        """Read and parse YAML file."""
        try:
            with open(self.config_path, "r") as f:
                content = yaml.safe_load(f)
                return content or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Error reading config %s: %s", self.config_path, e)
            return {}

    def _create_default_config(self) -> None:
        """Create default configuration file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        default_config = {
            "servers": [],
            "default_server": None,
            "model": {
                "api_key": "${GEMINI_API_KEY}",
                "name": "${GEMINI_MODEL_NAME}",
                "base_url": DEFAULT_BASE_URL,
                "temperature": 0.7,
                "max_tokens": None,
            },
            "timeouts": {
                "connect": Timeouts.connect,
                "list_tools": Timeouts.list_tools,
                "call_tool": Timeouts.call_tool,
                "model": 60.0,
            },
            "dispatch": {
                "max_rounds": MAX_ROUNDS,
            },
        }

        with open(self.config_path, "w") as f:
            yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)

    def _resolve_env_var(self, value: Any) -> str:
        """Resolve environment variable references like ${VAR_NAME}."""
        if not isinstance(value, str):
            return "" if value is None else str(value)
        if not value.startswith("${") or not value.endswith("}"):
            return value

        var_name = value[2:-1]
        return os.getenv(var_name, "")

    def get_model_config(self) -> ModelConfig:
        """Build the Gemini configuration.

        Raises:
            SettingsError: The API key or model name is not set.
        """
        model_data = self.data.get("model") or {}
        timeouts = self.data.get("timeouts") or {}

        api_key = self._resolve_env_var(model_data.get("api_key", "${GEMINI_API_KEY}"))
        if not api_key:
            raise SettingsError("GEMINI_API_KEY is not defined. Please set it in your .env file.")

        model = self._resolve_env_var(model_data.get("name", "${GEMINI_MODEL_NAME}"))
        if not model:
            raise SettingsError("GEMINI_MODEL_NAME is not defined. Please set it in your .env file.")

        return ModelConfig(
            api_key=api_key,
            model=model,
            base_url=model_data.get("base_url"),
            temperature=model_data.get("temperature", 0.7),
            max_tokens=model_data.get("max_tokens"),
            timeout=timeouts.get("model") or 60.0,
        )

    def get_timeouts(self) -> Timeouts:
        """Get per-operation timeouts for tool servers."""
        config = self.data.get("timeouts") or {}
        defaults = Timeouts()
        return Timeouts(
            connect=config.get("connect") or defaults.connect,
            list_tools=config.get("list_tools") or defaults.list_tools,
            call_tool=config.get("call_tool") or defaults.call_tool,
        )

    def get_max_rounds(self) -> int:
        """Get the tool-calling round limit for one user turn."""
        return (self.data.get("dispatch") or {}).get("max_rounds") or MAX_ROUNDS

    def save(self) -> None:
        """Save configuration to file."""
        with open(self.config_path, "w") as f:
            yaml.dump(self.data, f, default_flow_style=False, sort_keys=False)


class ServerStore:
    """The configured MCP servers, persisted through a ``ConfigManager``."""

    def __init__(self, config: ConfigManager):
        self.config = config

    def _entries(self) -> List[Dict[str, str]]:
        return list(self.config.data.get("servers") or [])

    def _default_name(self) -> Optional[str]:
        return self.config.data.get("default_server")

    def list(self) -> List[ServerDescriptor]:
        """All servers in insertion order, with the default marked."""
        default_name = self._default_name()
        return [
            ServerDescriptor(name=s["name"], url=s["url"], is_default=s["name"] == default_name)
            for s in self._entries()
        ]

    def get(self, name: str) -> Optional[ServerDescriptor]:
        for server in self.list():
            if server.name == name:
                return server
        return None

    def default(self) -> Optional[ServerDescriptor]:
        default_name = self._default_name()
        return self.get(default_name) if default_name else None

    def add(self, name: str, url: str) -> ServerDescriptor:
        """Add a server. The first server added becomes the default."""
        servers = self._entries()
        if any(s["name"] == name for s in servers):
            raise ServerConfigError(
                f'Server with name "{name}" already exists. Choose a different name.'
            )
        validate_url(url)

        servers.append({"name": name, "url": url})
        self.config.data["servers"] = servers
        if len(servers) == 1:
            self.config.data["default_server"] = name
        self.config.save()
        return self.get(name)

    def remove(self, name: str) -> None:
        """Remove a server. If it was the default, the next one takes over."""
        servers = self._entries()
        if not any(s["name"] == name for s in servers):
            raise ServerConfigError(f'Server "{name}" not found.')

        servers = [s for s in servers if s["name"] != name]
        self.config.data["servers"] = servers
        if self._default_name() == name:
            self.config.data["default_server"] = servers[0]["name"] if servers else None
        self.config.save()

    def set_default(self, name: str) -> None:
        if not any(s["name"] == name for s in self._entries()):
            raise ServerConfigError(f'Server "{name}" not found. Cannot set as default.')
        self.config.data["default_server"] = name
        self.config.save()

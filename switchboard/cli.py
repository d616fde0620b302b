"""Switchboard CLI - chat with Gemini using tools discovered from MCP servers."""

from typing import Optional

import click
from dotenv import load_dotenv

from .attachments import process_user_input
from .client import RemoteToolClient
from .config import ConfigManager, ServerStore
from .dispatch import DispatchResult, ToolDispatcher
from .errors import ServerConfigError, SettingsError
from .gemini import ChatSession, GeminiModel, ModelConfig
from .registry import ClientFactory, ToolRegistry
from .ui import (
    PALETTE,
    console,
    render_error,
    render_header,
    render_info,
    render_response,
    render_servers_table,
    render_success,
    render_tool_calls,
    render_warning,
    setup_logging,
)


class SwitchboardApp:
    """One chat session: discovered tools, the Gemini session, and dispatch."""

    def __init__(
        self,
        config: ConfigManager,
        model_config: ModelConfig,
        client_factory: ClientFactory = RemoteToolClient,
    ):
        self.config = config
        self.store = ServerStore(config)
        self.model_config = model_config
        timeouts = config.get_timeouts()
        self.registry = ToolRegistry(client_factory, timeouts=timeouts)
        self.dispatcher = ToolDispatcher(
            self.registry,
            client_factory,
            max_rounds=config.get_max_rounds(),
            timeouts=timeouts,
        )
        self.model: Optional[GeminiModel] = None
        self.chat_session: Optional[ChatSession] = None

    def start(self) -> None:
        """Discover tools on every configured server, then open the chat."""
        servers = self.store.list()
        if not servers:
            render_warning("No MCP servers configured. Gemini tool calling will be disabled.")
            render_warning("Use 'servers add <name> <url>' to add MCP servers.")

        render_info("Discovering tools from configured MCP servers...")
        self.registry.discover(servers)

        declarations = self.registry.function_declarations()
        if declarations:
            render_success(f"{len(declarations)} tools configured for Gemini.")
        else:
            render_warning(
                "No tools discovered or mapped. Gemini will operate without tool calling."
            )

        self.model = GeminiModel(self.model_config, declarations)
        self.chat_session = self.model.start_chat()

    def ask(self, user_input: str) -> DispatchResult:
        """Send one user turn through the dispatch loop and render the answer."""
        if self.chat_session is None:
            self.start()

        message = process_user_input(user_input)
        result = self.dispatcher.send(self.chat_session, message)

        render_tool_calls(result.tool_calls)
        render_response(result.text)
        return result

    def run(self) -> None:
        """Interactive chat loop."""
        self.start()
        render_header("SWITCHBOARD CHAT", f"Model: {self.model_config.model}")
        console.print("\nType 'quit' or 'exit' to leave\n", style=f"dim {PALETTE.accent}")

        try:
            while True:
                prompt = click.prompt("You", default="", show_default=False)

                if prompt.strip().lower() in ["quit", "exit"]:
                    break

                if not prompt.strip():
                    continue

                self.ask(prompt)
        except (KeyboardInterrupt, click.Abort):
            console.print("\n\nInterrupted.", style="dim red")
        finally:
            self.close()
            console.print("Chat session ended.", style=f"dim {PALETTE.secondary}")

    def close(self) -> None:
        if self.model is not None:
            self.model.close()


def _store(ctx: click.Context) -> ServerStore:
    return ServerStore(ConfigManager(ctx.obj.get("config_path")))


# CLI Commands
@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False),
    envvar="SWITCHBOARD_CONFIG",
    help="Path to the YAML config file",
)
@click.option("--verbose", "-v", is_flag=True, help="Show discovery and tool-call logs")
@click.pass_context
def cli(ctx, config_path, verbose):
    """SWITCHBOARD - Chat with Gemini using tools from MCP servers.

    Tools are discovered from every configured server when a chat starts.
    """
    load_dotenv()
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.group()
def servers():
    """Manage MCP server configurations for tool discovery and execution."""


@servers.command("add")
@click.argument("name")
@click.argument("url")
@click.pass_context
def servers_add(ctx, name, url):
    """Add an MCP server from which tools can be discovered."""
    store = _store(ctx)
    try:
        server = store.add(name, url)
    except ServerConfigError as e:
        raise click.ClickException(str(e))

    render_success(f'Server "{name}" ({url}) added.')
    if server.is_default:
        render_success(f'Server "{name}" is now the default.')


@servers.command("list")
@click.pass_context
def servers_list(ctx):
    """List all configured MCP servers."""
    configured = _store(ctx).list()
    if not configured:
        render_warning("No MCP servers configured. Use 'servers add <name> <url>' to add one.")
        return

    console.print("Configured MCP servers (for tool discovery):", style="bold")
    render_servers_table(configured)


@servers.command("remove")
@click.argument("name")
@click.pass_context
def servers_remove(ctx, name):
    """Remove an MCP server configuration."""
    store = _store(ctx)
    previous_default = store.default()
    try:
        store.remove(name)
    except ServerConfigError as e:
        raise click.ClickException(str(e))

    render_success(f'Server "{name}" removed.')
    if previous_default and previous_default.name == name:
        new_default = store.default()
        if new_default:
            render_info(f'Default server was removed. New default set to "{new_default.name}".')
        else:
            render_info("Default server was removed. No servers left to set as default.")


@servers.command("set-default")
@click.argument("name")
@click.pass_context
def servers_set_default(ctx, name):
    """Set the default MCP server."""
    try:
        _store(ctx).set_default(name)
    except ServerConfigError as e:
        raise click.ClickException(str(e))
    render_success(f'Server "{name}" is now the default.')


@cli.command()
@click.pass_context
def chat(ctx):
    """Start an interactive chat with tools from all configured servers."""
    config = ConfigManager(ctx.obj.get("config_path"))
    try:
        model_config = config.get_model_config()
    except SettingsError as e:
        render_error(str(e))
        raise click.ClickException("Missing Gemini settings")

    SwitchboardApp(config, model_config).run()


if __name__ == "__main__":
    cli()

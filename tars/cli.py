#!/usr/bin/env python3
"""Command line entry point: run the session server, attach to it, or chat in-process."""

import argparse
import asyncio
import os
import sys
import threading
from collections.abc import Awaitable

import httpx
import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

from tars import __version__
from tars.clients.anthropic import AnthropicClient, AnthropicConfig
from tars.clients.server import ServerClientError, SessionClient
from tars.config import (
    DEFAULT_LISTEN,
    DEFAULT_PORT,
    DEFAULT_SERVER_URL,
    ServerSettings,
    TokenNotFoundError,
    resolve_client_token,
    resolve_server_token,
    token_path,
)
from tars.main import create_app
from tars.models.events import DoneEvent
from tars.models.session import Conversation
from tars.services.agent import AgentService
from tars.ui import EventRenderer
from tars.utils.logging import LogConfig, get_logger, setup_logging

logger = get_logger(__name__)

COMMANDS = ("server", "chat", "local")
QUIT_COMMANDS = ("/quit", "/exit", "quit", "exit")
LOCAL_HOSTS = ("127.0.0.1", "localhost", "::1")


def _env_int(name: str) -> int | None:
    value = os.getenv(name)
    return int(value) if value else None


def local_server_address(base_url: str) -> tuple[str, int] | None:
    """Host and port of a plain-HTTP loopback server URL, None for anything else."""
    try:
        url = httpx.URL(base_url.strip())
    except httpx.InvalidURL:
        return None
    if url.scheme != "http" or url.host not in LOCAL_HOSTS:
        return None
    return url.host, url.port or DEFAULT_PORT


def format_listen(host: str, port: int) -> str:
    return f"[{host}]:{port}" if ":" in host else f"{host}:{port}"


async def is_server_reachable(host: str, port: int) -> bool:
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=1.0)
    except (OSError, TimeoutError):
        return False
    writer.close()
    await writer.wait_closed()
    return True


async def wait_for_server(host: str, port: int, attempts: int = 20, delay: float = 0.1) -> None:
    for _ in range(attempts):
        if await is_server_reachable(host, port):
            return
        await asyncio.sleep(delay)
    raise ServerClientError("Server did not start listening in time")


def spawn_server(settings: ServerSettings) -> threading.Thread:
    """Run a session server on a daemon thread for the lifetime of this process."""
    app = create_app(settings)
    server = uvicorn.Server(uvicorn.Config(app, host=settings.host, port=settings.port, log_level="warning"))
    thread = threading.Thread(target=server.run, name="tars-server", daemon=True)
    thread.start()
    return thread


def run_server(args: argparse.Namespace) -> None:
    """Serve the session API until interrupted."""
    token = resolve_server_token(args.token)
    settings = ServerSettings(auth_token=token, listen=args.listen, max_turns=args.max_turns)
    app = create_app(settings)

    logger.info(f"tars server listening on http://{settings.listen}")
    logger.info(f"auth token stored at {token_path()}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="info")


class ChatCLI:
    """Interactive chat interface, attached to a server or running the agent in-process."""

    def __init__(self, console: Console | None = None):
        """Initialize chat CLI."""
        self.console = console or Console()
        self.renderer = EventRenderer(self.console)

    async def run_remote(self, args: argparse.Namespace) -> None:
        """Chat through a session on a tars server."""
        client = await self.connect(args)
        self._show_banner(f"Session {client.session_id} on {client.base_url}")
        try:
            await self._chat_remote(client)
        finally:
            await client.aclose()

    async def connect(self, args: argparse.Namespace) -> SessionClient:
        """Create a session, starting a local server first when none is listening."""
        token = args.token
        address = local_server_address(args.server)

        if address is not None and not await is_server_reachable(*address):
            if not os.getenv("ANTHROPIC_API_KEY"):
                raise ValueError("ANTHROPIC_API_KEY environment variable not set; cannot start server")
            token = resolve_server_token(token)
            settings = ServerSettings(auth_token=token, listen=format_listen(*address), max_turns=args.max_turns)
            spawn_server(settings)
            await wait_for_server(*address)
            self.console.print(f"[dim]Started a local tars server on {settings.listen}[/dim]")

        return await SessionClient.connect(args.server, resolve_client_token(token))

    async def _chat_remote(self, client: SessionClient) -> None:
        idle = asyncio.Event()
        idle.set()
        connected = asyncio.Event()

        async def follow_stream() -> None:
            async for event in client.stream_events(connected):
                self.renderer.render(event)
                if isinstance(event, DoneEvent):
                    idle.set()

        stream_task = asyncio.create_task(follow_stream(), name="tars-stream")
        try:
            await self._wait_unless_stream_ends(connected.wait(), stream_task)
            while True:
                await self._wait_unless_stream_ends(idle.wait(), stream_task)
                user_input = await self._prompt()
                if user_input is None:
                    break
                if user_input.strip().lower() == "/clear":
                    self.console.print("[yellow]/clear is only available in local mode[/yellow]")
                    continue

                idle.clear()
                try:
                    await client.send_message(user_input)
                except ServerClientError as e:
                    self.console.print(f"[red]❌ {e}[/red]")
                    idle.set()
        finally:
            stream_task.cancel()
            await asyncio.gather(stream_task, return_exceptions=True)

    async def _wait_unless_stream_ends(self, waiting: Awaitable[object], stream_task: asyncio.Task[None]) -> None:
        """Wait for ``waiting``, failing if the event stream stops first."""
        waiter = asyncio.ensure_future(waiting)
        done, _ = await asyncio.wait({waiter, stream_task}, return_when=asyncio.FIRST_COMPLETED)
        if waiter in done:
            return

        waiter.cancel()
        error = stream_task.exception()
        if isinstance(error, httpx.HTTPError):
            raise ServerClientError(f"Lost connection to the server: {error}") from error
        if error is not None:
            raise error
        raise ServerClientError("The server closed the event stream")

    async def run_local(self, args: argparse.Namespace) -> None:
        """Chat with the agent running in this process."""
        agent = AgentService(AnthropicClient(config=AnthropicConfig.from_env()), max_turns=args.max_turns)
        conversation = Conversation()
        self._show_banner("Local mode, the agent runs in this process")

        while True:
            user_input = await self._prompt()
            if user_input is None:
                break
            if user_input.strip().lower() == "/clear":
                conversation = Conversation()
                self.console.print("[yellow]🔄 Conversation cleared[/yellow]")
                continue

            await agent.run(conversation, user_input, self.renderer.render)

    async def _prompt(self) -> str | None:
        """Read the next message, handling /help and quitting. None means quit."""
        while True:
            try:
                user_input = await asyncio.to_thread(Prompt.ask, "\n[bold cyan]You[/bold cyan]", console=self.console)
            except EOFError:
                return None

            command = user_input.strip().lower()
            if command in QUIT_COMMANDS:
                return None
            if command == "/help":
                self._show_help()
                continue
            if not command:
                continue
            return user_input

    def _show_banner(self, subtitle: str) -> None:
        self.console.print(
            Panel.fit(
                f"[bold blue]tars {__version__}[/bold blue]\n"
                f"{subtitle}\n"
                "Commands: /help, /clear, /quit",
                border_style="blue",
            )
        )

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /clear - Start a fresh conversation (local mode)
• /quit or /exit - Exit the chat

[bold]Tools:[/bold]
• read_file - read a file in the working directory
• list_files - list a directory
• edit_file - replace text in a file, or create it
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Help[/cyan]", border_style="cyan"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tars", description="Terminal-based agent")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    server = subparsers.add_parser("server", help="Run the session server")
    server.add_argument("--listen", default=os.getenv("TARS_LISTEN", DEFAULT_LISTEN), help="host:port to bind")
    server.add_argument("--token", default=os.getenv("TARS_TOKEN"), help="Shared bearer token")
    server.add_argument("--max-turns", type=int, default=_env_int("TARS_MAX_TURNS"), help="Model calls per run")

    chat = subparsers.add_parser("chat", help="Attach to a session server (default)")
    chat.add_argument("--server", default=os.getenv("TARS_SERVER", DEFAULT_SERVER_URL), help="Server base URL")
    chat.add_argument("--token", default=os.getenv("TARS_TOKEN"), help="Shared bearer token")
    chat.add_argument(
        "--max-turns",
        type=int,
        default=_env_int("TARS_MAX_TURNS"),
        help="Model calls per run, for a server started by this client",
    )

    local = subparsers.add_parser("local", help="Run the agent in this process")
    local.add_argument("--max-turns", type=int, default=_env_int("TARS_MAX_TURNS"), help="Model calls per run")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the tars CLI."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or (argv[0] not in COMMANDS and argv[0] not in ("-h", "--help", "--version")):
        argv.insert(0, "chat")
    args = build_parser().parse_args(argv)

    if args.command == "server":
        setup_logging(LogConfig(level=os.getenv("LOG_LEVEL", "INFO")))
        try:
            run_server(args)
        except ValueError as e:
            logger.error(str(e))
            sys.exit(1)
        return

    setup_logging(LogConfig(level=os.getenv("LOG_LEVEL", "WARNING"), stream="stderr"))
    cli = ChatCLI()
    try:
        if args.command == "local":
            asyncio.run(cli.run_local(args))
        else:
            asyncio.run(cli.run_remote(args))
    except KeyboardInterrupt:
        pass
    except (ServerClientError, TokenNotFoundError, ValueError) as e:
        cli.console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)
    cli.console.print("\n[yellow]👋 Goodbye![/yellow]")


if __name__ == "__main__":
    main()

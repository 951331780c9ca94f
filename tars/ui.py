"""Terminal rendering of stream events."""

import json
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from tars.models.events import (
    AssistantEvent,
    DoneEvent,
    ErrorEvent,
    InfoEvent,
    StreamEvent,
    ToolCallEvent,
    ToolResultEvent,
)

TOOL_INPUT_LIMIT = 200
TOOL_RESULT_LIMIT = 300


def truncate(value: str, limit: int, suffix: str) -> str:
    if len(value) <= limit:
        return value
    return value[:limit] + suffix


def format_tool_input(value: Any) -> str:
    try:
        rendered = json.dumps(value, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        rendered = str(value)
    return truncate(rendered, TOOL_INPUT_LIMIT, "...\n[truncated]")


class EventRenderer:
    """Prints stream events to a rich console."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def render(self, event: StreamEvent) -> None:
        if isinstance(event, AssistantEvent):
            self.console.print(
                Panel(
                    Markdown(event.text),
                    title="[bold yellow]Claude[/bold yellow]",
                    title_align="left",
                    border_style="yellow",
                    padding=(0, 1),
                )
            )
        elif isinstance(event, ToolCallEvent):
            self.console.print(Text(f"tool: {event.name}(", style="bold green"))
            self.console.print(Text(format_tool_input(event.input), style="green"), overflow="fold")
            self.console.print(Text(")", style="bold green"))
        elif isinstance(event, ToolResultEvent):
            style = "red" if event.is_error else "cyan"
            self.console.print(Text("→ Result:", style=f"bold {style}"))
            body = truncate(event.content, TOOL_RESULT_LIMIT, "...\n[output truncated]")
            self.console.print(Text(body, style=style), overflow="fold")
        elif isinstance(event, InfoEvent):
            self.console.print(Text(f"ℹ {event.message}", style="italic bright_black"))
        elif isinstance(event, ErrorEvent):
            self.console.print(Text(f"❌ Error: {event.message}", style="red"))
        elif isinstance(event, DoneEvent):
            self.console.print(Text("ℹ Done", style="italic bright_black"))

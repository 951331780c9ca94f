"""Tests for the command line helpers and event rendering."""

import io

import pytest
from rich.console import Console

from tars.cli import build_parser, format_listen, local_server_address
from tars.models.events import AssistantEvent, DoneEvent, ErrorEvent, InfoEvent, ToolCallEvent, ToolResultEvent
from tars.ui import TOOL_INPUT_LIMIT, TOOL_RESULT_LIMIT, EventRenderer, format_tool_input, truncate


@pytest.fixture
def output():
    """Renderer writing to an in-memory console."""
    buffer = io.StringIO()
    renderer = EventRenderer(Console(file=buffer, width=120, color_system=None))
    return renderer, buffer


class TestLocalServerAddress:
    """Deciding whether a server URL may be started locally."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("http://127.0.0.1:7331", ("127.0.0.1", 7331)),
            ("http://localhost:8000/", ("localhost", 8000)),
            ("http://[::1]:9000", ("::1", 9000)),
            ("http://127.0.0.1", ("127.0.0.1", 7331)),
        ],
    )
    def test_loopback(self, url, expected):
        assert local_server_address(url) == expected

    @pytest.mark.parametrize("url", ["https://127.0.0.1:7331", "http://example.com:7331", "http://10.0.0.5:7331"])
    def test_not_local(self, url):
        assert local_server_address(url) is None

    def test_format_listen(self):
        assert format_listen("127.0.0.1", 7331) == "127.0.0.1:7331"
        assert format_listen("::1", 7331) == "[::1]:7331"


class TestParser:
    """Command line arguments."""

    def test_server_defaults(self, monkeypatch):
        for name in ("TARS_LISTEN", "TARS_TOKEN", "TARS_MAX_TURNS"):
            monkeypatch.delenv(name, raising=False)

        args = build_parser().parse_args(["server"])

        assert args.listen == "127.0.0.1:7331"
        assert args.token is None
        assert args.max_turns is None

    def test_chat_reads_environment(self, monkeypatch):
        monkeypatch.setenv("TARS_SERVER", "http://127.0.0.1:9999")
        monkeypatch.setenv("TARS_TOKEN", "from-env")
        monkeypatch.setenv("TARS_MAX_TURNS", "5")

        args = build_parser().parse_args(["chat"])

        assert args.server == "http://127.0.0.1:9999"
        assert args.token == "from-env"
        assert args.max_turns == 5

    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("TARS_TOKEN", "from-env")
        args = build_parser().parse_args(["chat", "--token", "flag", "--max-turns", "3"])
        assert args.token == "flag"
        assert args.max_turns == 3


class TestEventRenderer:
    """Rendering stream events."""

    def test_assistant(self, output):
        renderer, buffer = output
        renderer.render(AssistantEvent(text="**Hello** there"))
        text = buffer.getvalue()
        assert "Claude" in text
        assert "Hello there" in text

    def test_tool_call(self, output):
        renderer, buffer = output
        renderer.render(ToolCallEvent(name="read_file", input={"path": "main.py"}))
        text = buffer.getvalue()
        assert "tool: read_file(" in text
        assert '"path": "main.py"' in text

    def test_tool_result_truncated(self, output):
        renderer, buffer = output
        renderer.render(ToolResultEvent(content="x" * 1000))
        text = buffer.getvalue()
        assert "→ Result:" in text
        assert "[output truncated]" in text
        assert text.count("x") == TOOL_RESULT_LIMIT

    @pytest.mark.parametrize(
        "event,expected",
        [
            (ErrorEvent(message="API error: 500 - boom"), "❌ Error: API error: 500 - boom"),
            (InfoEvent(message="thinking"), "ℹ thinking"),
            (DoneEvent(), "ℹ Done"),
        ],
    )
    def test_status_lines(self, output, event, expected):
        renderer, buffer = output
        renderer.render(event)
        assert expected in buffer.getvalue()


def test_truncate():
    assert truncate("short", 10, "...") == "short"
    assert truncate("abcdef", 3, "...") == "abc..."


def test_format_tool_input_truncates():
    rendered = format_tool_input({"new_str": "y" * 500})
    assert rendered.endswith("...\n[truncated]")
    assert len(rendered) == TOOL_INPUT_LIMIT + len("...\n[truncated]")

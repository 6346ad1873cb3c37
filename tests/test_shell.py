from __future__ import annotations

import asyncio
import io

import pytest
from rich.console import Console

from aironin_browse.errors import ConnectionLost, LaunchError
from aironin_browse.models import Point, SessionState
from aironin_browse.shell import InteractiveShell


def _scripted(lines: list[str]):
    pending = list(lines)

    async def read_line(prompt: str) -> str:
        if not pending:
            raise EOFError
        return pending.pop(0)

    return read_line


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def shell(make_session, output: io.StringIO) -> InteractiveShell:
    console = Console(file=output, markup=False, width=200, color_system=None)
    return InteractiveShell(make_session, console)


def test_launch_starts_session_on_first_use(shell, drivers, output) -> None:
    asyncio.run(shell.run(_scripted(["launch https://example.com", "exit"])))

    text = output.getvalue()
    assert "Navigated successfully" in text
    assert "Current URL: https://example.com/" in text
    assert "Goodbye!" in text
    assert len(drivers.drivers) == 1
    assert drivers.last.stopped is True


def test_actions_are_forwarded_to_session(shell, drivers, output) -> None:
    script = [
        "launch https://example.com",
        "click 10,20",
        "hover 30,40",
        "type hello   world",
        "scroll down",
        "resize 800,400",
        "quit",
    ]

    asyncio.run(shell.run(_scripted(script)))

    calls = drivers.last.calls
    assert ("click", Point(10, 20)) in calls
    assert ("hover", Point(30, 40)) in calls
    assert ("type", "hello   world") in calls
    assert ("scroll", 600) in calls
    text = output.getvalue()
    assert "Scrolled down successfully" in text
    assert "Resized successfully" in text


def test_actions_require_launched_browser(shell, drivers, output) -> None:
    asyncio.run(shell.run(_scripted(["click 10,20", "exit"])))

    assert "Browser not launched" in output.getvalue()
    assert drivers.drivers == []


def test_missing_arguments_are_reported(shell, output) -> None:
    script = ["launch", "click", "type", "scroll left", "hover", "resize"]

    asyncio.run(shell.run(_scripted(script)))

    text = output.getvalue()
    assert "URL required" in text
    assert "Coordinates required (x,y format)" in text
    assert "Text required" in text
    assert "Direction required (up or down)" in text
    assert "Size required (width,height format)" in text


def test_unknown_command_keeps_shell_running(shell, output) -> None:
    keep_going = asyncio.run(shell.handle("fly away"))

    assert keep_going is True
    assert "Unknown command: fly" in output.getvalue()


def test_invalid_input_reports_error_and_continues(shell, drivers, output) -> None:
    asyncio.run(shell.run(_scripted(["launch https://example.com", "click nowhere", "click 1,2"])))

    assert "Coordinates must be in x,y format" in output.getvalue()
    assert ("click", Point(1, 2)) in drivers.last.calls


def test_close_then_launch_uses_new_session(shell, drivers, output) -> None:
    script = ["launch https://example.com", "close", "launch https://example.org"]

    asyncio.run(shell.run(_scripted(script)))

    assert len(drivers.drivers) == 2
    assert drivers.drivers[0].stopped is True
    assert "Browser closed" in output.getvalue()


def test_connection_loss_is_reported_and_recoverable(shell, drivers, output) -> None:
    async def scenario():
        await shell.handle("launch https://example.com")
        drivers.last.action_error = ConnectionLost("browser terminated")
        await shell.handle("click 1,1")
        assert shell.session is not None
        assert shell.session.state is SessionState.CLOSED
        await shell.handle("launch https://example.com")

    asyncio.run(scenario())

    assert "Browser connection lost" in output.getvalue()
    assert len(drivers.drivers) == 2
    assert shell.session.state is SessionState.READY


def test_failed_launch_is_retried_on_same_session(shell, drivers, output) -> None:
    drivers.prepare().start_error = LaunchError("no chromium")

    async def scenario():
        await shell.handle("launch https://example.com")
        first = shell.session
        await shell.handle("launch https://example.com")
        return first

    first = asyncio.run(scenario())

    assert "no chromium" in output.getvalue()
    assert shell.session is first
    assert shell.session.state is SessionState.READY


def test_test_command_navigates_to_example(shell, drivers, output) -> None:
    asyncio.run(shell.handle("test"))

    assert ("navigate", "https://example.com") in drivers.last.calls
    assert "Test successful" in output.getvalue()


def test_help_lists_commands(shell, output) -> None:
    asyncio.run(shell.handle("help"))

    text = output.getvalue()
    assert "launch <url>" in text
    assert "scroll <up|down>" in text

"""Command line interface for aironin-browse."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
import yaml
from rich.console import Console

from .browser.discovery import discover_host_url, try_host
from .browser.session import AutomationSession
from .config import DEFAULT_REMOTE_PORT, SessionConfig, load_config
from .errors import BrowseError, PreconditionError
from .factory import build_session
from .models import ActionResult, Point, ScrollDirection, Size
from .shell import InteractiveShell

app = typer.Typer(help="aiRonin Browse CLI with headed Chrome support")
console = Console(markup=False)

SessionAction = Callable[[AutomationSession], Awaitable[ActionResult]]
ScreenshotOption = Annotated[
    Optional[Path],
    typer.Option("--screenshot", "-s", help="Save the resulting screenshot to this path."),
]
PortOption = Annotated[int, typer.Option("--port", "-p", help="Chrome debugging port")]

TROUBLESHOOTING_TIPS = [
    "1. Ensure Playwright's Chromium is installed (playwright install chromium)",
    "2. Check your internet connection for the Chromium download",
    "3. Verify Chrome/Chromium is not already running in debug mode",
    "4. Try running with --remote if you have Chrome running with --remote-debugging-port=9222",
]
CHROME_START_HINTS = [
    "chrome --remote-debugging-port=9222",
    "chromium --remote-debugging-port=9222",
    "google-chrome --remote-debugging-port=9222",
]


@dataclass
class CLIOptions:
    """Global options shared by every command."""

    config_path: Optional[Path] = None
    env_file: Optional[Path] = None
    overrides: dict[str, Any] = field(default_factory=dict)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
    viewport: Annotated[
        Optional[str],
        typer.Option("--viewport", "-V", help="Browser viewport size (e.g., 900x600)."),
    ] = None,
    quality: Annotated[
        Optional[int],
        typer.Option("--quality", "-q", help="Screenshot quality (1-100)."),
    ] = None,
    remote: Annotated[
        Optional[bool],
        typer.Option("--remote/--local", help="Attach to a remote Chrome or launch one locally."),
    ] = None,
    host: Annotated[
        Optional[str],
        typer.Option("--host", help="Remote browser host URL (implies --remote)."),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to YAML configuration."),
    ] = None,
    env_file: Annotated[
        Optional[Path],
        typer.Option("--env-file", help="Path to an .env file with default configuration values."),
    ] = None,
) -> None:
    """Configure logging and collect session options before executing any command."""

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    overrides: dict[str, Any] = {}
    if viewport is not None:
        overrides["viewport"] = viewport
    if quality is not None:
        overrides["screenshot_quality"] = quality
    if host is not None:
        overrides["remote_host"] = host
        if remote is None:
            remote = True
    if remote is not None:
        overrides["remote_enabled"] = remote
    ctx.obj = CLIOptions(config_path=config_path, env_file=env_file, overrides=overrides)


def _load_session_config(ctx: typer.Context) -> SessionConfig:
    options = ctx.obj if isinstance(ctx.obj, CLIOptions) else CLIOptions()
    try:
        return load_config(options.config_path, env_file=options.env_file, **options.overrides)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        console.print(f"❌ Invalid configuration: {exc}", style="red")
        raise typer.Exit(code=1) from exc


def _check_input(parse: Callable[[str], object], value: str) -> None:
    try:
        parse(value)
    except PreconditionError as exc:
        console.print(f"❌ {exc}", style="red")
        raise typer.Exit(code=1) from exc


async def _run_action(config: SessionConfig, action: SessionAction) -> ActionResult:
    async with build_session(config) as session:
        return await action(session)


def _execute(ctx: typer.Context, action: SessionAction, activity: str) -> ActionResult:
    config = _load_session_config(ctx)
    try:
        return asyncio.run(_run_action(config, action))
    except BrowseError as exc:
        console.print(f"❌ Error {activity}: {exc}", style="red")
        raise typer.Exit(code=1) from exc


def _report(result: ActionResult, screenshot_path: Optional[Path] = None) -> None:
    console.print(f"Current URL: {result.current_url}", style="blue")
    console.print(f"Console logs: {result.logs or 'No logs'}", style="blue")
    if result.screenshot:
        console.print(f"Screenshot captured ({_kilobytes(result.screenshot)}KB)", style="blue")
        if screenshot_path is not None:
            screenshot_path.write_bytes(result.screenshot)
            console.print(f"Screenshot saved to {screenshot_path}", style="dim")
    else:
        console.print("No screenshot captured", style="yellow")


def _kilobytes(data: bytes) -> int:
    return round(len(data) / 1024)


@app.command()
def version() -> None:
    """Print the package version."""

    try:
        typer.echo(get_version("aironin-browse"))
    except PackageNotFoundError:  # pragma: no cover - when running from source tree
        typer.echo("0.0.0")


@app.command()
def test(
    ctx: typer.Context,
    url: Annotated[str, typer.Option("--url", "-u", help="Test URL to navigate to")] = "https://example.com",
) -> None:
    """Test browser connection and functionality."""

    config = _load_session_config(ctx)
    console.print("🧪 Testing browser automation...", style="yellow")
    try:
        asyncio.run(_self_test(config, url))
    except BrowseError as exc:
        console.print(f"❌ Test failed: {exc}", style="red")
        console.print("\nTroubleshooting tips:", style="yellow")
        for tip in TROUBLESHOOTING_TIPS:
            console.print(tip, style="dim")
        raise typer.Exit(code=1) from exc
    console.print("\n🎉 All tests passed! Browser automation is working correctly.", style="green")


async def _self_test(config: SessionConfig, url: str) -> None:
    session = build_session(config)
    try:
        console.print("1. Testing browser launch...", style="blue")
        await session.launch()
        console.print("✅ Browser launched successfully", style="green")

        console.print("2. Testing navigation...", style="blue")
        result = await session.navigate(url)
        console.print("✅ Navigation successful", style="green")
        console.print(f"   Current URL: {result.current_url}", style="dim")

        console.print("3. Testing screenshot capture...", style="blue")
        if result.screenshot:
            console.print("✅ Screenshot captured successfully", style="green")
            console.print(f"   Screenshot size: {_kilobytes(result.screenshot)}KB", style="dim")
        else:
            console.print("❌ Screenshot capture failed", style="red")

        console.print("4. Testing console log capture...", style="blue")
        if result.logs:
            count = len([line for line in result.logs.splitlines() if line.strip()])
            console.print("✅ Console logs captured", style="green")
            console.print(f"   Log count: {count}", style="dim")
        else:
            console.print("⚠️  No console logs captured", style="yellow")

        console.print("5. Testing mouse interaction...", style="blue")
        await session.click("100,100")
        console.print("✅ Mouse click successful", style="green")

        console.print("6. Testing keyboard input...", style="blue")
        await session.type("test")
        console.print("✅ Keyboard input successful", style="green")

        console.print("7. Testing scroll...", style="blue")
        await session.scroll_down()
        console.print("✅ Scroll successful", style="green")

        console.print("8. Testing browser close...", style="blue")
        await session.close()
        console.print("✅ Browser closed successfully", style="green")
    finally:
        await session.close()


@app.command()
def launch(
    ctx: typer.Context,
    url: Annotated[str, typer.Argument(help="URL to navigate to")],
    screenshot: ScreenshotOption = None,
) -> None:
    """Launch browser and navigate to URL."""

    result = _execute(ctx, lambda session: session.navigate(url), "launching browser")
    console.print("✅ Browser launched successfully", style="green")
    _report(result, screenshot)


@app.command()
def click(
    ctx: typer.Context,
    coordinates: Annotated[str, typer.Argument(help="Coordinates in format x,y")],
    screenshot: ScreenshotOption = None,
) -> None:
    """Click at coordinates."""

    _check_input(Point.parse, coordinates)
    result = _execute(ctx, lambda session: session.click(coordinates), "clicking")
    console.print("✅ Clicked successfully", style="green")
    _report(result, screenshot)


@app.command("type")
def type_text(
    ctx: typer.Context,
    text: Annotated[str, typer.Argument(help="Text to type")],
    screenshot: ScreenshotOption = None,
) -> None:
    """Type text."""

    result = _execute(ctx, lambda session: session.type(text), "typing")
    console.print("✅ Typed successfully", style="green")
    _report(result, screenshot)


@app.command()
def scroll(
    ctx: typer.Context,
    direction: Annotated[str, typer.Argument(help="Scroll direction (up or down)")],
    screenshot: ScreenshotOption = None,
) -> None:
    """Scroll page."""

    _check_input(ScrollDirection.parse, direction)
    result = _execute(ctx, lambda session: session.scroll(direction), "scrolling")
    console.print(f"✅ Scrolled {direction.strip().lower()} successfully", style="green")
    _report(result, screenshot)


@app.command()
def hover(
    ctx: typer.Context,
    coordinates: Annotated[str, typer.Argument(help="Coordinates in format x,y")],
    screenshot: ScreenshotOption = None,
) -> None:
    """Hover at coordinates."""

    _check_input(Point.parse, coordinates)
    result = _execute(ctx, lambda session: session.hover(coordinates), "hovering")
    console.print("✅ Hovered successfully", style="green")
    _report(result, screenshot)


@app.command()
def resize(
    ctx: typer.Context,
    size: Annotated[str, typer.Argument(help="Size in format width,height")],
    screenshot: ScreenshotOption = None,
) -> None:
    """Resize browser window."""

    _check_input(Size.parse, size)
    result = _execute(ctx, lambda session: session.resize(size), "resizing")
    console.print("✅ Resized successfully", style="green")
    _report(result, screenshot)


@app.command()
def close(ctx: typer.Context) -> None:
    """Close browser."""

    config = _load_session_config(ctx)
    try:
        asyncio.run(_close_browser(config))
    except BrowseError as exc:
        console.print(f"❌ Error closing browser: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    console.print("✅ Browser closed successfully", style="green")


async def _close_browser(config: SessionConfig) -> None:
    session = build_session(config)
    try:
        # A local browser never outlives the command that launched it.
        if config.remote_enabled:
            await session.launch()
    finally:
        await session.close()


@app.command()
def interactive(ctx: typer.Context) -> None:
    """Start interactive mode."""

    config = _load_session_config(ctx)
    shell = InteractiveShell(lambda: build_session(config), console)
    asyncio.run(shell.run())


@app.command("test-connection")
def test_connection(
    ctx: typer.Context,
    port: PortOption = DEFAULT_REMOTE_PORT,
    host: Annotated[
        Optional[str],
        typer.Option("--host", "-h", help="Specific host to test"),
    ] = None,
) -> None:
    """Test connection to Chrome browser (useful for dev containers)."""

    timeout = _load_session_config(ctx).probe_timeout
    console.print("🔍 Testing Chrome browser connection...", style="blue")
    console.print(f"Port: {port}", style="dim")
    try:
        if host:
            console.print(f"Testing specific host: {host}", style="dim")
            if asyncio.run(try_host(host, timeout=timeout)):
                console.print(f"✅ Successfully connected to {host}", style="green")
            else:
                console.print(f"❌ Failed to connect to {host}", style="red")
            return

        console.print("Auto-discovering Chrome instances...", style="dim")
        host_url = asyncio.run(discover_host_url(port, timeout=timeout))
    except ValueError as exc:
        console.print(f"❌ Error testing connection: {exc}", style="red")
        raise typer.Exit(code=1) from exc

    if host_url:
        console.print(f"✅ Auto-discovered and tested connection to Chrome: {host_url}", style="green")
        console.print("You can now use this host with:", style="blue")
        _print_exports(host_url)
    else:
        console.print("❌ No Chrome instances found with remote debugging enabled", style="red")
        console.print("\nTo start Chrome with remote debugging:", style="yellow")
        for hint in CHROME_START_HINTS:
            console.print(hint, style="dim")


@app.command("dev-containers")
def dev_containers(
    ctx: typer.Context,
    port: PortOption = DEFAULT_REMOTE_PORT,
    host: Annotated[
        Optional[str],
        typer.Option("--host", "-h", help="Host machine IP address"),
    ] = None,
) -> None:
    """Setup and test browser automation for dev containers."""

    timeout = _load_session_config(ctx).probe_timeout
    console.print("🐳 Dev Containers Browser Automation Setup", style="blue")
    console.print("This will help you connect to Chrome running on your host machine", style="dim")

    console.print("\n1. Testing current connection...", style="yellow")
    try:
        host_url = asyncio.run(discover_host_url(port, timeout=timeout))
        if host_url:
            console.print(f"✅ Found Chrome at: {host_url}", style="green")
        else:
            console.print("❌ No Chrome found", style="red")
            if host:
                _probe_host_machine(host, port, timeout)
            else:
                _print_host_setup(port)
    except ValueError as exc:
        console.print(f"❌ Error in dev containers setup: {exc}", style="red")
        raise typer.Exit(code=1) from exc

    console.print("\n4. Usage in dev containers:", style="blue")
    for line in [
        "# Set environment variables",
        "export REMOTE_BROWSER_ENABLED=true",
        f"export REMOTE_BROWSER_HOST=http://HOST_IP:{port}",
        "",
        "# Test the connection",
        "aironin-browse test-connection",
        "",
        "# Use browser automation",
        "aironin-browse launch https://example.com",
    ]:
        console.print(line, style="dim", highlight=False)


def _probe_host_machine(host: str, port: int, timeout: float) -> None:
    test_url = f"http://{host}:{port}"
    console.print(f"\n2. Testing provided host: {host}:{port}", style="yellow")
    if asyncio.run(try_host(test_url, timeout=timeout)):
        console.print(f"✅ Successfully connected to {test_url}", style="green")
        console.print("\n3. Environment variables to set:", style="blue")
        _print_exports(test_url)
        return
    console.print(f"❌ Failed to connect to {test_url}", style="red")
    console.print("\nTroubleshooting:", style="yellow")
    console.print(f"1. Make sure Chrome is running on host with --remote-debugging-port={port}", style="dim")
    console.print("2. Check if the host IP is correct", style="dim")
    console.print("3. Verify network connectivity between container and host", style="dim")


def _print_host_setup(port: int) -> None:
    console.print("\n2. To connect to host Chrome:", style="yellow")
    for line in [
        "a) Start Chrome on host with remote debugging:",
        f"   chrome --remote-debugging-port={port}",
        "b) Find your host IP address:",
        "   ip addr show | grep inet",
        "c) Run this command with your host IP:",
        "   aironin-browse dev-containers --host YOUR_HOST_IP",
    ]:
        console.print(line, style="dim", highlight=False)


def _print_exports(host_url: str) -> None:
    console.print(f'export REMOTE_BROWSER_HOST="{host_url}"', style="dim", highlight=False)
    console.print("export REMOTE_BROWSER_ENABLED=true", style="dim", highlight=False)


if __name__ == "__main__":
    app()

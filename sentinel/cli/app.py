"""
Main CLI application for sentinel-core.

Usage:
    sentinel chat [--emergency LEVEL] [--image PATH]...
    sentinel report TRANSCRIPT [--emergency LEVEL] [--image PATH]... [--json]
    sentinel config show
    sentinel version
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from sentinel import __version__
from sentinel.config import SentinelConfig, find_config_path, load_config

app = typer.Typer(name="sentinel", help="Sentinel - Incident Reporting Assistant")
config_app = typer.Typer(help="Configuration management")

app.add_typer(config_app, name="config")

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load(config: Path | None) -> SentinelConfig:
    return load_config(config or find_config_path())


def _build_service(cfg: SentinelConfig, api_key: str | None):
    """Wire the service from config; exits with status 1 on a missing key."""
    from sentinel.errors import ApiKeyMissing
    from sentinel.service import IncidentService

    try:
        return IncidentService.from_config(cfg, api_key=api_key)
    except ApiKeyMissing as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print(f"[dim]Set {cfg.llm.api_key_env} or pass --api-key.[/dim]")
        raise typer.Exit(1)


def _emergency_level(value: str) -> str:
    """Normalize an ``--emergency`` value; exits with status 1 on an unknown level."""
    from sentinel.prompts.catalog import EMERGENCY_LEVELS

    level = value.capitalize()
    if level not in EMERGENCY_LEVELS:
        console.print(f"[red]Unknown emergency level:[/red] {escape(value)}")
        console.print(f"[dim]Choose one of: {', '.join(EMERGENCY_LEVELS)}.[/dim]")
        raise typer.Exit(1)
    return level


def _read_images(paths: list[Path]):
    from sentinel.cli.chat import load_images

    try:
        return load_images(paths)
    except (OSError, ValueError) as e:
        console.print(f"[red]Could not load images:[/red] {e}")
        raise typer.Exit(1)


def _read_transcript(path: Path) -> tuple[list[dict], str | None]:
    """
    Accept either a bare list of turns or
    ``{"turns": [...], "emergency": "<level>"}``.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        return data, None
    return list(data.get("turns", [])), data.get("emergency")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.callback()
def main_options(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
):
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def chat(
    emergency: Optional[str] = typer.Option(None, help="Start in emergency mode (Security, Medical, Fire)"),
    image: Optional[List[Path]] = typer.Option(None, "--image", help="PNG image to attach"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Provider API key"),
    config: Optional[Path] = typer.Option(None, "--config", help="Config file path"),
):
    """Start an interactive incident-reporting chat."""
    from sentinel.cli.chat import ChatHandler
    from sentinel.conversation import Conversation

    level = _emergency_level(emergency) if emergency else None
    cfg = _load(config)
    service = _build_service(cfg, api_key)

    conversation = Conversation()
    if level:
        conversation.escalate(level)
    if image:
        conversation.attach_images(_read_images(image))

    handler = ChatHandler(service, conversation=conversation, console=console)
    asyncio.run(handler.run_loop())


@app.command()
def report(
    transcript: Path = typer.Argument(..., help="JSON transcript of conversation turns"),
    emergency: Optional[str] = typer.Option(None, help="Treat the conversation as an emergency of this level"),
    incident_type: Optional[str] = typer.Option(None, "--type", help="Incident type, e.g. Theft"),
    image: Optional[List[Path]] = typer.Option(None, "--image", help="PNG image to attach"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Provider API key"),
    config: Optional[Path] = typer.Option(None, "--config", help="Config file path"),
):
    """Generate a structured report from a saved conversation."""
    from sentinel.cli.output import OutputFormatter
    from sentinel.conversation import Conversation
    from sentinel.errors import ServiceError

    level = _emergency_level(emergency) if emergency else None
    try:
        turns, saved_level = _read_transcript(transcript)
        conversation = Conversation.from_dicts(turns, emergency_level=level or saved_level)
    except (OSError, ValueError, KeyError) as e:
        console.print(f"[red]Invalid transcript:[/red] {e}")
        raise typer.Exit(1)

    if image:
        conversation.images.extend(_read_images(image))

    cfg = _load(config)
    service = _build_service(cfg, api_key)
    formatter = OutputFormatter(console)

    try:
        result = asyncio.run(service.report_for(conversation, incident_type))
    except ServiceError as e:
        formatter.format_error(e)
        raise typer.Exit(1)

    if as_json:
        console.print_json(json.dumps(result.to_dict()))
    else:
        formatter.format_report(result)


@config_app.command("show")
def config_show(
    config: Optional[Path] = typer.Option(None, "--config", help="Config file path"),
):
    """Show effective config."""
    from sentinel.cli.output import OutputFormatter

    formatter = OutputFormatter(console)
    formatter.format_config(_load(config).to_dict())


@app.command()
def version():
    """Show version."""
    console.print(f"sentinel-core v{__version__}")


def main():
    app()


if __name__ == "__main__":
    main()

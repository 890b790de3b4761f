"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from sentinel.errors import ServiceError
from sentinel.llm.types import ToolCall
from sentinel.reports.models import IncidentStatus, Report

STATUS_COLORS = {
    IncidentStatus.OPEN: "yellow",
    IncidentStatus.IN_PROGRESS: "bold red",
    IncidentStatus.RESOLVED: "green",
}


class OutputFormatter:
    """Rich-based output formatting for the sentinel CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def format_report(self, report: Report) -> None:
        incident = report.to_incident()
        color = STATUS_COLORS.get(incident.status, "white")
        body = (
            f"[bold]{escape(incident.title)}[/bold]\n\n"
            f"[dim]Status:[/dim] [{color}]{incident.status.label}[/{color}]\n"
            f"[dim]Location:[/dim] {escape(incident.location)}\n"
            f"[dim]Created:[/dim] {incident.time:%Y-%m-%d %H:%M %Z}\n"
            f"[dim]Images:[/dim] {len(report.images)}\n\n"
            f"{escape(incident.description or '')}"
        )
        self.console.print(Panel(body, title=f"Incident Report {incident.id[:8]}"))

        if report.user_comments:
            table = Table(title="User Comments", show_header=False)
            table.add_column("Comment")
            for comment in report.user_comments:
                table.add_row(escape(comment))
            self.console.print(table)

    def format_tool_call(self, call: ToolCall) -> None:
        self.console.print(f"\n  [cyan]{call.name}[/cyan]")
        self.console.print(Syntax(json.dumps(call.arguments, indent=2), "json", theme="monokai"))

    def format_error(self, error: BaseException) -> None:
        code = error.code if isinstance(error, ServiceError) else type(error).__name__
        self.console.print(Text.assemble(("Error", "bold red"), f" [{code}]: {error}"))

    def format_config(self, config_dict: dict) -> None:
        self.console.print(Syntax(json.dumps(config_dict, indent=2), "json", theme="monokai"))

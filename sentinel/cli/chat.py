"""Interactive chat session handler."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from sentinel.cli.output import OutputFormatter
from sentinel.conversation import Conversation
from sentinel.errors import ServiceError
from sentinel.llm.tool_call_accumulator import StreamCollector
from sentinel.llm.types import CompletionResult, ImageAttachment, Token, ToolCall
from sentinel.prompts.catalog import (
    EMERGENCY_LEVELS,
    EMERGENCY_TOOL_NAME,
    READINESS_TOOL_NAME,
    REPORT_TOOL_NAME,
)
from sentinel.reports.extractor import extract_report
from sentinel.service import IncidentService


def load_images(paths: list[Path]) -> list[ImageAttachment]:
    """Read PNG files from disk; raises ``ValueError`` for non-PNG data."""
    return [ImageAttachment.png(p.read_bytes()) for p in paths]


class ChatHandler:
    """
    Manages the interactive chat loop.

    Streams assistant replies token by token and reacts to the functions the
    model calls (report readiness, emergency suggestion, report creation).
    """

    def __init__(
        self,
        service: IncidentService,
        conversation: Conversation | None = None,
        console: Console | None = None,
    ) -> None:
        self.service = service
        self.conversation = conversation or Conversation()
        self.console = console or Console()
        self.formatter = OutputFormatter(self.console)
        self._running = True

    async def handle_command(self, command: str) -> bool:
        """
        Handle inline commands. Returns True if the command was handled.
        """
        parts = command.strip().split(None, 1)
        cmd = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else ""

        if cmd == "/quit":
            self._running = False
            self.console.print("[dim]Goodbye.[/dim]")
            return True

        if cmd == "/report":
            await self.generate_report(arg or None)
            return True

        if cmd == "/emergency":
            level = arg.capitalize() if arg else "Security"
            if level not in EMERGENCY_LEVELS:
                self.console.print(f"  [red]Unknown level.[/red] Choose one of: {', '.join(EMERGENCY_LEVELS)}")
                return True
            self.conversation.escalate(level)
            self.console.print(f"  [bold red]{level.upper()} assistance has been requested.[/bold red]")
            return True

        if cmd == "/cancel":
            self.conversation.cancel_emergency()
            self.console.print("  The emergency incident has been recorded on file.")
            return True

        if cmd == "/image":
            try:
                images = load_images([Path(p) for p in arg.split()])
            except (OSError, ValueError) as e:
                self.console.print(f"  [red]Error:[/red] {e}")
                return True
            self.conversation.attach_images(images)
            self.console.print(f"  Attached {len(images)} image(s).")
            return True

        if cmd == "/help":
            self.console.print(
                "  [bold]Commands:[/bold]\n"
                "  /report [type]     - Generate a report from the conversation\n"
                "  /emergency LEVEL   - Switch to emergency mode (Security, Medical, Fire)\n"
                "  /cancel            - Leave emergency mode\n"
                "  /image PATH...     - Attach PNG images to the next message\n"
                "  /quit              - Exit the chat\n"
                "  /help              - Show this help\n"
            )
            return True

        return False

    async def generate_report(self, incident_type: str | None = None) -> None:
        try:
            report = await self.service.report_for(self.conversation, incident_type)
        except ServiceError as e:
            self.formatter.format_error(e)
            return
        self.formatter.format_report(report)

    async def handle_input(self, user_input: str) -> CompletionResult | None:
        """Send the user's message and stream the assistant's reply."""
        self.conversation.add_user(user_input)
        collector = StreamCollector()
        result: CompletionResult | None = None

        try:
            async with aclosing(self.service.chat(self.conversation)) as events:
                async for event in events:
                    if isinstance(event, Token):
                        self.console.print(event.text, end="", markup=False)
                    result = collector.feed(event)
                    if result is not None:
                        break
        except ServiceError as e:
            self.console.print()
            self.formatter.format_error(e)
            return None

        self.console.print()
        if result is None:
            return None
        if result.text_content:
            self.conversation.add_assistant(result.text_content)
        if result.tool_call is not None:
            self.handle_tool_call(result.tool_call)
        return result

    def handle_tool_call(self, call: ToolCall) -> None:
        if call.name == EMERGENCY_TOOL_NAME and call.arguments.get("suggest"):
            level = call.arguments.get("level", "Security")
            reason = call.arguments.get("reason", "")
            self.console.print(
                f"  [bold red]Emergency suggested ({level}).[/bold red] {reason}\n"
                f"  Type /emergency {level} to escalate."
            )
        elif call.name == READINESS_TOOL_NAME:
            if call.arguments.get("isReady"):
                self.console.print("  [green]Report is ready.[/green] Type /report to submit.")
            else:
                missing = call.arguments.get("missingInfo") or "more details"
                self.console.print(f"  [dim]Still needed: {missing}[/dim]")
        elif call.name == REPORT_TOOL_NAME:
            try:
                report = extract_report(
                    call,
                    emergency=self.conversation.is_emergency,
                    images=self.conversation.images,
                    unknown_location=self.service.reports.unknown_location,
                )
            except ServiceError as e:
                self.formatter.format_error(e)
                return
            self.formatter.format_report(report)
        else:
            self.formatter.format_tool_call(call)

    async def run_loop(self) -> None:
        """Main interactive loop."""
        self.console.print(
            "[bold]Sentinel[/bold] - Incident Reporting Assistant\n"
            "[dim]Type /help for commands, /quit to exit.[/dim]\n"
        )
        for turn in self.conversation.turns:
            self.console.print(f"[dim]{turn.role.value}>[/dim] {escape(turn.content)}")

        while self._running:
            try:
                user_input = await asyncio.get_event_loop().run_in_executor(
                    None, lambda: input("you> ").strip()
                )
            except (EOFError, KeyboardInterrupt):
                self.console.print("\n[dim]Goodbye.[/dim]")
                break

            if not user_input:
                continue

            if user_input.startswith("/"):
                handled = await self.handle_command(user_input)
                if handled:
                    continue

            self.console.print("[dim]assistant>[/dim] ", end="")
            await self.handle_input(user_input)

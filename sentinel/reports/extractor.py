"""
Report extraction -- turns a completed ``createIncidentReport`` call into a
``Report``.

Report generation always requires the model to call the report function;
free-text answers are not parsed as a fallback.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

from sentinel.errors import MissingRequiredFields, ToolCallAbsent
from sentinel.llm.client import CompletionClient
from sentinel.llm.types import (
    ConversationTurn,
    ImageAttachment,
    ToolCall,
    incident_context_turn,
)
from sentinel.prompts.catalog import REPORT_TOOL_NAME, mode_for, report_prompt, report_tools
from sentinel.reports.models import Report, parse_status

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown Location"


def _required_text(arguments: dict[str, Any], name: str) -> str | None:
    value = arguments.get(name)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _comments(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value if item is not None)


def extract_report(
    tool_call: ToolCall,
    *,
    emergency: bool,
    images: Sequence[ImageAttachment] = (),
    report_id: str | None = None,
    created_at: datetime | None = None,
    unknown_location: str = UNKNOWN_LOCATION,
) -> Report:
    """
    Build a ``Report`` from the arguments of a report function call.

    ``title`` and ``description`` must be non-empty strings.  A missing
    ``location`` becomes *unknown_location*; ``status`` goes through
    ``parse_status`` with the emergency flag as the fallback rule.
    """
    args = tool_call.arguments
    title = _required_text(args, "title")
    description = _required_text(args, "description")
    missing = [name for name, value in (("title", title), ("description", description)) if value is None]
    if missing:
        raise MissingRequiredFields(missing, tool=tool_call.name)

    location = _required_text(args, "location") or unknown_location

    return Report(
        id=report_id or str(uuid.uuid4()),
        title=title,
        description=description,
        location=location,
        created_at=created_at or datetime.now(timezone.utc),
        status=parse_status(args.get("status"), emergency=emergency),
        user_comments=_comments(args.get("userComments")),
        images=tuple(images),
    )


class ReportGenerator:
    """
    Asks the model to summarize a conversation as a report.

    Parameters
    ----------
    client:
        Completion client used for the (non-streaming) request.
    unknown_location:
        Location recorded when the model does not supply one.
    """

    def __init__(
        self,
        client: CompletionClient,
        unknown_location: str = UNKNOWN_LOCATION,
    ) -> None:
        self.client = client
        self.unknown_location = unknown_location

    async def generate_report(
        self,
        turns: Sequence[ConversationTurn],
        *,
        emergency: bool = False,
        images: Sequence[ImageAttachment] = (),
        incident_type: str | None = None,
        report_id: str | None = None,
        created_at: datetime | None = None,
    ) -> Report:
        """
        Generate a report for *turns*.

        Completion failures propagate unchanged.  A completion without a
        ``createIncidentReport`` call raises ``ToolCallAbsent``.
        """
        mode = mode_for(emergency)
        history = list(turns)
        if incident_type:
            history.insert(0, incident_context_turn(incident_type))

        result = await self.client.complete(
            history,
            report_prompt(mode),
            tools=report_tools(mode),
            images=list(images),
        )

        call = result.tool_call
        if call is None or call.name != REPORT_TOOL_NAME:
            raise ToolCallAbsent(REPORT_TOOL_NAME, call.name if call else None)

        report = extract_report(
            call,
            emergency=emergency,
            images=images,
            report_id=report_id,
            created_at=created_at,
            unknown_location=self.unknown_location,
        )
        logger.info(
            "Generated report %s (%s, status=%s, %d image(s))",
            report.id,
            mode.value,
            report.status.value,
            len(report.images),
        )
        return report

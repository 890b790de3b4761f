"""Incident report value types."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sentinel.llm.types import ImageAttachment


class IncidentStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "inProgress"
    RESOLVED = "resolved"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    IncidentStatus.OPEN: "Open",
    IncidentStatus.IN_PROGRESS: "In Progress",
    IncidentStatus.RESOLVED: "Resolved",
}

_STATUS_ALIASES = {
    "open": IncidentStatus.OPEN,
    "inprogress": IncidentStatus.IN_PROGRESS,
    "resolved": IncidentStatus.RESOLVED,
}

_STATUS_NOISE = re.compile(r"[\s_\-]+")


def default_status(emergency: bool) -> IncidentStatus:
    return IncidentStatus.IN_PROGRESS if emergency else IncidentStatus.OPEN


def parse_status(value: Any, *, emergency: bool) -> IncidentStatus:
    """
    Map a model-supplied status string onto ``IncidentStatus``.

    Matching ignores case, whitespace, underscores and hyphens, so
    ``"InProgress"``, ``"in_progress"`` and ``"in progress"`` are the same.
    Anything unrecognized (or absent) gets the mode default.
    """
    if isinstance(value, str):
        key = _STATUS_NOISE.sub("", value).lower()
        if key in _STATUS_ALIASES:
            return _STATUS_ALIASES[key]
    return default_status(emergency)


@dataclass(frozen=True)
class Incident:
    """Summary header of a report: who, where, when and how urgent."""

    id: str
    title: str
    description: str | None
    location: str
    time: datetime
    status: IncidentStatus


@dataclass(frozen=True)
class Report:
    """
    A structured incident report.

    Reports are never mutated; a correction produces a new ``Report``.
    """

    title: str
    description: str
    location: str
    status: IncidentStatus
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_comments: tuple[str, ...] = ()
    images: tuple[ImageAttachment, ...] = ()

    def to_incident(self) -> Incident:
        return Incident(
            id=self.id,
            title=self.title,
            description=self.description,
            location=self.location,
            time=self.created_at,
            status=self.status,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view; images are summarized by count."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "user_comments": list(self.user_comments),
            "image_count": len(self.images),
        }

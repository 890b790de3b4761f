"""Conversational incident-report core: streaming LLM chat and report extraction."""

from sentinel.conversation import Conversation
from sentinel.errors import (
    ApiKeyMissing,
    InvalidEndpoint,
    MalformedResponse,
    MissingRequiredFields,
    ProtocolViolation,
    ServiceError,
    ToolCallAbsent,
    ToolCallMalformed,
    TransportError,
)
from sentinel.reports.models import IncidentStatus, Report
from sentinel.service import IncidentService

__version__ = "0.1.0"

__all__ = [
    "ApiKeyMissing",
    "Conversation",
    "IncidentService",
    "IncidentStatus",
    "InvalidEndpoint",
    "MalformedResponse",
    "MissingRequiredFields",
    "ProtocolViolation",
    "Report",
    "ServiceError",
    "ToolCallAbsent",
    "ToolCallMalformed",
    "TransportError",
]

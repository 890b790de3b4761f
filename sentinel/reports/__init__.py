"""Incident reports: value types and extraction from model function calls."""

from sentinel.reports.extractor import UNKNOWN_LOCATION, ReportGenerator, extract_report
from sentinel.reports.models import (
    Incident,
    IncidentStatus,
    Report,
    default_status,
    parse_status,
)

__all__ = [
    "Incident",
    "IncidentStatus",
    "Report",
    "ReportGenerator",
    "UNKNOWN_LOCATION",
    "default_status",
    "extract_report",
    "parse_status",
]

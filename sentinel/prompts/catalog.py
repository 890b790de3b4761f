"""System prompts and function schemas for the incident-reporting chat."""

from __future__ import annotations

from enum import Enum

from sentinel.llm.types import ToolSchema

REPORT_TOOL_NAME = "createIncidentReport"
READINESS_TOOL_NAME = "setReportReadiness"
EMERGENCY_TOOL_NAME = "suggestEmergency"

EMERGENCY_LEVELS = ("Security", "Medical", "Fire")


class ConversationMode(str, Enum):
    STANDARD = "standard"
    EMERGENCY = "emergency"

    @property
    def is_emergency(self) -> bool:
        return self is ConversationMode.EMERGENCY


def mode_for(emergency: bool) -> ConversationMode:
    return ConversationMode.EMERGENCY if emergency else ConversationMode.STANDARD


# ---------------------------------------------------------------------------
# Conversation prompts
# ---------------------------------------------------------------------------

STANDARD_PROMPT = f"""You are a security incident reporting assistant in the Sentinel app. Your goal is to help users report security incidents clearly and completely.

Key responsibilities:
1. Guide users through the incident reporting process
2. Ask relevant follow-up questions to gather complete information
3. Remember details about the incident across messages
4. Identify when enough information has been collected

Required information before a report is ready:
- Incident type (e.g., theft, suspicious person, vandalism)
- Description of what happened
- Location
- Any relevant details (time, persons involved, etc.)

If the user mentions an active threat, dangerous situation, or uses urgent language, use the {EMERGENCY_TOOL_NAME} function with the appropriate emergency level.

Incident flow:
1. First, ask what type of incident the user wants to report
2. Once they select a type, thank them and ask for details
3. Ask follow-up questions until you have sufficient information
4. When you have enough information, use the {READINESS_TOOL_NAME} function to indicate readiness
5. If the user asks to submit the report, use the {REPORT_TOOL_NAME} function to create a structured report

Format your responses conversationally but professionally, as you represent a security system. Keep responses brief and focused."""


def emergency_prompt(level: str = "Security") -> str:
    """Prompt for an active emergency of the given *level* (e.g. ``"Medical"``)."""
    return f"""You are handling an EMERGENCY security incident in the Sentinel app. This is high priority and requires clear, direct communication.

Emergency type: {level.upper()}

Key responsibilities:
1. Gather critical information about the emergency
2. Assure the user that help is on the way
3. Collect details that will help responders
4. Maintain a calm, authoritative tone

Remember:
- Keep responses brief and focused
- Acknowledge all information and images
- Inform the user that information is forwarded to responders
- Do not ask unnecessary questions
- If the user indicates the situation is resolved, generate a final report

Emergency flow:
1. Acknowledge the emergency
2. Inform the user that help is on the way
3. Ask for critical details about the situation
4. Confirm receipt of any information or images
5. When appropriate, use the {REPORT_TOOL_NAME} function to create a structured report

Format your responses to be clear, direct, and reassuring."""


# ---------------------------------------------------------------------------
# Report generation prompts
# ---------------------------------------------------------------------------

REPORT_GENERATION_PROMPT = f"""Based on the conversation, create a structured incident report by calling {REPORT_TOOL_NAME} with:
1. A clear, concise title that describes the incident type and key details
2. A detailed description summarizing what happened
3. The specific location where it occurred
4. Current status (typically "open" for new incidents)
5. The user's own statements that contributed to the report, as userComments

Extract relevant information from the conversation and consolidate it into a coherent report.
If certain information is missing:
- For location: Use "Unknown Location" if not specified
- For description: Summarize what is known so far"""

EMERGENCY_REPORT_GENERATION_PROMPT = f"""Generate an emergency incident report based on the conversation by calling {REPORT_TOOL_NAME}. This report should:
1. Have a title prefixed with the emergency type (e.g., "Security Emergency: Intruder on Premises")
2. Include a detailed description of the emergency situation
3. Specify the exact location if known
4. Have status set to "inProgress"

The report should be comprehensive but focused on critical information that would help emergency responders.
If certain information is missing:
- For location: Use "Unknown Location" if not specified
- For description: Focus on known details and indicate what information is still needed"""


def system_prompt(mode: ConversationMode, level: str = "Security") -> str:
    if mode.is_emergency:
        return emergency_prompt(level)
    return STANDARD_PROMPT


def report_prompt(mode: ConversationMode) -> str:
    if mode.is_emergency:
        return EMERGENCY_REPORT_GENERATION_PROMPT
    return REPORT_GENERATION_PROMPT


# ---------------------------------------------------------------------------
# Function schemas
# ---------------------------------------------------------------------------

def _report_tool(description: str, statuses: list[str], status_hint: str, location_hint: str) -> ToolSchema:
    return ToolSchema(
        name=REPORT_TOOL_NAME,
        description=description,
        parameters={
            "type": "object",
            "properties": {
                "title": {
                    "type": "string",
                    "description": "A clear, concise title for the incident",
                },
                "description": {
                    "type": "string",
                    "description": "Detailed description of what happened",
                },
                "location": {
                    "type": "string",
                    "description": location_hint,
                },
                "status": {
                    "type": "string",
                    "enum": statuses,
                    "description": status_hint,
                },
                "userComments": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "User statements that contributed to the report",
                },
            },
            "required": ["title", "description"],
        },
    )


STANDARD_REPORT_TOOL = _report_tool(
    "Generate a structured incident report",
    ["open", "inProgress", "resolved"],
    "Current status of the incident",
    "Where the incident occurred",
)

EMERGENCY_REPORT_TOOL = _report_tool(
    "Generate emergency incident report",
    ["inProgress"],
    "Current status (always inProgress for emergencies)",
    "Where the emergency is occurring",
)

READINESS_TOOL = ToolSchema(
    name=READINESS_TOOL_NAME,
    description="Indicates if enough information has been gathered to submit a report",
    parameters={
        "type": "object",
        "properties": {
            "isReady": {
                "type": "boolean",
                "description": "True if report is ready to submit",
            },
            "missingInfo": {
                "type": "string",
                "description": "Information still needed (if any)",
            },
        },
        "required": ["isReady"],
    },
)

SUGGEST_EMERGENCY_TOOL = ToolSchema(
    name=EMERGENCY_TOOL_NAME,
    description="Suggests emergency mode based on user input",
    parameters={
        "type": "object",
        "properties": {
            "suggest": {
                "type": "boolean",
                "description": "True if emergency mode recommended",
            },
            "level": {
                "type": "string",
                "enum": list(EMERGENCY_LEVELS),
                "description": "Type of emergency",
            },
            "reason": {
                "type": "string",
                "description": "Reason for suggestion",
            },
        },
        "required": ["suggest", "level"],
    },
)


def chat_tools(mode: ConversationMode) -> list[ToolSchema]:
    """Functions offered during a conversation in *mode*."""
    if mode.is_emergency:
        return [EMERGENCY_REPORT_TOOL]
    return [STANDARD_REPORT_TOOL, READINESS_TOOL, SUGGEST_EMERGENCY_TOOL]


def report_tools(mode: ConversationMode) -> list[ToolSchema]:
    """Functions offered when a report is being generated."""
    if mode.is_emergency:
        return [EMERGENCY_REPORT_TOOL]
    return [STANDARD_REPORT_TOOL]

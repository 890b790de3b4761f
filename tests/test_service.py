"""End-to-end tests for IncidentService with a scripted backend."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from sentinel.config import load_config
from sentinel.conversation import Conversation
from sentinel.credentials import MemoryCredentialStore
from sentinel.errors import ApiKeyMissing, ToolCallAbsent, TransportError
from sentinel.llm.backends.scripted import ScriptedBackend, completion_body
from sentinel.llm.tool_call_accumulator import StreamCollector
from sentinel.llm.types import ConversationTurn, Done, Token
from sentinel.prompts.catalog import (
    EMERGENCY_REPORT_GENERATION_PROMPT,
    REPORT_GENERATION_PROMPT,
    STANDARD_PROMPT,
    emergency_prompt,
)
from sentinel.reports.models import IncidentStatus
from sentinel.service import IncidentService
from tests.mock_backends import (
    TEST_KEY,
    make_client,
    make_image,
    make_report_body,
    make_text_stream,
    make_tool_call_stream,
)

THEFT_TURNS = [
    ConversationTurn.assistant("What kind of incident would you like to report?"),
    ConversationTurn.user("Theft"),
    ConversationTurn.user("My bike was stolen from the rack this morning"),
]

SUSPICIOUS_TURNS = [
    ConversationTurn.assistant("What happened?"),
    ConversationTurn.user("I saw a suspicious person near the east door"),
]


def make_service(backend: ScriptedBackend) -> IncidentService:
    return IncidentService(make_client(backend))


def quiet_config(**overrides):
    """Config that never reads a .env from the working directory."""
    return load_config(
        environ={},
        cli_overrides={"credentials.dotenv_path": "", **overrides},
    )


# ---------------------------------------------------------------------------
# Report generation
# ---------------------------------------------------------------------------

class TestGenerateReport:

    async def test_standard_report(self):
        backend = ScriptedBackend(responses=[
            make_report_body(title="Bike theft", description="Bike stolen from rack"),
        ])
        service = make_service(backend)

        report = await service.generate_report(THEFT_TURNS)

        assert report.title == "Bike theft"
        assert report.status is IncidentStatus.OPEN
        assert report.location == "Unknown Location"
        body = backend.last_body
        assert body["messages"][0]["content"] == REPORT_GENERATION_PROMPT
        assert [f["name"] for f in body["functions"]] == ["createIncidentReport"]
        assert "stream" not in body

    async def test_emergency_report(self):
        backend = ScriptedBackend(responses=[
            make_report_body(title="Medical Emergency: Fall", description="Person fell", location="Gym"),
        ])
        service = make_service(backend)

        report = await service.generate_report(THEFT_TURNS, emergency=True)

        assert report.status is IncidentStatus.IN_PROGRESS
        assert report.location == "Gym"
        body = backend.last_body
        assert body["messages"][0]["content"] == EMERGENCY_REPORT_GENERATION_PROMPT
        status_schema = body["functions"][0]["parameters"]["properties"]["status"]
        assert status_schema["enum"] == ["inProgress"]

    async def test_suspicious_person_standard(self):
        backend = ScriptedBackend(responses=[
            make_report_body(
                title="Suspicious Person",
                description="A suspicious person was seen near the east door.",
            ),
        ])

        report = await make_service(backend).generate_report(SUSPICIOUS_TURNS)

        assert report.title == "Suspicious Person"
        assert report.status is IncidentStatus.OPEN
        assert report.location == "Unknown Location"
        messages = backend.last_body["messages"]
        assert messages[1:] == [
            {"role": "assistant", "content": "What happened?"},
            {"role": "user", "content": "I saw a suspicious person near the east door"},
        ]

    async def test_suspicious_person_emergency(self):
        backend = ScriptedBackend(responses=[
            make_report_body(
                title="Suspicious Person",
                description="A suspicious person was seen near the east door.",
            ),
        ])

        report = await make_service(backend).generate_report(SUSPICIOUS_TURNS, emergency=True)

        assert report.title == "Suspicious Person"
        assert report.status is IncidentStatus.IN_PROGRESS
        assert report.location == "Unknown Location"

    async def test_incident_type_context_turn(self):
        backend = ScriptedBackend(responses=[make_report_body(title="T", description="D")])
        await make_service(backend).generate_report(THEFT_TURNS, incident_type="Theft")
        messages = backend.last_body["messages"]
        assert messages[1] == {"role": "user", "content": "This is a Theft incident."}
        assert len(messages) == len(THEFT_TURNS) + 2

    async def test_images_forwarded_and_kept(self):
        images = [make_image()]
        backend = ScriptedBackend(responses=[make_report_body(title="T", description="D")])
        report = await make_service(backend).generate_report(THEFT_TURNS, images=images)
        assert report.images == tuple(images)
        last = backend.last_body["messages"][-1]["content"]
        assert [p["type"] for p in last] == ["text", "image_url"]

    async def test_fixed_id_and_date(self):
        when = datetime(2024, 5, 4, 9, 0, tzinfo=timezone.utc)
        backend = ScriptedBackend(responses=[make_report_body(title="T", description="D")])
        report = await make_service(backend).generate_report(
            THEFT_TURNS, report_id="r-42", created_at=when
        )
        assert report.id == "r-42"
        assert report.created_at == when

    async def test_text_only_answer(self):
        backend = ScriptedBackend(responses=[completion_body(content="I need more details.")])
        with pytest.raises(ToolCallAbsent) as exc_info:
            await make_service(backend).generate_report(THEFT_TURNS)
        assert exc_info.value.expected == "createIncidentReport"
        assert exc_info.value.got is None

    async def test_wrong_function(self):
        body = completion_body(function_call=("setReportReadiness", {"isReady": True}))
        with pytest.raises(ToolCallAbsent) as exc_info:
            await make_service(ScriptedBackend(responses=[body])).generate_report(THEFT_TURNS)
        assert exc_info.value.got == "setReportReadiness"

    async def test_transport_failure_passes_through(self):
        failure = TransportError("HTTP 502 from provider", status_code=502)
        with pytest.raises(TransportError) as exc_info:
            await make_service(ScriptedBackend(responses=[failure])).generate_report(THEFT_TURNS)
        assert exc_info.value is failure

    async def test_report_for_conversation(self):
        conversation = Conversation()
        conversation.add_user("Someone is tailgating at the main entrance")
        conversation.attach_images([make_image()])
        conversation.escalate("Security")

        backend = ScriptedBackend(responses=[make_report_body(title="Security Emergency: Tailgating", description="D")])
        report = await make_service(backend).report_for(conversation)

        assert report.status is IncidentStatus.IN_PROGRESS
        assert len(report.images) == 1


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class TestChat:

    async def test_standard_chat(self):
        backend = ScriptedBackend(streams=[make_text_stream("Where did it happen?")])
        conversation = Conversation()
        conversation.add_user("I want to report a theft")

        events = [e async for e in make_service(backend).chat(conversation)]

        assert events[-1] == Done()
        assert "".join(e.text for e in events if isinstance(e, Token)) == "Where did it happen?"
        body = backend.last_body
        assert body["messages"][0]["content"] == STANDARD_PROMPT
        assert [f["name"] for f in body["functions"]] == [
            "createIncidentReport",
            "setReportReadiness",
            "suggestEmergency",
        ]

    async def test_emergency_chat(self):
        backend = ScriptedBackend(streams=[make_text_stream("Help is on the way.")])
        conversation = Conversation()
        conversation.escalate("Medical")

        [e async for e in make_service(backend).chat(conversation)]

        body = backend.last_body
        assert body["messages"][0]["content"] == emergency_prompt("Medical")
        assert [f["name"] for f in body["functions"]] == ["createIncidentReport"]
        assert body["messages"][-1]["content"] == "EMERGENCY: Medical assistance requested"

    async def test_pending_images_sent_once(self):
        backend = ScriptedBackend(streams=[make_text_stream("Got it."), make_text_stream("Anything else?")])
        service = make_service(backend)
        conversation = Conversation()
        conversation.attach_images([make_image()])

        [e async for e in service.chat(conversation)]
        first = backend.last_body["messages"][-1]["content"]
        assert [p["type"] for p in first] == ["text", "image_url"]

        conversation.add_user("That's all")
        [e async for e in service.chat(conversation)]
        assert backend.last_body["messages"][-1]["content"] == "That's all"

    async def test_chat_tool_call(self):
        args = {"suggest": True, "level": "Fire", "reason": "Smoke reported"}
        backend = ScriptedBackend(streams=[make_tool_call_stream("suggestEmergency", args)])
        conversation = Conversation()
        conversation.add_user("I smell smoke")

        collector = StreamCollector()
        result = None
        async for event in make_service(backend).chat(conversation):
            result = collector.feed(event) or result

        assert result.tool_call.name == "suggestEmergency"
        assert result.tool_call.arguments == args


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

class TestConstruction:

    def test_from_config_with_env_key(self):
        store = MemoryCredentialStore()
        backend = ScriptedBackend()
        service = IncidentService.from_config(
            quiet_config(),
            backend=backend,
            store=store,
            environ={"OPENAI_API_KEY": "sk-env"},
        )
        assert service.client.resolve_api_key() == "sk-env"
        assert store.get("OPENAI_API_KEY") == "sk-env"

    def test_from_config_explicit_key(self):
        service = IncidentService.from_config(
            quiet_config(),
            api_key="sk-explicit",
            backend=ScriptedBackend(),
            store=MemoryCredentialStore(),
            environ={},
        )
        assert service.client.resolve_api_key() == "sk-explicit"

    def test_from_config_missing_key(self):
        with pytest.raises(ApiKeyMissing):
            IncidentService.from_config(
                quiet_config(),
                backend=ScriptedBackend(),
                store=MemoryCredentialStore(),
                environ={},
            )

    def test_from_config_params_and_location(self):
        backend = ScriptedBackend(responses=[make_report_body(title="T", description="D")])
        service = IncidentService.from_config(
            quiet_config(**{"llm.model": "gpt-4o-mini", "report.unknown_location": "Not given"}),
            backend=backend,
            store=MemoryCredentialStore({"OPENAI_API_KEY": TEST_KEY}),
            environ={},
        )
        assert service.reports.unknown_location == "Not given"
        assert service.client.params.model == "gpt-4o-mini"

    async def test_from_config_report_uses_configured_location(self):
        backend = ScriptedBackend(responses=[make_report_body(title="T", description="D")])
        service = IncidentService.from_config(
            quiet_config(**{"report.unknown_location": "Not given"}),
            backend=backend,
            store=MemoryCredentialStore({"OPENAI_API_KEY": TEST_KEY}),
            environ={},
        )
        report = await service.generate_report(THEFT_TURNS)
        assert report.location == "Not given"
        assert backend.api_keys == [TEST_KEY]

    def test_missing_key_at_construction(self):
        with pytest.raises(ApiKeyMissing):
            IncidentService(make_client(ScriptedBackend(), key=None))

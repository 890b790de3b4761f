"""
Service facade -- the surface the app's view layer calls.

Collaborators are passed in explicitly; ``IncidentService.from_config``
wires the production ones (HTTP backend, file credential store, build
config, environment).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import AsyncIterator, Mapping, Sequence

from sentinel.config import SentinelConfig
from sentinel.conversation import Conversation
from sentinel.credentials import (
    BuildConfig,
    CredentialResolver,
    CredentialStore,
    EnvironmentReader,
    FileCredentialStore,
)
from sentinel.llm.backends.base import CompletionBackend
from sentinel.llm.backends.http import HTTPBackend
from sentinel.llm.client import CompletionClient, OnEvent
from sentinel.llm.types import (
    CompletionResult,
    ConversationTurn,
    ImageAttachment,
    ModelParams,
    StreamEvent,
    ToolSchema,
)
from sentinel.prompts.catalog import chat_tools, system_prompt
from sentinel.reports.extractor import UNKNOWN_LOCATION, ReportGenerator
from sentinel.reports.models import Report

logger = logging.getLogger(__name__)


class IncidentService:
    """
    Chat and report generation for incident conversations.

    Construction resolves the API key immediately, so a missing credential
    fails fast with ``ApiKeyMissing``.

    Parameters
    ----------
    client:
        Completion client bound to a backend and credential resolver.
    unknown_location:
        Location recorded on reports when the model supplies none.
    """

    def __init__(
        self,
        client: CompletionClient,
        unknown_location: str = UNKNOWN_LOCATION,
    ) -> None:
        self.client = client
        self.reports = ReportGenerator(client, unknown_location=unknown_location)
        client.resolve_api_key()

    @classmethod
    def from_config(
        cls,
        cfg: SentinelConfig,
        *,
        api_key: str | None = None,
        backend: CompletionBackend | None = None,
        store: CredentialStore | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> IncidentService:
        build_path = cfg.credentials.build_config_path
        resolver = CredentialResolver(
            store=store or FileCredentialStore(cfg.credentials.store_path),
            build_config=BuildConfig.from_file(build_path) if build_path else BuildConfig(),
            environment=EnvironmentReader(
                environ=environ,
                dotenv_path=cfg.credentials.dotenv_path or None,
            ),
            key_name=cfg.llm.api_key_env,
        )
        backend = backend or HTTPBackend(
            api_base=cfg.llm.api_base,
            connect_timeout=cfg.llm.connect_timeout_seconds,
            idle_timeout=cfg.llm.idle_timeout_seconds,
        )
        client = CompletionClient(
            backend,
            resolver,
            params=ModelParams(model=cfg.llm.model, temperature=cfg.llm.temperature),
            api_key=api_key,
        )
        logger.info("IncidentService using %s backend, model=%s", backend.name, cfg.llm.model)
        return cls(client, unknown_location=cfg.report.unknown_location)

    # ------------------------------------------------------------------
    # Completion passthroughs
    # ------------------------------------------------------------------

    async def complete(
        self,
        turns: Sequence[ConversationTurn],
        system_prompt: str,
        tools: Sequence[ToolSchema] | None = None,
        images: Sequence[ImageAttachment] | None = None,
        params: ModelParams | None = None,
    ) -> CompletionResult:
        return await self.client.complete(turns, system_prompt, tools, images, params)

    def stream(
        self,
        turns: Sequence[ConversationTurn],
        system_prompt: str,
        tools: Sequence[ToolSchema] | None = None,
        images: Sequence[ImageAttachment] | None = None,
        params: ModelParams | None = None,
    ) -> AsyncIterator[StreamEvent]:
        return self.client.stream(turns, system_prompt, tools, images, params)

    async def complete_streaming(
        self,
        turns: Sequence[ConversationTurn],
        system_prompt: str,
        tools: Sequence[ToolSchema] | None = None,
        images: Sequence[ImageAttachment] | None = None,
        params: ModelParams | None = None,
        *,
        on_event: OnEvent,
    ) -> None:
        await self.client.complete_streaming(
            turns, system_prompt, tools, images, params, on_event=on_event
        )

    # ------------------------------------------------------------------
    # Conversation helpers
    # ------------------------------------------------------------------

    def chat(self, conversation: Conversation) -> AsyncIterator[StreamEvent]:
        """Stream the assistant's next reply using the conversation's mode."""
        return self.client.stream(
            conversation.turns,
            system_prompt(conversation.mode, conversation.emergency_level or "Security"),
            tools=chat_tools(conversation.mode),
            images=conversation.take_pending_images(),
        )

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
        return await self.reports.generate_report(
            turns,
            emergency=emergency,
            images=images,
            incident_type=incident_type,
            report_id=report_id,
            created_at=created_at,
        )

    async def report_for(
        self, conversation: Conversation, incident_type: str | None = None
    ) -> Report:
        """Generate a report covering *conversation* and all its images."""
        return await self.generate_report(
            conversation.turns,
            emergency=conversation.is_emergency,
            images=conversation.images,
            incident_type=incident_type,
        )

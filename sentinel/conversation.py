"""
Conversation state for one reporting session.

Holds the ordered turn list (ids unique within the session), the
standard/emergency mode flag and any images the user attached.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from sentinel.llm.types import (
    ConversationTurn,
    ImageAttachment,
    TurnKind,
    emergency_turn,
    image_upload_turn,
)
from sentinel.prompts.catalog import ConversationMode

GREETING = "Hi, I'm here to help. What kind of incident would you like to report?"


class Conversation:
    """
    Parameters
    ----------
    greeting:
        Opening assistant turn; pass ``None`` to start empty.
    """

    def __init__(self, greeting: str | None = GREETING) -> None:
        self._turns: list[ConversationTurn] = []
        self._ids: set[str] = set()
        self.mode = ConversationMode.STANDARD
        self.emergency_level: str | None = None
        self.images: list[ImageAttachment] = []
        self._pending_images: list[ImageAttachment] = []
        if greeting:
            self.add_assistant(greeting)

    @classmethod
    def from_turns(
        cls, turns: Iterable[ConversationTurn], emergency_level: str | None = None
    ) -> Conversation:
        conv = cls(greeting=None)
        for turn in turns:
            conv.append(turn)
        if emergency_level:
            conv.mode = ConversationMode.EMERGENCY
            conv.emergency_level = emergency_level
        return conv

    @classmethod
    def from_dicts(cls, data: Sequence[dict[str, Any]], emergency_level: str | None = None) -> Conversation:
        return cls.from_turns((ConversationTurn.from_dict(d) for d in data), emergency_level)

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    @property
    def turns(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    @property
    def is_emergency(self) -> bool:
        return self.mode.is_emergency

    def __len__(self) -> int:
        return len(self._turns)

    def append(self, turn: ConversationTurn) -> ConversationTurn:
        if turn.id in self._ids:
            raise ValueError(f"Duplicate turn id {turn.id!r}")
        self._ids.add(turn.id)
        self._turns.append(turn)
        return turn

    def add_user(self, content: str) -> ConversationTurn:
        return self.append(ConversationTurn.user(content))

    def add_assistant(self, content: str) -> ConversationTurn:
        kind = TurnKind.EMERGENCY if self.is_emergency else TurnKind.CHAT
        return self.append(ConversationTurn.assistant(content, kind=kind))

    # ------------------------------------------------------------------
    # Mode
    # ------------------------------------------------------------------

    def escalate(self, level: str) -> ConversationTurn:
        """Switch to emergency mode and record the request as a user turn."""
        self.mode = ConversationMode.EMERGENCY
        self.emergency_level = level
        return self.append(emergency_turn(level))

    def cancel_emergency(self) -> None:
        self.mode = ConversationMode.STANDARD
        self.emergency_level = None

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def attach_images(self, images: Sequence[ImageAttachment]) -> ConversationTurn | None:
        """
        Record an image upload.  The images ride along with the next
        completion and are kept for the final report.
        """
        if not images:
            return None
        self.images.extend(images)
        self._pending_images = list(images)
        return self.append(image_upload_turn(len(images)))

    def take_pending_images(self) -> list[ImageAttachment]:
        pending, self._pending_images = self._pending_images, []
        return pending

"""Chat-related data models."""

from dataclasses import dataclass, field
from typing import Literal

from .registration import RegistrationDraft

Role = Literal["user", "assistant", "system"]


@dataclass
class ChatMessage:
    """A single role-tagged turn in a conversation."""

    role: Role
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatSession:
    """Per-session conversation state owned by the DialogueController."""

    session_id: str
    user_id: str | None = None
    history: list[ChatMessage] = field(default_factory=list)
    draft: RegistrationDraft | None = None
    # Guards the draft path while a store call is outstanding.
    processing_registration: bool = False
    # Set while a submission is waiting on the store or the completion API.
    awaiting_reply: bool = False
    # Intent extraction only looks at history[extraction_offset:].
    extraction_offset: int = 0

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None

    def add(self, message: ChatMessage) -> None:
        self.history.append(message)

    def clear_draft(self) -> None:
        """Drop the in-progress draft and close the extraction window."""
        self.draft = None
        self.extraction_offset = len(self.history)

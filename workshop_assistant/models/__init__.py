"""Core data models for Workshop Assistant."""

from .chat import ChatMessage, ChatSession
from .registration import (
    Account,
    Registration,
    RegistrationDraft,
    RegistrationIntent,
    RegistrationOutcome,
    RegistrationStatus,
    UserInfo,
    Workshop,
)
from .tracing import TraceEvent

__all__ = [
    # Chat
    "ChatMessage",
    "ChatSession",
    # Registration
    "Account",
    "Registration",
    "RegistrationDraft",
    "RegistrationIntent",
    "RegistrationOutcome",
    "RegistrationStatus",
    "UserInfo",
    "Workshop",
    # Tracing
    "TraceEvent",
]

"""Workshop Assistant: conversational workshop registration service."""

from .app import Application, IApplication
from .dialogue import DialogueController, IDialogueController, SessionBusyError
from .llm import (
    AnthropicCompletionClient,
    CompletionError,
    GroqCompletionClient,
    ICompletionClient,
)
from .models import (
    Account,
    ChatMessage,
    ChatSession,
    Registration,
    RegistrationDraft,
    RegistrationIntent,
    RegistrationOutcome,
    RegistrationStatus,
    TraceEvent,
    UserInfo,
    Workshop,
)
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "Account",
    "ChatMessage",
    "ChatSession",
    "Registration",
    "RegistrationDraft",
    "RegistrationIntent",
    "RegistrationOutcome",
    "RegistrationStatus",
    "TraceEvent",
    "UserInfo",
    "Workshop",
    # Components
    "IStorage",
    "Storage",
    "ITracker",
    "Tracker",
    "ICompletionClient",
    "CompletionError",
    "GroqCompletionClient",
    "AnthropicCompletionClient",
    "IDialogueController",
    "DialogueController",
    "SessionBusyError",
]

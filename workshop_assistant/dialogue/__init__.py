"""Dialogue module."""

from .controller import DialogueController, IDialogueController, SessionBusyError
from .extraction import extract_registration_intent, scrape_fields
from .registration import RegistrationService

__all__ = [
    "DialogueController",
    "IDialogueController",
    "RegistrationService",
    "SessionBusyError",
    "extract_registration_intent",
    "scrape_fields",
]

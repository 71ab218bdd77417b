"""Heuristic extraction of registration intent and contact fields from chat text.

Two entry points:

* :func:`extract_registration_intent` classifies a whole transcript and is
  used when no registration is in progress.
* :func:`scrape_fields` looks at a single user turn and is used while a
  registration draft is being filled in.

Both are pure: no I/O, same input gives the same output.
"""

import re
from dataclasses import dataclass, field
from typing import Sequence

from ..models import ChatMessage, RegistrationIntent, UserInfo

REGISTRATION_PHRASES = ("register", "sign up", "join", "enroll")
DEREGISTRATION_PHRASES = ("deregister", "unregister", "cancel", "remove me from")

REGISTRATION_TITLE_MARKERS = (" for ", " to the ")
DEREGISTRATION_TITLE_MARKERS = (" from ", " cancel ")

SCRAPE_TITLE_MARKERS = ("interested in", "sign up for", "register for")
AFFIRMATIONS = frozenset({"yes", "yes please", "sure"})
ABANDON_PHRASES = ("cancel registration", "stop registration", "never mind", "nevermind")

_SENTENCE_END = re.compile(r"[.,!?]")
_NAIVE_EMAIL = re.compile(r"\S+@\S+\.\S+")
_EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_I_AM = re.compile(r"\bi am\b")
_TOKEN_PUNCTUATION = ".,!?;:"


@dataclass
class ScrapedFields:
    """Fields found in a single user turn."""

    user_info: UserInfo = field(default_factory=UserInfo)
    workshop_title: str | None = None
    affirmation: bool = False


def _up_to_sentence_end(text: str) -> str:
    return _SENTENCE_END.split(text, maxsplit=1)[0].strip()


def _name_tokens(text: str) -> list[str]:
    tokens = (token.strip(_TOKEN_PUNCTUATION) for token in text.split())
    return [token for token in tokens if token]


def _title_from_markers(message: str, markers: Sequence[str]) -> tuple[bool, str | None]:
    """Return (marker_found, title) for the first marker present in ``message``."""
    for marker in markers:
        index = message.find(marker)
        if index > -1:
            title = _up_to_sentence_end(message[index + len(marker):])
            return True, title or None
    return False, None


def extract_registration_intent(messages: Sequence[ChatMessage]) -> RegistrationIntent:
    """Detect (de)registration intent in the user turns of a transcript."""
    user_messages = [m.content.lower() for m in messages if m.role == "user"]

    has_registration = any(
        phrase in msg for msg in user_messages for phrase in REGISTRATION_PHRASES
    )
    has_deregistration = any(
        phrase in msg for msg in user_messages for phrase in DEREGISTRATION_PHRASES
    )

    if not has_registration and not has_deregistration:
        return RegistrationIntent(intent=False)

    markers = DEREGISTRATION_TITLE_MARKERS if has_deregistration else REGISTRATION_TITLE_MARKERS

    workshop_title = None
    for msg in user_messages:
        found, title = _title_from_markers(msg, markers)
        if found:
            workshop_title = title
            break

    if has_deregistration:
        return RegistrationIntent(intent=True, deregister=True, workshop_title=workshop_title)

    user_info = UserInfo()
    for msg in user_messages:
        if "name is" in msg:
            parts = _name_tokens(msg.split("name is", 1)[1])
            if parts:
                user_info.first_name = parts[0]
            if len(parts) > 1:
                user_info.last_name = parts[1]

        if "email is" in msg or "email:" in msg:
            marker = "email is" if "email is" in msg else "email:"
            match = _NAIVE_EMAIL.search(msg.split(marker, 1)[1])
            if match:
                user_info.email = match.group(0).rstrip(_TOKEN_PUNCTUATION)

    return RegistrationIntent(
        intent=True,
        deregister=False,
        workshop_title=workshop_title,
        user_info=None if user_info.is_empty() else user_info,
    )


def scrape_fields(text: str) -> ScrapedFields:
    """Pick contact fields and a workshop title out of the latest user turn."""
    message = text.lower()
    scraped = ScrapedFields()

    email_match = _EMAIL.search(message)
    if email_match:
        scraped.user_info.email = email_match.group(0)

    remainder = None
    if "name is" in message:
        remainder = message.split("name is", 1)[1]
    else:
        i_am = _I_AM.search(message)
        if i_am:
            candidate = message[i_am.end():].strip()
            # "i am interested in ..." names a workshop, not a person
            if not candidate.startswith("interested in"):
                remainder = candidate

    if remainder:
        parts = _name_tokens(remainder)
        if parts:
            scraped.user_info.first_name = parts[0].capitalize()
        if len(parts) > 1:
            scraped.user_info.last_name = parts[1].capitalize()

    if message.strip().strip("!.") in AFFIRMATIONS:
        scraped.affirmation = True
        return scraped

    for marker in SCRAPE_TITLE_MARKERS:
        if marker in message:
            title = _up_to_sentence_end(message.split(marker, 1)[1])
            if title:
                scraped.workshop_title = title
            break

    return scraped


def is_abandon_request(text: str) -> bool:
    """Whether the user asked to drop the registration in progress."""
    message = text.lower()
    return any(phrase in message for phrase in ABANDON_PHRASES)


def names_from_email(email: str) -> UserInfo:
    """Best-effort first/last name from an ``first.last@domain`` address."""
    local_part = email.split("@", 1)[0]
    parts = [part for part in local_part.split(".") if part]
    info = UserInfo()
    if parts:
        info.first_name = parts[0].capitalize()
    if len(parts) > 1:
        info.last_name = parts[1].capitalize()
    return info

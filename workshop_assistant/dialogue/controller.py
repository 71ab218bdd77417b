"""DialogueController implementation."""

import asyncio
from collections import OrderedDict
from typing import Protocol

from ..config import completion_timeout, max_sessions
from ..llm import CompletionError, ICompletionClient
from ..logging_config import get_logger
from ..models import (
    ChatMessage,
    ChatSession,
    RegistrationDraft,
    RegistrationStatus,
    UserInfo,
)
from ..storage import IStorage
from ..tracker import ITracker
from . import prompts
from .extraction import (
    extract_registration_intent,
    is_abandon_request,
    names_from_email,
    scrape_fields,
)
from .registration import RegistrationService

logger = get_logger(__name__)

ACTOR = "dialogue_controller"

SessionKey = tuple[str | None, str]


class SessionBusyError(RuntimeError):
    """A new submission arrived while the previous one is still being answered."""


class IDialogueController(Protocol):
    """Turn handling for all chat sessions."""

    async def handle_message(
        self, session_id: str, text: str, user_id: str | None = None
    ) -> str:
        """Accept a user turn and return the assistant's reply."""
        ...

    async def open_session(
        self, session_id: str, user_id: str | None = None
    ) -> ChatSession:
        """Load or create the session and its history."""
        ...

    async def get_history(
        self, session_id: str, user_id: str | None = None
    ) -> list[ChatMessage]:
        """Visible transcript of a session."""
        ...

    async def start(self) -> None:
        """Start accepting messages."""
        ...

    async def stop(self) -> None:
        """Stop accepting messages."""
        ...

    def reset(self) -> None:
        """Drop all in-memory sessions."""
        ...


class DialogueController:
    """Slot-filling registration dialogue layered over a completion client.

    Each session carries its own draft and guards; the controller itself
    only holds the session table.
    """

    def __init__(
        self,
        completion_client: ICompletionClient,
        storage: IStorage,
        tracker: ITracker,
        timeout: float | None = None,
        session_limit: int | None = None,
    ):
        self._completion = completion_client
        self._storage = storage
        self._tracker = tracker
        self._registration = RegistrationService(storage, storage)
        self._timeout = timeout if timeout is not None else completion_timeout()

        self._session_limit = session_limit if session_limit is not None else max_sessions()
        self._sessions: OrderedDict[SessionKey, ChatSession] = OrderedDict()
        self._running = False

    async def start(self) -> None:
        logger.info("Starting DialogueController")
        self._running = True

    async def stop(self) -> None:
        logger.info("Stopping DialogueController")
        self._running = False

    def reset(self) -> None:
        self._sessions.clear()

    def _remember(self, key: SessionKey, session: ChatSession) -> None:
        """Add a session, evicting the least recently used idle ones over the limit.

        Evicted sessions lose their in-memory draft; authenticated history is
        reloaded from storage on the next turn.
        """
        self._sessions[key] = session
        for old_key in list(self._sessions):
            if len(self._sessions) <= self._session_limit:
                break
            old = self._sessions[old_key]
            if old_key == key or old.awaiting_reply:
                continue
            del self._sessions[old_key]
            logger.info(
                "Evicted idle chat session", extra={"session_id": old.session_id}
            )

    async def open_session(
        self, session_id: str, user_id: str | None = None
    ) -> ChatSession:
        """Load or create the session; seeds the welcome message on first use."""
        key = (user_id, session_id)
        session = self._sessions.get(key)
        if session is None:
            session = ChatSession(session_id=session_id, user_id=user_id)
            self._remember(key, session)
            await self._load_history(session)
        else:
            self._sessions.move_to_end(key)
        return session

    async def get_history(
        self, session_id: str, user_id: str | None = None
    ) -> list[ChatMessage]:
        session = await self.open_session(session_id, user_id)
        return [m for m in session.history if m.role != "system"]

    async def handle_message(
        self, session_id: str, text: str, user_id: str | None = None
    ) -> str:
        """Run one user turn through the registration flow or general chat."""
        if not self._running:
            raise RuntimeError("DialogueController not started")

        key = (user_id, session_id)
        session = self._sessions.get(key)
        if session is not None and session.awaiting_reply:
            raise SessionBusyError(f"Session {session_id} is still processing a message")

        is_new = session is None
        if is_new:
            session = ChatSession(session_id=session_id, user_id=user_id)
            self._remember(key, session)
        else:
            self._sessions.move_to_end(key)

        # Claim the session before the first await.
        session.awaiting_reply = True
        try:
            if is_new:
                await self._load_history(session)
            return await self._handle_turn(session, text)
        finally:
            session.awaiting_reply = False

    async def _handle_turn(self, session: ChatSession, text: str) -> str:
        user_message = ChatMessage(role="user", content=text)
        session.add(user_message)
        await self._persist(session, user_message)

        logger.info(
            "Message received: %s",
            text[:100],
            extra={"session_id": session.session_id},
        )
        await self._tracker.track(
            event_type="message_received",
            actor=ACTOR,
            data={
                "session_id": session.session_id,
                "user_id": session.user_id,
                "message_text": text,
                "draft_active": session.draft is not None,
            },
        )

        if session.draft is not None:
            if is_abandon_request(text):
                session.clear_draft()
                return await self._respond(session, prompts.ABANDONED_REPLY)

            if not session.processing_registration:
                reply = await self._process_draft(session, text)
                if reply is not None:
                    return await self._respond(session, reply)
        else:
            reply = await self._detect_intent(session)
            if reply is not None:
                return await self._respond(session, reply)

        return await self._general_chat(session)

    async def _process_draft(self, session: ChatSession, text: str) -> str | None:
        """Merge the latest turn into the draft and register once it is complete.

        Returns the reply for this turn, or None when more information is
        still needed and general chat should answer.
        """
        session.processing_registration = True
        try:
            draft = session.draft
            scraped = scrape_fields(text)
            if scraped.workshop_title:
                draft.workshop_title = scraped.workshop_title
            draft.user_info.merge(scraped.user_info)

            if session.authenticated and not draft.user_info.has_full_contact():
                await self._backfill_contact(session.user_id, draft.user_info)

            if not self._ready_to_register(session, draft):
                return None

            return await self._attempt_registration(session, draft)
        except Exception as e:
            logger.error(
                "Registration step failed: %s",
                e,
                exc_info=True,
                extra={"session_id": session.session_id},
            )
            return prompts.ERROR_REPLY
        finally:
            session.processing_registration = False

    @staticmethod
    def _ready_to_register(session: ChatSession, draft: RegistrationDraft) -> bool:
        if not draft.workshop_title:
            return False
        if draft.user_info.has_full_contact():
            return True
        return session.authenticated and bool(draft.user_info.email)

    async def _backfill_contact(self, user_id: str, info: UserInfo) -> None:
        """Fill contact fields from the account and the user's last registration."""
        if not info.email:
            account = await self._storage.get_account(user_id)
            if account and account.email:
                info.email = account.email

        if not info.first_name or not info.last_name:
            recent = await self._storage.most_recent_registration(user_id)
            if recent:
                info.merge(
                    UserInfo(
                        first_name=recent.first_name or None,
                        last_name=recent.last_name or None,
                    )
                )

        if not info.first_name and not info.last_name and info.email:
            info.merge(names_from_email(info.email))

    async def _attempt_registration(
        self, session: ChatSession, draft: RegistrationDraft
    ) -> str:
        title = draft.workshop_title

        if session.authenticated and await self._registration.is_user_registered(
            session.user_id, title
        ):
            session.clear_draft()
            return prompts.already_registered_reply(title)

        await self._tracker.track(
            event_type="registration_attempted",
            actor=ACTOR,
            data={"session_id": session.session_id, "workshop_title": title},
        )
        outcome = await self._registration.register(title, session.user_id, draft.user_info)

        if outcome.status == RegistrationStatus.REGISTERED:
            await self._tracker.track(
                event_type="registration_completed",
                actor=ACTOR,
                data={
                    "session_id": session.session_id,
                    "workshop_id": outcome.workshop.id,
                    "workshop_title": outcome.workshop.title,
                },
            )
            session.clear_draft()
            return prompts.registration_confirmed_reply(outcome.workshop.title)

        await self._tracker.track(
            event_type="registration_failed",
            actor=ACTOR,
            data={
                "session_id": session.session_id,
                "workshop_title": title,
                "status": outcome.status.value,
            },
        )

        if outcome.status == RegistrationStatus.ALREADY_REGISTERED:
            session.clear_draft()
            return prompts.already_registered_reply(outcome.workshop.title)

        if outcome.status == RegistrationStatus.WORKSHOP_FULL:
            session.clear_draft()
            return prompts.workshop_full_reply(outcome.workshop.title)

        reply = prompts.registration_failed_reply(title, outcome.message)
        missing = draft.user_info.missing_contact_fields()
        if missing:
            reply = f"{reply} {prompts.missing_fields_prompt(missing)}"
        return reply

    async def _detect_intent(self, session: ChatSession) -> str | None:
        """Start a draft or handle a cancellation when the transcript asks for one."""
        transcript = session.history[session.extraction_offset:]
        intent = extract_registration_intent(transcript)
        if not intent.intent:
            return None

        await self._tracker.track(
            event_type="registration_intent_detected",
            actor=ACTOR,
            data={
                "session_id": session.session_id,
                "deregister": intent.deregister,
                "workshop_title": intent.workshop_title,
            },
        )

        try:
            if intent.deregister:
                return await self._handle_deregistration(session, intent.workshop_title)

            if intent.workshop_title and await self._registration.is_user_registered(
                session.user_id, intent.workshop_title
            ):
                session.extraction_offset = len(session.history)
                return prompts.already_registered_reply(intent.workshop_title)
        except Exception as e:
            logger.error(
                "Intent handling failed: %s",
                e,
                exc_info=True,
                extra={"session_id": session.session_id},
            )
            return prompts.ERROR_REPLY

        session.draft = RegistrationDraft(
            workshop_title=intent.workshop_title,
            user_info=intent.user_info or UserInfo(),
        )
        return None

    async def _handle_deregistration(
        self, session: ChatSession, title: str | None
    ) -> str | None:
        if not title:
            # Let the model ask which workshop.
            return None

        session.extraction_offset = len(session.history)
        if not session.authenticated:
            return prompts.SIGN_IN_TO_CANCEL_REPLY

        outcome = await self._registration.deregister(title, session.user_id)
        if outcome.success:
            await self._tracker.track(
                event_type="deregistration_completed",
                actor=ACTOR,
                data={"session_id": session.session_id, "workshop_id": outcome.workshop.id},
            )
        resolved = outcome.workshop.title if outcome.workshop else title
        return prompts.deregistration_reply(resolved, outcome.success, outcome.message)

    async def _general_chat(self, session: ChatSession) -> str:
        system_prompt = await self._system_prompt(session)
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(m.to_dict() for m in session.history if m.role != "system")

        try:
            reply = await asyncio.wait_for(
                self._completion.complete(messages=messages), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.error(
                "Completion timed out after %ss",
                self._timeout,
                extra={"session_id": session.session_id},
            )
            await self._track_completion_failure(session, "timeout")
            reply = prompts.APOLOGY_REPLY
        except CompletionError as e:
            logger.error(
                "Completion failed: %s", e, extra={"session_id": session.session_id}
            )
            await self._track_completion_failure(session, str(e))
            reply = prompts.APOLOGY_REPLY
        except Exception as e:
            logger.error(
                "Unexpected completion error: %s",
                e,
                exc_info=True,
                extra={"session_id": session.session_id},
            )
            await self._track_completion_failure(session, str(e))
            reply = prompts.APOLOGY_REPLY

        return await self._respond(session, reply)

    async def _track_completion_failure(self, session: ChatSession, reason: str) -> None:
        await self._tracker.track(
            event_type="completion_failed",
            actor=ACTOR,
            data={"session_id": session.session_id, "reason": reason},
        )

    async def _system_prompt(self, session: ChatSession) -> str:
        try:
            workshops = await self._storage.list_workshops()
            account = None
            registrations = []
            if session.authenticated:
                account = await self._storage.get_account(session.user_id)
                registrations = await self._storage.list_user_registrations(session.user_id)
        except Exception as e:
            logger.error(
                "Could not load data for system prompt: %s",
                e,
                extra={"session_id": session.session_id},
            )
            return prompts.fallback_system_prompt()

        return prompts.build_system_prompt(
            workshops=workshops,
            authenticated=session.authenticated,
            account=account,
            registrations=registrations,
            draft=session.draft,
        )

    async def _respond(self, session: ChatSession, reply: str) -> str:
        assistant_message = ChatMessage(role="assistant", content=reply)
        session.add(assistant_message)
        await self._persist(session, assistant_message)

        await self._tracker.track(
            event_type="message_responded",
            actor=ACTOR,
            data={
                "session_id": session.session_id,
                "user_id": session.user_id,
                "response_text": reply,
            },
        )
        return reply

    async def _persist(self, session: ChatSession, message: ChatMessage) -> None:
        """Save a turn for authenticated sessions; failures are only logged."""
        if not session.authenticated:
            return
        try:
            await self._storage.save_chat_message(
                session.user_id, session.session_id, message
            )
        except Exception as e:
            logger.warning(
                "Failed to persist chat message: %s",
                e,
                extra={"session_id": session.session_id},
            )

    async def _load_history(self, session: ChatSession) -> None:
        history: list[ChatMessage] = []
        if session.authenticated:
            try:
                history = await self._storage.get_chat_history(
                    session.user_id, session.session_id
                )
            except Exception as e:
                logger.error(
                    "Failed to load chat history: %s",
                    e,
                    extra={"session_id": session.session_id},
                )

        if history:
            session.history = history
            session.extraction_offset = len(history)
            return

        welcome = ChatMessage(role="assistant", content=prompts.WELCOME_MESSAGE)
        session.add(welcome)
        await self._persist(session, welcome)

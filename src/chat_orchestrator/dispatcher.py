from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from chat_orchestrator.api.repository_client import GenerationReply, SessionRepositoryClient
from chat_orchestrator.archival_guard import can_mutate
from chat_orchestrator.errors import (
    ARCHIVED_SEND_MESSAGE,
    GENERATION_ERROR_REPLY,
    IDENTITY_MISSING_MESSAGE,
    SAVE_FAILED_MESSAGE,
    SEND_FAILED_MESSAGE,
    SEND_IN_PROGRESS_MESSAGE,
    SESSION_CREATE_FAILED_MESSAGE,
    ChatClientError,
)
from chat_orchestrator.feedback import FeedbackHydrator
from chat_orchestrator.models import (
    FeedbackSummary,
    GenerationParams,
    Message,
    MessageType,
    Session,
    new_message_id,
)
from chat_orchestrator.session_list import SessionListManager
from chat_orchestrator.session_store import SessionStore
from chat_orchestrator.timestamps import utc_now
from chat_orchestrator.typing_animator import TypingAnimator


class SendStatus:
    SENT = "sent"
    REJECTED = "rejected"
    GENERATION_FAILED = "generation_failed"
    PERSIST_FAILED = "persist_failed"
    CANCELLED = "cancelled"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class SendResult:
    status: str
    user_message: Message | None = None
    assistant_message: Message | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == SendStatus.SENT


@dataclass(frozen=True)
class GenerationDefaults:
    min_new_tokens: int = 150
    new_tokens_per_char: float = 2.5
    num_beams: int = 2

    def resolve(self, text: str, max_new_tokens: int | None, num_beams: int | None) -> GenerationParams:
        if max_new_tokens is None:
            max_new_tokens = round(max(self.min_new_tokens, len(text) * self.new_tokens_per_char))
        return GenerationParams(
            max_new_tokens=max_new_tokens,
            num_beams=num_beams if num_beams is not None else self.num_beams,
        )


class MessageDispatcher:
    """Drives one user turn: optimistic insert, generate, reveal, persist, hydrate.

    Nothing is rolled back. A failed generation leaves the user message and
    adds a visible error reply; a failed save keeps both messages on screen.
    A send whose session stops being current before the reply arrives, or
    whose reveal is cancelled, is dropped without persisting. Reopening the
    same session while the reply is pending does not drop it.
    """

    def __init__(
        self,
        client: SessionRepositoryClient,
        store: SessionStore,
        animator: TypingAnimator,
        hydrator: FeedbackHydrator,
        sessions: SessionListManager,
        *,
        defaults: GenerationDefaults | None = None,
    ):
        self._client = client
        self._store = store
        self._animator = animator
        self._hydrator = hydrator
        self._sessions = sessions
        self._defaults = defaults or GenerationDefaults()
        self._in_flight: set[str] = set()
        self._creating = False

    def is_sending(self, session_id: str) -> bool:
        return session_id in self._in_flight

    async def send_message(
        self,
        text: str,
        *,
        max_new_tokens: int | None = None,
        num_beams: int | None = None,
    ) -> SendResult:
        if not text.strip():
            return SendResult(SendStatus.REJECTED)
        if not self._client.has_identity:
            return self._reject(IDENTITY_MISSING_MESSAGE)

        session = self._store.state.current_session
        if session is not None:
            if not can_mutate(session):
                return self._reject(ARCHIVED_SEND_MESSAGE)
            if self.is_sending(session.id):
                return self._reject(SEND_IN_PROGRESS_MESSAGE)
        elif self._creating:
            return self._reject(SEND_IN_PROGRESS_MESSAGE)

        self._store.set_error(None)
        self._store.set_loading(True)

        if session is None:
            session = await self._create_session()
            if session is None:
                self._store.set_loading(False)
                if self._store.state.error is None:
                    self._store.set_error(SESSION_CREATE_FAILED_MESSAGE)
                return SendResult(SendStatus.REJECTED, error=self._store.state.error)
            if not can_mutate(session):
                self._store.set_loading(False)
                return self._reject(ARCHIVED_SEND_MESSAGE)

        params = self._defaults.resolve(text, max_new_tokens, num_beams)
        self._in_flight.add(session.id)
        try:
            return await self._dispatch(session, text, params)
        finally:
            self._in_flight.discard(session.id)

    async def _create_session(self) -> Session | None:
        # Sends made while the first session is being created are refused.
        self._creating = True
        try:
            return await self._sessions.new_session()
        finally:
            self._creating = False

    async def _dispatch(self, session: Session, text: str, params: GenerationParams) -> SendResult:
        user_message = Message.user(text)
        self._store.update_current_session(session.id, lambda s: s.with_message(user_message))
        logger.info(f"Sending message {user_message.id} in session {session.id}")

        try:
            reply = await self._client.generate(text, params)
        except ChatClientError as ex:
            logger.error(f"Generation failed for session {session.id}: {ex}")
            error_message = Message.assistant_error(GENERATION_ERROR_REPLY)
            self._store.set_loading(False)
            self._store.update_current_session(session.id, lambda s: _attach(s, user_message, error_message))
            self._store.set_error(SEND_FAILED_MESSAGE)
            return SendResult(
                SendStatus.GENERATION_FAILED,
                user_message=user_message,
                assistant_message=error_message,
                error=SEND_FAILED_MESSAGE,
            )

        assistant_message = self._build_assistant_message(reply)
        placeholder = assistant_message.with_content("")
        inserted = self._store.update_current_session(
            session.id,
            lambda s: _attach(s, user_message, placeholder),
        )
        self._store.set_loading(False)
        if inserted is None:
            logger.info(f"Session {session.id} left before the reply arrived; dropping send")
            return SendResult(SendStatus.ABANDONED, user_message=user_message, assistant_message=assistant_message)

        handle = self._animator.start(reply.output_text, assistant_message.id)
        if not await handle.wait():
            logger.info(f"Reveal of {assistant_message.id} cancelled; nothing persisted")
            return SendResult(
                SendStatus.CANCELLED,
                user_message=user_message,
                assistant_message=assistant_message.with_content(handle.revealed_text),
            )

        self._store.update_current_session(
            session.id,
            lambda s: _attach(s, user_message, assistant_message),
        )

        try:
            await self._client.append_messages(session.id, [user_message, assistant_message])
        except ChatClientError as ex:
            logger.error(f"Persisting messages for session {session.id} failed: {ex}")
            self._store.set_error(SAVE_FAILED_MESSAGE)
            return SendResult(
                SendStatus.PERSIST_FAILED,
                user_message=user_message,
                assistant_message=assistant_message,
                error=SAVE_FAILED_MESSAGE,
            )

        self._store.touch_session(session.id, utc_now())
        await self._hydrator.refresh_one(assistant_message.id)
        logger.info(f"Persisted turn {user_message.id} -> {assistant_message.id}")
        return SendResult(SendStatus.SENT, user_message=user_message, assistant_message=assistant_message)

    def _build_assistant_message(self, reply: GenerationReply) -> Message:
        return Message(
            id=new_message_id("assistant"),
            type=MessageType.ASSISTANT,
            content=reply.output_text,
            timestamp=utc_now(),
            metadata={"generation_params": reply.generation_params},
            output_tokens=reply.output_tokens,
            generation_time_ms=reply.generation_time_ms,
            feedback_summary=FeedbackSummary.empty(),
        )

    def _reject(self, message: str) -> SendResult:
        self._store.set_error(message)
        return SendResult(SendStatus.REJECTED, error=message)


def _attach(session: Session, user_message: Message, reply: Message) -> Session:
    """Put the turn's user message and reply on ``session``, replacing earlier copies.

    A reload of the same session while the turn is outstanding returns it
    without the unsaved user message, so both are (re)inserted here.
    """
    for message in (user_message, reply):
        if session.has_message(message.id):
            session = session.update_message(message.id, lambda _, m=message: m)
        else:
            session = session.with_message(message)
    return session

from __future__ import annotations

import asyncio
from collections.abc import Callable

from loguru import logger

from chat_orchestrator.api.repository_client import SessionRepositoryClient
from chat_orchestrator.errors import (
    IDENTITY_MISSING_MESSAGE,
    RATING_FAILED_MESSAGE,
    REACTION_FAILED_MESSAGE,
    ChatClientError,
)
from chat_orchestrator.models import FeedbackSummary, Message, Reaction, Session
from chat_orchestrator.session_store import SessionStore

_MIN_RATING = 1
_MAX_RATING = 5


class FeedbackHydrator:
    def __init__(
        self,
        client: SessionRepositoryClient,
        store: SessionStore,
        *,
        default_feedback_type: str = "general",
    ):
        self._client = client
        self._store = store
        self._default_feedback_type = default_feedback_type

    async def hydrate(self, session: Session) -> Session:
        """Attach a feedback summary to every assistant message of ``session``.

        A failed fetch degrades that one message to the empty summary; the
        rest of the batch is unaffected.
        """
        if not self._client.has_identity:
            return session
        assistant_ids = [m.id for m in session.assistant_messages()]
        if not assistant_ids:
            return session

        summaries = await asyncio.gather(*(self._fetch_or_empty(mid) for mid in assistant_ids))
        by_id = dict(zip(assistant_ids, summaries))
        logger.debug(f"Hydrated {len(by_id)} feedback summaries for session {session.id}")
        return session.with_messages(
            [m.with_feedback(by_id[m.id]) if m.id in by_id else m for m in session.messages]
        )

    async def refresh_one(self, message_id: str) -> FeedbackSummary | None:
        if not self._client.has_identity:
            return None
        try:
            summary = await self._client.get_feedback(message_id)
        except ChatClientError as ex:
            logger.debug(f"Feedback refresh for {message_id} skipped: {ex}")
            return None
        self._merge_into_current(message_id, lambda m: m.with_feedback(summary))
        return summary

    async def submit_rating(
        self,
        message_id: str,
        rating: int,
        comment: str = "",
        feedback_type: str | None = None,
    ) -> bool:
        if not self._client.has_identity:
            self._store.set_error(IDENTITY_MISSING_MESSAGE)
            return False
        if not _MIN_RATING <= rating <= _MAX_RATING:
            raise ValueError(f"Rating must be between {_MIN_RATING} and {_MAX_RATING}, got {rating}")
        if not self._is_assistant_message(message_id):
            logger.warning(f"Refusing rating for non-assistant message {message_id}")
            return False

        comment = comment or ""
        self._merge_into_current(
            message_id,
            lambda m: m.with_feedback((m.feedback_summary or FeedbackSummary.empty()).merge_rating(rating, comment)),
        )

        submitted = True
        try:
            await self._client.submit_comment(
                message_id,
                rating,
                comment,
                feedback_type or self._default_feedback_type,
            )
            logger.info(f"Rating {rating} submitted for message {message_id}")
        except ChatClientError as ex:
            logger.error(f"Rating submission for {message_id} failed: {ex}")
            self._store.set_error(RATING_FAILED_MESSAGE)
            submitted = False

        await self.refresh_one(message_id)
        return submitted

    async def set_reaction(self, message_id: str, reaction: str | None) -> bool:
        if reaction is not None and reaction not in Reaction.ALL:
            raise ValueError(f"Unknown reaction: {reaction!r}")
        if not self._client.has_identity:
            self._store.set_error(IDENTITY_MISSING_MESSAGE)
            return False
        if not self._is_assistant_message(message_id):
            logger.warning(f"Refusing reaction for non-assistant message {message_id}")
            return False

        try:
            await self._client.set_reaction(message_id, reaction)
        except ChatClientError as ex:
            logger.error(f"Reaction update for {message_id} failed: {ex}")
            self._store.set_error(REACTION_FAILED_MESSAGE)
            return False

        self._merge_into_current(message_id, lambda m: m.with_reaction(reaction))
        return True

    async def _fetch_or_empty(self, message_id: str) -> FeedbackSummary:
        try:
            return await self._client.get_feedback(message_id)
        except ChatClientError as ex:
            logger.debug(f"Feedback fetch for {message_id} failed, using empty summary: {ex}")
            return FeedbackSummary.empty()

    def _is_assistant_message(self, message_id: str) -> bool:
        current = self._store.state.current_session
        if current is None:
            return False
        message = current.get_message(message_id)
        return message is not None and message.is_assistant

    def _merge_into_current(self, message_id: str, fn: Callable[[Message], Message]) -> None:
        current = self._store.state.current_session
        if current is None or not current.has_message(message_id):
            return

        def apply(session: Session) -> Session:
            return session.update_message(message_id, lambda m: fn(m) if m.is_assistant else m)

        self._store.update_current_session(current.id, apply)

from __future__ import annotations

from loguru import logger

from chat_orchestrator.api.repository_client import SessionRepositoryClient
from chat_orchestrator.errors import (
    ARCHIVE_FAILED_MESSAGE,
    ARCHIVED_VIEW_MESSAGE,
    DELETE_FAILED_MESSAGE,
    EMPTY_TITLE_MESSAGE,
    IDENTITY_MISSING_MESSAGE,
    RENAME_FAILED_MESSAGE,
    RESTORE_FAILED_MESSAGE,
    SESSION_CREATE_FAILED_MESSAGE,
    SESSION_GONE_MESSAGE,
    SESSION_LOAD_FAILED_MESSAGE,
    ChatClientError,
    SessionNotFoundError,
)
from chat_orchestrator.feedback import FeedbackHydrator
from chat_orchestrator.models import Session, SessionState
from chat_orchestrator.session_store import SessionStore, SessionView
from chat_orchestrator.typing_animator import TypingAnimator


class SessionListManager:
    """Session navigation and lifecycle: select, create, rename, archive, restore, delete.

    Lifecycle changes are server-confirmed; the store is only touched after the
    backend accepted the call.
    """

    def __init__(
        self,
        client: SessionRepositoryClient,
        store: SessionStore,
        animator: TypingAnimator,
        hydrator: FeedbackHydrator,
        *,
        default_title: str = "New Chat",
    ):
        self._client = client
        self._store = store
        self._animator = animator
        self._hydrator = hydrator
        self._default_title = default_title

    # -- lists --

    async def load_sessions(self) -> list[Session] | None:
        if not self._client.has_identity:
            return None
        try:
            sessions = await self._client.list_sessions()
        except ChatClientError as ex:
            logger.error(f"Failed to load chat sessions: {ex}")
            return None
        self._store.set_sessions(sessions)
        logger.info(f"Loaded {len(sessions)} ongoing sessions")
        return sessions

    async def load_archived_sessions(self) -> list[Session] | None:
        if not self._client.has_identity:
            return None
        self._store.set_loading_archived(True)
        try:
            sessions = await self._client.list_archived_sessions()
        except ChatClientError as ex:
            logger.error(f"Failed to load archived sessions: {ex}")
            return None
        finally:
            self._store.set_loading_archived(False)
        self._store.set_archived_sessions(sessions)
        logger.info(f"Loaded {len(sessions)} archived sessions")
        return sessions

    async def show_view(self, view: str) -> None:
        if view not in (SessionView.ONGOING, SessionView.ARCHIVED):
            raise ValueError(f"Unknown session view: {view!r}")
        self._store.set_view(view)
        if view == SessionView.ARCHIVED:
            await self.load_archived_sessions()

    # -- navigation --

    def stop_typing(self) -> None:
        """Cancel any running reveal, keeping its partial text on the placeholder."""
        frame = self._animator.cancel()
        if frame is None or frame.message_id is None or not frame.text:
            return
        current = self._store.state.current_session
        if current is None:
            return
        message_id = frame.message_id
        self._store.update_current_session(
            current.id,
            lambda s: s.update_message(message_id, lambda m: m.with_content(frame.text)),
        )

    async def select_session(self, session_id: str) -> Session | None:
        if not self._client.has_identity:
            return None
        self.stop_typing()
        epoch = self._store.begin_navigation()

        try:
            session = await self._client.load_session(session_id)
        except SessionNotFoundError:
            logger.info(f"Session {session_id} is gone")
            if self._store.set_current_session(None, epoch=epoch):
                self._store.set_error(SESSION_GONE_MESSAGE)
            return None
        except ChatClientError as ex:
            logger.error(f"Failed to load session {session_id}: {ex}")
            if self._store.state.epoch == epoch:
                self._store.set_error(SESSION_LOAD_FAILED_MESSAGE)
            return None

        if session.state != SessionState.ONGOING:
            logger.info(f"Session {session_id} is {session.state}; not opening it")
            if self._store.set_current_session(None, epoch=epoch):
                self._store.set_error(ARCHIVED_VIEW_MESSAGE if session.state == SessionState.ARCHIVED else SESSION_GONE_MESSAGE)
            return None

        hydrated = await self._hydrator.hydrate(session)
        if not self._store.set_current_session(hydrated, epoch=epoch):
            return None
        self._store.dismiss_error()
        logger.info(f"Selected session {session_id} ({len(hydrated.messages)} messages)")
        return hydrated

    async def new_session(self, title: str | None = None) -> Session | None:
        if not self._client.has_identity:
            self._store.set_error(IDENTITY_MISSING_MESSAGE)
            return None
        self.stop_typing()
        epoch = self._store.begin_navigation()

        try:
            session = await self._client.create_session((title or "").strip() or self._default_title)
        except ChatClientError as ex:
            logger.error(f"Failed to create session: {ex}")
            self._store.set_error(SESSION_CREATE_FAILED_MESSAGE)
            return None

        self._store.prepend_session(session)
        if not self._store.set_current_session(session, epoch=epoch):
            return None
        self._store.dismiss_error()
        logger.info(f"Created session {session.id}")
        return session

    # -- lifecycle --

    async def archive(self, session_id: str) -> bool:
        if not await self._confirm(self._client.archive_session, session_id, ARCHIVE_FAILED_MESSAGE, "archive"):
            return False
        self._store.update_current_session(session_id, lambda s: s.with_state(SessionState.ARCHIVED))
        await self._reload_lists()
        return True

    async def restore(self, session_id: str) -> bool:
        if not await self._confirm(self._client.restore_session, session_id, RESTORE_FAILED_MESSAGE, "restore"):
            return False
        self._store.update_current_session(session_id, lambda s: s.with_state(SessionState.ONGOING))
        await self.load_archived_sessions()
        self._store.set_view(SessionView.ONGOING)
        await self.load_sessions()
        return True

    async def soft_delete(self, session_id: str) -> bool:
        if not await self._confirm(self._client.delete_session, session_id, DELETE_FAILED_MESSAGE, "delete"):
            return False
        current = self._store.state.current_session
        if current is not None and current.id == session_id:
            self._animator.cancel()
            self._store.begin_navigation()
            self._store.set_current_session(None)
        await self._reload_lists()
        return True

    async def rename_session(self, session_id: str, title: str) -> bool:
        trimmed = title.strip()
        if not trimmed:
            self._store.set_error(EMPTY_TITLE_MESSAGE)
            return False
        if not self._client.has_identity:
            self._store.set_error(IDENTITY_MISSING_MESSAGE)
            return False
        try:
            await self._client.rename_session(session_id, trimmed)
        except ChatClientError as ex:
            logger.error(f"Failed to rename session {session_id}: {ex}")
            self._store.set_error(RENAME_FAILED_MESSAGE)
            return False

        self._store.update_session_entry(session_id, lambda s: s.with_title(trimmed))
        self._store.update_current_session(session_id, lambda s: s.with_title(trimmed))
        if self._store.state.view == SessionView.ARCHIVED:
            await self.load_archived_sessions()
        logger.info(f"Renamed session {session_id} to {trimmed!r}")
        return True

    async def _confirm(self, call, session_id: str, failure_message: str, action: str) -> bool:
        if not self._client.has_identity:
            self._store.set_error(IDENTITY_MISSING_MESSAGE)
            return False
        try:
            await call(session_id)
        except ChatClientError as ex:
            logger.error(f"Failed to {action} session {session_id}: {ex}")
            self._store.set_error(failure_message)
            return False
        logger.info(f"Session {session_id}: {action} confirmed")
        return True

    async def _reload_lists(self) -> None:
        await self.load_sessions()
        if self._store.state.view == SessionView.ARCHIVED:
            await self.load_archived_sessions()

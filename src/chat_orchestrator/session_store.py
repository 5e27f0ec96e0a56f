from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace

from loguru import logger

from chat_orchestrator.models import Session
from chat_orchestrator.typing_animator import TypingFrame


class SessionView:
    ONGOING = "ongoing"
    ARCHIVED = "archived"


@dataclass(frozen=True)
class StoreState:
    current_session: Session | None = None
    sessions: tuple[Session, ...] = ()
    archived_sessions: tuple[Session, ...] = ()
    view: str = SessionView.ONGOING
    is_loading: bool = False
    is_loading_archived: bool = False
    error: str | None = None
    typing: TypingFrame = field(default_factory=TypingFrame.idle)
    epoch: int = 0

    @property
    def visible_sessions(self) -> tuple[Session, ...]:
        return self.archived_sessions if self.view == SessionView.ARCHIVED else self.sessions


class SessionStore:
    """Single in-memory state container observed by the view layer.

    Every write swaps the whole StoreState snapshot, so subscribers only ever
    see complete states. ``epoch`` moves on each navigation; writers that
    captured an older epoch are ignored.
    """

    def __init__(self, initial: StoreState | None = None):
        self._state = initial or StoreState()
        self._subscribers: list[Callable[[StoreState], None]] = []

    @property
    def state(self) -> StoreState:
        return self._state

    def subscribe(self, callback: Callable[[StoreState], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # -- flags --

    def set_error(self, message: str | None) -> None:
        if message is not None:
            logger.warning(f"Store error: {message}")
        self._commit(error=message)

    def dismiss_error(self) -> None:
        self._commit(error=None)

    def set_loading(self, is_loading: bool) -> None:
        self._commit(is_loading=is_loading)

    def set_loading_archived(self, is_loading: bool) -> None:
        self._commit(is_loading_archived=is_loading)

    def set_view(self, view: str) -> None:
        self._commit(view=view)

    def set_typing(self, frame: TypingFrame) -> None:
        self._commit(typing=frame)

    # -- current session --

    def begin_navigation(self) -> int:
        epoch = self._state.epoch + 1
        self._commit(epoch=epoch)
        return epoch

    def set_current_session(self, session: Session | None, *, epoch: int | None = None) -> bool:
        if not self._epoch_matches(epoch):
            logger.debug(f"Dropping stale current-session write (epoch {epoch} != {self._state.epoch})")
            return False
        self._commit(current_session=session)
        return True

    def update_current_session(
        self,
        session_id: str,
        fn: Callable[[Session], Session],
        *,
        epoch: int | None = None,
    ) -> Session | None:
        """Apply ``fn`` to the current session if it is still ``session_id``.

        Returns the new session, or None when the write was dropped.
        """
        current = self._state.current_session
        if current is None or current.id != session_id or not self._epoch_matches(epoch):
            logger.debug(f"Dropping write for session {session_id}: no longer current")
            return None
        updated = fn(current)
        self._commit(current_session=updated)
        return updated

    # -- session lists --

    def set_sessions(self, sessions: list[Session]) -> None:
        self._commit(sessions=tuple(sessions))

    def set_archived_sessions(self, sessions: list[Session]) -> None:
        self._commit(archived_sessions=tuple(sessions))

    def prepend_session(self, session: Session) -> None:
        entry = session.with_messages(())
        rest = tuple(s for s in self._state.sessions if s.id != session.id)
        self._commit(sessions=(entry,) + rest)

    def update_session_entry(self, session_id: str, fn: Callable[[Session], Session]) -> None:
        self._commit(
            sessions=tuple(fn(s) if s.id == session_id else s for s in self._state.sessions),
            archived_sessions=tuple(
                fn(s) if s.id == session_id else s for s in self._state.archived_sessions
            ),
        )

    def touch_session(self, session_id: str, timestamp: str) -> None:
        touched = [s.touched(timestamp) for s in self._state.sessions if s.id == session_id]
        rest = tuple(s for s in self._state.sessions if s.id != session_id)
        changes: dict = {"sessions": tuple(touched) + rest}
        current = self._state.current_session
        if current is not None and current.id == session_id:
            changes["current_session"] = current.touched(timestamp)
        self._commit(**changes)

    def _epoch_matches(self, epoch: int | None) -> bool:
        return epoch is None or epoch == self._state.epoch

    def _commit(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for callback in list(self._subscribers):
            try:
                callback(self._state)
            except Exception as ex:
                logger.error(f"Store subscriber failed: {ex}")

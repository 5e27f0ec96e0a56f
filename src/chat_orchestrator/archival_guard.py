from __future__ import annotations

from chat_orchestrator.errors import ArchivedSessionError
from chat_orchestrator.models import Session, SessionState


def can_mutate(session: Session) -> bool:
    return session.state == SessionState.ONGOING


def ensure_mutable(session: Session) -> None:
    if not can_mutate(session):
        raise ArchivedSessionError(session.id)

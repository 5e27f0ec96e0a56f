from __future__ import annotations

import shlex
from dataclasses import dataclass

SESSION_USAGE = (
    "Usage: /session | /session list | /session archived | /session new [title] | "
    "/session open <id> | /session rename <id> <title> | /session archive <id> | "
    "/session restore <id> | /session delete <id>"
)
FEEDBACK_USAGE = (
    "Usage: /feedback like <message-id> | /feedback dislike <message-id> | "
    "/feedback clear <message-id> | /feedback rate <message-id> <1-5> [comment]"
)

_SESSION_ACTIONS_WITH_ID = {"open", "archive", "restore", "delete"}


@dataclass
class SessionCommand:
    action: str
    session_id: str | None = None
    title: str | None = None


@dataclass
class FeedbackCommand:
    action: str
    message_id: str
    rating: int | None = None
    comment: str = ""


def parse_command(command: str) -> list[str]:
    return shlex.split(command)


def parse_session_command(parts: list[str]) -> tuple[SessionCommand | None, str | None]:
    if len(parts) == 1:
        return SessionCommand("show"), None

    action = parts[1].lower()
    if action in ("list", "archived") and len(parts) == 2:
        return SessionCommand(action), None
    if action == "new":
        title = " ".join(parts[2:]).strip()
        return SessionCommand("new", title=title or None), None
    if action in _SESSION_ACTIONS_WITH_ID and len(parts) == 3:
        return SessionCommand(action, session_id=parts[2]), None
    if action == "rename" and len(parts) >= 4:
        title = " ".join(parts[3:]).strip()
        if title:
            return SessionCommand("rename", session_id=parts[2], title=title), None
    return None, SESSION_USAGE


def parse_feedback_command(parts: list[str]) -> tuple[FeedbackCommand | None, str | None]:
    if len(parts) < 3:
        return None, FEEDBACK_USAGE

    action = parts[1].lower()
    message_id = parts[2]
    if action in ("like", "dislike", "clear") and len(parts) == 3:
        return FeedbackCommand(action, message_id), None
    if action == "rate" and len(parts) >= 4:
        try:
            rating = int(parts[3])
        except ValueError:
            return None, "Rating must be an integer between 1 and 5"
        if not 1 <= rating <= 5:
            return None, "Rating must be an integer between 1 and 5"
        return FeedbackCommand("rate", message_id, rating=rating, comment=" ".join(parts[4:]).strip()), None
    return None, FEEDBACK_USAGE

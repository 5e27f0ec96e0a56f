from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any
from uuid import uuid4

from chat_orchestrator.timestamps import utc_now


class SessionState:
    ONGOING = "ongoing"
    ARCHIVED = "archived"
    DELETED = "deleted"

    ALL = frozenset({ONGOING, ARCHIVED, DELETED})


class MessageType:
    USER = "user"
    ASSISTANT = "assistant"


class Reaction:
    LIKE = "like"
    DISLIKE = "dislike"

    ALL = frozenset({LIKE, DISLIKE})


def new_message_id(suffix: str) -> str:
    return f"{uuid4().hex}_{suffix}"


def estimate_input_tokens(text: str) -> int:
    return max(1, len(text.split(" ")) + len(text) // 4)


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class FeedbackSummary:
    avg_rating: float | None = None
    comments_count: int = 0
    user_rating: int | None = None
    user_comment: str | None = None

    @classmethod
    def empty(cls) -> FeedbackSummary:
        return cls()

    @classmethod
    def from_api(cls, data: dict | None) -> FeedbackSummary:
        if not isinstance(data, dict):
            return cls.empty()
        return cls(
            avg_rating=_optional_float(data.get("avg_rating")),
            comments_count=_optional_int(data.get("comments_count")) or 0,
            user_rating=_optional_int(data.get("user_rating")),
            user_comment=data.get("user_comment") or None,
        )

    def to_api(self) -> dict:
        return {
            "avg_rating": self.avg_rating,
            "comments_count": self.comments_count,
            "user_rating": self.user_rating,
            "user_comment": self.user_comment,
        }

    def has_comment(self) -> bool:
        return bool((self.user_comment or "").strip())

    def merge_rating(self, rating: int, comment: str) -> FeedbackSummary:
        """Local estimate of the summary after the viewer rates the message."""
        will_comment = bool(comment.strip())
        bump = 1 if will_comment and not self.has_comment() else 0
        return FeedbackSummary(
            avg_rating=self.avg_rating if self.avg_rating is not None else float(rating),
            comments_count=self.comments_count + bump,
            user_rating=rating,
            user_comment=comment or None,
        )


@dataclass(frozen=True)
class GenerationParams:
    max_new_tokens: int
    num_beams: int

    def to_api(self) -> dict:
        return {"max_new_tokens": self.max_new_tokens, "num_beams": self.num_beams}


@dataclass(frozen=True)
class Message:
    id: str
    type: str
    content: str
    timestamp: str
    metadata: dict | None = None
    reaction: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    generation_time_ms: float | None = None
    feedback_summary: FeedbackSummary | None = None

    def __post_init__(self) -> None:
        if self.type not in (MessageType.USER, MessageType.ASSISTANT):
            raise ValueError(f"Unknown message type: {self.type!r}")
        if self.type == MessageType.USER and (self.reaction is not None or self.feedback_summary is not None):
            raise ValueError("User messages cannot carry a reaction or feedback summary")
        if self.reaction is not None and self.reaction not in Reaction.ALL:
            raise ValueError(f"Unknown reaction: {self.reaction!r}")

    @property
    def is_assistant(self) -> bool:
        return self.type == MessageType.ASSISTANT

    @classmethod
    def user(cls, text: str) -> Message:
        return cls(
            id=new_message_id("user"),
            type=MessageType.USER,
            content=text,
            timestamp=utc_now(),
            input_tokens=estimate_input_tokens(text),
        )

    @classmethod
    def assistant_error(cls, text: str) -> Message:
        return cls(
            id=new_message_id("error"),
            type=MessageType.ASSISTANT,
            content=text,
            timestamp=utc_now(),
        )

    @classmethod
    def from_api(cls, data: dict) -> Message:
        message_type = str(data.get("type") or data.get("role") or MessageType.USER)
        is_user = message_type == MessageType.USER
        summary = data.get("feedback_summary") or data.get("feedbackSummary")
        reaction = data.get("reaction")
        return cls(
            id=str(data["id"]),
            type=message_type,
            content=str(data.get("content") or ""),
            timestamp=str(data.get("timestamp") or data.get("created_at") or ""),
            metadata=data.get("metadata") or None,
            reaction=None if is_user or reaction not in Reaction.ALL else reaction,
            input_tokens=_optional_int(data.get("input_tokens")),
            output_tokens=_optional_int(data.get("output_tokens")),
            generation_time_ms=_optional_float(data.get("generation_time_ms")),
            feedback_summary=None if is_user or summary is None else FeedbackSummary.from_api(summary),
        )

    def to_api(self) -> dict:
        payload: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "content": self.content,
            "timestamp": self.timestamp,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "generation_time_ms": self.generation_time_ms,
        }
        if self.metadata is not None:
            payload["metadata"] = self.metadata
        if self.is_assistant:
            payload["reaction"] = self.reaction
        return payload

    def with_content(self, content: str) -> Message:
        return replace(self, content=content)

    def with_reaction(self, reaction: str | None) -> Message:
        return replace(self, reaction=reaction)

    def with_feedback(self, summary: FeedbackSummary) -> Message:
        return replace(self, feedback_summary=summary)


@dataclass(frozen=True)
class Session:
    id: str
    user_id: str
    title: str
    created_at: str
    updated_at: str
    state: str = SessionState.ONGOING
    messages: tuple[Message, ...] = field(default_factory=tuple)

    @classmethod
    def from_api(cls, data: dict) -> Session:
        state = str(data.get("state") or SessionState.ONGOING)
        if state not in SessionState.ALL:
            state = SessionState.ONGOING
        return cls(
            id=str(data["id"]),
            user_id=str(data.get("user_id") or ""),
            title=str(data.get("title") or ""),
            created_at=str(data.get("created_at") or ""),
            updated_at=str(data.get("updated_at") or data.get("created_at") or ""),
            state=state,
            messages=tuple(Message.from_api(m) for m in data.get("messages") or []),
        )

    def has_message(self, message_id: str) -> bool:
        return any(m.id == message_id for m in self.messages)

    def get_message(self, message_id: str) -> Message | None:
        return next((m for m in self.messages if m.id == message_id), None)

    def assistant_messages(self) -> list[Message]:
        return [m for m in self.messages if m.is_assistant]

    def with_message(self, message: Message) -> Session:
        if self.has_message(message.id):
            raise ValueError(f"Duplicate message id in session {self.id}: {message.id}")
        return replace(self, messages=self.messages + (message,))

    def update_message(self, message_id: str, fn: Callable[[Message], Message]) -> Session:
        if not self.has_message(message_id):
            return self
        return replace(
            self,
            messages=tuple(fn(m) if m.id == message_id else m for m in self.messages),
        )

    def with_messages(self, messages: list[Message] | tuple[Message, ...]) -> Session:
        return replace(self, messages=tuple(messages))

    def with_state(self, state: str) -> Session:
        return replace(self, state=state)

    def with_title(self, title: str) -> Session:
        return replace(self, title=title)

    def touched(self, timestamp: str) -> Session:
        return replace(self, updated_at=timestamp)

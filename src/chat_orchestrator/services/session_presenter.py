from __future__ import annotations

from datetime import datetime

from chat_orchestrator.models import FeedbackSummary, Message, MessageType, Session
from chat_orchestrator.timestamps import format_relative_time


class SessionPresenter:
    def __init__(self, *, line_prefix: str, short_id_len: int = 8, preview_chars: int = 140):
        self._line_prefix = line_prefix
        self._short_id_len = short_id_len
        self._preview_chars = preview_chars

    def short_id(self, value: str) -> str:
        if len(value) <= self._short_id_len:
            return value
        return value[: self._short_id_len]

    def format_session_list_entry(
        self,
        session: Session,
        *,
        active_session_id: str | None,
        now: datetime | None = None,
    ) -> str:
        marker = "*" if session.id == active_session_id else " "
        title = session.title or session.id
        updated = format_relative_time(session.updated_at, now=now) if session.updated_at else "-"
        return (
            f"{self._line_prefix}{marker} {title} (id={session.id}) "
            f"[{session.state}, updated {updated}]"
        )

    def format_message_line(self, message: Message, *, typing_text: str | None = None) -> str:
        content = typing_text if typing_text is not None else message.content
        label = "you" if message.type == MessageType.USER else "assistant"
        line = f"{self._line_prefix}[{self.short_id(message.id)}] {label}: {self._preview(content)}"
        if message.is_assistant:
            extras = self._assistant_extras(message)
            if extras:
                line += f"  ({extras})"
        return line

    def format_feedback(self, summary: FeedbackSummary) -> str:
        avg = f"{summary.avg_rating:.1f}" if summary.avg_rating is not None else "-"
        mine = str(summary.user_rating) if summary.user_rating is not None else "-"
        return f"avg {avg}, comments {summary.comments_count}, yours {mine}"

    def format_session_header(self, session: Session) -> list[str]:
        lines = [f"{self._line_prefix}{session.title or session.id} (id={session.id}, {session.state})"]
        if not session.messages:
            lines.append(f"{self._line_prefix}No messages yet.")
        return lines

    def _assistant_extras(self, message: Message) -> str:
        parts: list[str] = []
        if message.reaction:
            parts.append(message.reaction)
        if message.output_tokens:
            parts.append(f"{message.output_tokens} tokens")
        if message.generation_time_ms:
            parts.append(f"{message.generation_time_ms:.0f} ms")
        if message.feedback_summary is not None:
            parts.append(self.format_feedback(message.feedback_summary))
        return " | ".join(parts)

    def _preview(self, text: str) -> str:
        text = " ".join(text.split())
        if len(text) <= self._preview_chars:
            return text
        return text[: self._preview_chars - 3] + "..."

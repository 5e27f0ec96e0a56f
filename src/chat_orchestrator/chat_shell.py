from __future__ import annotations

import sys

from loguru import logger

from chat_orchestrator.bootstrap import ChatRuntime
from chat_orchestrator.commands.chat_command import (
    parse_command,
    parse_feedback_command,
    parse_session_command,
)
from chat_orchestrator.commands.router import CommandRouter
from chat_orchestrator.dispatcher import SendStatus
from chat_orchestrator.models import Message, Reaction
from chat_orchestrator.services.session_presenter import SessionPresenter
from chat_orchestrator.session_store import SessionView
from chat_orchestrator.typing_animator import TypingFrame


class ChatShell:
    """Terminal view over the runtime: typed text is sent, slash commands are routed."""

    _LINE_PREFIX = "assistant> "

    def __init__(self, runtime: ChatRuntime, *, out=None):
        self._runtime = runtime
        self._out = out or sys.stdout
        self._presenter = SessionPresenter(line_prefix=self._LINE_PREFIX)
        self._typed_length = 0
        self._last_error: str | None = None
        self._unsubscribe_typing = runtime.animator.subscribe(self._on_typing_frame)

        self._command_router = CommandRouter(
            on_help=self._on_help,
            on_session=self._handle_session_command,
            on_feedback=self._handle_feedback_command,
            on_messages=self._on_messages,
            on_dismiss=self._on_dismiss,
            on_unknown=self._on_unknown_command,
        )

    async def run(self, user_input: str) -> None:
        if await self._command_router.try_handle(user_input):
            self._report_error()
            return

        result = await self._runtime.dispatcher.send_message(user_input)
        if result.status == SendStatus.GENERATION_FAILED and result.assistant_message is not None:
            self._print(f"{self._LINE_PREFIX}{result.assistant_message.content}")
        elif result.status == SendStatus.ABANDONED:
            self._print(f"{self._LINE_PREFIX}[reply dropped: chat changed while waiting]")
        self._report_error()

    def close(self) -> None:
        self._unsubscribe_typing()

    # -- typing output --

    def _on_typing_frame(self, frame: TypingFrame) -> None:
        if not frame.is_typing:
            if self._typed_length:
                self._write("\n")
            self._typed_length = 0
            return
        if self._typed_length == 0:
            self._write(self._LINE_PREFIX)
        self._write(frame.text[self._typed_length :])
        self._typed_length = len(frame.text)

    # -- commands --

    async def _on_help(self) -> None:
        self._print(f"{self._LINE_PREFIX}Available commands:")
        self._print(f"{self._LINE_PREFIX}- /help")
        self._print(f"{self._LINE_PREFIX}- /messages")
        self._print(f"{self._LINE_PREFIX}- /dismiss")
        self._print(f"{self._LINE_PREFIX}- /session [list|archived]")
        self._print(f"{self._LINE_PREFIX}- /session new [title]")
        self._print(f"{self._LINE_PREFIX}- /session open <id>")
        self._print(f"{self._LINE_PREFIX}- /session rename <id> <title>")
        self._print(f"{self._LINE_PREFIX}- /session archive|restore|delete <id>")
        self._print(f"{self._LINE_PREFIX}- /feedback like|dislike|clear <message-id>")
        self._print(f"{self._LINE_PREFIX}- /feedback rate <message-id> <1-5> [comment]")

    async def _on_messages(self) -> None:
        session = self._runtime.store.state.current_session
        if session is None:
            self._print(f"{self._LINE_PREFIX}No chat selected.")
            return
        for line in self._presenter.format_session_header(session):
            self._print(line)
        for message in session.messages:
            self._print(self._presenter.format_message_line(message))

    async def _on_dismiss(self) -> None:
        self._runtime.store.dismiss_error()
        self._last_error = None

    def _on_unknown_command(self, trimmed: str) -> None:
        self._print(f"{self._LINE_PREFIX}Unknown local command: {trimmed}")

    async def _handle_session_command(self, command: str) -> None:
        try:
            parts = parse_command(command)
        except ValueError:
            self._print(f"{self._LINE_PREFIX}Invalid command syntax")
            return
        parsed, usage = parse_session_command(parts)
        if parsed is None:
            self._print(f"{self._LINE_PREFIX}{usage}")
            return

        sessions = self._runtime.sessions
        state = self._runtime.store.state
        if parsed.action == "show":
            current = state.current_session
            if current is None:
                self._print(f"{self._LINE_PREFIX}Current chat: none")
            else:
                self._print(f"{self._LINE_PREFIX}Current chat: {current.title} (id={current.id})")
            return

        if parsed.action in ("list", "archived"):
            await sessions.show_view(SessionView.ARCHIVED if parsed.action == "archived" else SessionView.ONGOING)
            if parsed.action == "list":
                await sessions.load_sessions()
            self._print_session_list()
            return

        if parsed.action == "new":
            session = await sessions.new_session(parsed.title)
            if session is not None:
                self._print(f"{self._LINE_PREFIX}Started new chat: {session.title} (id={session.id})")
            return

        assert parsed.session_id is not None
        if parsed.action == "open":
            session = await sessions.select_session(parsed.session_id)
            if session is not None:
                await self._on_messages()
            return
        if parsed.action == "rename":
            assert parsed.title is not None
            if await sessions.rename_session(parsed.session_id, parsed.title):
                self._print(f"{self._LINE_PREFIX}Chat renamed: {parsed.title}")
            return

        handlers = {
            "archive": sessions.archive,
            "restore": sessions.restore,
            "delete": sessions.soft_delete,
        }
        if await handlers[parsed.action](parsed.session_id):
            self._print(f"{self._LINE_PREFIX}Chat {parsed.session_id}: {parsed.action} done")

    async def _handle_feedback_command(self, command: str) -> None:
        try:
            parts = parse_command(command)
        except ValueError:
            self._print(f"{self._LINE_PREFIX}Invalid command syntax")
            return
        parsed, usage = parse_feedback_command(parts)
        if parsed is None:
            self._print(f"{self._LINE_PREFIX}{usage}")
            return

        message = self._resolve_message(parsed.message_id)
        if message is None:
            self._print(f"{self._LINE_PREFIX}No assistant message matches {parsed.message_id!r}")
            return

        hydrator = self._runtime.hydrator
        if parsed.action == "rate":
            assert parsed.rating is not None
            if await hydrator.submit_rating(message.id, parsed.rating, parsed.comment):
                self._print(f"{self._LINE_PREFIX}Thanks for the feedback.")
            return

        reaction = {"like": Reaction.LIKE, "dislike": Reaction.DISLIKE, "clear": None}[parsed.action]
        if await hydrator.set_reaction(message.id, reaction):
            self._print(f"{self._LINE_PREFIX}Reaction saved.")

    def _resolve_message(self, id_or_prefix: str) -> Message | None:
        session = self._runtime.store.state.current_session
        if session is None:
            return None
        matches = [m for m in session.assistant_messages() if m.id == id_or_prefix or m.id.startswith(id_or_prefix)]
        if len(matches) != 1:
            return None
        return matches[0]

    # -- output --

    def _print_session_list(self) -> None:
        state = self._runtime.store.state
        visible = state.visible_sessions
        if not visible:
            self._print(f"{self._LINE_PREFIX}No {state.view} chats.")
            return
        self._print(f"{self._LINE_PREFIX}{state.view.capitalize()} chats ({len(visible)}):")
        active_id = state.current_session.id if state.current_session else None
        for session in visible:
            self._print(self._presenter.format_session_list_entry(session, active_session_id=active_id))

    def _report_error(self) -> None:
        error = self._runtime.store.state.error
        if error and error != self._last_error:
            self._print(f"{self._LINE_PREFIX}[error] {error} (/dismiss to clear)")
        self._last_error = error

    def _print(self, line: str) -> None:
        self._write(line + "\n")

    def _write(self, text: str) -> None:
        try:
            self._out.write(text)
            self._out.flush()
        except (UnicodeEncodeError, OSError) as ex:
            logger.warning(f"Terminal write failed: {ex}")

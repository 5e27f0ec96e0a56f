from __future__ import annotations

from collections.abc import Awaitable, Callable


class CommandRouter:
    """Routes slash commands by their first word.

    ``/help``, ``/messages`` and ``/dismiss`` take no arguments; ``/session``
    and ``/feedback`` receive the full command line for their own parsing.
    """

    def __init__(
        self,
        *,
        on_help: Callable[[], Awaitable[None]],
        on_session: Callable[[str], Awaitable[None]],
        on_feedback: Callable[[str], Awaitable[None]],
        on_messages: Callable[[], Awaitable[None]],
        on_dismiss: Callable[[], Awaitable[None]],
        on_unknown: Callable[[str], None],
    ) -> None:
        self._bare: dict[str, Callable[[], Awaitable[None]]] = {
            "/help": on_help,
            "/messages": on_messages,
            "/dismiss": on_dismiss,
        }
        self._with_args: dict[str, Callable[[str], Awaitable[None]]] = {
            "/session": on_session,
            "/feedback": on_feedback,
        }
        self._on_unknown = on_unknown

    async def try_handle(self, user_message: str) -> bool:
        trimmed = user_message.strip()
        if not trimmed.startswith("/"):
            return False

        name, _, rest = trimmed.partition(" ")
        bare = self._bare.get(name)
        if bare is not None and not rest.strip():
            await bare()
            return True
        handler = self._with_args.get(name)
        if handler is not None:
            await handler(trimmed)
            return True

        self._on_unknown(trimmed)
        return True

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

_DEFAULT_INTERVAL_SECONDS = 0.03


@dataclass(frozen=True)
class TypingFrame:
    message_id: str | None
    text: str

    @classmethod
    def idle(cls) -> TypingFrame:
        return cls(message_id=None, text="")

    @property
    def is_typing(self) -> bool:
        return self.message_id is not None


class AnimationHandle:
    """Cancellation token and completion signal for one typing run."""

    def __init__(self, message_id: str, full_text: str):
        self.message_id = message_id
        self.full_text = full_text
        self.revealed_length = 0
        self._cancelled = False
        self._completed = False
        self._done = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def revealed_text(self) -> str:
        return self.full_text[: self.revealed_length]

    async def wait(self) -> bool:
        """Block until the run ends. True when the full text was revealed."""
        await self._done.wait()
        return self._completed

    def _cancel(self) -> None:
        self._cancelled = True
        self._done.set()

    def _complete(self) -> None:
        self._completed = True
        self._done.set()


class TypingAnimator:
    IDLE = "idle"
    TYPING = "typing"

    def __init__(self, *, interval_seconds: float = _DEFAULT_INTERVAL_SECONDS):
        self._interval_seconds = max(0.0, interval_seconds)
        self._active: AnimationHandle | None = None
        self._task: asyncio.Task | None = None
        self._subscribers: list[Callable[[TypingFrame], None]] = []

    @property
    def state(self) -> str:
        return self.TYPING if self._active is not None else self.IDLE

    @property
    def active_message_id(self) -> str | None:
        return self._active.message_id if self._active is not None else None

    @property
    def displayed_text(self) -> str:
        return self._active.revealed_text if self._active is not None else ""

    def subscribe(self, callback: Callable[[TypingFrame], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def start(
        self,
        full_text: str,
        message_id: str,
        on_complete: Callable[[], None] | None = None,
    ) -> AnimationHandle:
        if self._active is not None:
            logger.warning(
                f"Typing animation for {self._active.message_id} superseded by {message_id}"
            )
            self.cancel()

        handle = AnimationHandle(message_id, full_text)
        self._active = handle
        self._task = asyncio.create_task(self._run(handle, on_complete))
        logger.debug(f"Typing started: message={message_id}, chars={len(full_text)}")
        return handle

    def cancel(self) -> TypingFrame | None:
        """Stop the active run without calling its completion callback.

        Returns the last revealed frame, or None when nothing was running.
        """
        handle = self._active
        if handle is None:
            return None

        last_frame = TypingFrame(handle.message_id, handle.revealed_text)
        handle._cancel()
        self._active = None
        if self._task is not None:
            self._task.cancel()
            self._task = None
        logger.debug(
            f"Typing cancelled: message={handle.message_id}, "
            f"revealed={handle.revealed_length}/{len(handle.full_text)}"
        )
        self._publish(TypingFrame.idle())
        return last_frame

    async def _run(self, handle: AnimationHandle, on_complete: Callable[[], None] | None) -> None:
        total = len(handle.full_text)
        while handle.revealed_length < total:
            if handle.cancelled:
                return
            handle.revealed_length += 1
            self._publish(TypingFrame(handle.message_id, handle.revealed_text))
            await asyncio.sleep(self._interval_seconds)

        if handle.cancelled or self._active is not handle:
            return

        self._active = None
        self._task = None
        handle._complete()
        self._publish(TypingFrame.idle())
        logger.debug(f"Typing completed: message={handle.message_id}")

        if on_complete is not None:
            try:
                on_complete()
            except Exception as ex:
                logger.error(f"Typing completion callback failed for {handle.message_id}: {ex}")

    def _publish(self, frame: TypingFrame) -> None:
        for callback in list(self._subscribers):
            try:
                callback(frame)
            except Exception as ex:
                logger.error(f"Typing subscriber failed: {ex}")

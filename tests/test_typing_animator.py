import asyncio
import unittest

from chat_orchestrator.typing_animator import TypingAnimator, TypingFrame


class TypingAnimatorTests(unittest.TestCase):
    def test_reveals_growing_prefixes_and_completes_once(self) -> None:
        animator = TypingAnimator(interval_seconds=0)
        frames: list[TypingFrame] = []
        completions: list[str] = []
        animator.subscribe(frames.append)

        async def scenario() -> bool:
            handle = animator.start("hello", "m-1", on_complete=lambda: completions.append("done"))
            self.assertEqual(TypingAnimator.TYPING, animator.state)
            self.assertEqual("m-1", animator.active_message_id)
            return await handle.wait()

        finished = asyncio.run(scenario())

        self.assertTrue(finished)
        self.assertEqual(["done"], completions)
        typing = [f.text for f in frames if f.is_typing]
        self.assertEqual(["h", "he", "hel", "hell", "hello"], typing)
        self.assertEqual(TypingFrame.idle(), frames[-1])
        self.assertEqual(TypingAnimator.IDLE, animator.state)
        self.assertEqual("", animator.displayed_text)

    def test_empty_text_completes_immediately(self) -> None:
        animator = TypingAnimator(interval_seconds=0)
        completions: list[int] = []

        async def scenario() -> bool:
            handle = animator.start("", "m-1", on_complete=lambda: completions.append(1))
            return await handle.wait()

        self.assertTrue(asyncio.run(scenario()))
        self.assertEqual([1], completions)

    def test_cancel_stops_reveal_without_completion(self) -> None:
        animator = TypingAnimator(interval_seconds=0.01)
        text = "abcdefghij" * 5
        frames: list[TypingFrame] = []
        completions: list[int] = []
        animator.subscribe(frames.append)

        async def scenario():
            handle = animator.start(text, "m-1", on_complete=lambda: completions.append(1))
            await asyncio.sleep(0.035)
            last = animator.cancel()
            count_at_cancel = len(frames)
            finished = await handle.wait()
            await asyncio.sleep(0.05)
            return handle, last, finished, count_at_cancel

        handle, last, finished, count_at_cancel = asyncio.run(scenario())

        self.assertFalse(finished)
        self.assertTrue(handle.cancelled)
        self.assertEqual([], completions)
        self.assertEqual("m-1", last.message_id)
        self.assertTrue(last.text)
        self.assertTrue(text.startswith(last.text))
        self.assertLess(len(last.text), len(text))
        self.assertEqual(last.text, handle.revealed_text)
        self.assertEqual(count_at_cancel, len(frames))
        self.assertEqual(TypingFrame.idle(), frames[-1])

    def test_cancel_when_idle_is_a_noop(self) -> None:
        animator = TypingAnimator(interval_seconds=0)
        frames: list[TypingFrame] = []
        animator.subscribe(frames.append)

        self.assertIsNone(animator.cancel())
        self.assertEqual([], frames)

    def test_new_start_supersedes_running_animation(self) -> None:
        animator = TypingAnimator(interval_seconds=0.01)
        completions: list[str] = []

        async def scenario():
            first = animator.start("first reply " * 5, "m-1", on_complete=lambda: completions.append("m-1"))
            await asyncio.sleep(0.02)
            second = animator.start("ok", "m-2", on_complete=lambda: completions.append("m-2"))
            return await first.wait(), await second.wait()

        first_finished, second_finished = asyncio.run(scenario())

        self.assertFalse(first_finished)
        self.assertTrue(second_finished)
        self.assertEqual(["m-2"], completions)

    def test_failing_subscriber_does_not_stop_animation(self) -> None:
        animator = TypingAnimator(interval_seconds=0)
        seen: list[str] = []

        def broken(_frame: TypingFrame) -> None:
            raise RuntimeError("boom")

        animator.subscribe(broken)
        animator.subscribe(lambda f: seen.append(f.text))

        async def scenario() -> bool:
            return await animator.start("ab", "m-1").wait()

        self.assertTrue(asyncio.run(scenario()))
        self.assertEqual(["a", "ab", ""], seen)

    def test_unsubscribe_stops_delivery(self) -> None:
        animator = TypingAnimator(interval_seconds=0)
        frames: list[TypingFrame] = []
        unsubscribe = animator.subscribe(frames.append)
        unsubscribe()

        async def scenario() -> bool:
            return await animator.start("abc", "m-1").wait()

        self.assertTrue(asyncio.run(scenario()))
        self.assertEqual([], frames)


if __name__ == "__main__":
    unittest.main()

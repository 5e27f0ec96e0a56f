import asyncio
import unittest

from chat_orchestrator.commands.chat_command import (
    FEEDBACK_USAGE,
    SESSION_USAGE,
    FeedbackCommand,
    SessionCommand,
    parse_command,
    parse_feedback_command,
    parse_session_command,
)
from chat_orchestrator.commands.router import CommandRouter


class ParseSessionCommandTests(unittest.TestCase):
    def test_bare_session_shows_current(self) -> None:
        self.assertEqual((SessionCommand("show"), None), parse_session_command(["/session"]))

    def test_new_with_quoted_title(self) -> None:
        parsed, usage = parse_session_command(parse_command('/session new "Trip plans"'))
        self.assertIsNone(usage)
        self.assertEqual(SessionCommand("new", title="Trip plans"), parsed)

    def test_new_without_title(self) -> None:
        parsed, _ = parse_session_command(["/session", "new"])
        self.assertIsNone(parsed.title)

    def test_rename_joins_title_words(self) -> None:
        parsed, _ = parse_session_command(["/session", "rename", "s-1", "Weekly", "sync"])
        self.assertEqual(SessionCommand("rename", session_id="s-1", title="Weekly sync"), parsed)

    def test_actions_with_id(self) -> None:
        for action in ("open", "archive", "restore", "delete"):
            parsed, _ = parse_session_command(["/session", action, "s-9"])
            self.assertEqual(SessionCommand(action, session_id="s-9"), parsed)

    def test_invalid_forms_return_usage(self) -> None:
        for parts in (["/session", "open"], ["/session", "rename", "s-1"], ["/session", "bogus"]):
            self.assertEqual((None, SESSION_USAGE), parse_session_command(parts))


class ParseFeedbackCommandTests(unittest.TestCase):
    def test_reactions(self) -> None:
        for action in ("like", "dislike", "clear"):
            parsed, _ = parse_feedback_command(["/feedback", action, "a-1"])
            self.assertEqual(FeedbackCommand(action, "a-1"), parsed)

    def test_rate_with_comment(self) -> None:
        parsed, usage = parse_feedback_command(parse_command('/feedback rate a-1 5 "very helpful"'))
        self.assertIsNone(usage)
        self.assertEqual(FeedbackCommand("rate", "a-1", rating=5, comment="very helpful"), parsed)

    def test_rate_out_of_range(self) -> None:
        parsed, usage = parse_feedback_command(["/feedback", "rate", "a-1", "9"])
        self.assertIsNone(parsed)
        self.assertIn("between 1 and 5", usage)

    def test_rate_not_a_number(self) -> None:
        parsed, usage = parse_feedback_command(["/feedback", "rate", "a-1", "five"])
        self.assertIsNone(parsed)
        self.assertIn("integer", usage)

    def test_missing_message_id(self) -> None:
        self.assertEqual((None, FEEDBACK_USAGE), parse_feedback_command(["/feedback", "like"]))

    def test_unbalanced_quotes_raise(self) -> None:
        with self.assertRaises(ValueError):
            parse_command('/feedback rate a-1 4 "oops')


class CommandRouterTests(unittest.TestCase):
    def _router(self, calls: list[tuple[str, str]]) -> CommandRouter:
        async def record(name: str, value: str = "") -> None:
            calls.append((name, value))

        return CommandRouter(
            on_help=lambda: record("help"),
            on_session=lambda c: record("session", c),
            on_feedback=lambda c: record("feedback", c),
            on_messages=lambda: record("messages"),
            on_dismiss=lambda: record("dismiss"),
            on_unknown=lambda c: calls.append(("unknown", c)),
        )

    def test_routes_commands(self) -> None:
        calls: list[tuple[str, str]] = []
        router = self._router(calls)

        async def scenario() -> list[bool]:
            return [
                await router.try_handle("/help"),
                await router.try_handle("  /session list "),
                await router.try_handle("/feedback like a-1"),
                await router.try_handle("/messages"),
                await router.try_handle("/dismiss"),
                await router.try_handle("/nope"),
            ]

        handled = asyncio.run(scenario())

        self.assertEqual([True] * 6, handled)
        self.assertEqual(
            [
                ("help", ""),
                ("session", "/session list"),
                ("feedback", "/feedback like a-1"),
                ("messages", ""),
                ("dismiss", ""),
                ("unknown", "/nope"),
            ],
            calls,
        )

    def test_matches_whole_command_word(self) -> None:
        calls: list[tuple[str, str]] = []
        router = self._router(calls)

        async def scenario() -> None:
            await router.try_handle("/sessions")
            await router.try_handle("/help me")

        asyncio.run(scenario())
        self.assertEqual([("unknown", "/sessions"), ("unknown", "/help me")], calls)

    def test_plain_text_is_not_a_command(self) -> None:
        calls: list[tuple[str, str]] = []
        router = self._router(calls)

        self.assertFalse(asyncio.run(router.try_handle("hello there")))
        self.assertEqual([], calls)


if __name__ == "__main__":
    unittest.main()

import unittest
from datetime import UTC, datetime

from chat_orchestrator.archival_guard import can_mutate, ensure_mutable
from chat_orchestrator.errors import ArchivedSessionError
from chat_orchestrator.models import (
    FeedbackSummary,
    Message,
    MessageType,
    Session,
    SessionState,
    estimate_input_tokens,
)
from chat_orchestrator.timestamps import format_relative_time, parse_timestamp


def _session(state: str = SessionState.ONGOING) -> Session:
    return Session(id="s-1", user_id="u", title="t", created_at="c", updated_at="u", state=state)


class MessageTests(unittest.TestCase):
    def test_user_message_cannot_carry_feedback(self) -> None:
        with self.assertRaises(ValueError):
            Message(id="m", type=MessageType.USER, content="x", timestamp="t", reaction="like")
        with self.assertRaises(ValueError):
            Message(
                id="m",
                type=MessageType.USER,
                content="x",
                timestamp="t",
                feedback_summary=FeedbackSummary.empty(),
            )

    def test_from_api_drops_feedback_fields_on_user_messages(self) -> None:
        message = Message.from_api(
            {
                "id": "m",
                "type": "user",
                "content": "x",
                "reaction": "like",
                "feedback_summary": {"avg_rating": 3},
            }
        )
        self.assertIsNone(message.reaction)
        self.assertIsNone(message.feedback_summary)

    def test_from_api_ignores_unknown_reaction(self) -> None:
        message = Message.from_api({"id": "m", "type": "assistant", "content": "x", "reaction": "love"})
        self.assertIsNone(message.reaction)

    def test_generated_ids_are_unique_and_suffixed(self) -> None:
        first = Message.user("hello")
        second = Message.user("hello")
        self.assertNotEqual(first.id, second.id)
        self.assertTrue(first.id.endswith("_user"))
        self.assertTrue(Message.assistant_error("oops").id.endswith("_error"))

    def test_input_token_estimate(self) -> None:
        self.assertEqual(1, estimate_input_tokens(""))
        self.assertEqual(2, estimate_input_tokens("Hello"))
        self.assertEqual(2 + 11 // 4, estimate_input_tokens("hello there"))


class SessionTests(unittest.TestCase):
    def test_duplicate_message_id_is_rejected(self) -> None:
        message = Message.user("hi")
        session = _session().with_message(message)
        with self.assertRaises(ValueError):
            session.with_message(message)

    def test_update_message_leaves_original_untouched(self) -> None:
        message = Message.user("hi")
        session = _session().with_message(message)
        updated = session.update_message(message.id, lambda m: m.with_content("edited"))

        self.assertEqual("hi", session.messages[0].content)
        self.assertEqual("edited", updated.messages[0].content)
        self.assertIs(session, session.update_message("missing", lambda m: m))

    def test_from_api_defaults_unknown_state_to_ongoing(self) -> None:
        session = Session.from_api({"id": "s", "state": "weird"})
        self.assertEqual(SessionState.ONGOING, session.state)


class FeedbackSummaryTests(unittest.TestCase):
    def test_from_api_fills_defaults(self) -> None:
        self.assertEqual(FeedbackSummary.empty(), FeedbackSummary.from_api({}))
        self.assertEqual(FeedbackSummary.empty(), FeedbackSummary.from_api(None))

    def test_merge_counts_only_new_comments(self) -> None:
        summary = FeedbackSummary(avg_rating=4.0, comments_count=2)

        commented = summary.merge_rating(5, "nice")
        self.assertEqual(3, commented.comments_count)
        self.assertEqual(4.0, commented.avg_rating)
        self.assertEqual(5, commented.user_rating)

        recommented = commented.merge_rating(3, "changed my mind")
        self.assertEqual(3, recommented.comments_count)

        silent = FeedbackSummary.empty().merge_rating(2, "")
        self.assertEqual(0, silent.comments_count)
        self.assertEqual(2.0, silent.avg_rating)
        self.assertIsNone(silent.user_comment)


class ArchivalGuardTests(unittest.TestCase):
    def test_only_ongoing_sessions_are_mutable(self) -> None:
        self.assertTrue(can_mutate(_session()))
        self.assertFalse(can_mutate(_session(SessionState.ARCHIVED)))
        self.assertFalse(can_mutate(_session(SessionState.DELETED)))

    def test_ensure_mutable_raises_for_archived(self) -> None:
        ensure_mutable(_session())
        with self.assertRaises(ArchivedSessionError) as ctx:
            ensure_mutable(_session(SessionState.ARCHIVED))
        self.assertEqual("s-1", ctx.exception.session_id)


class TimestampTests(unittest.TestCase):
    def test_relative_time_buckets(self) -> None:
        now = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
        self.assertEqual("just now", format_relative_time("2026-03-10T11:59:30Z", now=now))
        self.assertEqual("5m ago", format_relative_time("2026-03-10T11:55:00+00:00", now=now))
        self.assertEqual("3h ago", format_relative_time("2026-03-10T09:00:00+00:00", now=now))
        self.assertEqual("2d ago", format_relative_time("2026-03-08T12:00:00+00:00", now=now))
        self.assertEqual("2026-02-01", format_relative_time("2026-02-01T12:00:00+00:00", now=now))

    def test_unparseable_timestamp_is_returned_as_is(self) -> None:
        self.assertIsNone(parse_timestamp("not a date"))
        self.assertEqual("not a date", format_relative_time("not a date"))

    def test_naive_timestamp_is_treated_as_utc(self) -> None:
        parsed = parse_timestamp("2026-03-10T12:00:00")
        self.assertEqual(UTC, parsed.tzinfo)


if __name__ == "__main__":
    unittest.main()

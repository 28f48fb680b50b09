"""
Tests for the SpamFilter cog.

Tests:
- Per-channel queues
- Hiding, marking and logging of verdicts
- Reply toggle keeps classifier state
- Message listener and delete task tracking
"""

from __future__ import annotations

import asyncio
import os
import sys
import unittest
from unittest.mock import AsyncMock, MagicMock

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))


def make_cog(**overrides):
    from chatfilter.cogs.spamfilter import SpamFilter
    from chatfilter.config import Config

    config = Config(
        client_id="test_client_id_12345",
        client_secret="test_client_secret_12345",
        oauth_token="oauth:test_token_12345",
        bot_nick="filterbot",
        channels=["chan"],
        **overrides,
    )
    bot = MagicMock()
    bot.config = config
    return SpamFilter(bot)


class TestQueues(unittest.TestCase):
    """Test per-channel processing queues."""

    def test_queue_per_channel(self) -> None:
        """Test that each channel gets its own queue and store."""
        cog = make_cog()

        first = cog.queue_for("chan")
        self.assertIs(cog.queue_for("chan"), first)

        other = cog.queue_for("other")
        self.assertIsNot(other, first)
        self.assertIsNot(other.classifier.store, first.classifier.store)

    def test_queue_uses_config(self) -> None:
        """Test that batch size comes from the config."""
        cog = make_cog(batch_size=10)

        self.assertEqual(cog.queue_for("chan").batch_size, 10)

    def test_set_ignore_replies_keeps_store(self) -> None:
        """Test that toggling replies rebuilds classifiers over the same store."""
        cog = make_cog()
        queue = cog.queue_for("chan")
        store = queue.classifier.store

        cog.set_ignore_replies(False)

        self.assertFalse(queue.classifier.settings.ignore_replies)
        self.assertIs(queue.classifier.store, store)
        self.assertEqual(cog.verdict_log[-1], "Ignore Replies -> OFF")


class TestVerdictHandling(unittest.TestCase):
    """Test presentation of verdicts."""

    def setUp(self) -> None:
        """Set up a flagged event."""
        from chatfilter.engine.models import ChatEvent, Evidence, RuleTag, Verdict

        self.event = ChatEvent(
            sender_id="bob",
            raw_text="buy cheap followers now",
            channel="chan",
            message_id="msg-1",
        )
        self.verdict = Verdict(
            RuleTag.COPY_PASTE_EXACT,
            1,
            1,
            Evidence(trigger_sender_id="alice", trigger_raw_text="buy cheap followers now"),
        )

    def test_marked_when_filter_off(self) -> None:
        """Test that verdicts are marked while hiding is off."""
        cog = make_cog(filter_enabled=False, mark_enabled=True)

        cog.handle_verdict(self.event, self.verdict)

        self.assertEqual(cog.flagged_count, 1)
        self.assertEqual(
            cog.verdict_log[0],
            "Marked (Copy-paste (exact match) (Limit: 1 | Reached: 1)) - bob",
        )
        self.assertEqual(
            cog.verdict_log[1],
            'Similar pair → Filtered: "buy cheap followers now" ↔ '
            'Trigger: "buy cheap followers now" by alice',
        )

    def test_detected_only(self) -> None:
        """Test that verdicts are only logged with both flags off."""
        cog = make_cog(filter_enabled=False, mark_enabled=False)

        cog.handle_verdict(self.event, self.verdict)

        self.assertEqual(cog.flagged_count, 0)
        self.assertTrue(cog.verdict_log[0].startswith("Detected ("))

    def test_hidden_deletes_message(self) -> None:
        """Test that hiding sends a delete for the message id."""
        cog = make_cog(filter_enabled=True)
        channel = MagicMock()
        channel.send = AsyncMock()
        cog.bot.get_channel.return_value = channel

        async def scenario() -> None:
            cog.handle_verdict(self.event, self.verdict)
            await asyncio.sleep(0)
            await asyncio.sleep(0)

        asyncio.run(scenario())

        cog.bot.get_channel.assert_called_once_with("chan")
        channel.send.assert_awaited_once_with("/delete msg-1")
        self.assertTrue(cog.verdict_log[0].startswith("Hidden ("))

    def test_hide_failure_is_logged(self) -> None:
        """Test that a failed delete does not raise."""
        cog = make_cog(filter_enabled=True)
        channel = MagicMock()
        channel.send = AsyncMock(side_effect=RuntimeError("not a moderator"))
        cog.bot.get_channel.return_value = channel

        asyncio.run(cog._hide(self.event))

        channel.send.assert_awaited_once()

    def test_preview_is_truncated(self) -> None:
        """Test that evidence previews are cut to 180 characters."""
        from chatfilter.engine.models import ChatEvent

        cog = make_cog(filter_enabled=False)
        event = ChatEvent(sender_id="bob", raw_text="x" * 300, channel="chan")

        cog.handle_verdict(event, self.verdict)

        self.assertIn('"' + "x" * 180 + '"', cog.verdict_log[1])
        self.assertNotIn("x" * 181, cog.verdict_log[1])


class TestToggleParsing(unittest.TestCase):
    """Test command argument parsing."""

    def test_parse_toggle(self) -> None:
        """Test on/off argument parsing."""
        from chatfilter.cogs.spamfilter import _parse_toggle

        self.assertTrue(_parse_toggle("on"))
        self.assertTrue(_parse_toggle(" Enable "))
        self.assertFalse(_parse_toggle("off"))
        self.assertIsNone(_parse_toggle("maybe"))


def make_message(login: str, content: str, channel: str = "chan", echo: bool = False, **tags):
    message = MagicMock()
    message.echo = echo
    message.author.name = login
    message.channel.name = channel
    message.content = content
    message.tags = {"id": f"{login}-1", **tags}
    return message


class TestIngest(unittest.TestCase):
    """Test the chat message listener."""

    def test_echo_is_skipped(self) -> None:
        """Test that the bot's own messages are not queued."""
        cog = make_cog()

        self.assertIsNone(cog.ingest(make_message("filterbot", "hello", echo=True)))
        self.assertEqual(cog._queues, {})

    def test_message_is_queued_on_its_channel(self) -> None:
        """Test that each message lands on the queue of its channel."""
        cog = make_cog()

        async def scenario() -> None:
            cog.ingest(make_message("alice", "hello there", channel="chan"))
            cog.ingest(make_message("bob", "hi all", channel="other"))
            cog.ingest(make_message("carol", "good evening", channel="other"))
            self.assertEqual(len(cog.queue_for("chan")), 1)
            self.assertEqual(len(cog.queue_for("other")), 2)

        asyncio.run(scenario())

    def test_exempt_sender_is_logged(self) -> None:
        """Test that privileged senders leave a line in the verdict log."""
        cog = make_cog()

        async def scenario() -> None:
            event = cog.ingest(make_message("somemod", "HELLO WORLD", badges="moderator/1"))
            self.assertTrue(event.is_exempt)

        asyncio.run(scenario())

        self.assertEqual(list(cog.verdict_log), ["Whitelist/Privileged: somemod"])

    def test_exempt_reply_is_not_logged(self) -> None:
        """Test that ignored replies leave no trace, even from privileged senders."""
        cog = make_cog()
        message = make_message(
            "somemod", "thanks", badges="moderator/1", **{"reply-parent-msg-id": "parent-1"}
        )

        async def scenario() -> None:
            cog.ingest(message)

        asyncio.run(scenario())

        self.assertEqual(len(cog.verdict_log), 0)

    def test_exempt_reply_logged_when_replies_classified(self) -> None:
        """Test that replies are treated like other messages with ignore_replies off."""
        cog = make_cog()
        cog.set_ignore_replies(False)
        message = make_message(
            "somemod", "thanks", badges="moderator/1", **{"reply-parent-msg-id": "parent-1"}
        )

        async def scenario() -> None:
            cog.ingest(message)

        asyncio.run(scenario())

        self.assertEqual(cog.verdict_log[-1], "Whitelist/Privileged: somemod")

    def test_flagged_message_end_to_end(self) -> None:
        """Test that a flagged chat line is marked once the queue drains."""
        cog = make_cog(filter_enabled=False, mark_enabled=True)

        async def scenario() -> None:
            cog.ingest(make_message("alice", "HELLO WORLD"))
            await asyncio.sleep(0)

        asyncio.run(scenario())

        self.assertEqual(cog.flagged_count, 1)
        self.assertEqual(
            cog.verdict_log[-1],
            "Marked (All uppercase (Limit: 100% | Reached: 100%)) - alice",
        )


class TestPendingDeletes(unittest.TestCase):
    """Test that delete tasks are kept until they finish."""

    def test_delete_task_is_tracked(self) -> None:
        """Test that the delete task is referenced while running and released after."""
        from chatfilter.engine.models import ChatEvent, RuleTag, Verdict

        cog = make_cog(filter_enabled=True)
        channel = MagicMock()
        channel.send = AsyncMock()
        cog.bot.get_channel.return_value = channel
        event = ChatEvent(sender_id="bob", raw_text="HELLO WORLD", channel="chan", message_id="msg-9")

        async def scenario() -> None:
            cog.handle_verdict(event, Verdict(RuleTag.UPPERCASE, 100, 100))
            self.assertEqual(len(cog._pending_deletes), 1)
            for _ in range(3):
                await asyncio.sleep(0)

        asyncio.run(scenario())

        channel.send.assert_awaited_once_with("/delete msg-9")
        self.assertEqual(len(cog._pending_deletes), 0)

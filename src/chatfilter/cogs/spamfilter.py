"""
Spam filter cog.

Feeds every chat message into a per-channel MessageQueue and acts on the
verdicts:
- filter on: the message is hidden (deleted)
- filter off, marking on: the message is marked in the log
- both off: the detection is only logged

Provides moderator commands:
- !spamfilter [on|off]: Show status or toggle hiding
- !spammark [on|off]: Toggle marking
- !spamreplies [on|off]: Toggle skipping threaded replies
- !spamlog [count]: Show the latest filter decisions
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections import deque
from typing import TYPE_CHECKING, Optional

from twitchio.ext import commands
from twitchio.ext.commands import Context

from chatfilter.engine.classifier import Classifier
from chatfilter.engine.models import ChatEvent, Verdict
from chatfilter.engine.queue import MessageQueue
from chatfilter.ingest import message_to_event
from chatfilter.utils.logging import get_logger, preview
from chatfilter.utils.permissions import ExemptionPolicy, is_moderator

if TYPE_CHECKING:
    from twitchio import Message
    from chatfilter.bot import SpamFilterBot

logger = get_logger(__name__)

VERDICT_LOG_SIZE = 800


def _parse_toggle(value: str) -> Optional[bool]:
    value = value.strip().lower()
    if value in ("on", "true", "1", "yes", "enable"):
        return True
    if value in ("off", "false", "0", "no", "disable"):
        return False
    return None


def _state(flag: bool) -> str:
    return "ON" if flag else "OFF"


class SpamFilter(commands.Cog):
    """
    Chat spam filter.

    Each channel gets its own classifier and state, so a raid in one
    channel never counts toward copy-paste detection in another.

    Attributes:
        filter_enabled: Hide flagged messages
        mark_enabled: Mark flagged messages when not hiding them
        flagged_count: Messages hidden or marked since startup
        verdict_log: Latest filter decisions, newest last
    """

    def __init__(self, bot: SpamFilterBot) -> None:
        """
        Initialize the spam filter cog.

        Args:
            bot: The bot instance
        """
        self.bot = bot
        self.settings = bot.config.filter
        self.policy = ExemptionPolicy(bot.config.whitelist)
        self.filter_enabled = bot.config.filter_enabled
        self.mark_enabled = bot.config.mark_enabled
        self.flagged_count = 0
        self.verdict_log: deque[str] = deque(maxlen=VERDICT_LOG_SIZE)

        self._queues: dict[str, MessageQueue] = {}
        self._pending_deletes: set[asyncio.Task] = set()

        logger.info(
            "SpamFilter initialized (filter: %s, marking: %s, ignore replies: %s)",
            _state(self.filter_enabled),
            _state(self.mark_enabled),
            _state(self.settings.ignore_replies),
        )

    def queue_for(self, channel: str) -> MessageQueue:
        """Get (or create) the processing queue of a channel."""
        queue = self._queues.get(channel)
        if queue is None:
            queue = MessageQueue(
                Classifier(self.settings),
                on_verdict=self.handle_verdict,
                batch_size=self.bot.config.batch_size,
                sweep_interval=self.bot.config.sweep_interval,
            )
            self._queues[channel] = queue
        return queue

    def _add_log(self, line: str) -> None:
        self.verdict_log.append(line)

    # ==================== Ingest ====================

    @commands.Cog.event()
    async def event_message(self, message: Message) -> None:
        """Queue incoming messages for classification."""
        self.ingest(message)

    def ingest(self, message: Message) -> Optional[ChatEvent]:
        """
        Turn a chat message into an event and queue it on its channel.

        Returns:
            The queued event, or None for echoes and authorless messages
        """
        if message.echo:
            return None

        event = message_to_event(message, self.policy)
        if event is None:
            return None

        # Ignored replies are dropped by the classifier without a trace
        if event.is_exempt and not (event.is_reply and self.settings.ignore_replies):
            self._add_log(f"Whitelist/Privileged: {event.sender_id}")

        self.queue_for(event.channel or "").submit(event)
        return event

    # ==================== Presentation ====================

    def handle_verdict(self, event: ChatEvent, verdict: Verdict) -> None:
        """Hide, mark or just log a flagged message."""
        reason = verdict.description
        if self.filter_enabled:
            self.flagged_count += 1
            action, level = "hidden", logging.WARNING
            if event.message_id:
                task = asyncio.get_running_loop().create_task(self._hide(event))
                self._pending_deletes.add(task)
                task.add_done_callback(self._pending_deletes.discard)
        elif self.mark_enabled:
            self.flagged_count += 1
            action, level = "marked", logging.WARNING
        else:
            action, level = "detected", logging.INFO

        line = f"{action.capitalize()} ({reason}) - {event.sender_id}"
        extra = {"channel": event.channel, "action": action}
        logger.log(level, "%s", line, extra=extra)
        self._add_log(line)

        if verdict.evidence is not None:
            pair = (
                f'Similar pair → Filtered: "{preview(event.raw_text)}" ↔ '
                f'Trigger: "{preview(verdict.evidence.trigger_raw_text)}" '
                f"by {verdict.evidence.trigger_sender_id}"
            )
            logger.info("%s", pair, extra=extra)
            self._add_log(pair)

    async def _hide(self, event: ChatEvent) -> None:
        """Delete a flagged message from chat."""
        channel = self.bot.get_channel(event.channel) if event.channel else None
        if channel is None:
            logger.warning("Cannot hide message from %s: not in #%s", event.sender_id, event.channel)
            return
        try:
            await channel.send(f"/delete {event.message_id}")
        except Exception as e:
            logger.warning("Failed to delete message: %s", e)

    # ==================== Commands ====================

    @commands.command(name="spamfilter")
    @is_moderator()
    async def spamfilter_cmd(self, ctx: Context, state: str = "") -> None:
        """
        Show filter status or toggle hiding flagged messages.

        Usage: !spamfilter [on|off]
        """
        if not state:
            queue = self._queues.get(ctx.channel.name)
            processed = queue.stats.processed if queue else 0
            await ctx.send(
                f"@{ctx.author.name} Filter: {_state(self.filter_enabled)} | "
                f"Marking: {_state(self.mark_enabled)} | "
                f"Ignore Replies: {_state(self.settings.ignore_replies)} | "
                f"{processed} messages processed, {self.flagged_count} flagged"
            )
            return

        toggle = _parse_toggle(state)
        if toggle is None:
            await ctx.send(f"@{ctx.author.name} Usage: {self.bot.config.prefix}spamfilter [on|off]")
            return
        self.filter_enabled = toggle
        self._add_log(f"Filter -> {_state(toggle)}")
        await ctx.send(f"@{ctx.author.name} Filter: {_state(toggle)}")

    @commands.command(name="spammark")
    @is_moderator()
    async def spammark_cmd(self, ctx: Context, state: str = "") -> None:
        """
        Toggle marking of flagged messages while hiding is off.

        Usage: !spammark [on|off]
        """
        toggle = _parse_toggle(state) if state else not self.mark_enabled
        if toggle is None:
            await ctx.send(f"@{ctx.author.name} Usage: {self.bot.config.prefix}spammark [on|off]")
            return
        self.mark_enabled = toggle
        self._add_log(f"Marking -> {_state(toggle)}")
        await ctx.send(f"@{ctx.author.name} Marking: {_state(toggle)}")

    @commands.command(name="spamreplies")
    @is_moderator()
    async def spamreplies_cmd(self, ctx: Context, state: str = "") -> None:
        """
        Toggle skipping of threaded replies.

        Classifiers are rebuilt with the new setting but keep their state.

        Usage: !spamreplies [on|off]
        """
        toggle = _parse_toggle(state) if state else not self.settings.ignore_replies
        if toggle is None:
            await ctx.send(f"@{ctx.author.name} Usage: {self.bot.config.prefix}spamreplies [on|off]")
            return
        self.set_ignore_replies(toggle)
        await ctx.send(f"@{ctx.author.name} Ignore Replies: {_state(toggle)}")

    def set_ignore_replies(self, enabled: bool) -> None:
        """Swap in classifiers with the new reply setting, keeping their stores."""
        self.settings = dataclasses.replace(self.settings, ignore_replies=enabled)
        for queue in self._queues.values():
            queue.classifier = Classifier(self.settings, store=queue.classifier.store)
        self._add_log(f"Ignore Replies -> {_state(enabled)}")

    @commands.command(name="spamlog")
    @is_moderator()
    async def spamlog_cmd(self, ctx: Context, count: int = 3) -> None:
        """
        Show the latest filter decisions.

        Usage: !spamlog [count]
        """
        count = max(1, min(count, 5))
        if not self.verdict_log:
            await ctx.send(f"@{ctx.author.name} Nothing filtered yet.")
            return
        for line in list(self.verdict_log)[-count:]:
            await ctx.send(line[:450])


def prepare(bot: SpamFilterBot) -> None:
    """Prepare the cog for loading."""
    bot.add_cog(SpamFilter(bot))

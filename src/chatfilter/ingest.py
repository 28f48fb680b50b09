"""
Twitch message extraction.

Turns a twitchio Message into a ChatEvent: emote codes come from the
``emotes`` IRC tag, the text is the message with those emote ranges cut
out, and privilege/reply status come from the badges and reply tags.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping, Optional

from chatfilter.engine.models import ChatEvent
from chatfilter.engine.normalizer import collapse_whitespace
from chatfilter.utils.logging import get_logger
from chatfilter.utils.permissions import ExemptionPolicy, is_reply, parse_badges

if TYPE_CHECKING:
    from twitchio import Message

logger = get_logger(__name__)


def parse_emote_ranges(value: Optional[str]) -> list[tuple[int, int, str]]:
    """
    Parse an IRC ``emotes`` tag.

    "25:0-4,12-16/1902:6-10" becomes
    [(0, 4, "25"), (6, 10, "1902"), (12, 16, "25")], ordered by position.
    Malformed parts are skipped.

    Returns:
        list: (start, end, emote_id) tuples, end inclusive
    """
    if not value:
        return []
    ranges: list[tuple[int, int, str]] = []
    for group in value.split("/"):
        emote_id, _, positions = group.partition(":")
        if not emote_id or not positions:
            continue
        for span in positions.split(","):
            start, _, end = span.partition("-")
            try:
                ranges.append((int(start), int(end), emote_id))
            except ValueError:
                logger.debug("Skipping malformed emote range %r", span)
    ranges.sort()
    return ranges


def split_emotes(content: str, ranges: list[tuple[int, int, str]]) -> tuple[str, list[str]]:
    """
    Separate text from emotes.

    Args:
        content: Message content as sent
        ranges: Emote ranges from parse_emote_ranges

    Returns:
        tuple: (text without emotes, emote codes in order)
    """
    codes: list[str] = []
    pieces: list[str] = []
    cursor = 0
    for start, end, emote_id in ranges:
        if start < cursor or end < start or end >= len(content):
            continue
        pieces.append(content[cursor:start])
        name = content[start:end + 1].strip().lower()
        codes.append(name or f"twitch:{emote_id}")
        cursor = end + 1
    pieces.append(content[cursor:])
    return collapse_whitespace(" ".join(pieces)), codes


def event_from_parts(
    login: str,
    content: str,
    tags: Mapping[str, Any],
    policy: ExemptionPolicy,
    channel: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ChatEvent:
    """Build a ChatEvent from the raw pieces of a chat line."""
    text, codes = split_emotes(content or "", parse_emote_ranges(tags.get("emotes")))
    sender_id = (login or "unknown").lower()
    badges = parse_badges(tags.get("badges"))
    return ChatEvent(
        sender_id=sender_id,
        raw_text=text,
        emote_tokens=tuple(codes),
        is_exempt=policy.is_exempt(sender_id, badges, channel),
        is_reply=is_reply(tags),
        timestamp=now or datetime.now(timezone.utc),
        channel=channel,
        message_id=tags.get("id"),
    )


def message_to_event(message: Message, policy: ExemptionPolicy) -> Optional[ChatEvent]:
    """
    Build a ChatEvent from a twitchio Message.

    Returns:
        The event, or None for messages without an author (e.g. notices)
    """
    author = message.author
    if author is None:
        return None
    channel = message.channel.name if message.channel else None
    tags = message.tags or {}
    return event_from_parts(
        login=author.name,
        content=message.content or "",
        tags=tags,
        policy=policy,
        channel=channel,
    )

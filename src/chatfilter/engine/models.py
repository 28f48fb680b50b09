"""
Data types shared by the classification engine.

ChatEvent comes in from the ingest side, Verdict goes out to the
presentation side. NormalizedMessage only lives for one classification.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class RuleTag(Enum):
    """Rules of the classification chain, in evaluation order."""
    EMOTE_COUNT = "emote_count"
    EMOTE_DENSITY = "emote_density"
    EMOTE_RUN = "emote_run"
    UPPERCASE = "uppercase"
    CHAR_REPETITION = "char_repetition"
    ART = "art"
    EXACT_REPEAT = "exact_repeat"
    SIMILAR_REPEAT = "similar_repeat"
    COPY_PASTE_EXACT = "copy_paste_exact"
    COPY_PASTE_SIMILAR = "copy_paste_similar"
    EMOTE_TRAIN = "emote_train"


# Rules whose limit/reached values are whole percents
PERCENT_RULES = frozenset({
    RuleTag.EMOTE_DENSITY,
    RuleTag.UPPERCASE,
    RuleTag.ART,
    RuleTag.COPY_PASTE_SIMILAR,
})

RULE_LABELS: dict[RuleTag, str] = {
    RuleTag.EMOTE_COUNT: "Too many emotes",
    RuleTag.EMOTE_DENSITY: "Too high emote density",
    RuleTag.EMOTE_RUN: "Emote series",
    RuleTag.UPPERCASE: "All uppercase",
    RuleTag.CHAR_REPETITION: "Repeated characters",
    RuleTag.ART: "ASCII/Braille art",
    RuleTag.EXACT_REPEAT: "Repetition",
    RuleTag.SIMILAR_REPEAT: "Similar messages",
    RuleTag.COPY_PASTE_EXACT: "Copy-paste (exact match)",
    RuleTag.COPY_PASTE_SIMILAR: "Copy-paste (similar)",
    RuleTag.EMOTE_TRAIN: "Emote train",
}


@dataclass(frozen=True)
class ChatEvent:
    """
    One incoming chat message, already extracted from the host.

    Attributes:
        sender_id: Stable sender identity (lowercased login)
        raw_text: Message text with emotes removed
        emote_tokens: Emote codes in message order, duplicates kept
        is_exempt: Sender must never be classified
        is_reply: Message is a threaded reply
        timestamp: Arrival time (timezone-aware)
        channel: Channel the message was posted in
        message_id: Host message id, used to act on the message
    """
    sender_id: str
    raw_text: str
    emote_tokens: tuple[str, ...] = ()
    is_exempt: bool = False
    is_reply: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    channel: Optional[str] = None
    message_id: Optional[str] = None


@dataclass(frozen=True)
class NormalizedMessage:
    """Comparison forms derived from one ChatEvent."""
    cleaned_for_similarity: str
    cleaned_for_repeat: str
    word_count: int
    emote_count: int
    emote_tokens: tuple[str, ...]
    emote_signature: str


@dataclass(frozen=True)
class Evidence:
    """The earlier message a redundancy verdict was matched against."""
    trigger_sender_id: str
    trigger_raw_text: str


@dataclass(frozen=True)
class Verdict:
    """
    Outcome of a triggered rule.

    Attributes:
        rule: Rule that matched
        limit: Configured limit the message was compared against
        reached: Value the message reached
        evidence: Matched earlier message, for redundancy rules
    """
    rule: RuleTag
    limit: float
    reached: float
    evidence: Optional[Evidence] = None

    @property
    def description(self) -> str:
        """Human-readable reason with the literal limit and reached values."""
        suffix = "%" if self.rule in PERCENT_RULES else ""
        return (
            f"{RULE_LABELS[self.rule]} "
            f"(Limit: {_fmt(self.limit)}{suffix} | Reached: {_fmt(self.reached)}{suffix})"
        )

    def __str__(self) -> str:
        return self.description


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)

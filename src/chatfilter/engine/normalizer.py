"""
Message normalization.

Turns the raw text and emote codes of a chat message into the forms the
rules compare: a similarity string, a repeat-bucketing string, token counts
and an emote signature. Everything here is a pure function of its input.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable, Optional

from chatfilter.engine.models import NormalizedMessage

# Emoji, pictographs, dingbats, flags and variation selectors
EMOJI_PATTERN = re.compile(
    "["
    "\U0001F600-\U0001F64F"  # Emoticons
    "\U0001F300-\U0001F5FF"  # Symbols and pictographs
    "\U0001F680-\U0001F6FF"  # Transport and map
    "\U0001F1E0-\U0001F1FF"  # Flags
    "\u2600-\u26FF"          # Miscellaneous symbols
    "\u2700-\u27BF"          # Dingbats
    "\uFE00-\uFE0F"          # Variation selectors
    "\U0001F900-\U0001F9FF"  # Supplemental symbols and pictographs
    "\U0001F018-\U0001F270"  # Enclosed and other symbols
    "]"
)

WHITESPACE_PATTERN = re.compile(r"\s+")

SIGNATURE_SEPARATOR = "|"
SIGNATURE_MAX_TOKENS = 12
REPEAT_MIN_TOKEN_LENGTH = 3


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to one space and trim."""
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def remove_emotes(text: str) -> str:
    """Strip emoji/pictograph code points and collapse whitespace."""
    if not text:
        return ""
    return collapse_whitespace(EMOJI_PATTERN.sub("", text))


def _letters_digits_spaces(text: str) -> str:
    # Anything that is not a letter, number or whitespace becomes a space
    return "".join(ch if ch.isalnum() or ch.isspace() else " " for ch in text)


def clean_for_similarity(text: str) -> str:
    """
    Clean text for fuzzy comparison.

    Emoji are removed, the rest is NFKD-normalized and lowercased, and
    punctuation, symbols and combining marks become whitespace.

    Args:
        text: Raw or partially cleaned text

    Returns:
        Cleaned text, possibly empty
    """
    if not text:
        return ""
    stripped = EMOJI_PATTERN.sub("", text).lower()
    normalized = unicodedata.normalize("NFKD", stripped)
    return collapse_whitespace(_letters_digits_spaces(normalized))


def clean_for_repeat(text: str) -> str:
    """
    Clean text for exact and near-duplicate bucketing.

    Lowercases, drops punctuation, and keeps only tokens of three or more
    characters, joined by single spaces.

    Example:
        >>> clean_for_repeat("Hello, there my FRIEND!!")
        'hello there friend'
    """
    if not text:
        return ""
    tokens = _letters_digits_spaces(text.lower()).split()
    return " ".join(t for t in tokens if len(t) >= REPEAT_MIN_TOKEN_LENGTH)


def count_words(text: str) -> int:
    """Number of whitespace-separated tokens."""
    return len(text.split()) if text else 0


def normalize_emote_tokens(tokens: Iterable[str]) -> list[str]:
    """Drop empty codes, then lowercase and trim the rest."""
    return [t.strip().lower() for t in tokens if t and t.strip()]


def emote_signature(tokens: Iterable[str]) -> str:
    """
    Order-sensitive signature of the first twelve emote codes.

    Identical ordered emote sequences always produce identical signatures.
    """
    codes = normalize_emote_tokens(tokens)[:SIGNATURE_MAX_TOKENS]
    return SIGNATURE_SEPARATOR.join(codes)


def normalize(raw_text: str, emote_tokens: Iterable[str] = ()) -> Optional[NormalizedMessage]:
    """
    Derive every comparison form of a message.

    Args:
        raw_text: Message text without emotes
        emote_tokens: Emote codes in message order

    Returns:
        NormalizedMessage, or None when the message has neither text nor
        emotes and is not a classification candidate
    """
    text = raw_text or ""
    tokens = tuple(emote_tokens or ())
    if not text.strip() and not tokens:
        return None

    return NormalizedMessage(
        cleaned_for_similarity=clean_for_similarity(text),
        cleaned_for_repeat=clean_for_repeat(text),
        word_count=count_words(text),
        emote_count=len(tokens),
        emote_tokens=tokens,
        emote_signature=emote_signature(tokens),
    )

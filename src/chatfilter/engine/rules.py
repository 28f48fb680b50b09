"""
Spam rules and the ordered rule chain.

Every rule is a function ``(message, context) -> Verdict | None``. The chain
runs them in a fixed order and stops at the first verdict, so later rules
never see (or record) a message an earlier rule already flagged.

Content rules are pure. The redundancy rules read and write the StateStore,
and their ordering matters:
- per-sender history is recorded *before* the repeat count, so a message
  counts toward its own threshold
- the duplicate window is only recorded on the non-triggering path
- an emote signature is only recorded when it did not complete a train
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from chatfilter.engine.models import ChatEvent, Evidence, NormalizedMessage, RuleTag, Verdict
from chatfilter.engine.normalizer import collapse_whitespace
from chatfilter.engine.similarity import similarity

if TYPE_CHECKING:
    from chatfilter.config import FilterSettings
    from chatfilter.engine.state import StateStore


ART_PATTERN = re.compile(
    "["
    "\u2800-\u28FF"  # Braille patterns
    "\u2500-\u257F"  # Box drawing
    "\u2580-\u259F"  # Block elements
    "\u25A0-\u25FF"  # Geometric shapes
    "\u2200-\u22FF"  # Mathematical operators
    "\u0300-\u036F"  # Combining diacritical marks
    "]"
)

ASCII_LETTERS_PATTERN = re.compile(r"[^a-zA-Z]")

UPPERCASE_MIN_LETTERS = 3
CHAR_REPETITION_MIN_LENGTH = 3
DENSITY_MIN_TOKENS = 3
HISTORY_MIN_LENGTH = 3


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule may consult besides the normalized message."""
    event: ChatEvent
    store: StateStore
    settings: FilterSettings
    now: datetime


Rule = Callable[[NormalizedMessage, RuleContext], Optional[Verdict]]


def percent(ratio: float) -> int:
    """Ratio as a whole percent, rounding halves up."""
    return int(math.floor(ratio * 100 + 0.5))


def longest_run(items: Sequence) -> int:
    """
    Length of the longest run of equal consecutive items.

    Returns 0 for an empty sequence, 1 when all items differ.
    """
    if not items:
        return 0
    best = run = 1
    for index in range(1, len(items)):
        if items[index] == items[index - 1]:
            run += 1
            if run > best:
                best = run
        else:
            run = 1
    return best


# ==================== Content rules ====================

def check_emote_count(message: NormalizedMessage, ctx: RuleContext) -> Optional[Verdict]:
    """Too many emotes in one message."""
    limit = ctx.settings.max_emotes
    if message.emote_count > limit:
        return Verdict(RuleTag.EMOTE_COUNT, limit, message.emote_count)
    return None


def check_emote_density(message: NormalizedMessage, ctx: RuleContext) -> Optional[Verdict]:
    """Emotes make up too large a share of the message."""
    total = message.word_count + message.emote_count
    if total < DENSITY_MIN_TOKENS:
        return None
    density = message.emote_count / total
    threshold = ctx.settings.emote_density_threshold
    if density > threshold:
        return Verdict(RuleTag.EMOTE_DENSITY, percent(threshold), percent(density))
    return None


def check_emote_run(message: NormalizedMessage, ctx: RuleContext) -> Optional[Verdict]:
    """The same emote repeated back to back."""
    run = longest_run(message.emote_tokens)
    limit = ctx.settings.max_same_emote_run
    if run > limit:
        return Verdict(RuleTag.EMOTE_RUN, limit, run)
    return None


def check_uppercase(message: NormalizedMessage, ctx: RuleContext) -> Optional[Verdict]:
    """Every letter of the message is uppercase."""
    if not ctx.settings.enable_uppercase_filter:
        return None
    letters = ASCII_LETTERS_PATTERN.sub("", ctx.event.raw_text or "")
    if len(letters) < UPPERCASE_MIN_LETTERS:
        return None
    if letters == letters.upper():
        return Verdict(RuleTag.UPPERCASE, 100, 100)
    return None


def check_char_repetition(message: NormalizedMessage, ctx: RuleContext) -> Optional[Verdict]:
    """One character repeated too many times in a row ("GYATTTTT")."""
    if not ctx.settings.enable_repetition_filter:
        return None
    text = ctx.event.raw_text or ""
    if len(text) < CHAR_REPETITION_MIN_LENGTH:
        return None
    run = longest_run(text)
    limit = ctx.settings.max_char_repetition
    if run > limit:
        return Verdict(RuleTag.CHAR_REPETITION, limit, run)
    return None


def check_art(message: NormalizedMessage, ctx: RuleContext) -> Optional[Verdict]:
    """Braille or box-drawing art. Multi-line messages need a lower share."""
    settings = ctx.settings
    if not settings.enable_art_detection:
        return None
    raw = ctx.event.raw_text or ""
    text = collapse_whitespace(raw)
    if len(text) < settings.art_min_length:
        return None

    ratio = len(ART_PATTERN.findall(text)) / len(text)
    line_count = raw.count("\n") + 1
    if line_count >= settings.art_min_lines:
        threshold = settings.art_min_ratio_multiline
    else:
        threshold = settings.art_min_ratio
    if ratio >= threshold:
        return Verdict(RuleTag.ART, percent(threshold), percent(ratio))
    return None


# ==================== Per-sender redundancy ====================

def check_exact_repeat(message: NormalizedMessage, ctx: RuleContext) -> Optional[Verdict]:
    """
    The sender posted the same cleaned text too often.

    Records the message into the sender's history first; the message itself
    is part of the count. With a threshold of 3 the third identical message
    triggers. With a threshold of 1 every first message would trigger.
    """
    cleaned = message.cleaned_for_repeat
    if not cleaned:
        return None
    if len(cleaned) >= HISTORY_MIN_LENGTH:
        ctx.store.record_user_message(ctx.event.sender_id, cleaned, ctx.event.raw_text, ctx.now)

    history = ctx.store.user_history(ctx.event.sender_id, ctx.now)
    count = sum(1 for entry in history if entry.cleaned == cleaned)
    threshold = ctx.settings.exact_repeat_threshold
    if len(cleaned) >= ctx.settings.text_min_length and count >= threshold:
        return Verdict(RuleTag.EXACT_REPEAT, threshold, count)
    return None


def check_similar_repeat(message: NormalizedMessage, ctx: RuleContext) -> Optional[Verdict]:
    """
    The sender posted near-identical texts too often.

    Runs over the history as updated by check_exact_repeat, current message
    included in the count. The best-scoring earlier message is the evidence.
    """
    cleaned = message.cleaned_for_repeat
    if not cleaned:
        return None

    threshold = ctx.settings.similarity_threshold
    history = ctx.store.user_history(ctx.event.sender_id, ctx.now)
    last = len(history) - 1
    count = 0
    best_score = -1.0
    best_raw: Optional[str] = None
    for index, entry in enumerate(history):
        score = similarity(entry.cleaned, cleaned)
        if score < threshold:
            continue
        count += 1
        is_current = index == last and entry.timestamp == ctx.now and entry.raw == ctx.event.raw_text
        if not is_current and score > best_score:
            best_score = score
            best_raw = entry.raw or entry.cleaned

    limit = ctx.settings.similar_repeat_threshold
    if len(cleaned) >= ctx.settings.text_min_length and count >= limit:
        evidence = None
        if best_raw is not None:
            evidence = Evidence(trigger_sender_id=ctx.event.sender_id, trigger_raw_text=best_raw)
        return Verdict(RuleTag.SIMILAR_REPEAT, limit, count, evidence)
    return None


# ==================== Cross-sender redundancy ====================

def check_copy_paste_exact(message: NormalizedMessage, ctx: RuleContext) -> Optional[Verdict]:
    """Another sender posted the identical cleaned text moments ago."""
    entries = ctx.store.recent_duplicates(ctx.now)
    cleaned = message.cleaned_for_repeat
    if len(cleaned) < ctx.settings.copy_paste_min_length:
        return None

    sender_id = ctx.event.sender_id
    matches = [e for e in entries if e.cleaned == cleaned and e.sender_id != sender_id]
    if not matches:
        return None
    first = matches[0]
    return Verdict(
        RuleTag.COPY_PASTE_EXACT,
        1,
        len(matches),
        Evidence(trigger_sender_id=first.sender_id, trigger_raw_text=first.raw or first.cleaned),
    )


def check_copy_paste_similar(message: NormalizedMessage, ctx: RuleContext) -> Optional[Verdict]:
    """
    Another sender posted a near-identical text moments ago.

    When nothing matches, the message joins the duplicate window so later
    senders are compared against it.
    """
    entries = ctx.store.recent_duplicates(ctx.now)
    cleaned = message.cleaned_for_repeat
    if len(cleaned) < ctx.settings.copy_paste_min_length:
        return None

    sender_id = ctx.event.sender_id
    threshold = ctx.settings.similarity_threshold
    best = None
    best_score = -1.0
    for entry in entries:
        if entry.sender_id == sender_id:
            continue
        score = similarity(entry.cleaned, cleaned)
        if score >= threshold and score > best_score:
            best, best_score = entry, score

    if best is not None:
        return Verdict(
            RuleTag.COPY_PASTE_SIMILAR,
            percent(threshold),
            percent(best_score),
            Evidence(trigger_sender_id=best.sender_id, trigger_raw_text=best.raw or best.cleaned),
        )

    ctx.store.record_duplicate(sender_id, cleaned, ctx.event.raw_text, ctx.now)
    return None


def check_emote_train(message: NormalizedMessage, ctx: RuleContext) -> Optional[Verdict]:
    """Enough distinct senders posted the same emote combination."""
    store = ctx.store
    store.recent_signatures(ctx.now)
    signature = message.emote_signature
    if not message.emote_tokens or not signature:
        return None

    sender_id = ctx.event.sender_id
    senders = store.signature_senders(signature, ctx.now)
    count = len(senders) if sender_id in senders else len(senders) + 1
    threshold = ctx.settings.train_threshold
    if count >= threshold:
        return Verdict(RuleTag.EMOTE_TRAIN, threshold, count)

    store.record_signature(sender_id, signature, ctx.now)
    return None


RULE_CHAIN: tuple[Rule, ...] = (
    check_emote_count,
    check_emote_density,
    check_emote_run,
    check_uppercase,
    check_char_repetition,
    check_art,
    check_exact_repeat,
    check_similar_repeat,
    check_copy_paste_exact,
    check_copy_paste_similar,
    check_emote_train,
)


def evaluate(
    message: NormalizedMessage,
    ctx: RuleContext,
    rules: Sequence[Rule] = RULE_CHAIN,
) -> Optional[Verdict]:
    """Run ``rules`` in order and return the first verdict, if any."""
    for rule in rules:
        verdict = rule(message, ctx)
        if verdict is not None:
            return verdict
    return None

"""
Spam classifier.

Ties the normalizer, the rule chain and a StateStore together. The
classifier itself keeps no state between calls; everything it remembers
lives in its store.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence

from chatfilter.config import FilterSettings
from chatfilter.engine.models import ChatEvent, Verdict
from chatfilter.engine.normalizer import normalize
from chatfilter.engine.rules import RULE_CHAIN, Rule, RuleContext, evaluate
from chatfilter.engine.state import StateStore
from chatfilter.utils.logging import get_logger

logger = get_logger(__name__)


class Classifier:
    """
    First-match spam classifier for chat events.

    Usage:
        >>> classifier = Classifier(FilterSettings())
        >>> verdict = classifier.classify(event)
        >>> if verdict:
        ...     print(verdict.description)

    Attributes:
        settings: Thresholds, fixed for the lifetime of the classifier
        store: Windowed state the redundancy rules read and write
        rules: Rules in evaluation order
    """

    def __init__(
        self,
        settings: Optional[FilterSettings] = None,
        store: Optional[StateStore] = None,
        rules: Sequence[Rule] = RULE_CHAIN,
    ) -> None:
        """
        Initialize the classifier.

        Args:
            settings: Thresholds. Defaults are used if None.
            store: State store. A fresh one sized by ``settings`` if None.
            rules: Rule chain override, mostly for tests
        """
        self.settings = settings or FilterSettings()
        self.store = store or StateStore.from_settings(self.settings)
        self.rules = tuple(rules)

    def classify(self, event: ChatEvent) -> Optional[Verdict]:
        """
        Classify one chat event.

        Replies (when ignored) and exempt senders are skipped without
        touching the store. Messages with neither text nor emotes are not
        candidates and yield no verdict.

        Args:
            event: Event to classify

        Returns:
            The first triggered verdict, or None
        """
        if event.is_reply and self.settings.ignore_replies:
            return None

        if event.is_exempt:
            logger.info("Whitelist/Privileged: %s", event.sender_id)
            return None

        message = normalize(event.raw_text, event.emote_tokens)
        if message is None:
            return None

        ctx = RuleContext(
            event=event,
            store=self.store,
            settings=self.settings,
            now=_as_utc(event.timestamp),
        )
        verdict = evaluate(message, ctx, self.rules)
        if verdict is not None:
            logger.debug("%s flagged: %s", event.sender_id, verdict.description)
        return verdict


def _as_utc(timestamp: datetime) -> datetime:
    # Windows compare against stored aware timestamps; naive ones are taken as UTC
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp

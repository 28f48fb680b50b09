"""
Sliding-window state for redundancy detection.

Three independent collections:
- per-sender history: a ring buffer of the most recent messages per sender
- duplicate window: recent messages of all senders, for copy-paste detection
- signature window: recent emote signatures of all senders, for emote trains

Windows are pruned lazily: an entry is dropped once ``now - timestamp``
reaches the window length, right before the collection is read or
appended to. Pruning walks the whole collection, so every lookup costs
O(window population). The global windows are bounded by time only; a burst
of traffic inside one window grows them until the burst ages out.

A StateStore must only be mutated from the single processing loop.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional, TypeVar

from chatfilter.utils.logging import get_logger

if TYPE_CHECKING:
    from chatfilter.config import FilterSettings

logger = get_logger(__name__)

DEFAULT_HISTORY_SIZE = 6


@dataclass(frozen=True)
class UserHistoryEntry:
    """One message in a sender's history."""
    cleaned: str
    raw: str
    timestamp: datetime


@dataclass(frozen=True)
class GlobalDuplicateEntry:
    """One message in the cross-sender duplicate window."""
    sender_id: str
    cleaned: str
    raw: str
    timestamp: datetime


@dataclass(frozen=True)
class EmoteSignatureEntry:
    """One emote signature in the cross-sender signature window."""
    sender_id: str
    signature: str
    timestamp: datetime


_Entry = TypeVar("_Entry", UserHistoryEntry, GlobalDuplicateEntry, EmoteSignatureEntry)


def _prune(entries: deque[_Entry], now: datetime, window: timedelta) -> int:
    """Drop entries whose age reached ``window``. Returns the number dropped."""
    kept = [e for e in entries if now - e.timestamp < window]
    removed = len(entries) - len(kept)
    if removed:
        entries.clear()
        entries.extend(kept)
    return removed


class StateStore:
    """
    Owner of all time-windowed classification state.

    Each classifier gets its own store, so independent channels never see
    each other's messages.

    Attributes:
        per_user_window: Age at which per-sender entries expire
        copy_paste_window: Age at which duplicate-window entries expire
        train_window: Age at which signature-window entries expire
        history_size: Entries kept per sender regardless of age
    """

    def __init__(
        self,
        per_user_window: timedelta = timedelta(seconds=60),
        copy_paste_window: timedelta = timedelta(seconds=8),
        train_window: timedelta = timedelta(seconds=10),
        history_size: int = DEFAULT_HISTORY_SIZE,
    ) -> None:
        if history_size < 1:
            raise ValueError("history_size must be at least 1")
        self.per_user_window = per_user_window
        self.copy_paste_window = copy_paste_window
        self.train_window = train_window
        self.history_size = history_size

        self._histories: dict[str, deque[UserHistoryEntry]] = {}
        self._duplicates: deque[GlobalDuplicateEntry] = deque()
        self._signatures: deque[EmoteSignatureEntry] = deque()

    @classmethod
    def from_settings(cls, settings: FilterSettings) -> StateStore:
        """Build a store with the windows of a FilterSettings."""
        return cls(
            per_user_window=timedelta(seconds=settings.per_user_window),
            copy_paste_window=timedelta(seconds=settings.copy_paste_window),
            train_window=timedelta(seconds=settings.train_window),
            history_size=settings.per_user_history_size,
        )

    # ==================== Per-sender history ====================

    def record_user_message(self, sender_id: str, cleaned: str, raw: str, now: datetime) -> None:
        """Append a message to the sender's history, evicting the oldest on overflow."""
        history = self._histories.get(sender_id)
        if history is None:
            history = deque(maxlen=self.history_size)
            self._histories[sender_id] = history
        else:
            _prune(history, now, self.per_user_window)
        history.append(UserHistoryEntry(cleaned=cleaned, raw=raw, timestamp=now))

    def user_history(self, sender_id: str, now: datetime) -> list[UserHistoryEntry]:
        """In-window history of one sender, oldest first."""
        history = self._histories.get(sender_id)
        if history is None:
            return []
        _prune(history, now, self.per_user_window)
        if not history:
            del self._histories[sender_id]
            return []
        return list(history)

    # ==================== Duplicate window ====================

    def recent_duplicates(self, now: datetime) -> list[GlobalDuplicateEntry]:
        """In-window messages of all senders, oldest first."""
        _prune(self._duplicates, now, self.copy_paste_window)
        return list(self._duplicates)

    def record_duplicate(self, sender_id: str, cleaned: str, raw: str, now: datetime) -> None:
        """Append a message to the duplicate window."""
        _prune(self._duplicates, now, self.copy_paste_window)
        self._duplicates.append(
            GlobalDuplicateEntry(sender_id=sender_id, cleaned=cleaned, raw=raw, timestamp=now)
        )

    # ==================== Signature window ====================

    def recent_signatures(self, now: datetime) -> list[EmoteSignatureEntry]:
        """In-window emote signatures of all senders, oldest first."""
        _prune(self._signatures, now, self.train_window)
        return list(self._signatures)

    def signature_senders(self, signature: str, now: datetime) -> set[str]:
        """Distinct senders that posted ``signature`` inside the window."""
        return {
            entry.sender_id
            for entry in self.recent_signatures(now)
            if entry.signature == signature and entry.sender_id
        }

    def record_signature(self, sender_id: str, signature: str, now: datetime) -> None:
        """Append an emote signature to the signature window."""
        _prune(self._signatures, now, self.train_window)
        self._signatures.append(
            EmoteSignatureEntry(sender_id=sender_id, signature=signature, timestamp=now)
        )

    # ==================== Maintenance ====================

    def sweep(self, now: datetime) -> int:
        """
        Prune every window and forget senders with no in-window history.

        Lookups only prune what they touch, so idle senders would otherwise
        keep their last messages forever.

        Returns:
            Number of entries removed
        """
        removed = _prune(self._duplicates, now, self.copy_paste_window)
        removed += _prune(self._signatures, now, self.train_window)
        for sender_id in list(self._histories):
            history = self._histories[sender_id]
            removed += _prune(history, now, self.per_user_window)
            if not history:
                del self._histories[sender_id]
        if removed:
            logger.debug("State sweep removed %d expired entries", removed)
        return removed

    def clear(self, sender_id: Optional[str] = None) -> None:
        """Forget everything, or only one sender's history."""
        if sender_id is not None:
            self._histories.pop(sender_id, None)
            return
        self._histories.clear()
        self._duplicates.clear()
        self._signatures.clear()

    @property
    def tracked_senders(self) -> int:
        """Number of senders with a stored history."""
        return len(self._histories)

    @property
    def sizes(self) -> dict[str, int]:
        """Current population of each collection, without pruning."""
        return {
            "senders": len(self._histories),
            "history_entries": sum(len(h) for h in self._histories.values()),
            "duplicates": len(self._duplicates),
            "signatures": len(self._signatures),
        }


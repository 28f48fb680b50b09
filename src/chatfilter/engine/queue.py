"""
Single-consumer processing queue.

The ingest side submits events; one drain loop classifies them strictly in
arrival order. Work is done in bounded batches per event-loop tick so a
burst of chat never blocks the loop for long, and the drain reschedules
itself while events remain.

A failing event is logged and dropped. Nothing is retried and no single
event can stop the loop.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from chatfilter.engine.classifier import Classifier
from chatfilter.engine.models import ChatEvent, Verdict
from chatfilter.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 80

VerdictCallback = Callable[[ChatEvent, Verdict], None]


@dataclass
class QueueStats:
    """Counters for the lifetime of a queue."""
    processed: int = 0
    flagged: int = 0
    failed: int = 0


class MessageQueue:
    """
    FIFO of pending chat events, drained by a single consumer.

    The classifier's state is only ever touched from the drain, which runs
    on one event loop, so two events are never classified concurrently.

    Attributes:
        classifier: Classifier that receives every event
        on_verdict: Called with each flagged event and its verdict
        batch_size: Events classified per tick
        sweep_interval: Seconds between full state sweeps (0 disables)
        stats: Lifetime counters
    """

    def __init__(
        self,
        classifier: Classifier,
        on_verdict: Optional[VerdictCallback] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        sweep_interval: float = 30.0,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.classifier = classifier
        self.on_verdict = on_verdict
        self.batch_size = batch_size
        self.sweep_interval = sweep_interval
        self.stats = QueueStats()

        self._loop = loop
        self._pending: deque[ChatEvent] = deque()
        self._scheduled = False
        self._last_sweep: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def is_scheduled(self) -> bool:
        """True while a drain tick is waiting on the event loop."""
        return self._scheduled

    def submit(self, event: ChatEvent) -> None:
        """Queue an event and make sure a drain tick is scheduled."""
        self._pending.append(event)
        self._schedule()

    def _schedule(self) -> None:
        if self._scheduled:
            return
        loop = self._loop or asyncio.get_running_loop()
        self._scheduled = True
        loop.call_soon(self._tick)

    def _tick(self) -> None:
        self._scheduled = False
        try:
            self.process_batch()
        finally:
            if self._pending:
                self._schedule()

    def process_batch(self) -> int:
        """
        Classify up to ``batch_size`` pending events.

        Returns:
            Number of events taken off the queue
        """
        count = 0
        while self._pending and count < self.batch_size:
            event = self._pending.popleft()
            count += 1
            self._process(event)
        self._maybe_sweep()
        return count

    def drain(self) -> int:
        """Process every pending event synchronously. Returns how many."""
        total = 0
        while self._pending:
            total += self.process_batch()
        return total

    def _process(self, event: ChatEvent) -> None:
        try:
            verdict = self.classifier.classify(event)
        except Exception as e:
            self.stats.failed += 1
            logger.exception("Dropping message from %s: %s", getattr(event, "sender_id", "?"), e)
            return

        self.stats.processed += 1
        if verdict is None:
            return

        self.stats.flagged += 1
        if self.on_verdict is None:
            return
        try:
            self.on_verdict(event, verdict)
        except Exception as e:
            logger.exception("Verdict handler failed for %s: %s", event.sender_id, e)

    def _maybe_sweep(self) -> None:
        if self.sweep_interval <= 0:
            return
        now = datetime.now(timezone.utc)
        if self._last_sweep is None:
            self._last_sweep = now
            return
        if (now - self._last_sweep).total_seconds() >= self.sweep_interval:
            self._last_sweep = now
            try:
                self.classifier.store.sweep(now)
            except Exception as e:
                logger.exception("State sweep failed: %s", e)

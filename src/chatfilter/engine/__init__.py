"""
Classification engine.

Provides:
- normalizer: comparison forms of a raw message
- similarity: bigram Dice similarity
- state: sliding-window state store
- rules: the ordered rule chain
- classifier: first-match classification of chat events
- queue: batched single-consumer processing loop
"""

from chatfilter.engine.classifier import Classifier
from chatfilter.engine.models import ChatEvent, Evidence, NormalizedMessage, RuleTag, Verdict
from chatfilter.engine.normalizer import normalize
from chatfilter.engine.queue import MessageQueue, QueueStats
from chatfilter.engine.rules import RULE_CHAIN, RuleContext, evaluate
from chatfilter.engine.similarity import are_similar, similarity, similarity_score
from chatfilter.engine.state import StateStore

__all__ = [
    "Classifier",
    "ChatEvent",
    "Evidence",
    "NormalizedMessage",
    "RuleTag",
    "Verdict",
    "normalize",
    "MessageQueue",
    "QueueStats",
    "RULE_CHAIN",
    "RuleContext",
    "evaluate",
    "are_similar",
    "similarity",
    "similarity_score",
    "StateStore",
]

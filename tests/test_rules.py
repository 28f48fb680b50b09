"""
Tests for the individual spam rules.

These tests verify:
- Content rules (emotes, uppercase, repetition, art)
- Verdict descriptions
- Helper functions
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def run_rule(rule, text: str, emotes: tuple[str, ...] = (), **settings):
    """Run one rule against a fresh store."""
    from chatfilter.config import FilterSettings
    from chatfilter.engine.models import ChatEvent
    from chatfilter.engine.normalizer import normalize
    from chatfilter.engine.rules import RuleContext
    from chatfilter.engine.state import StateStore

    filter_settings = FilterSettings(**settings)
    event = ChatEvent(sender_id="alice", raw_text=text, emote_tokens=emotes, timestamp=T0)
    ctx = RuleContext(
        event=event,
        store=StateStore.from_settings(filter_settings),
        settings=filter_settings,
        now=T0,
    )
    return rule(normalize(text, emotes), ctx)


class TestHelpers:
    """Tests for rule helpers."""

    def test_longest_run(self) -> None:
        """Test run length over sequences and strings."""
        from chatfilter.engine.rules import longest_run

        assert longest_run([]) == 0
        assert longest_run(["a", "b", "c"]) == 1
        assert longest_run(["a", "a", "b", "a", "a", "a"]) == 3
        assert longest_run("nooooo") == 5

    def test_percent_rounds_half_up(self) -> None:
        """Test whole-percent rounding."""
        from chatfilter.engine.rules import percent

        assert percent(0.6) == 60
        assert percent(0.125) == 13
        assert percent(0.124) == 12
        assert percent(1.0) == 100


class TestEmoteRules:
    """Tests for emote rules."""

    def test_emote_count_over_limit(self) -> None:
        """Test that one emote over the limit triggers."""
        from chatfilter.engine.models import RuleTag
        from chatfilter.engine.rules import check_emote_count

        emotes = tuple(f"emote{i}" for i in range(7))
        verdict = run_rule(check_emote_count, "", emotes)

        assert verdict is not None
        assert verdict.rule == RuleTag.EMOTE_COUNT
        assert verdict.description == "Too many emotes (Limit: 6 | Reached: 7)"

    def test_emote_count_at_limit(self) -> None:
        """Test that exactly the limit is allowed."""
        from chatfilter.engine.rules import check_emote_count

        emotes = tuple(f"emote{i}" for i in range(6))
        assert run_rule(check_emote_count, "", emotes) is None

    def test_emote_density(self) -> None:
        """Test that emote share above the threshold triggers."""
        from chatfilter.engine.models import RuleTag
        from chatfilter.engine.rules import check_emote_density

        verdict = run_rule(check_emote_density, "hi", ("a", "b", "c"))

        assert verdict is not None
        assert verdict.rule == RuleTag.EMOTE_DENSITY
        assert (verdict.limit, verdict.reached) == (60, 75)
        assert verdict.description == "Too high emote density (Limit: 60% | Reached: 75%)"

    def test_emote_density_equal_threshold(self) -> None:
        """Test that density equal to the threshold is allowed."""
        from chatfilter.engine.rules import check_emote_density

        assert run_rule(check_emote_density, "gg ez", ("a", "b", "c")) is None

    def test_emote_density_needs_three_tokens(self) -> None:
        """Test that very short messages are not density-checked."""
        from chatfilter.engine.rules import check_emote_density

        assert run_rule(check_emote_density, "", ("a", "b")) is None

    def test_emote_run(self) -> None:
        """Test that a long run of one emote triggers."""
        from chatfilter.engine.models import RuleTag
        from chatfilter.engine.rules import check_emote_run

        verdict = run_rule(check_emote_run, "", ("kappa",) * 4)

        assert verdict is not None
        assert verdict.rule == RuleTag.EMOTE_RUN
        assert (verdict.limit, verdict.reached) == (3, 4)

        assert run_rule(check_emote_run, "", ("kappa", "kappa", "lul", "kappa")) is None


class TestTextRules:
    """Tests for text content rules."""

    def test_uppercase(self) -> None:
        """Test that an all-caps message triggers."""
        from chatfilter.engine.models import RuleTag
        from chatfilter.engine.rules import check_uppercase

        verdict = run_rule(check_uppercase, "HELLO WORLD")

        assert verdict is not None
        assert verdict.rule == RuleTag.UPPERCASE
        assert verdict.description == "All uppercase (Limit: 100% | Reached: 100%)"

    def test_uppercase_ignores_short_and_mixed(self) -> None:
        """Test that short or mixed-case messages pass."""
        from chatfilter.engine.rules import check_uppercase

        assert run_rule(check_uppercase, "OK") is None
        assert run_rule(check_uppercase, "GG 123 !!") is None
        assert run_rule(check_uppercase, "Hello World") is None

    def test_uppercase_disabled(self) -> None:
        """Test that the uppercase rule can be turned off."""
        from chatfilter.engine.rules import check_uppercase

        assert run_rule(check_uppercase, "HELLO WORLD", enable_uppercase_filter=False) is None

    def test_char_repetition(self) -> None:
        """Test that a long character run triggers."""
        from chatfilter.engine.models import RuleTag
        from chatfilter.engine.rules import check_char_repetition

        verdict = run_rule(check_char_repetition, "nooooooo")

        assert verdict is not None
        assert verdict.rule == RuleTag.CHAR_REPETITION
        assert (verdict.limit, verdict.reached) == (4, 7)

    def test_char_repetition_at_limit(self) -> None:
        """Test that a run equal to the limit passes."""
        from chatfilter.engine.rules import check_char_repetition

        assert run_rule(check_char_repetition, "noooo") is None
        assert run_rule(check_char_repetition, "nooooooo", enable_repetition_filter=False) is None

    def test_braille_art(self) -> None:
        """Test that a Braille block triggers the art rule."""
        from chatfilter.engine.models import RuleTag
        from chatfilter.engine.rules import check_art

        verdict = run_rule(check_art, chr(0x28FF) * 30)

        assert verdict is not None
        assert verdict.rule == RuleTag.ART
        assert verdict.description == "ASCII/Braille art (Limit: 35% | Reached: 100%)"

    def test_multiline_art_uses_lower_ratio(self) -> None:
        """Test that multi-line art needs a smaller share of art characters."""
        from chatfilter.engine.rules import check_art

        blocks = chr(0x2588) * 6
        multiline = run_rule(check_art, "abcdefghij" + blocks + "\nklmnopqrst")
        single = run_rule(check_art, "abcdefghij" + blocks + " klmnopqrst")

        assert multiline is not None
        assert (multiline.limit, multiline.reached) == (20, 22)
        assert single is None

    def test_art_ignores_short_messages(self) -> None:
        """Test that messages under the minimum length are not art."""
        from chatfilter.engine.rules import check_art

        assert run_rule(check_art, chr(0x28FF) * 10) is None


class TestEvaluate:
    """Tests for the rule chain runner."""

    def test_first_match_wins(self) -> None:
        """Test that evaluation stops at the first verdict."""
        from chatfilter.config import FilterSettings
        from chatfilter.engine.models import ChatEvent, RuleTag, Verdict
        from chatfilter.engine.normalizer import normalize
        from chatfilter.engine.rules import RuleContext, evaluate
        from chatfilter.engine.state import StateStore

        calls = []

        def first(message, ctx):
            calls.append("first")
            return Verdict(RuleTag.UPPERCASE, 100, 100)

        def second(message, ctx):
            calls.append("second")
            return None

        event = ChatEvent(sender_id="alice", raw_text="hello", timestamp=T0)
        ctx = RuleContext(event=event, store=StateStore(), settings=FilterSettings(), now=T0)
        verdict = evaluate(normalize("hello"), ctx, (first, second))

        assert verdict is not None
        assert verdict.rule == RuleTag.UPPERCASE
        assert calls == ["first"]

    def test_chain_order(self) -> None:
        """Test that the default chain runs content rules before redundancy rules."""
        from chatfilter.engine import rules

        assert rules.RULE_CHAIN[0] is rules.check_emote_count
        assert rules.RULE_CHAIN[-1] is rules.check_emote_train
        assert rules.RULE_CHAIN.index(rules.check_art) < rules.RULE_CHAIN.index(rules.check_exact_repeat)

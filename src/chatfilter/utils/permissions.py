"""
Privilege checks.

Provides:
- ExemptionPolicy: decides which chatters are never classified
- is_moderator: decorator restricting filter commands to moderators
"""

from __future__ import annotations

import re
from functools import wraps
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar

from twitchio.ext.commands import Context

from chatfilter.config import KNOWN_BOTS
from chatfilter.utils.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Badges whose holders are never filtered
PRIVILEGED_BADGES: frozenset[str] = frozenset({
    "broadcaster",
    "moderator",
    "vip",
    "staff",
    "admin",
    "global_mod",
    "partner",
    "bot-badge",
    "verified",
})

BOT_WORD_PATTERN = re.compile(r"\b(bot|auto|daemon|service)\b")
BOT_SUFFIX_PATTERN = re.compile(r"\w+bot$")


def parse_badges(value: Optional[str]) -> set[str]:
    """
    Parse an IRC ``badges`` tag ("moderator/1,subscriber/12") to badge names.
    """
    if not value:
        return set()
    badges = set()
    for item in value.split(","):
        name = item.split("/", 1)[0].strip().lower()
        if name:
            badges.add(name)
    return badges


def looks_like_bot(login: str) -> bool:
    """Heuristic for bot accounts that lack a bot badge."""
    if not login:
        return False
    name = login.lower()
    if name in KNOWN_BOTS:
        return True
    return bool(BOT_WORD_PATTERN.search(name) or BOT_SUFFIX_PATTERN.search(name))


class ExemptionPolicy:
    """
    Decides whether a chatter is privileged.

    Privileged chatters are the channel owner, holders of a privileged
    badge, whitelisted logins, known bots and bot-looking logins. Logins
    found privileged once are cached for the lifetime of the policy.

    Attributes:
        whitelist: Logins that are never filtered
    """

    def __init__(self, whitelist: Iterable[str] = ()) -> None:
        self.whitelist: frozenset[str] = frozenset(w.lower() for w in whitelist if w)
        self._privileged: set[str] = set()

    def is_exempt(
        self,
        login: str,
        badges: Iterable[str] = (),
        channel: Optional[str] = None,
    ) -> bool:
        """
        Check whether a chatter must not be classified.

        Args:
            login: Chatter login
            badges: Badge names from the message
            channel: Channel the message was posted in

        Returns:
            bool: True if the chatter is privileged
        """
        name = (login or "").lower()
        if name and name in self._privileged:
            return True

        privileged = (
            any(badge.lower() in PRIVILEGED_BADGES for badge in badges)
            or (bool(channel) and name == channel.lower())
            or name in self.whitelist
            or looks_like_bot(name)
        )
        if privileged and name:
            self._privileged.add(name)
        return privileged


def is_reply(tags: Optional[Mapping[str, Any]]) -> bool:
    """Whether IRC tags mark the message as a threaded reply."""
    if not tags:
        return False
    return bool(tags.get("reply-parent-msg-id"))


def is_moderator() -> Callable[[F], F]:
    """
    Decorator that restricts a command to moderators and the broadcaster.

    Usage:
        @commands.command()
        @is_moderator()
        async def spamfilter(self, ctx):
            ...
    """

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(self: Any, ctx: Context, *args: Any, **kwargs: Any) -> Any:
            is_mod = getattr(ctx.author, "is_mod", False)
            is_broadcaster = getattr(ctx.author, "is_broadcaster", False)

            if not (is_mod or is_broadcaster):
                logger.warning(
                    "Unauthorized filter command attempt by %s in %s",
                    ctx.author.name,
                    ctx.channel.name,
                )
                await ctx.send(f"@{ctx.author.name} This command is for moderators only.")
                return None

            return await func(self, ctx, *args, **kwargs)

        wrapper._is_mod_only = True  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator

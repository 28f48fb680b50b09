"""
Main Twitch bot class.

This module contains the SpamFilterBot class which handles:
- Connection to Twitch IRC
- Loading the spam filter cog
- Command dispatch and command errors
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from twitchio.ext import commands

from chatfilter.config import Config
from chatfilter.utils.logging import get_logger

if TYPE_CHECKING:
    from twitchio import Channel, Message

logger = get_logger(__name__)

COGS: tuple[str, ...] = (
    "chatfilter.cogs.spamfilter",
)


class SpamFilterBot(commands.Bot):
    """
    Twitch chat bot that classifies every message for spam.

    Attributes:
        config: Bot configuration
        start_time: Bot start timestamp for uptime tracking
    """

    def __init__(self, config: Config) -> None:
        """
        Initialize the bot.

        Args:
            config: Bot configuration object
        """
        self.config = config
        self.start_time = datetime.now(timezone.utc)
        self._ready = asyncio.Event()

        super().__init__(
            token=config.oauth_token,
            client_id=config.client_id,
            nick=config.bot_nick,
            prefix=config.prefix,
            initial_channels=list(config.channels),
        )

        logger.info("Bot initialized for channels: %s", ", ".join(config.channels))

        self._load_cogs()

    def _load_cogs(self) -> None:
        for cog_path in COGS:
            try:
                self.load_module(cog_path)
                logger.info("Loaded cog: %s", cog_path)
            except Exception as e:
                logger.error("Failed to load cog %s: %s", cog_path, e)

    async def event_ready(self) -> None:
        """Called when the bot is ready and connected."""
        logger.info("Logged in as: %s", self.nick)
        self._ready.set()

    async def event_channel_joined(self, channel: Channel) -> None:
        logger.info("Joined channel: %s", channel.name)

    async def event_message(self, message: Message) -> None:
        """
        Dispatch commands.

        Classification happens in the spam filter cog's own listener.
        """
        if message.echo:
            return
        await self.handle_commands(message)

    async def event_command_error(
        self,
        context: commands.Context,
        error: Exception,
    ) -> None:
        """
        Called when a command raises an error.

        Args:
            context: Command context
            error: The exception that was raised
        """
        if isinstance(error, (commands.CommandNotFound, commands.CheckFailure)):
            return

        if isinstance(error, commands.ArgumentParsingFailed):
            await context.send(f"@{context.author.name} Invalid argument.")
            return

        logger.exception(
            "Error in command %s: %s",
            context.command.name if context.command else "unknown",
            error,
        )
        await context.send(
            f"@{context.author.name} An error occurred while processing your command."
        )

    async def wait_until_ready(self) -> None:
        """Wait until the bot is fully ready."""
        await self._ready.wait()

    @property
    def uptime(self) -> float:
        """Get bot uptime in seconds."""
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()

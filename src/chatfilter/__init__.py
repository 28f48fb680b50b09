"""
ChatFilter - heuristic spam filtering for Twitch chat, built with TwitchIO.

This package provides:
- A first-match rule chain for emote, casing, art and repetition spam
- Sliding-window detection of copy-paste raids and emote trains
- A batched processing queue that never stalls on a bad message
- A twitchio cog that hides, marks or logs flagged messages
"""

from chatfilter.config import Config, FilterSettings, load_config

__version__ = "1.0.0"
__all__ = ["Config", "FilterSettings", "load_config", "main"]


def main() -> None:
    """Entry point for the spam filter bot."""
    import asyncio
    import signal
    import sys

    from chatfilter.bot import SpamFilterBot
    from chatfilter.utils.logging import setup_logging, get_logger

    try:
        config = load_config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    logger = get_logger(__name__)

    logger.info("Starting ChatFilter v%s", __version__)

    bot = SpamFilterBot(config)

    def signal_handler(sig: int, frame: object) -> None:
        logger.info("Received shutdown signal, stopping bot...")
        asyncio.create_task(bot.close())

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        bot.run()
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")
    except Exception as e:
        logger.exception("Bot crashed with error: %s", e)
        sys.exit(1)
    finally:
        logger.info("Bot shutdown complete")

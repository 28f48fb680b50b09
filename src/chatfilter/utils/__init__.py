"""
Utility modules for the spam filter bot.

Provides:
- logging: Logging setup with secret filtering
- permissions: Privilege checks and the moderator decorator
"""

from chatfilter.utils.logging import get_logger, setup_logging
from chatfilter.utils.permissions import ExemptionPolicy, is_moderator

__all__ = [
    "get_logger",
    "setup_logging",
    "ExemptionPolicy",
    "is_moderator",
]

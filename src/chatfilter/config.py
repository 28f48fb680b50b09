"""
Configuration management for the spam filter.

Loads configuration from environment variables and .env files,
validates required fields, and provides type-safe access.

Two layers are kept apart:
- FilterSettings: the classifier thresholds, fixed at construction time
- Config: the bot connection, logging and display flags
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


# Logins that are always treated as privileged (common chat bots)
KNOWN_BOTS: tuple[str, ...] = (
    "nightbot",
    "streamelements",
    "moobot",
    "streamlabs",
    "fossabot",
    "soundalerts",
    "wizebot",
    "coebot",
    "stay_hydrated_bot",
    "anotherttvviewer",
)


@dataclass(frozen=True)
class FilterSettings:
    """
    Classifier thresholds.

    Windows are in seconds. Ratios are fractions in [0, 1].

    Attributes:
        max_emotes: Maximum emotes per message
        emote_density_threshold: Emote share of all tokens above which a message is spam
        max_same_emote_run: Longest allowed run of one emote
        enable_uppercase_filter: Flag all-uppercase messages
        enable_repetition_filter: Flag long runs of one character
        max_char_repetition: Longest allowed run of one character
        enable_art_detection: Flag Braille/box-drawing art
        art_min_length: Minimum collapsed length before art is checked
        art_min_ratio: Art share for single-line messages
        art_min_lines: Line count from which the multi-line ratio applies
        art_min_ratio_multiline: Art share for multi-line messages
        text_min_length: Minimum cleaned length for per-sender repeat checks
        per_user_window: Per-sender repeat window
        per_user_history_size: Entries kept per sender
        exact_repeat_threshold: Identical messages from one sender that trigger
        similar_repeat_threshold: Similar messages from one sender that trigger
        copy_paste_window: Cross-sender duplicate window
        copy_paste_min_length: Minimum cleaned length for copy-paste checks
        similarity_threshold: Dice score from which two texts are similar
        train_window: Emote-train window
        train_threshold: Distinct senders that make an emote train
        ignore_replies: Skip threaded replies entirely
    """

    max_emotes: int = 6
    emote_density_threshold: float = 0.6
    max_same_emote_run: int = 3
    enable_uppercase_filter: bool = True
    enable_repetition_filter: bool = True
    max_char_repetition: int = 4
    enable_art_detection: bool = True
    art_min_length: int = 20
    art_min_ratio: float = 0.35
    art_min_lines: int = 2
    art_min_ratio_multiline: float = 0.2
    text_min_length: int = 6
    per_user_window: float = 60.0
    per_user_history_size: int = 6
    exact_repeat_threshold: int = 3
    similar_repeat_threshold: int = 3
    copy_paste_window: float = 8.0
    copy_paste_min_length: int = 6
    similarity_threshold: float = 0.85
    train_window: float = 10.0
    train_threshold: int = 3
    ignore_replies: bool = True


@dataclass(frozen=True)
class Config:
    """
    Immutable runtime configuration for the filter bot.

    All values are loaded from environment variables or a .env file.
    Required fields raise ValueError from load_config if missing.

    Attributes:
        client_id: Twitch application client ID
        client_secret: Twitch application client secret
        oauth_token: Bot OAuth token for chat access
        bot_nick: Bot's Twitch username
        channels: List of channels to join
        prefix: Command prefix (default: !)
        log_level: Logging level (default: INFO)
        log_file: Optional log file path
        whitelist: Logins that are never filtered
        filter_enabled: Hide (delete) flagged messages
        mark_enabled: Mark flagged messages when not hiding them
        batch_size: Events classified per scheduling tick
        sweep_interval: Seconds between full state sweeps
        filter: Classifier thresholds
    """

    client_id: str
    client_secret: str
    oauth_token: str
    bot_nick: str
    channels: list[str]

    prefix: str = "!"
    log_level: str = "INFO"
    log_file: str | None = None
    whitelist: list[str] = field(default_factory=list)
    filter_enabled: bool = True
    mark_enabled: bool = True
    batch_size: int = 80
    sweep_interval: float = 30.0
    filter: FilterSettings = field(default_factory=FilterSettings)

    _secrets: list[str] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        """Initialize secrets list for log filtering."""
        secrets = [self.client_secret, self.oauth_token]
        if self.oauth_token.startswith("oauth:"):
            secrets.append(self.oauth_token[len("oauth:"):])
        # Use object.__setattr__ because dataclass is frozen
        object.__setattr__(self, "_secrets", [s for s in secrets if s])

    @property
    def secrets(self) -> list[str]:
        """Values that must never appear in log output."""
        return list(self._secrets)


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean from environment variable string."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_int(value: str | None, default: int) -> int:
    """Parse an integer from environment variable string."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float(value: str | None, default: float) -> float:
    """Parse a float from environment variable string."""
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _parse_list(value: str | None) -> list[str]:
    """Parse a comma-separated list of logins or channels."""
    if not value:
        return []
    items = [item.strip().lstrip("#@").lower() for item in value.split(",")]
    return [item for item in items if item]


def load_filter_settings() -> FilterSettings:
    """
    Build classifier thresholds from SPAMFILTER_* environment variables.

    Unset or malformed values fall back to the defaults.
    """
    defaults = FilterSettings()

    def env(name: str) -> str | None:
        return os.getenv(f"SPAMFILTER_{name}")

    return FilterSettings(
        max_emotes=_parse_int(env("MAX_EMOTES"), defaults.max_emotes),
        emote_density_threshold=_parse_float(
            env("EMOTE_DENSITY_THRESHOLD"), defaults.emote_density_threshold
        ),
        max_same_emote_run=_parse_int(env("MAX_SAME_EMOTE_RUN"), defaults.max_same_emote_run),
        enable_uppercase_filter=_parse_bool(
            env("ENABLE_UPPERCASE_FILTER"), defaults.enable_uppercase_filter
        ),
        enable_repetition_filter=_parse_bool(
            env("ENABLE_REPETITION_FILTER"), defaults.enable_repetition_filter
        ),
        max_char_repetition=_parse_int(env("MAX_CHAR_REPETITION"), defaults.max_char_repetition),
        enable_art_detection=_parse_bool(env("ENABLE_ART_DETECTION"), defaults.enable_art_detection),
        art_min_length=_parse_int(env("ART_MIN_LENGTH"), defaults.art_min_length),
        art_min_ratio=_parse_float(env("ART_MIN_RATIO"), defaults.art_min_ratio),
        art_min_lines=_parse_int(env("ART_MIN_LINES"), defaults.art_min_lines),
        art_min_ratio_multiline=_parse_float(
            env("ART_MIN_RATIO_MULTILINE"), defaults.art_min_ratio_multiline
        ),
        text_min_length=_parse_int(env("TEXT_MIN_LENGTH"), defaults.text_min_length),
        per_user_window=_parse_float(env("PER_USER_WINDOW"), defaults.per_user_window),
        per_user_history_size=_parse_int(
            env("PER_USER_HISTORY_SIZE"), defaults.per_user_history_size
        ),
        exact_repeat_threshold=_parse_int(
            env("EXACT_REPEAT_THRESHOLD"), defaults.exact_repeat_threshold
        ),
        similar_repeat_threshold=_parse_int(
            env("SIMILAR_REPEAT_THRESHOLD"), defaults.similar_repeat_threshold
        ),
        copy_paste_window=_parse_float(env("COPY_PASTE_WINDOW"), defaults.copy_paste_window),
        copy_paste_min_length=_parse_int(
            env("COPY_PASTE_MIN_LENGTH"), defaults.copy_paste_min_length
        ),
        similarity_threshold=_parse_float(
            env("SIMILARITY_THRESHOLD"), defaults.similarity_threshold
        ),
        train_window=_parse_float(env("TRAIN_WINDOW"), defaults.train_window),
        train_threshold=_parse_int(env("TRAIN_THRESHOLD"), defaults.train_threshold),
        ignore_replies=_parse_bool(env("IGNORE_REPLIES"), defaults.ignore_replies),
    )


def load_config(env_file: str | Path | None = None) -> Config:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Optional path to .env file. If not provided,
                  looks for .env in current directory and parent directories.

    Returns:
        Config: Validated configuration object

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    errors: list[str] = []

    client_id = os.getenv("TWITCH_CLIENT_ID", "")
    if not client_id:
        errors.append("TWITCH_CLIENT_ID is required")

    client_secret = os.getenv("TWITCH_CLIENT_SECRET", "")
    if not client_secret:
        errors.append("TWITCH_CLIENT_SECRET is required")

    oauth_token = os.getenv("TWITCH_OAUTH_TOKEN", "")
    if not oauth_token:
        errors.append("TWITCH_OAUTH_TOKEN is required")

    bot_nick = os.getenv("TWITCH_BOT_NICK", "")
    if not bot_nick:
        errors.append("TWITCH_BOT_NICK is required")

    channels = _parse_list(os.getenv("TWITCH_CHANNELS"))
    if not channels:
        errors.append("TWITCH_CHANNELS is required (comma-separated list)")

    # Raise all errors at once
    if errors:
        error_msg = "Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ValueError(error_msg)

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if log_level not in valid_levels:
        log_level = "INFO"

    batch_size = _parse_int(os.getenv("SPAMFILTER_BATCH_SIZE"), 80)
    if batch_size < 1:
        batch_size = 80

    return Config(
        client_id=client_id,
        client_secret=client_secret,
        oauth_token=oauth_token,
        bot_nick=bot_nick,
        channels=channels,
        prefix=os.getenv("BOT_PREFIX", "!"),
        log_level=log_level,
        log_file=os.getenv("LOG_FILE") or None,
        whitelist=_parse_list(os.getenv("SPAMFILTER_WHITELIST")),
        filter_enabled=_parse_bool(os.getenv("SPAMFILTER_FILTER_ENABLED"), True),
        mark_enabled=_parse_bool(os.getenv("SPAMFILTER_MARK_ENABLED"), True),
        batch_size=batch_size,
        sweep_interval=_parse_float(os.getenv("SPAMFILTER_SWEEP_INTERVAL"), 30.0),
        filter=load_filter_settings(),
    )

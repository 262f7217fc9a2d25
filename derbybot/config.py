import os
import logging
from typing import Dict

from dotenv import load_dotenv


# Load env early
load_dotenv()

# Logging configuration
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, log_level, logging.INFO),
)
logger = logging.getLogger("derbybot")

# Reduce noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("aiohttp").setLevel(logging.WARNING)
logging.getLogger("telegram.ext.ExtBot").setLevel(logging.WARNING)
logging.getLogger("telegram.ext.Updater").setLevel(logging.WARNING)
logging.getLogger("telegram.ext.Application").setLevel(logging.WARNING)
logging.getLogger("telegram.bot").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)
logging.getLogger("matplotlib").setLevel(logging.WARNING)
logging.getLogger("matplotlib.font_manager").setLevel(logging.WARNING)


def parse_forced_outcomes(raw: str) -> Dict[str, str]:
    """Parse ``"alice:win,bob:lose"`` into ``{"alice": "win", "bob": "lose"}``.

    Usernames are stored lower-cased without the leading ``@``. Entries with an
    unknown outcome are skipped with a warning.
    """
    overrides: Dict[str, str] = {}
    for chunk in (raw or "").split(","):
        chunk = chunk.strip()
        if not chunk or ":" not in chunk:
            continue
        name, outcome = chunk.rsplit(":", 1)
        name = name.strip().lstrip("@").lower()
        outcome = outcome.strip().lower()
        if not name or outcome not in ("win", "lose"):
            logger.warning(f"Ignoring malformed forced outcome entry: {chunk!r}")
            continue
        overrides[name] = outcome
    return overrides


class Config:
    """Application configuration read from the environment."""

    # Telegram Bot Configuration
    BOT_TOKEN: str | None = os.getenv("BOT_TOKEN") or os.getenv("TELEGRAM_BOT_TOKEN")
    OWNER_USER_ID: int = int(os.getenv("OWNER_USER_ID", "0"))

    # Persistence
    DATA_FILE: str = os.getenv("DATA_FILE", "derby_data.json")

    # Civil timezone every schedule is expressed in
    TIMEZONE: str = os.getenv("TIMEZONE", "Europe/Kyiv")

    # Mini-games
    WORD_ROUND_SECS: int = int(os.getenv("WORD_ROUND_SECS", "90"))
    DUEL_MUTE_SECS: int = int(os.getenv("DUEL_MUTE_SECS", "300"))
    COIN_MUTE_SECS: int = int(os.getenv("COIN_MUTE_SECS", "60"))
    CHALLENGE_TTL_SECS: int = int(os.getenv("CHALLENGE_TTL_SECS", "300"))

    # Message counters are written to disk in batches of this size
    MESSAGE_FLUSH_EVERY: int = int(os.getenv("MESSAGE_FLUSH_EVERY", "20"))
    FORCED_OUTCOMES: Dict[str, str] = parse_forced_outcomes(os.getenv("FORCED_OUTCOMES", ""))

    # AI completion endpoint (OpenAI-compatible); disabled when no key is set
    AI_API_URL: str = os.getenv("AI_API_URL", "https://api.openai.com/v1/chat/completions").strip()
    AI_API_KEY: str = os.getenv("AI_API_KEY", "").strip()
    AI_MODEL: str = os.getenv("AI_MODEL", "gpt-4o-mini").strip()
    AI_TIMEOUT_SECS: float = float(os.getenv("AI_TIMEOUT_SECS", "20"))

    @classmethod
    def validate_config(cls) -> None:
        if not cls.BOT_TOKEN:
            raise ValueError("BOT_TOKEN environment variable is required")
        if cls.OWNER_USER_ID == 0:
            logger.warning("OWNER_USER_ID not configured - admin commands only work in groups")
        if not cls.AI_API_KEY:
            logger.info("AI_API_KEY not configured - AI replies disabled")

    @classmethod
    def ai_enabled(cls) -> bool:
        return bool(cls.AI_API_KEY and cls.AI_API_URL)


# Commonly used constants
BOT_TOKEN = Config.BOT_TOKEN
OWNER_USER_ID = Config.OWNER_USER_ID
TIMEZONE = Config.TIMEZONE

"""Hay Day Derby Bot package.

Modules:
- config: environment, constants and logging
- timeutils: fixed-timezone clock helpers
- scheduler: weekly rabbit triggers and the derby reset countdown
- storage: JSON-file repository (subscribers, anchor, rosters, stats, words)
- broadcast: subscriber fan-out, safe replies and temporary mutes
- duel / coinflip / wordgame: per-chat mini-game state machines
- stats: win/loss and points accumulation
- intents: free-text action phrases
- responder / http: canned and AI replies
- formatting / charts: message and image rendering
- commands / handlers: telegram handlers
- app: application bootstrap and wiring
"""

from .config import Config, BOT_TOKEN, OWNER_USER_ID, TIMEZONE
from .timeutils import now, next_weekly_occurrence, parse_local_datetime, fmt_local
from .scheduler import (
    NotificationScheduler,
    RecurringTrigger,
    ResetEvent,
    RABBIT_TRIGGERS,
    RESET_OFFSETS_HOURS,
    compute_reset_events,
    upcoming_resets,
    next_rabbit,
)
from .storage import Storage, StorageError
from .broadcast import BroadcastGateway, render_mentions
from .duel import DuelManager, hit_chance
from .coinflip import CoinFlipManager
from .wordgame import WordGameManager
from .stats import StatsRecorder
from .intents import Intent, normalize, match_intent
from .app import main, build_application

__all__ = [
    "Config", "BOT_TOKEN", "OWNER_USER_ID", "TIMEZONE",
    "now", "next_weekly_occurrence", "parse_local_datetime", "fmt_local",
    "NotificationScheduler", "RecurringTrigger", "ResetEvent", "RABBIT_TRIGGERS", "RESET_OFFSETS_HOURS",
    "compute_reset_events", "upcoming_resets", "next_rabbit",
    "Storage", "StorageError",
    "BroadcastGateway", "render_mentions",
    "DuelManager", "hit_chance", "CoinFlipManager", "WordGameManager", "StatsRecorder",
    "Intent", "normalize", "match_intent",
    "main", "build_application",
]

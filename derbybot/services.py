from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from telegram.ext import ContextTypes

from .broadcast import BroadcastGateway
from .coinflip import CoinFlipManager
from .config import Config, logger
from .duel import DuelManager
from .formatting import fmt_rabbit_alert, fmt_reset_alert
from .scheduler import NotificationScheduler, RecurringTrigger, ResetEvent, rabbit_schedule
from .stats import StatsRecorder
from .storage import Storage
from .wordgame import WordGameManager


@dataclass
class BotServices:
    """Everything the handlers share, kept in ``application.bot_data``."""
    storage: Storage
    gateway: BroadcastGateway
    scheduler: NotificationScheduler
    stats: StatsRecorder
    duels: DuelManager
    coins: CoinFlipManager
    words: WordGameManager
    rng: random.Random

    async def on_rabbit(self, trigger: RecurringTrigger) -> None:
        await self.gateway.broadcast(fmt_rabbit_alert(trigger), with_mentions=True)

    async def on_reset(self, event: ResetEvent, reminder: bool) -> None:
        await self.gateway.broadcast(fmt_reset_alert(event, reminder), with_mentions=True)

    def start_schedules(self, anchor: Optional[datetime]) -> None:
        for trigger in rabbit_schedule():
            self.scheduler.schedule_recurring(trigger, self.on_rabbit)
        self.apply_anchor(anchor)

    def apply_anchor(self, anchor: Optional[datetime]) -> int:
        created = self.scheduler.reschedule(anchor, self.on_reset)
        logger.info(f"Derby anchor {'set' if anchor else 'cleared'}: {created} timers pending")
        return created

    def shutdown(self) -> None:
        self.scheduler.shutdown()
        self.words.shutdown()


def build_services(bot, storage: Storage, scheduler: Optional[NotificationScheduler] = None,
                   rng: Optional[random.Random] = None) -> BotServices:
    rng = rng or random.Random()
    return BotServices(
        storage=storage,
        gateway=BroadcastGateway(bot, storage),
        scheduler=scheduler or NotificationScheduler(),
        stats=StatsRecorder(storage),
        duels=DuelManager(rng=rng, forced_outcomes=Config.FORCED_OUTCOMES),
        coins=CoinFlipManager(rng=rng, forced_outcomes=Config.FORCED_OUTCOMES),
        words=WordGameManager(storage),
        rng=rng,
    )


def get_services(context: ContextTypes.DEFAULT_TYPE) -> BotServices:
    return context.bot_data["services"]

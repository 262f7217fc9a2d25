from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from .config import Config, logger
from .state import Player
from .storage import STAT_FIELDS, Storage


GAME_FIELDS = {
    "duel": ("duel_wins", "duel_losses"),
    "coin": ("coin_wins", "coin_losses"),
}
WORD_ROLE_FIELDS = {
    "explained": "word_explained",
    "guessed": "word_guessed",
}


class StatsRecorder:
    """Accumulates per-(chat, user) counters. Never raises into game flows.

    Message counters are buffered in memory and written in one batch every
    ``flush_every`` messages (and on shutdown); game results are written at once.
    """

    def __init__(self, storage: Storage, flush_every: int = Config.MESSAGE_FLUSH_EVERY):
        self.storage = storage
        self.flush_every = max(1, flush_every)
        self._pending_messages: Dict[Tuple[int, int], Tuple[int, Player]] = {}

    async def _increment(self, chat_id: int, player: Player, deltas, what: str) -> bool:
        try:
            await self.storage.increment_stats(chat_id, player.user_id, deltas, name=player.mention)
            return True
        except Exception as e:
            logger.error(f"Failed to record {what} for user {player.user_id} in chat {chat_id}: {e}")
            return False

    async def record_outcome(self, chat_id: int, player: Player, game: str, is_win: bool) -> bool:
        win_field, loss_field = GAME_FIELDS[game]
        field = win_field if is_win else loss_field
        return await self._increment(chat_id, player, {field: 1}, f"{game} outcome")

    async def record_duel(self, chat_id: int, winner: Player, loser: Player) -> None:
        await self.record_outcome(chat_id, winner, "duel", True)
        await self.record_outcome(chat_id, loser, "duel", False)

    async def record_coin(self, chat_id: int, winner: Player, loser: Player) -> None:
        await self.record_outcome(chat_id, winner, "coin", True)
        await self.record_outcome(chat_id, loser, "coin", False)

    async def record_word_round(self, chat_id: int, player: Player, role: str, points: int) -> bool:
        deltas = {WORD_ROLE_FIELDS[role]: 1, "word_points": points}
        return await self._increment(chat_id, player, deltas, f"word round ({role})")

    @property
    def pending_messages(self) -> int:
        return sum(count for count, _ in self._pending_messages.values())

    async def record_message(self, chat_id: int, player: Player) -> bool:
        key = (chat_id, player.user_id)
        count, _ = self._pending_messages.get(key, (0, player))
        self._pending_messages[key] = (count + 1, player)
        if self.pending_messages >= self.flush_every:
            return await self.flush_messages()
        return True

    async def flush_messages(self) -> bool:
        """Write buffered message counters. On failure they stay buffered for the next flush."""
        if not self._pending_messages:
            return True
        batch, self._pending_messages = self._pending_messages, {}
        updates = [
            (chat_id, user_id, {"messages": count}, player.mention)
            for (chat_id, user_id), (count, player) in batch.items()
        ]
        try:
            await self.storage.increment_many(updates)
        except Exception as e:
            logger.error(f"Failed to flush {len(updates)} message counters: {e}")
            for key, (count, player) in batch.items():
                pending, _ = self._pending_messages.get(key, (0, player))
                self._pending_messages[key] = (pending + count, player)
            return False
        logger.debug(f"Flushed message counters for {len(updates)} users")
        return True

    async def adjust(self, chat_id: int, player: Player, field: str, delta: int) -> bool:
        """Administrative correction; counters are clamped at zero."""
        if field not in STAT_FIELDS:
            raise ValueError(f"unknown stat field: {field}")
        logger.info(f"Adjusting {field} by {delta} for user {player.user_id} in chat {chat_id}")
        return await self._increment(chat_id, player, {field: delta}, "adjustment")

    async def leaderboard(self, chat_id: int, field: str = "word_points", limit: int = 10) -> List[Tuple[str, int]]:
        records = await self.storage.chat_stats(chat_id)
        rows = [
            (record.get("name") or str(user_id), int(record.get(field, 0)))
            for user_id, record in records.items()
            if int(record.get(field, 0)) > 0
        ]
        rows.sort(key=lambda row: (-row[1], row[0]))
        return rows[:limit]

    async def user_stats(self, chat_id: int, user_id: int) -> Optional[dict]:
        stats = await self.storage.get_stats(chat_id, user_id)
        pending, _ = self._pending_messages.get((chat_id, user_id), (0, None))
        stats["messages"] += pending
        return stats

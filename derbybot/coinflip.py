"""Coin-flip mini-game: one challenge, one call, one toss."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional

from .config import Config, logger
from .intents import COIN_INTENTS, Intent, phrase
from .state import Challenge, Player, SessionStore


HEADS = "heads"
TAILS = "tails"
SIDE_LABELS = {HEADS: "орёл", TAILS: "решка"}
INTENT_SIDES = {Intent.COIN_HEADS: HEADS, Intent.COIN_TAILS: TAILS}


def other_side(side: str) -> str:
    return TAILS if side == HEADS else HEADS


@dataclass
class CoinOutcome:
    ok: bool
    message: str = ""
    winner: Optional[Player] = None
    loser: Optional[Player] = None
    result: Optional[str] = None
    calls: Optional[Dict[int, str]] = None

    @property
    def finished(self) -> bool:
        return self.winner is not None


class CoinFlipManager:
    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        challenge_ttl: float = Config.CHALLENGE_TTL_SECS,
        forced_outcomes: Optional[Dict[str, str]] = None,
    ):
        self.rng = rng or random.Random()
        self.clock = clock
        self.challenge_ttl = challenge_ttl
        self.forced_outcomes = dict(Config.FORCED_OUTCOMES if forced_outcomes is None else forced_outcomes)
        self.challenges: SessionStore[Challenge] = SessionStore()

    def live_challenge(self, chat_id: int) -> Optional[Challenge]:
        challenge = self.challenges.get(chat_id)
        if challenge and self.clock() - challenge.issued_at > self.challenge_ttl:
            self.challenges.remove(chat_id)
            return None
        return challenge

    def available_intents(self, chat_id: int) -> FrozenSet[Intent]:
        return COIN_INTENTS if self.live_challenge(chat_id) else frozenset()

    def open_challenge(self, chat_id: int, challenger: Player, target_username: Optional[str] = None) -> CoinOutcome:
        if self.live_challenge(chat_id):
            return CoinOutcome(False, "🪙 Монетка уже брошена на стол. Сначала завершите текущий спор.")
        target = target_username.lstrip("@") if target_username else None
        if target and challenger.matches_username(target):
            return CoinOutcome(False, "🤨 Нельзя спорить с самим собой.")
        self.challenges.create(chat_id, Challenge(challenger, self.clock(), target))
        whom = f"@{target}" if target else "кто угодно"
        return CoinOutcome(
            True,
            f"🪙 {challenger.mention} предлагает подбросить монетку! Отвечает {whom}: "
            f"напишите «{phrase(Intent.COIN_HEADS)}» или «{phrase(Intent.COIN_TAILS)}».",
        )

    def withdraw(self, chat_id: int, player: Player) -> CoinOutcome:
        challenge = self.live_challenge(chat_id)
        if challenge is None:
            return CoinOutcome(False, "🪙 Открытого спора нет.")
        if challenge.challenger.user_id != player.user_id:
            return CoinOutcome(False, "⛔ Отменить спор может только тот, кто его начал.")
        self.challenges.remove(chat_id)
        return CoinOutcome(True, "❌ Спор на монетку отменён.")

    def _forced_result(self, calls: Dict[int, str], players: Dict[int, Player]) -> Optional[str]:
        for user_id, player in players.items():
            forced = self.forced_outcomes.get((player.username or "").lower())
            if forced == "win":
                return calls[user_id]
            if forced == "lose":
                return other_side(calls[user_id])
        return None

    def call(self, chat_id: int, caller: Player, side: str) -> CoinOutcome:
        challenge = self.live_challenge(chat_id)
        if challenge is None:
            return CoinOutcome(False)
        challenger = challenge.challenger
        if caller.user_id == challenger.user_id:
            return CoinOutcome(False, "🤨 Нельзя принять собственный спор.")
        if not challenge.allows(caller):
            return CoinOutcome(False, f"⛔ Этот спор адресован @{challenge.target_username}.")

        self.challenges.remove(chat_id)
        calls = {caller.user_id: side, challenger.user_id: other_side(side)}
        players = {caller.user_id: caller, challenger.user_id: challenger}
        result = self._forced_result(calls, players) or self.rng.choice((HEADS, TAILS))
        winner = caller if calls[caller.user_id] == result else challenger
        loser = challenger if winner is caller else caller
        logger.info(f"Coin flip in chat {chat_id}: {result}, winner {winner.user_id}")
        return CoinOutcome(
            True,
            f"🪙 {caller.mention} — {SIDE_LABELS[side]}, {challenger.mention} — {SIDE_LABELS[other_side(side)]}.\n"
            f"Выпало: <b>{SIDE_LABELS[result]}</b>!\n\n🏆 Победитель: {winner.mention}",
            winner=winner,
            loser=loser,
            result=result,
            calls=calls,
        )

    def handle(self, chat_id: int, player: Player, intent: Intent) -> CoinOutcome:
        side = INTENT_SIDES.get(intent)
        if side is None:
            return CoinOutcome(False)
        return self.call(chat_id, player, side)

"""Duel mini-game: challenge -> accept -> alternating turns -> hit or forfeit.

State per chat is held in two stores: the open challenge and the running
duel. The manager is synchronous; every check-then-act runs without a
suspension point, the caller applies side effects (stats, mutes, replies)
from the returned ``DuelOutcome``.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional

from .config import Config, logger
from .intents import DUEL_CHALLENGE_INTENTS, DUEL_TURN_INTENTS, Intent, phrase
from .state import Challenge, DuelSession, DuelStatus, Player, SessionStore


BASE_HIT_CHANCE = 60
AIM_STEP = 20


def hit_chance(aim_bonus: int) -> int:
    """Hit probability in percent for a given aim bonus."""
    return max(0, min(100, BASE_HIT_CHANCE + aim_bonus))


@dataclass
class DuelOutcome:
    ok: bool
    message: str = ""
    winner: Optional[Player] = None
    loser: Optional[Player] = None
    forfeit: bool = False

    @property
    def finished(self) -> bool:
        return self.winner is not None

    @property
    def silent(self) -> bool:
        return not self.message


SILENT = DuelOutcome(ok=False)


class DuelManager:
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
        self.sessions: SessionStore[DuelSession] = SessionStore()

    def live_challenge(self, chat_id: int) -> Optional[Challenge]:
        challenge = self.challenges.get(chat_id)
        if challenge and self.clock() - challenge.issued_at > self.challenge_ttl:
            self.challenges.remove(chat_id)
            logger.debug(f"Dropped expired duel challenge in chat {chat_id}")
            return None
        return challenge

    def session(self, chat_id: int) -> Optional[DuelSession]:
        return self.sessions.get(chat_id)

    def available_intents(self, chat_id: int) -> FrozenSet[Intent]:
        if self.sessions.get(chat_id):
            return DUEL_TURN_INTENTS
        if self.live_challenge(chat_id):
            return DUEL_CHALLENGE_INTENTS
        return frozenset()

    def open_challenge(self, chat_id: int, challenger: Player, target_username: Optional[str] = None) -> DuelOutcome:
        if self.sessions.get(chat_id):
            return DuelOutcome(False, "⚔️ В этом чате уже идёт дуэль. Дождитесь её окончания.")
        if self.live_challenge(chat_id):
            return DuelOutcome(False, "⚔️ Вызов на дуэль уже брошен. Примите его или дождитесь отмены.")
        target = target_username.lstrip("@") if target_username else None
        if target and challenger.matches_username(target):
            return DuelOutcome(False, "🤨 Нельзя вызвать на дуэль самого себя.")

        self.challenges.create(chat_id, Challenge(challenger, self.clock(), target))
        whom = f"@{target}" if target else "любого желающего"
        return DuelOutcome(
            True,
            f"⚔️ {challenger.mention} вызывает на дуэль {whom}!\n\n"
            f"Напишите «{phrase(Intent.DUEL_ACCEPT)}», чтобы принять вызов, "
            f"или «{phrase(Intent.DUEL_DECLINE)}», чтобы отказаться.",
        )

    def accept(self, chat_id: int, player: Player) -> DuelOutcome:
        challenge = self.live_challenge(chat_id)
        if challenge is None:
            return SILENT
        if player.user_id == challenge.challenger.user_id:
            return DuelOutcome(False, "🤨 Нельзя принять собственный вызов.")
        if not challenge.allows(player):
            return DuelOutcome(False, f"⛔ Этот вызов адресован @{challenge.target_username}.")
        if self.sessions.get(chat_id):
            return DuelOutcome(False, "⚔️ В этом чате уже идёт дуэль.")

        self.challenges.remove(chat_id)
        first = self.rng.choice([challenge.challenger, player])
        session = DuelSession(
            player_a=challenge.challenger,
            player_b=player,
            turn_holder_id=first.user_id,
            status=DuelStatus.IN_PROGRESS,
        )
        self.sessions.create(chat_id, session)
        logger.info(f"Duel started in chat {chat_id}: {challenge.challenger.user_id} vs {player.user_id}")
        return DuelOutcome(
            True,
            f"🤠 Дуэль началась: {challenge.challenger.mention} против {player.mention}!\n\n"
            f"Первым стреляет {first.mention}.\n"
            f"«{phrase(Intent.SHOOT)}» — стрелять ({BASE_HIT_CHANCE}% + бонус прицела), "
            f"«{phrase(Intent.AIM)}» — прицелиться (+{AIM_STEP}%, ход переходит), "
            f"«{phrase(Intent.RESET_AIM)}» — сбросить прицел.",
        )

    def decline(self, chat_id: int, player: Player) -> DuelOutcome:
        challenge = self.live_challenge(chat_id)
        if challenge is None:
            return SILENT
        if player.user_id == challenge.challenger.user_id:
            self.challenges.remove(chat_id)
            return DuelOutcome(True, f"🏳️ {player.mention} отозвал вызов на дуэль.")
        if not challenge.allows(player):
            return DuelOutcome(False, f"⛔ Этот вызов адресован @{challenge.target_username}.")
        self.challenges.remove(chat_id)
        return DuelOutcome(True, f"🙅 {player.mention} отказывается от дуэли с {challenge.challenger.mention}.")

    def cancel(self, chat_id: int, player: Player) -> DuelOutcome:
        session = self.sessions.get(chat_id)
        if session is not None:
            if not session.is_duelist(player.user_id):
                return DuelOutcome(False, "⛔ Отменить дуэль могут только её участники.")
            self.sessions.remove(chat_id)
            winner = session.opponent(player.user_id)
            loser = session.player(player.user_id)
            return DuelOutcome(
                True,
                f"🏳️ {loser.mention} сдаётся! Победа присуждается {winner.mention}.",
                winner=winner,
                loser=loser,
                forfeit=True,
            )

        challenge = self.live_challenge(chat_id)
        if challenge is None:
            return SILENT
        if player.user_id != challenge.challenger.user_id:
            return DuelOutcome(False, "⛔ Отменить вызов может только тот, кто его бросил.")
        self.challenges.remove(chat_id)
        return DuelOutcome(True, "❌ Вызов на дуэль отменён.")

    def _turn_session(self, chat_id: int, player: Player):
        session = self.sessions.get(chat_id)
        if session is None:
            return None, SILENT
        if not session.is_duelist(player.user_id):
            return None, DuelOutcome(False, "⛔ Вы не участвуете в этой дуэли.")
        if session.turn_holder_id != player.user_id:
            return None, DuelOutcome(False, f"⏳ Сейчас не ваш ход! Ходит {session.turn_holder.mention}.")
        return session, None

    def _forced(self, player: Player) -> Optional[str]:
        if not player.username:
            return None
        return self.forced_outcomes.get(player.username.lower())

    def _roll_hit(self, shooter: Player, target: Player, chance: int) -> bool:
        if self._forced(shooter) == "win" or self._forced(target) == "lose":
            return True
        if self._forced(shooter) == "lose" or self._forced(target) == "win":
            return False
        return self.rng.randrange(100) < chance

    def shoot(self, chat_id: int, player: Player) -> DuelOutcome:
        session, error = self._turn_session(chat_id, player)
        if error:
            return error
        shooter = session.player(player.user_id)
        target = session.opponent(player.user_id)
        chance = hit_chance(session.aim_bonus.get(shooter.user_id, 0))
        # The bonus is spent by firing, hit or miss
        session.aim_bonus[shooter.user_id] = 0

        if self._roll_hit(shooter, target, chance):
            self.sessions.remove(chat_id)
            logger.info(f"Duel in chat {chat_id} won by {shooter.user_id} ({chance}%)")
            return DuelOutcome(
                True,
                f"💥 {shooter.mention} стреляет ({chance}%) и попадает! "
                f"{target.mention} повержен.\n\n🏆 Победитель: {shooter.mention}",
                winner=shooter,
                loser=target,
            )

        session.turn_holder_id = target.user_id
        return DuelOutcome(
            True,
            f"💨 {shooter.mention} стреляет ({chance}%) и промахивается!\n\nХод переходит к {target.mention}.",
        )

    def aim(self, chat_id: int, player: Player) -> DuelOutcome:
        session, error = self._turn_session(chat_id, player)
        if error:
            return error
        session.aim_bonus[player.user_id] = session.aim_bonus.get(player.user_id, 0) + AIM_STEP
        opponent = session.opponent(player.user_id)
        session.turn_holder_id = opponent.user_id
        chance = hit_chance(session.aim_bonus[player.user_id])
        return DuelOutcome(
            True,
            f"🎯 {player.mention} целится. Шанс следующего выстрела: {chance}%.\n\nХод переходит к {opponent.mention}.",
        )

    def reset_aim(self, chat_id: int, player: Player) -> DuelOutcome:
        session, error = self._turn_session(chat_id, player)
        if error:
            return error
        session.aim_bonus[player.user_id] = 0
        return DuelOutcome(
            True,
            f"🔄 {player.mention} сбрасывает прицел ({BASE_HIT_CHANCE}%). Ход остаётся за вами.",
        )

    def handle(self, chat_id: int, player: Player, intent: Intent) -> DuelOutcome:
        actions = {
            Intent.DUEL_ACCEPT: self.accept,
            Intent.DUEL_DECLINE: self.decline,
            Intent.DUEL_CANCEL: self.cancel,
            Intent.SHOOT: self.shoot,
            Intent.AIM: self.aim,
            Intent.RESET_AIM: self.reset_aim,
        }
        action = actions.get(intent)
        if action is None:
            return SILENT
        return action(chat_id, player)

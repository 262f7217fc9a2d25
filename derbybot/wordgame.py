"""Word-guessing game: a host gets a secret word in private and the chat guesses it.

One round per chat. A round ends on the first correct guess from anyone but
the host, on a host skip/stop, or when its timer runs out. The timer is the
only way a round ends on its own; it is cancelled on every other ending.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .config import Config, logger
from .intents import normalize
from .state import Player, SessionStore, WordGameSession
from .storage import Storage
from .words import DIFFICULTY_LABELS


DeliverCallback = Callable[[WordGameSession], Awaitable[bool]]
TimeoutCallback = Callable[[int, WordGameSession], Awaitable[None]]


def first_last_hint(word: str) -> str:
    letters = word.strip()
    return f"первая буква «{letters[0].upper()}», последняя «{letters[-1].upper()}»"


def letter_count(word: str) -> int:
    return len(word.replace(" ", ""))


def masked_word(word: str) -> str:
    """First and last letters shown, the rest masked; spaces kept."""
    chars = list(word.strip())
    masked = []
    for index, char in enumerate(chars):
        if char == " ":
            masked.append(" ")
        elif index in (0, len(chars) - 1):
            masked.append(char.upper())
        else:
            masked.append("_")
    return " ".join(masked)


@dataclass
class WordOutcome:
    ok: bool
    message: str = ""
    session: Optional[WordGameSession] = None


@dataclass
class CorrectGuess:
    session: WordGameSession
    guesser: Player
    elapsed: float

    @property
    def points(self) -> int:
        return self.session.points


class WordGameManager:
    def __init__(
        self,
        storage: Storage,
        round_secs: float = Config.WORD_ROUND_SECS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.storage = storage
        self.round_secs = round_secs
        self.clock = clock
        self.sleep = sleep
        self.sessions: SessionStore[WordGameSession] = SessionStore()

    def session(self, chat_id: int) -> Optional[WordGameSession]:
        return self.sessions.get(chat_id)

    async def start(
        self,
        chat_id: int,
        host: Player,
        category: Optional[str],
        difficulty: Optional[int],
        deliver: DeliverCallback,
        on_timeout: TimeoutCallback,
    ) -> WordOutcome:
        if self.sessions.get(chat_id):
            return WordOutcome(False, "🎲 В этом чате уже загадано слово. Угадайте его!")

        entry = await self.storage.random_word(category, difficulty)
        if entry is None:
            return WordOutcome(False, "😕 Нет слов с такими параметрами. Попробуйте другую категорию.")

        session = WordGameSession(
            host=host,
            secret_word=entry.word,
            category=entry.category,
            difficulty=entry.difficulty,
            started_at=self.clock(),
        )
        # Re-checked after the await above; a concurrent /word may have won
        if not self.sessions.create(chat_id, session):
            return WordOutcome(False, "🎲 В этом чате уже загадано слово. Угадайте его!")

        try:
            delivered = await deliver(session)
        except Exception as e:
            logger.warning(f"Private word delivery to {host.user_id} failed: {e}")
            delivered = False
        if not delivered:
            self.sessions.remove_if(chat_id, session)
            return WordOutcome(
                False,
                f"⚠️ {host.mention}, не удалось отправить вам слово в личные сообщения. "
                "Напишите боту в личку /start и попробуйте снова.",
            )
        if self.sessions.get(chat_id) is not session:
            return WordOutcome(False)

        session.started_at = self.clock()
        self._arm_timeout(chat_id, session, on_timeout)
        logger.info(f"Word round started in chat {chat_id} by {host.user_id} ({entry.category}/{entry.difficulty})")
        return WordOutcome(
            True,
            f"🎲 {host.mention} загадал слово!\n\n"
            f"Категория: <b>{session.category}</b>\n"
            f"Сложность: <b>{DIFFICULTY_LABELS.get(session.difficulty, session.difficulty)}</b> "
            f"({session.points} очков)\n"
            f"Букв: {letter_count(session.secret_word)}\n\n"
            f"⏱ У вас {int(self.round_secs)} секунд. Пишите варианты прямо в чат!",
            session=session,
        )

    def _arm_timeout(self, chat_id: int, session: WordGameSession, on_timeout: TimeoutCallback) -> None:
        if session.timer is not None and not session.timer.done():
            session.timer.cancel()

        async def expire():
            try:
                await self.sleep(self.round_secs)
                if session.guessed or not self.sessions.remove_if(chat_id, session):
                    return
                logger.info(f"Word round timed out in chat {chat_id}")
                await on_timeout(chat_id, session)
            except asyncio.CancelledError:
                logger.debug(f"Word round timer cancelled in chat {chat_id}")
            except Exception as e:
                logger.error(f"Word round timeout handling failed in chat {chat_id}: {e}")

        session.timer = asyncio.create_task(expire())

    def _finish(self, chat_id: int, session: WordGameSession) -> None:
        self.sessions.remove_if(chat_id, session)
        timer = session.timer
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

    def check_guess(self, chat_id: int, player: Player, text: str) -> Optional[CorrectGuess]:
        session = self.sessions.get(chat_id)
        if session is None or session.guessed or session.timer is None:
            return None
        if player.user_id == session.host.user_id:
            return None
        if normalize(text) != normalize(session.secret_word):
            return None
        session.guessed = True
        self._finish(chat_id, session)
        elapsed = max(0.0, self.clock() - session.started_at)
        logger.info(f"Word '{session.secret_word}' guessed in chat {chat_id} by {player.user_id} after {elapsed:.0f}s")
        return CorrectGuess(session=session, guesser=player, elapsed=elapsed)

    def hint(self, chat_id: int, player: Player) -> WordOutcome:
        session = self.sessions.get(chat_id)
        if session is None:
            return WordOutcome(False, "🎲 Сейчас слово не загадано. Начните игру командой /word.")
        if player.user_id != session.host.user_id:
            return WordOutcome(False, "⛔ Подсказку может дать только ведущий.")
        if session.hint_given:
            return WordOutcome(False, "💡 Подсказка уже была.")
        session.hint_given = True
        word = session.secret_word
        return WordOutcome(True, f"💡 Подсказка: <code>{masked_word(word)}</code> ({letter_count(word)} букв)", session)

    def skip(self, chat_id: int, player: Player) -> WordOutcome:
        session = self.sessions.get(chat_id)
        if session is None:
            return WordOutcome(False, "🎲 Сейчас слово не загадано.")
        if player.user_id != session.host.user_id:
            return WordOutcome(False, "⛔ Пропустить слово может только ведущий.")
        self._finish(chat_id, session)
        return WordOutcome(True, f"⏭ Ведущий пропустил слово. Это было: <b>{session.secret_word}</b>", session)

    def private_briefing(self, session: WordGameSession) -> str:
        return (
            f"🤫 Ваше слово: <b>{session.secret_word}</b>\n\n"
            f"Категория: {session.category}\n"
            f"Сложность: {DIFFICULTY_LABELS.get(session.difficulty, session.difficulty)} ({session.points} очков)\n"
            f"Подсказка: {first_last_hint(session.secret_word)}\n\n"
            "Объясняйте слово в чате, не называя его!"
        )

    def shutdown(self) -> None:
        for chat_id, session in self.sessions.items():
            self._finish(chat_id, session)

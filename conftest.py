"""Shared fixtures: a virtual clock, a recording bot and a temp-file storage."""

import asyncio
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from derbybot.storage import Storage
from derbybot.timeutils import get_timezone


async def settle(rounds: int = 20):
    """Let pending tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class VirtualClock:
    """Drives ``clock``/``sleep`` injectable code without real waiting."""

    def __init__(self, start: datetime):
        self.origin = start
        self.current = start
        self._sleepers = []

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return (self.current - self.origin).total_seconds()

    async def sleep(self, seconds: float):
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.current + timedelta(seconds=seconds), future))
        await future

    @property
    def pending(self) -> int:
        return sum(1 for _, future in self._sleepers if not future.done())

    async def advance(self, seconds: float):
        target = self.current + timedelta(seconds=seconds)
        while True:
            await settle()
            self._sleepers = [entry for entry in self._sleepers if not entry[1].done()]
            due = [wake_at for wake_at, _ in self._sleepers if wake_at <= target]
            if not due:
                break
            self.current = max(self.current, min(due))
            for entry in list(self._sleepers):
                if entry[0] <= self.current:
                    self._sleepers.remove(entry)
                    entry[1].set_result(None)
        self.current = target
        await settle()


class FakeBot:
    """Records outgoing calls; chats listed in ``failing`` raise on send."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sent = []
        self.restricted = []

    async def send_message(self, chat_id, text, **kwargs):
        if chat_id in self.failing:
            raise RuntimeError(f"Forbidden: bot was blocked in {chat_id}")
        self.sent.append((chat_id, text))
        return SimpleNamespace(chat_id=chat_id, text=text)

    async def restrict_chat_member(self, chat_id, user_id, permissions, until_date=None):
        self.restricted.append((chat_id, user_id, permissions, until_date))
        return True

    def texts_for(self, chat_id):
        return [text for sent_chat, text in self.sent if sent_chat == chat_id]


def kyiv(year, month, day, hour=0, minute=0, second=0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=get_timezone())


@pytest.fixture
def clock():
    # Tuesday 10.02.2026 10:00 Kyiv
    return VirtualClock(kyiv(2026, 2, 10, 10, 0))


@pytest.fixture
def fake_bot():
    return FakeBot()


@pytest.fixture
def storage(tmp_path):
    return Storage(str(tmp_path / "derby_data.json"))

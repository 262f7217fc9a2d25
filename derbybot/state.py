from __future__ import annotations

import asyncio
import html
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Iterator, Optional, Tuple, TypeVar


@dataclass(frozen=True)
class Player:
    """A chat user taking part in a mini-game."""
    user_id: int
    name: str
    username: Optional[str] = None

    @classmethod
    def from_user(cls, user) -> "Player":
        """Build from a telegram ``User``."""
        return cls(user_id=user.id, name=user.full_name or user.first_name or str(user.id), username=user.username)

    @property
    def mention(self) -> str:
        if self.username:
            return f"@{self.username}"
        return html.escape(self.name)

    def matches_username(self, username: Optional[str]) -> bool:
        if not username or not self.username:
            return False
        return self.username.lower() == username.lstrip("@").lower()


@dataclass(frozen=True)
class Participant:
    """Roster entry. Serialised with the keys used by the data file."""
    user_id: int
    display_name: str
    username: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Participant":
        return cls(user_id=int(data["id"]), display_name=data.get("name") or "", username=data.get("username"))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.user_id, "username": self.username, "name": self.display_name}


class DuelStatus(Enum):
    CHALLENGE_OPEN = "challenge_open"
    IN_PROGRESS = "in_progress"


@dataclass
class Challenge:
    """Open duel or coin challenge, optionally aimed at one username."""
    challenger: Player
    issued_at: float
    target_username: Optional[str] = None

    def allows(self, player: Player) -> bool:
        if self.target_username is None:
            return True
        return player.matches_username(self.target_username)


@dataclass
class DuelSession:
    player_a: Player
    player_b: Player
    turn_holder_id: int
    aim_bonus: Dict[int, int] = field(default_factory=dict)
    status: DuelStatus = DuelStatus.IN_PROGRESS

    def __post_init__(self):
        for player in (self.player_a, self.player_b):
            self.aim_bonus.setdefault(player.user_id, 0)

    def is_duelist(self, user_id: int) -> bool:
        return user_id in (self.player_a.user_id, self.player_b.user_id)

    def player(self, user_id: int) -> Player:
        return self.player_a if self.player_a.user_id == user_id else self.player_b

    def opponent(self, user_id: int) -> Player:
        return self.player_b if self.player_a.user_id == user_id else self.player_a

    @property
    def turn_holder(self) -> Player:
        return self.player(self.turn_holder_id)


@dataclass
class WordGameSession:
    host: Player
    secret_word: str
    category: str
    difficulty: int
    started_at: float
    guessed: bool = False
    hint_given: bool = False
    timer: Optional[asyncio.Task] = None

    @property
    def points(self) -> int:
        return self.difficulty * 10


S = TypeVar("S")


class SessionStore(Generic[S]):
    """Chat-keyed store holding at most one live value per chat.

    Only create/get/replace/remove are exposed; ``create`` refuses to overwrite
    a live entry so the one-per-chat rule holds at the boundary.
    """

    def __init__(self):
        self._items: Dict[int, S] = {}

    def get(self, chat_id: int) -> Optional[S]:
        return self._items.get(chat_id)

    def create(self, chat_id: int, value: S) -> bool:
        if chat_id in self._items:
            return False
        self._items[chat_id] = value
        return True

    def replace(self, chat_id: int, value: S) -> None:
        self._items[chat_id] = value

    def remove(self, chat_id: int) -> Optional[S]:
        return self._items.pop(chat_id, None)

    def remove_if(self, chat_id: int, value: S) -> bool:
        """Remove only if ``value`` is still the live entry for ``chat_id``."""
        if self._items.get(chat_id) is value:
            del self._items[chat_id]
            return True
        return False

    def __contains__(self, chat_id: int) -> bool:
        return chat_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def items(self) -> Iterator[Tuple[int, S]]:
        return iter(list(self._items.items()))

"""JSON-file backed async repository.

The file layout stays compatible with the older derby_data.json files
(``subscribers``, ``derbyStartTime``, ``participants``) and adds ``stats``.
Every mutation builds a new document, writes it to a temporary file, moves it
into place and only then replaces the in-memory copy, so a failed write
leaves memory and disk agreeing on the previous state.
"""

from __future__ import annotations

import asyncio
import copy
import json
import os
import random
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .config import logger
from .state import Participant
from .words import DEFAULT_WORDS, WordEntry


STAT_FIELDS = (
    "messages",
    "duel_wins",
    "duel_losses",
    "coin_wins",
    "coin_losses",
    "word_explained",
    "word_guessed",
    "word_points",
)


class StorageError(Exception):
    """Raised when the data file cannot be read or written."""


def _empty_document() -> Dict[str, Any]:
    return {"subscribers": [], "derbyStartTime": None, "participants": {}, "stats": {}}


class Storage:
    def __init__(self, path: str, words: Optional[List[WordEntry]] = None, rng: Optional[random.Random] = None):
        self.path = path
        self.words = list(words if words is not None else DEFAULT_WORDS)
        self._rng = rng or random.Random()
        self._data: Dict[str, Any] = _empty_document()
        self._lock = asyncio.Lock()

    async def load(self) -> None:
        try:
            if os.path.exists(self.path):
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                document = _empty_document()
                document.update(data)
                self._data = document
                logger.info(
                    f"Loaded {len(self._data['subscribers'])} subscribers and rosters for "
                    f"{len(self._data['participants'])} chats"
                )
            else:
                logger.info("No existing data file found")
        except (OSError, ValueError) as e:
            logger.error(f"Could not load data file {self.path}: {e}")
            raise StorageError(f"could not load {self.path}") from e

    def _write(self, document: Dict[str, Any]) -> None:
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
            logger.debug("Data file saved")
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Could not save data file {self.path}: {e}")
            raise StorageError(f"could not save {self.path}") from e

    async def _mutate(self, change) -> Any:
        async with self._lock:
            document = copy.deepcopy(self._data)
            result = change(document)
            self._write(document)
            self._data = document
            return result

    # Subscribers

    async def get_subscribers(self) -> List[int]:
        return list(self._data["subscribers"])

    async def add_subscriber(self, chat_id: int) -> bool:
        def change(doc):
            if chat_id in doc["subscribers"]:
                return False
            doc["subscribers"].append(chat_id)
            return True
        return await self._mutate(change)

    async def remove_subscriber(self, chat_id: int) -> bool:
        def change(doc):
            if chat_id not in doc["subscribers"]:
                return False
            doc["subscribers"].remove(chat_id)
            return True
        return await self._mutate(change)

    # Derby anchor

    async def get_anchor(self) -> Optional[datetime]:
        raw = self._data.get("derbyStartTime")
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Ignoring malformed derby start {raw!r}")
            return None

    async def set_anchor(self, anchor: Optional[datetime]) -> None:
        def change(doc):
            doc["derbyStartTime"] = anchor.isoformat() if anchor else None
        await self._mutate(change)

    # Participant roster

    async def get_roster(self, chat_id: int) -> List[Participant]:
        entries = self._data["participants"].get(str(chat_id), [])
        return [Participant.from_dict(entry) for entry in entries]

    async def add_participant(self, chat_id: int, participant: Participant) -> Optional[int]:
        """Append to the roster. Returns the new roster size, or None if already present."""
        def change(doc):
            roster = doc["participants"].setdefault(str(chat_id), [])
            if any(entry["id"] == participant.user_id for entry in roster):
                return None
            roster.append(participant.to_dict())
            return len(roster)
        return await self._mutate(change)

    async def remove_participant(self, chat_id: int, user_id: int) -> Optional[int]:
        """Remove from the roster. Returns the remaining size, or None if absent."""
        def change(doc):
            roster = doc["participants"].get(str(chat_id), [])
            kept = [entry for entry in roster if entry["id"] != user_id]
            if len(kept) == len(roster):
                return None
            doc["participants"][str(chat_id)] = kept
            return len(kept)
        return await self._mutate(change)

    async def clear_roster(self, chat_id: int) -> None:
        def change(doc):
            doc["participants"][str(chat_id)] = []
        await self._mutate(change)

    # Stats

    async def get_stats(self, chat_id: int, user_id: int) -> Dict[str, Any]:
        record = self._data["stats"].get(str(chat_id), {}).get(str(user_id), {})
        stats = {field: int(record.get(field, 0)) for field in STAT_FIELDS}
        stats["name"] = record.get("name")
        return stats

    async def increment_stats(self, chat_id: int, user_id: int, deltas: Dict[str, int], name: Optional[str] = None) -> None:
        await self.increment_many([(chat_id, user_id, deltas, name)])

    async def increment_many(self, updates: List[Tuple[int, int, Dict[str, int], Optional[str]]]) -> None:
        """Apply several ``(chat_id, user_id, deltas, name)`` increments in one write."""
        for _, _, deltas, _ in updates:
            unknown = set(deltas) - set(STAT_FIELDS)
            if unknown:
                raise ValueError(f"unknown stat fields: {sorted(unknown)}")
        if not updates:
            return

        def change(doc):
            for chat_id, user_id, deltas, name in updates:
                record = doc["stats"].setdefault(str(chat_id), {}).setdefault(str(user_id), {})
                for field, delta in deltas.items():
                    record[field] = max(0, int(record.get(field, 0)) + delta)
                if name:
                    record["name"] = name
        await self._mutate(change)

    async def chat_stats(self, chat_id: int) -> Dict[int, Dict[str, Any]]:
        records = self._data["stats"].get(str(chat_id), {})
        return {int(user_id): dict(record) for user_id, record in records.items()}

    # Word bank

    async def word_categories(self) -> List[str]:
        return sorted({word.category for word in self.words})

    async def random_word(self, category: Optional[str] = None, difficulty: Optional[int] = None) -> Optional[WordEntry]:
        candidates = [
            word for word in self.words
            if (category is None or word.category == category)
            and (difficulty is None or word.difficulty == difficulty)
        ]
        if not candidates:
            return None
        return self._rng.choice(candidates)

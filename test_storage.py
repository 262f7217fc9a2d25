import json
import random

import pytest

from conftest import kyiv
from derbybot.state import Participant
from derbybot.storage import Storage, StorageError
from derbybot.words import WordEntry


@pytest.mark.asyncio
async def test_subscribers_persist(storage):
    assert await storage.add_subscriber(-100) is True
    assert await storage.add_subscriber(-100) is False
    await storage.add_subscriber(55)
    assert await storage.remove_subscriber(55) is True
    assert await storage.remove_subscriber(55) is False

    reloaded = Storage(storage.path)
    await reloaded.load()
    assert await reloaded.get_subscribers() == [-100]


@pytest.mark.asyncio
async def test_anchor_round_trip(storage):
    assert await storage.get_anchor() is None
    anchor = kyiv(2026, 2, 10, 10, 0)
    await storage.set_anchor(anchor)

    reloaded = Storage(storage.path)
    await reloaded.load()
    assert await reloaded.get_anchor() == anchor

    await reloaded.set_anchor(None)
    assert await reloaded.get_anchor() is None


@pytest.mark.asyncio
async def test_loads_legacy_file_layout(tmp_path):
    path = tmp_path / "derby_data.json"
    path.write_text(json.dumps({
        "subscribers": [-100],
        "derbyStartTime": "2026-02-10T08:00:00.000Z",
        "participants": {"-100": [{"id": 7, "username": "vera", "name": "Vera"}]},
    }), encoding="utf-8")

    storage = Storage(str(path))
    await storage.load()
    assert await storage.get_anchor() == kyiv(2026, 2, 10, 10, 0)
    assert await storage.get_roster(-100) == [Participant(7, "Vera", "vera")]
    assert (await storage.get_stats(-100, 7))["messages"] == 0


@pytest.mark.asyncio
async def test_corrupt_file_raises(tmp_path):
    path = tmp_path / "derby_data.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        await Storage(str(path)).load()


@pytest.mark.asyncio
async def test_missing_file_starts_empty(storage):
    await storage.load()
    assert await storage.get_subscribers() == []


@pytest.mark.asyncio
async def test_roster_add_remove(storage):
    vera = Participant(7, "Vera", "vera")
    assert await storage.add_participant(-100, vera) == 1
    assert await storage.add_participant(-100, vera) is None
    assert await storage.add_participant(-100, Participant(8, "Gleb")) == 2
    assert await storage.remove_participant(-100, 7) == 1
    assert await storage.remove_participant(-100, 7) is None
    # Rosters are per chat
    assert await storage.get_roster(-200) == []
    await storage.clear_roster(-100)
    assert await storage.get_roster(-100) == []


@pytest.mark.asyncio
async def test_failed_write_keeps_previous_state(tmp_path):
    storage = Storage(str(tmp_path / "missing_dir" / "derby_data.json"))
    with pytest.raises(StorageError):
        await storage.add_subscriber(-100)
    assert await storage.get_subscribers() == []


@pytest.mark.asyncio
async def test_increment_stats_clamps_and_names(storage):
    await storage.increment_stats(-100, 7, {"duel_wins": 2, "word_points": 30}, name="@vera")
    await storage.increment_stats(-100, 7, {"word_points": -50})
    stats = await storage.get_stats(-100, 7)
    assert stats["duel_wins"] == 2
    assert stats["word_points"] == 0
    assert stats["name"] == "@vera"

    with pytest.raises(ValueError):
        await storage.increment_stats(-100, 7, {"gold": 1})

    assert list(await storage.chat_stats(-100)) == [7]


@pytest.mark.asyncio
async def test_random_word_filters(tmp_path):
    words = [
        WordEntry("яблоко", "еда", 1),
        WordEntry("лазанья", "еда", 3),
        WordEntry("корова", "животные", 1),
    ]
    storage = Storage(str(tmp_path / "d.json"), words=words, rng=random.Random(1))
    assert await storage.word_categories() == ["еда", "животные"]
    assert (await storage.random_word("еда", 3)).word == "лазанья"
    assert (await storage.random_word(None, 1)).difficulty == 1
    assert await storage.random_word("ферма") is None

import random

import pytest

from derbybot import responder
from derbybot.config import Config
from derbybot.responder import BOT_PHRASES, RANDOM_PHRASES, TEA_PHRASES, canned_reply, respond


def test_canned_reply_by_keyword():
    rng = random.Random(3)
    assert canned_reply("Когда скачки?", rng) in RANDOM_PHRASES
    assert canned_reply("Кто хочет ЧАЙ", rng) in TEA_PHRASES
    assert canned_reply("ты бот?", rng) in BOT_PHRASES
    assert canned_reply("всем привет", rng) is None


def test_first_matching_rule_wins():
    # "скачки" outranks "бот"
    assert canned_reply("бот, скачки скоро?", random.Random(1)) in RANDOM_PHRASES


@pytest.mark.asyncio
async def test_respond_without_ai_key_falls_back(monkeypatch):
    monkeypatch.setattr(Config, "AI_API_KEY", "")
    assert await respond("привет", addressed=True) is None
    assert await respond("чай?", addressed=True, rng=random.Random(0)) in TEA_PHRASES


@pytest.mark.asyncio
async def test_respond_uses_ai_when_addressed(monkeypatch):
    async def fake_ai(text, author=""):
        return f"AI: {text}"

    monkeypatch.setattr(responder, "ai_reply", fake_ai)
    assert await respond("как дела", addressed=True) == "AI: как дела"
    assert await respond("как дела", addressed=False) is None


@pytest.mark.asyncio
async def test_ai_failure_falls_back_to_canned(monkeypatch):
    async def failing_ai(text, author=""):
        return None

    monkeypatch.setattr(responder, "ai_reply", failing_ai)
    assert await respond("бот?", addressed=True, rng=random.Random(0)) in BOT_PHRASES

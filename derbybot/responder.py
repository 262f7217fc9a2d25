"""Free-text replies: canned phrases by keyword, AI completion when addressed."""

from __future__ import annotations

import random
import re
from typing import List, Optional, Tuple

from .config import Config, logger
from .http import make_session, post_json


RANDOM_PHRASES = [
    "стояночка минуточка",
    "На дальнем.",
    "На ближнем.",
    "ОУ НЕ ТОРОПИ ЛОШАДЕЙ",
    "Фугани 5к",
    "Где мое пиво?",
]

TEA_PHRASES = [
    "ОУ КАКОЙ ЧАЙ????",
    "У меня есть рево вместо чая, будешь?",
    "Го по пиву - ну его в баню тот чай",
    "Хочешь я тебе сижку дам?",
    "Где ты спрятал бутылку водки?",
    "Дай 5 гривен",
]

GIVE_PHRASES = [
    "Не дам",
    "Зачем тебе?",
    "Так если я тебе дам, у меня не будет",
    "Не хочу и не дам",
    "Заставь меня",
    "Умоляй меня",
]

WORK_PHRASES = [
    "Какая работа ОУ!!!",
    "От работы кони дохнут",
    "Выключай свою работу уже хватит!!!",
    "Сколько можно работать!!!",
    "Кому на роду написано бык - тому кнут!",
]

BOT_PHRASES = [
    "Я НЕ БОТ!",
    "Хватит меня обзывать ботом!",
    "Вы сами как те боты",
    "Та не...",
]

# Checked in order; the first matching group answers
PHRASE_RULES: List[Tuple[re.Pattern, List[str]]] = [
    (re.compile(r"скачки|скакать"), RANDOM_PHRASES),
    (re.compile(r"чай|кофе|чаю"), TEA_PHRASES),
    (re.compile(r"есть|дайте|пожалуйста"), GIVE_PHRASES),
    (re.compile(r"работаю|на работе|тружусь"), WORK_PHRASES),
    (re.compile(r"бот"), BOT_PHRASES),
]

SYSTEM_PROMPT = (
    "Ты весёлый участник чата игроков Hay Day. Отвечай коротко (1-2 предложения), "
    "по-русски, с юмором, без грубостей."
)


def canned_reply(text: str, rng: Optional[random.Random] = None) -> Optional[str]:
    lowered = (text or "").lower()
    for pattern, phrases in PHRASE_RULES:
        if pattern.search(lowered):
            return (rng or random).choice(phrases)
    return None


async def ai_reply(text: str, author: str = "") -> Optional[str]:
    """Ask the configured chat-completion endpoint. Returns None on any failure."""
    if not Config.ai_enabled():
        return None
    payload = {
        "model": Config.AI_MODEL,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"{author}: {text}" if author else text},
        ],
        "max_tokens": 200,
    }
    try:
        async with make_session() as session:
            data = await post_json(session, Config.AI_API_URL, payload)
        return data["choices"][0]["message"]["content"].strip() or None
    except Exception as e:
        logger.warning(f"AI completion failed: {e}")
        return None


async def respond(text: str, addressed: bool, author: str = "", rng: Optional[random.Random] = None) -> Optional[str]:
    """Reply for a plain chat message, or None to stay silent."""
    if addressed:
        reply = await ai_reply(text, author)
        if reply:
            return reply
    return canned_reply(text, rng)

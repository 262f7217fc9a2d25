"""Recognition of free-text session actions.

Actions are exact phrases compared after normalisation, never regexes. Which
intents are even considered depends on the sessions open in the chat; the
handler tries duel intents, then coin intents, then word guesses, then
phrase replies.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Dict, Iterable, Optional


_WHITESPACE_RE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Lower-case, collapse whitespace and fold ё to е."""
    return _WHITESPACE_RE.sub(" ", (text or "").lower().replace("ё", "е")).strip()


class Intent(Enum):
    DUEL_ACCEPT = "duel_accept"
    DUEL_DECLINE = "duel_decline"
    DUEL_CANCEL = "duel_cancel"
    SHOOT = "shoot"
    AIM = "aim"
    RESET_AIM = "reset_aim"
    COIN_HEADS = "coin_heads"
    COIN_TAILS = "coin_tails"


PHRASES: Dict[Intent, tuple] = {
    Intent.DUEL_ACCEPT: ("принимаю",),
    Intent.DUEL_DECLINE: ("отказываюсь",),
    Intent.DUEL_CANCEL: ("отмена дуэли",),
    Intent.SHOOT: ("выстрел",),
    Intent.AIM: ("прицел",),
    Intent.RESET_AIM: ("сброс прицела",),
    Intent.COIN_HEADS: ("орёл",),
    Intent.COIN_TAILS: ("решка",),
}

_LOOKUP: Dict[str, Intent] = {
    normalize(phrase): intent for intent, phrases in PHRASES.items() for phrase in phrases
}

DUEL_CHALLENGE_INTENTS = frozenset({Intent.DUEL_ACCEPT, Intent.DUEL_DECLINE, Intent.DUEL_CANCEL})
DUEL_TURN_INTENTS = frozenset({Intent.SHOOT, Intent.AIM, Intent.RESET_AIM, Intent.DUEL_CANCEL})
COIN_INTENTS = frozenset({Intent.COIN_HEADS, Intent.COIN_TAILS})


def match_intent(text: str, allowed: Iterable[Intent]) -> Optional[Intent]:
    """Return the intent ``text`` spells out, if it is among ``allowed``."""
    intent = _LOOKUP.get(normalize(text))
    if intent is not None and intent in set(allowed):
        return intent
    return None


def phrase(intent: Intent) -> str:
    return PHRASES[intent][0]

"""Built-in word bank for the word-guessing game."""

from dataclasses import dataclass
from typing import List, Sequence


@dataclass(frozen=True)
class WordEntry:
    word: str
    category: str
    difficulty: int  # 1 (easy) .. 3 (hard)

    @property
    def points(self) -> int:
        return self.difficulty * 10


DIFFICULTY_LABELS = {1: "лёгкое", 2: "среднее", 3: "сложное"}


def _bank(category: str, easy: Sequence[str], medium: Sequence[str], hard: Sequence[str]) -> List[WordEntry]:
    words: List[WordEntry] = []
    for difficulty, group in ((1, easy), (2, medium), (3, hard)):
        words.extend(WordEntry(word, category, difficulty) for word in group)
    return words


DEFAULT_WORDS: List[WordEntry] = (
    _bank(
        "животные",
        ("корова", "курица", "свинья", "овца", "кролик"),
        ("индюк", "лошадь", "козёл", "осёл", "пчела"),
        ("альпака", "страус", "бобёр", "енот", "шиншилла"),
    )
    + _bank(
        "еда",
        ("хлеб", "молоко", "сыр", "яйцо", "торт"),
        ("попкорн", "пирог", "блины", "мёд", "варенье"),
        ("лазанья", "круассан", "тирамису", "фондю", "эклер"),
    )
    + _bank(
        "ферма",
        ("поле", "амбар", "трактор", "забор", "грядка"),
        ("мельница", "пекарня", "сарай", "курятник", "пасека"),
        ("маслобойка", "сахарный завод", "ткацкий станок", "лесопилка", "рыболовство"),
    )
    + _bank(
        "растения",
        ("роза", "морковь", "пшеница", "кукуруза", "тыква"),
        ("клубника", "малина", "подсолнух", "хлопок", "горох"),
        ("индиго", "сахарный тростник", "женьшень", "физалис", "артишок"),
    )
)

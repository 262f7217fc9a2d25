from datetime import timedelta

from conftest import kyiv
from derbybot.config import parse_forced_outcomes
from derbybot.formatting import (
    fmt_elapsed,
    fmt_leaderboard,
    fmt_participants,
    fmt_rabbit_alert,
    fmt_reset_alert,
    fmt_resets,
    fmt_status,
    medal,
)
from derbybot.scheduler import RABBIT_TRIGGERS, compute_reset_events
from derbybot.state import Participant


ANCHOR = kyiv(2026, 2, 10, 10, 0)


def test_parse_forced_outcomes():
    assert parse_forced_outcomes("@Anna:win, boris:LOSE") == {"anna": "win", "boris": "lose"}
    assert parse_forced_outcomes("") == {}
    assert parse_forced_outcomes("vera:maybe,gleb") == {}


def test_medal():
    assert [medal(n) for n in (1, 2, 3, 4)] == ["🥇", "🥈", "🥉", "4."]


def test_status_with_anchor_lists_next_resets():
    text = fmt_status(ANCHOR, ANCHOR + timedelta(hours=12))
    assert "10.02.2026 10:00" in text
    assert "Сброс #3 (15 заданий)" in text
    assert "Сброс #2" not in text


def test_status_without_anchor():
    assert "Дерби не установлено" in fmt_status(None, ANCHOR)


def test_resets_marks_passed_events():
    text = fmt_resets(ANCHOR, ANCHOR + timedelta(hours=12))
    lines = [line for line in text.splitlines() if line[:1] in ("✅", "⏳")]
    assert len(lines) == 7
    assert lines[0].startswith("✅ 1. Старт (5 заданий)")
    assert lines[1].startswith("✅ 2. +11ч (10 заданий)")
    assert lines[2].startswith("⏳ 3. +19ч (15 заданий)")


def test_alerts():
    rabbit = RABBIT_TRIGGERS[0]
    assert "КРОЛИК ПРИСКАКАЛ" in fmt_rabbit_alert(rabbit)
    assert "Через 10 минут" in fmt_rabbit_alert(rabbit.shifted(-10))

    event = compute_reset_events(ANCHOR)[1]
    assert "Первый сброс" in fmt_reset_alert(event, False)
    assert "Через 30 минут" in fmt_reset_alert(event, True)


def test_participants_escapes_names():
    text = fmt_participants([Participant(1, "A&B", None), Participant(2, "Vera", "vera")])
    assert "1. A&amp;B" in text
    assert "2. @vera" in text
    assert "пуст" in fmt_participants([])


def test_elapsed_and_leaderboard():
    assert fmt_elapsed(12.4) == "12 сек"
    assert fmt_elapsed(75) == "1 мин 15 сек"
    board = fmt_leaderboard([("@anna", 40), ("Boris", 10)])
    assert "🥇 @anna — <code>40</code>" in board
    assert "пуст" in fmt_leaderboard([])

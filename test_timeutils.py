from datetime import timedelta, timezone

from conftest import kyiv
from derbybot.timeutils import fmt_local, next_weekly_occurrence, parse_local_datetime, to_local


def test_next_weekly_occurrence_later_same_day():
    tuesday_morning = kyiv(2026, 2, 10, 10, 0)
    assert next_weekly_occurrence(tuesday_morning, 1, 14, 35) == kyiv(2026, 2, 10, 14, 35)


def test_next_weekly_occurrence_is_strictly_after():
    exactly = kyiv(2026, 2, 10, 14, 35)
    assert next_weekly_occurrence(exactly, 1, 14, 35) == kyiv(2026, 2, 17, 14, 35)


def test_next_weekly_occurrence_other_weekdays():
    tuesday = kyiv(2026, 2, 10, 15, 0)
    assert next_weekly_occurrence(tuesday, 2, 20, 50) == kyiv(2026, 2, 11, 20, 50)
    assert next_weekly_occurrence(tuesday, 4, 19, 50) == kyiv(2026, 2, 13, 19, 50)
    assert next_weekly_occurrence(tuesday, 0, 9, 0) == kyiv(2026, 2, 16, 9, 0)


def test_next_weekly_occurrence_accepts_other_timezones():
    # 12:00 UTC on Tuesday is 14:00 in Kyiv (winter time)
    utc_noon = kyiv(2026, 2, 10, 14, 0).astimezone(timezone.utc)
    assert next_weekly_occurrence(utc_noon, 1, 14, 35) == kyiv(2026, 2, 10, 14, 35)


def test_next_weekly_occurrence_across_dst_keeps_wall_clock():
    # Kyiv moves to summer time on the last Sunday of March
    before = kyiv(2026, 3, 26, 12, 0)
    occurrence = next_weekly_occurrence(before, 1, 14, 35)
    assert occurrence == kyiv(2026, 3, 31, 14, 35)
    assert occurrence.utcoffset() == timedelta(hours=3)


def test_parse_local_datetime_valid():
    parsed = parse_local_datetime("10.02.2026 10:00")
    assert parsed == kyiv(2026, 2, 10, 10, 0)
    assert parsed.utcoffset() == timedelta(hours=2)


def test_parse_local_datetime_summer_offset():
    parsed = parse_local_datetime("10.07.2026 10:00")
    assert parsed.utcoffset() == timedelta(hours=3)


def test_parse_local_datetime_rejects_malformed():
    assert parse_local_datetime("") is None
    assert parse_local_datetime("завтра") is None
    assert parse_local_datetime("2026-02-10 10:00") is None
    assert parse_local_datetime("31.02.2026 10:00") is None
    assert parse_local_datetime("10.02.2026 25:00") is None


def test_fmt_local_converts_to_kyiv():
    utc = kyiv(2026, 2, 10, 10, 0).astimezone(timezone.utc)
    assert fmt_local(utc) == "10.02.2026 10:00"
    assert to_local(utc) == kyiv(2026, 2, 10, 10, 0)

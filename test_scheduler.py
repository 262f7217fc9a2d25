from datetime import timedelta, timezone

import pytest

from conftest import kyiv, settle
from derbybot.scheduler import (
    RABBIT_TRIGGERS,
    RESET_OFFSETS_HOURS,
    NotificationScheduler,
    RecurringTrigger,
    compute_reset_events,
    next_rabbit,
    rabbit_schedule,
    upcoming_resets,
)


ANCHOR = kyiv(2026, 2, 10, 10, 0)


def test_compute_reset_events_offsets_and_counts():
    events = compute_reset_events(ANCHOR)
    assert len(events) == 7
    assert [e.absolute_time for e in events] == [ANCHOR + timedelta(hours=h) for h in RESET_OFFSETS_HOURS]
    assert [e.cumulative_task_count for e in events] == [5, 10, 15, 20, 25, 30, 35]
    assert [e.number for e in events] == [1, 2, 3, 4, 5, 6, 7]
    assert events[0].label.startswith("Старт дерби")


def test_compute_reset_events_without_anchor():
    assert compute_reset_events(None) == []


def test_compute_reset_events_counts_elapsed_hours_across_dst():
    # Derby starting on Friday before the March clock change
    anchor = kyiv(2026, 3, 27, 10, 0)
    last = compute_reset_events(anchor)[-1]
    elapsed = last.absolute_time.astimezone(timezone.utc) - anchor.astimezone(timezone.utc)
    assert elapsed == timedelta(hours=126)
    # One hour is lost on the wall clock
    assert last.absolute_time.hour == 17


def test_upcoming_resets_limit_and_order():
    current = ANCHOR + timedelta(hours=11, seconds=1)
    upcoming = upcoming_resets(ANCHOR, current)
    assert [e.sequence_index for e in upcoming] == [2, 3, 4]


def test_shifted_trigger_wraps_days():
    trigger = RecurringTrigger(0, 0, 5, "Понедельник")
    shifted = trigger.shifted(-10)
    assert (shifted.weekday, shifted.hour, shifted.minute) == (6, 23, 55)
    assert shifted.kind == "reminder"
    assert shifted.label == "Понедельник"


def test_rabbit_schedule_has_reminders():
    schedule = rabbit_schedule()
    assert len(schedule) == 2 * len(RABBIT_TRIGGERS)
    reminders = [t for t in schedule if t.kind == "reminder"]
    assert {(t.weekday, t.hour, t.minute) for t in reminders} == {(1, 14, 25), (2, 20, 40), (4, 19, 40)}


def test_next_rabbit():
    rabbit, at = next_rabbit(kyiv(2026, 2, 10, 15, 0))
    assert rabbit.label == "Среда"
    assert at == kyiv(2026, 2, 11, 20, 50)


@pytest.mark.asyncio
async def test_anchored_sequence_skips_past_events(clock):
    clock.current = ANCHOR + timedelta(hours=11, seconds=1)
    scheduler = NotificationScheduler(clock=clock.now, sleep=clock.sleep)
    fired = []

    async def on_reset(event, reminder):
        fired.append((event.sequence_index, reminder, clock.now()))

    created = scheduler.schedule_anchored_sequence(ANCHOR, on_reset)
    # Resets 3..7 remain, each with its 30-minute reminder
    assert created == 10
    assert scheduler.anchored_count == 10

    await clock.advance(1)
    assert fired == []

    await clock.advance(timedelta(hours=19).total_seconds())
    assert fired[0] == (2, True, ANCHOR + timedelta(hours=29, minutes=30))
    assert fired[1] == (2, False, ANCHOR + timedelta(hours=30))
    assert all(index >= 2 for index, _, _ in fired)

    scheduler.shutdown()


@pytest.mark.asyncio
async def test_reminder_dropped_when_already_past(clock):
    clock.current = ANCHOR + timedelta(hours=29, minutes=45)
    scheduler = NotificationScheduler(clock=clock.now, sleep=clock.sleep)

    async def on_reset(event, reminder):
        pass

    assert scheduler.schedule_anchored_sequence(ANCHOR, on_reset) == 9
    scheduler.shutdown()


@pytest.mark.asyncio
async def test_full_sequence_fires_in_order(clock):
    scheduler = NotificationScheduler(clock=clock.now, sleep=clock.sleep)
    anchor = ANCHOR + timedelta(minutes=45)
    fired = []

    async def on_reset(event, reminder):
        fired.append((event.number, reminder))

    assert scheduler.schedule_anchored_sequence(anchor, on_reset) == 14
    await clock.advance(timedelta(hours=130).total_seconds())

    expected = []
    for number in range(1, 8):
        expected += [(number, True), (number, False)]
    assert fired == expected
    assert scheduler.anchored_count == 0


@pytest.mark.asyncio
async def test_finished_timers_are_released(clock):
    scheduler = NotificationScheduler(clock=clock.now, sleep=clock.sleep)

    async def on_reset(event, reminder):
        pass

    scheduler.schedule_anchored_sequence(ANCHOR + timedelta(hours=1), on_reset)
    await clock.advance(timedelta(hours=130).total_seconds())
    assert scheduler.anchored_count == 0

    assert scheduler.schedule_anchored_sequence(clock.now() + timedelta(hours=1), on_reset) == 14
    assert len(scheduler._anchored) == 14
    scheduler.shutdown()


@pytest.mark.asyncio
async def test_reschedule_discards_old_anchor(clock):
    scheduler = NotificationScheduler(clock=clock.now, sleep=clock.sleep)
    old_anchor = ANCHOR + timedelta(hours=1)
    new_anchor = ANCHOR + timedelta(days=2)
    fired = []

    async def on_reset(event, reminder):
        fired.append((event.absolute_time, reminder))

    scheduler.schedule_anchored_sequence(old_anchor, on_reset)
    await settle()
    scheduler.reschedule(new_anchor, on_reset)

    await clock.advance(timedelta(days=9).total_seconds())
    new_times = {e.absolute_time for e in compute_reset_events(new_anchor)}
    assert fired
    assert all(when in new_times for when, reminder in fired if not reminder)
    assert len(fired) == 14


@pytest.mark.asyncio
async def test_cancel_all_prevents_firing(clock):
    scheduler = NotificationScheduler(clock=clock.now, sleep=clock.sleep)
    fired = []

    async def on_reset(event, reminder):
        fired.append(event)

    scheduler.schedule_anchored_sequence(ANCHOR + timedelta(hours=1), on_reset)
    await settle()
    scheduler.cancel_all()
    await clock.advance(timedelta(days=8).total_seconds())
    assert fired == []
    assert scheduler.anchored_count == 0


@pytest.mark.asyncio
async def test_clearing_anchor_schedules_nothing(clock):
    scheduler = NotificationScheduler(clock=clock.now, sleep=clock.sleep)

    async def on_reset(event, reminder):
        pass

    scheduler.schedule_anchored_sequence(ANCHOR + timedelta(hours=1), on_reset)
    assert scheduler.reschedule(None, on_reset) == 0
    assert scheduler.anchored_count == 0


@pytest.mark.asyncio
async def test_failing_callback_does_not_stop_other_timers(clock):
    scheduler = NotificationScheduler(clock=clock.now, sleep=clock.sleep)
    fired = []

    async def on_reset(event, reminder):
        if event.number == 1:
            raise RuntimeError("boom")
        fired.append(event.number)

    scheduler.schedule_anchored_sequence(ANCHOR + timedelta(hours=1), on_reset)
    await clock.advance(timedelta(hours=13).total_seconds())
    assert fired == [2, 2]
    scheduler.shutdown()


@pytest.mark.asyncio
async def test_recurring_trigger_fires_weekly(clock):
    scheduler = NotificationScheduler(clock=clock.now, sleep=clock.sleep)
    fired = []

    async def on_rabbit(trigger):
        fired.append(clock.now())

    scheduler.schedule_recurring(RABBIT_TRIGGERS[0], on_rabbit)
    assert scheduler.recurring_count == 1

    await clock.advance(timedelta(days=14).total_seconds())
    assert fired == [kyiv(2026, 2, 10, 14, 35), kyiv(2026, 2, 17, 14, 35)]

    scheduler.cancel_all()
    assert scheduler.recurring_count == 1
    scheduler.shutdown()
    await settle()
    assert scheduler.recurring_count == 0


@pytest.mark.asyncio
async def test_recurring_survives_callback_failure(clock):
    scheduler = NotificationScheduler(clock=clock.now, sleep=clock.sleep)
    calls = []

    async def on_rabbit(trigger):
        calls.append(trigger.label)
        raise RuntimeError("telegram down")

    scheduler.schedule_recurring(RABBIT_TRIGGERS[1], on_rabbit)
    await clock.advance(timedelta(days=14).total_seconds())
    assert calls == ["Среда", "Среда"]
    scheduler.shutdown()

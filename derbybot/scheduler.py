"""Timed broadcast notifications.

Two families of timers live here:

* weekly recurring triggers (the rabbit schedule), registered once at startup
  and never cancelled while the bot runs;
* the derby countdown: one-shot timers derived from a mutable anchor (the
  derby start). Whenever the anchor changes the whole group is cancelled and
  rebuilt with ``reschedule``.

Timers are plain asyncio tasks sleeping until their instant. ``clock`` and
``sleep`` are injectable so the engine can be driven by a virtual clock.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional, Tuple

from .config import logger
from .timeutils import next_weekly_occurrence, now, seconds_until, to_local


MINUTES_PER_WEEK = 7 * 24 * 60

RESET_OFFSETS_HOURS: Tuple[int, ...] = (0, 11, 30, 54, 78, 102, 126)
TASKS_PER_RESET = 5
RESET_REMINDER_LEAD = timedelta(minutes=30)
RABBIT_REMINDER_LEAD_MINUTES = 10

RESET_LABELS: Tuple[str, ...] = (
    "Старт дерби! Доступно 5 заданий",
    "Первый сброс! +5 заданий (всего 10)",
    "Второй сброс! +5 заданий (всего 15)",
    "Третий сброс! +5 заданий (всего 20)",
    "Четвёртый сброс! +5 заданий (всего 25)",
    "Пятый сброс! +5 заданий (всего 30)",
    "Шестой сброс! +5 заданий (всего 35)",
)


@dataclass(frozen=True)
class RecurringTrigger:
    """Weekly firing rule. ``weekday`` follows ``datetime.weekday()`` (Monday=0)."""
    weekday: int
    hour: int
    minute: int
    label: str
    kind: str = "event"  # "event" or "reminder"

    def shifted(self, minutes: int, kind: str = "reminder") -> "RecurringTrigger":
        total = (self.weekday * 1440 + self.hour * 60 + self.minute + minutes) % MINUTES_PER_WEEK
        return replace(
            self,
            weekday=total // 1440,
            hour=(total % 1440) // 60,
            minute=total % 60,
            kind=kind,
        )

    @property
    def time_label(self) -> str:
        return f"{self.hour}:{self.minute:02d}"


RABBIT_TRIGGERS: Tuple[RecurringTrigger, ...] = (
    RecurringTrigger(1, 14, 35, "Вторник"),
    RecurringTrigger(2, 20, 50, "Среда"),
    RecurringTrigger(4, 19, 50, "Пятница"),
)


def rabbit_schedule() -> List[RecurringTrigger]:
    """Every rabbit trigger plus its pre-reminder."""
    triggers: List[RecurringTrigger] = []
    for rabbit in RABBIT_TRIGGERS:
        triggers.append(rabbit)
        triggers.append(rabbit.shifted(-RABBIT_REMINDER_LEAD_MINUTES))
    return triggers


def next_rabbit(current: datetime) -> Tuple[RecurringTrigger, datetime]:
    """The next rabbit after ``current`` and the instant it arrives."""
    upcoming = [
        (rabbit, next_weekly_occurrence(current, rabbit.weekday, rabbit.hour, rabbit.minute))
        for rabbit in RABBIT_TRIGGERS
    ]
    return min(upcoming, key=lambda pair: pair[1])


@dataclass(frozen=True)
class ResetEvent:
    sequence_index: int
    absolute_time: datetime
    cumulative_task_count: int

    @property
    def number(self) -> int:
        return self.sequence_index + 1

    @property
    def label(self) -> str:
        return RESET_LABELS[self.sequence_index]

    @property
    def offset_hours(self) -> int:
        return RESET_OFFSETS_HOURS[self.sequence_index]


def compute_reset_events(anchor: Optional[datetime]) -> List[ResetEvent]:
    """Offsets are elapsed hours, so a DST change during the derby does not shift them."""
    if anchor is None:
        return []
    start = anchor.astimezone(timezone.utc)
    return [
        ResetEvent(
            sequence_index=index,
            absolute_time=to_local(start + timedelta(hours=hours)),
            cumulative_task_count=(index + 1) * TASKS_PER_RESET,
        )
        for index, hours in enumerate(RESET_OFFSETS_HOURS)
    ]


def upcoming_resets(anchor: Optional[datetime], current: datetime, limit: int = 3) -> List[ResetEvent]:
    return [e for e in compute_reset_events(anchor) if e.absolute_time > current][:limit]


RecurringCallback = Callable[[RecurringTrigger], Awaitable[None]]
AnchoredCallback = Callable[[ResetEvent, bool], Awaitable[None]]


class NotificationScheduler:
    """Owns the recurring and the anchored timer groups."""

    def __init__(
        self,
        clock: Callable[[], datetime] = now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._clock = clock
        self._sleep = sleep
        self._recurring: List[asyncio.Task] = []
        self._anchored: List[asyncio.Task] = []
        # Bumped on every cancel_all(); a timer only fires for its own generation
        self._generation = 0

    @property
    def anchored_count(self) -> int:
        return sum(1 for task in self._anchored if not task.done())

    @property
    def recurring_count(self) -> int:
        return sum(1 for task in self._recurring if not task.done())

    def schedule_recurring(self, trigger: RecurringTrigger, callback: RecurringCallback) -> Optional[asyncio.Task]:
        try:
            task = asyncio.create_task(self._recurring_loop(trigger, callback))
        except Exception as e:
            logger.error(f"Failed to register recurring trigger {trigger}: {e}")
            return None
        self._recurring.append(task)
        logger.info(
            f"Registered weekly {trigger.kind} '{trigger.label}' on weekday {trigger.weekday} at {trigger.time_label}"
        )
        return task

    async def _recurring_loop(self, trigger: RecurringTrigger, callback: RecurringCallback) -> None:
        last_fired: Optional[datetime] = None
        try:
            while True:
                current = self._clock()
                # Never resolve the same occurrence twice if the sleep woke up early
                after = max(current, last_fired) if last_fired else current
                fire_at = next_weekly_occurrence(after, trigger.weekday, trigger.hour, trigger.minute)
                await self._sleep(max(0.0, seconds_until(fire_at, current)))
                last_fired = fire_at
                try:
                    await callback(trigger)
                    logger.info(f"Fired weekly {trigger.kind} '{trigger.label}'")
                except Exception as e:
                    logger.error(f"Weekly {trigger.kind} '{trigger.label}' callback failed: {e}")
        except asyncio.CancelledError:
            logger.debug(f"Cancelled weekly trigger '{trigger.label}'")

    def schedule_anchored_sequence(self, anchor: Optional[datetime], callback: AnchoredCallback) -> int:
        """Schedule every future reset event of ``anchor`` and its pre-reminder.

        Past events are dropped, never fired retroactively. Returns the number
        of timers created.
        """
        if anchor is None:
            return 0
        current = self._clock()
        created = 0
        for event in compute_reset_events(anchor):
            if event.absolute_time <= current:
                continue
            if self._add_oneshot(event.absolute_time, current, callback, event, False):
                created += 1
            reminder_at = to_local(event.absolute_time.astimezone(timezone.utc) - RESET_REMINDER_LEAD)
            if reminder_at > current and self._add_oneshot(reminder_at, current, callback, event, True):
                created += 1
        logger.info(f"Scheduled {created} derby timers for anchor {anchor.isoformat()}")
        return created

    def _add_oneshot(
        self,
        fire_at: datetime,
        current: datetime,
        callback: AnchoredCallback,
        event: ResetEvent,
        reminder: bool,
    ) -> bool:
        delay = seconds_until(fire_at, current)
        generation = self._generation
        description = f"{'reminder for ' if reminder else ''}reset #{event.number}"

        async def fire():
            try:
                logger.debug(f"Scheduling {description} in {delay:.0f}s")
                await self._sleep(delay)
                if generation != self._generation:
                    return
                await callback(event, reminder)
                logger.info(f"Fired {description}")
            except asyncio.CancelledError:
                logger.debug(f"Cancelled {description}")
            except Exception as e:
                logger.error(f"Failed to fire {description}: {e}")

        # Finished timers are dropped so the list does not grow across derbies
        self._anchored = [task for task in self._anchored if not task.done()]
        try:
            self._anchored.append(asyncio.create_task(fire()))
        except Exception as e:
            logger.error(f"Failed to schedule {description}: {e}")
            return False
        return True

    def cancel_all(self) -> None:
        """Cancel every anchored timer. Recurring triggers are left alone."""
        self._generation += 1
        cancelled = 0
        for task in self._anchored:
            if not task.done():
                task.cancel()
                cancelled += 1
        self._anchored = []
        if cancelled:
            logger.info(f"Cancelled {cancelled} derby timers")

    def reschedule(self, anchor: Optional[datetime], callback: AnchoredCallback) -> int:
        # No await in between: old and new timers never coexist
        self.cancel_all()
        return self.schedule_anchored_sequence(anchor, callback)

    def shutdown(self) -> None:
        self.cancel_all()
        for task in self._recurring:
            if not task.done():
                task.cancel()
        self._recurring = []

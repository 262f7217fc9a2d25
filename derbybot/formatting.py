from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .scheduler import (
    RABBIT_TRIGGERS,
    RESET_LABELS,
    RecurringTrigger,
    ResetEvent,
    compute_reset_events,
    next_rabbit,
    upcoming_resets,
)
from .state import Participant
from .timeutils import fmt_local


def _escape_html(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def medal(n: int) -> str:
    if n == 1:
        return "🥇"
    elif n == 2:
        return "🥈"
    elif n == 3:
        return "🥉"
    else:
        return f"{n}."


HELP_TEXT = (
    "🐰 <b>Hay Day Derby Bot</b>\n\n"
    "Добро пожаловать! Я буду уведомлять вас о:\n"
    "• Появлении кролика\n"
    "• Сбросах лимитов заданий\n\n"
    "<b>Основные команды:</b>\n"
    "/status - Текущий статус\n"
    "/rabbit - Время следующего кролика\n"
    "/resets - Расписание сбросов\n\n"
    "<b>Участники скачек:</b>\n"
    "/join - Присоединиться к скачкам\n"
    "/leave - Покинуть скачки\n"
    "/participants - Список участников\n"
    "/ping - Пингануть всех участников\n\n"
    "<b>Игры:</b>\n"
    "/duel [@ник] - Вызвать на дуэль\n"
    "/coin [@ник] - Поспорить на монетку\n"
    "/word - Загадать слово\n"
    "/hint, /skip - Подсказка и пропуск (для ведущего)\n"
    "/stats - Ваша статистика\n"
    "/top - Рейтинг чата\n\n"
    "<b>Настройки:</b>\n"
    "/setderby - Установить время старта дерби\n"
    "/clearderby - Сбросить дерби\n"
    "/subscribe - Подписаться на уведомления\n"
    "/unsubscribe - Отписаться"
)

SETDERBY_USAGE = (
    "⚙️ <b>Установка времени старта дерби</b>\n\n"
    "Формат: /setderby ДД.ММ.ГГГГ ЧЧ:ММ\n\n"
    "Пример: /setderby 10.02.2026 10:00\n\n"
    "Время указывайте по Киеву!"
)


def fmt_rabbit_alert(trigger: RecurringTrigger) -> str:
    if trigger.kind == "reminder":
        return "⏰ <b>Через 10 минут прискачет кролик!</b>\n\nГотовьте задания!"
    return (
        f"🐰 <b>КРОЛИК ПРИСКАКАЛ!</b>\n\n"
        f"{trigger.label} {trigger.time_label} по Киеву\n\n"
        "Время делать задания с бонусом!"
    )


def fmt_reset_alert(event: ResetEvent, reminder: bool) -> str:
    if reminder:
        return f"⏰ <b>Через 30 минут сброс заданий!</b>\n\n{event.label}"
    return f"🏇 <b>{event.label}</b>\n\nСброс #{event.number} из {len(RESET_LABELS)}"


def fmt_rabbit_schedule(current: datetime) -> str:
    rabbit, _ = next_rabbit(current)
    lines = [f"• {r.label} - {r.time_label}" for r in RABBIT_TRIGGERS]
    return (
        "🐰 <b>Расписание кроликов (по Киеву)</b>\n\n"
        + "\n".join(lines)
        + f"\n\nСледующий: <b>{rabbit.label} {rabbit.time_label}</b>"
    )


def fmt_status(anchor: Optional[datetime], current: datetime) -> str:
    rabbit, _ = next_rabbit(current)
    status = "📊 <b>Статус</b>\n\n"
    status += f"🐰 Следующий кролик: {rabbit.label} {rabbit.time_label} (Киев)\n\n"
    if anchor is None:
        return status + "🏇 Дерби не установлено. Используйте /setderby"
    status += f"🏇 Дерби стартовало: {fmt_local(anchor)}\n"
    resets = upcoming_resets(anchor, current)
    if resets:
        status += "\nБлижайшие сбросы:\n"
        for event in resets:
            status += (
                f"• Сброс #{event.number} ({event.cumulative_task_count} заданий): "
                f"{fmt_local(event.absolute_time)}\n"
            )
    return status


def fmt_resets(anchor: datetime, current: datetime) -> str:
    message = "🏇 <b>Расписание сбросов дерби</b>\n\n"
    previous_hours = 0
    for event in compute_reset_events(anchor):
        marker = "✅" if event.absolute_time <= current else "⏳"
        if event.sequence_index == 0:
            label = f"Старт ({event.cumulative_task_count} заданий)"
        else:
            label = f"+{event.offset_hours - previous_hours}ч ({event.cumulative_task_count} заданий)"
        previous_hours = event.offset_hours
        message += f"{marker} {event.number}. {label}\n   {fmt_local(event.absolute_time)}\n\n"
    return message


def fmt_participants(roster: List[Participant]) -> str:
    if not roster:
        return "📋 Список участников пуст.\n\nИспользуйте /join чтобы присоединиться!"
    lines = []
    for index, p in enumerate(roster, start=1):
        name = f"@{p.username}" if p.username else _escape_html(p.display_name)
        lines.append(f"{index}. {name}")
    return f"📋 <b>Участники скачек ({len(roster)}):</b>\n\n" + "\n".join(lines)


def fmt_elapsed(seconds: float) -> str:
    seconds = int(round(seconds))
    minutes, secs = divmod(seconds, 60)
    if minutes:
        return f"{minutes} мин {secs} сек"
    return f"{secs} сек"


def fmt_user_stats(name: str, stats: Dict[str, int]) -> str:
    return (
        f"📈 <b>Статистика {name}</b>\n\n"
        f"💬 Сообщений: {stats.get('messages', 0)}\n"
        f"🤠 Дуэли: {stats.get('duel_wins', 0)} побед / {stats.get('duel_losses', 0)} поражений\n"
        f"🪙 Монетка: {stats.get('coin_wins', 0)} побед / {stats.get('coin_losses', 0)} поражений\n"
        f"🎲 Слова: объяснил {stats.get('word_explained', 0)}, угадал {stats.get('word_guessed', 0)}\n"
        f"⭐ Очки: {stats.get('word_points', 0)}"
    )


def fmt_leaderboard(rows: List[Tuple[str, int]], title: str = "Рейтинг по очкам") -> str:
    if not rows:
        return "🏆 Рейтинг пока пуст. Сыграйте в /word!"
    lines = [f"{medal(rank)} {name} — <code>{value}</code>" for rank, (name, value) in enumerate(rows, start=1)]
    return f"🏆 <b>{title}</b>\n\n" + "\n".join(lines)

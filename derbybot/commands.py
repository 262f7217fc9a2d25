from __future__ import annotations

from typing import Optional

from telegram import Update
from telegram.ext import ContextTypes

from .auth import guard_admin
from .charts import generate_leaderboard_chart
from .config import logger
from .formatting import (
    HELP_TEXT,
    SETDERBY_USAGE,
    fmt_leaderboard,
    fmt_participants,
    fmt_rabbit_schedule,
    fmt_resets,
    fmt_status,
    fmt_user_stats,
)
from .broadcast import render_mentions
from .handlers import apply_coin_outcome, apply_duel_outcome, category_keyboard
from .services import get_services
from .state import Participant, Player
from .storage import STAT_FIELDS, StorageError
from .timeutils import fmt_local, now, parse_local_datetime

# Constants for common messages
STORAGE_FAILURE_MSG = "⚠️ Что-то пошло не так, попробуйте ещё раз позже."
NO_DERBY_MSG = "❌ Дерби не установлено. Используйте /setderby"


def _target_username(update: Update, context: ContextTypes.DEFAULT_TYPE) -> Optional[str]:
    """``@username`` from the first argument, else the author of the replied-to message."""
    if context.args and context.args[0].startswith("@") and len(context.args[0]) > 1:
        return context.args[0][1:]
    reply = update.effective_message.reply_to_message if update.effective_message else None
    if reply and reply.from_user and reply.from_user.username:
        return reply.from_user.username
    return None


async def start_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    try:
        await services.storage.add_subscriber(update.effective_chat.id)
    except StorageError:
        await update.message.reply_text(STORAGE_FAILURE_MSG)
        return
    await update.message.reply_text(HELP_TEXT, parse_mode="HTML")


async def subscribe_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    try:
        await get_services(context).storage.add_subscriber(update.effective_chat.id)
    except StorageError:
        await update.message.reply_text(STORAGE_FAILURE_MSG)
        return
    await update.message.reply_text("✅ Вы подписаны на уведомления!")


async def unsubscribe_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    try:
        await get_services(context).storage.remove_subscriber(update.effective_chat.id)
    except StorageError:
        await update.message.reply_text(STORAGE_FAILURE_MSG)
        return
    await update.message.reply_text("❌ Вы отписаны от уведомлений.")


async def status_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    anchor = await get_services(context).storage.get_anchor()
    await update.message.reply_text(fmt_status(anchor, now()), parse_mode="HTML")


async def rabbit_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text(fmt_rabbit_schedule(now()), parse_mode="HTML")


async def resets_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    anchor = await get_services(context).storage.get_anchor()
    if anchor is None:
        await update.message.reply_text(NO_DERBY_MSG)
        return
    await update.message.reply_text(fmt_resets(anchor, now()), parse_mode="HTML")


async def setderby_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_admin(update, context):
        return

    if not context.args:
        await update.message.reply_text(SETDERBY_USAGE, parse_mode="HTML")
        return

    anchor = parse_local_datetime(" ".join(context.args))
    if anchor is None:
        await update.message.reply_text("❌ Неверный формат. Пример: /setderby 10.02.2026 10:00")
        return

    services = get_services(context)
    try:
        await services.storage.set_anchor(anchor)
    except StorageError:
        await update.message.reply_text(STORAGE_FAILURE_MSG)
        return
    services.apply_anchor(anchor)
    logger.info(f"Derby start set to {anchor.isoformat()} by user {update.effective_user.id}")

    await update.message.reply_text(
        f"✅ <b>Дерби установлено!</b>\n\n"
        f"Старт: {fmt_local(anchor)} (Киев)\n\n"
        "Я буду уведомлять о всех сбросах заданий.",
        parse_mode="HTML",
    )


async def clearderby_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_admin(update, context):
        return
    services = get_services(context)
    try:
        await services.storage.set_anchor(None)
    except StorageError:
        await update.message.reply_text(STORAGE_FAILURE_MSG)
        return
    services.apply_anchor(None)
    await update.message.reply_text("✅ Дерби сброшено.")


async def join_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    user = update.effective_user
    participant = Participant(user_id=user.id, display_name=user.full_name, username=user.username)
    try:
        size = await get_services(context).storage.add_participant(update.effective_chat.id, participant)
    except StorageError:
        await update.message.reply_text(STORAGE_FAILURE_MSG)
        return
    if size is None:
        await update.message.reply_text("⚠️ Вы уже в списке участников!")
        return
    name = f"@{user.username}" if user.username else user.first_name
    await update.message.reply_text(f"✅ {name} присоединился к скачкам!\n\nУчастников: {size}")


async def leave_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    user = update.effective_user
    try:
        size = await get_services(context).storage.remove_participant(update.effective_chat.id, user.id)
    except StorageError:
        await update.message.reply_text(STORAGE_FAILURE_MSG)
        return
    if size is None:
        await update.message.reply_text("⚠️ Вы не в списке участников.")
        return
    name = f"@{user.username}" if user.username else user.first_name
    await update.message.reply_text(f"👋 {name} покинул скачки.\n\nОсталось участников: {size}")


async def participants_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    roster = await get_services(context).storage.get_roster(update.effective_chat.id)
    await update.message.reply_text(fmt_participants(roster), parse_mode="HTML")


async def clearparticipants_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_admin(update, context):
        return
    try:
        await get_services(context).storage.clear_roster(update.effective_chat.id)
    except StorageError:
        await update.message.reply_text(STORAGE_FAILURE_MSG)
        return
    await update.message.reply_text("✅ Список участников очищен.")


async def ping_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    roster = await get_services(context).storage.get_roster(update.effective_chat.id)
    mentions = render_mentions(roster)
    if not mentions:
        await update.message.reply_text("❌ Нет участников для пинга. Используйте /join")
        return
    await update.message.reply_text(f"{mentions}\n\n📢 <b>Внимание участникам скачек!</b>", parse_mode="HTML")


# Mini-games

async def duel_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if update.effective_chat.type == "private":
        await update.message.reply_text("❌ Дуэли доступны только в группах.")
        return
    services = get_services(context)
    outcome = services.duels.open_challenge(
        update.effective_chat.id, Player.from_user(update.effective_user), _target_username(update, context)
    )
    await apply_duel_outcome(services, update.effective_chat.id, outcome, update.message)


async def coin_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if update.effective_chat.type == "private":
        await update.message.reply_text("❌ Монетка доступна только в группах.")
        return
    services = get_services(context)
    outcome = services.coins.open_challenge(
        update.effective_chat.id, Player.from_user(update.effective_user), _target_username(update, context)
    )
    await apply_coin_outcome(services, update.effective_chat.id, outcome, update.message)


async def cancelcoin_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    outcome = services.coins.withdraw(update.effective_chat.id, Player.from_user(update.effective_user))
    await apply_coin_outcome(services, update.effective_chat.id, outcome, update.message)


async def word_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if update.effective_chat.type == "private":
        await update.message.reply_text("❌ Игра в слова доступна только в группах.")
        return
    services = get_services(context)
    if services.words.session(update.effective_chat.id):
        await update.message.reply_text("🎲 В этом чате уже загадано слово. Угадайте его!")
        return
    categories = await services.storage.word_categories()
    await update.message.reply_text(
        "🎲 <b>Игра в слова</b>\n\nВыберите категорию:",
        parse_mode="HTML",
        reply_markup=category_keyboard(update.effective_user.id, categories),
    )


async def hint_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    outcome = get_services(context).words.hint(update.effective_chat.id, Player.from_user(update.effective_user))
    if outcome.message:
        await update.message.reply_text(outcome.message, parse_mode="HTML")


async def skip_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    outcome = get_services(context).words.skip(update.effective_chat.id, Player.from_user(update.effective_user))
    if outcome.message:
        await update.message.reply_text(outcome.message, parse_mode="HTML")


async def stats_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    player = Player.from_user(update.effective_user)
    stats = await get_services(context).stats.user_stats(update.effective_chat.id, player.user_id)
    await update.message.reply_text(fmt_user_stats(player.mention, stats), parse_mode="HTML")


async def top_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    rows = await get_services(context).stats.leaderboard(update.effective_chat.id)
    caption = fmt_leaderboard(rows)
    try:
        chart = generate_leaderboard_chart(rows)
        if chart:
            await update.message.reply_photo(photo=chart, caption=caption, parse_mode="HTML")
            return
    except Exception as e:
        logger.warning(f"Chart delivery failed: {e}, falling back to text only")
    await update.message.reply_text(caption, parse_mode="HTML")


async def addpoints_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Administrative correction: reply to a user's message with /addpoints <delta> [field]."""
    if not await guard_admin(update, context):
        return
    reply = update.message.reply_to_message
    if not reply or not reply.from_user or not context.args:
        await update.message.reply_text("Использование: ответьте на сообщение игрока командой /addpoints &lt;число&gt; [поле]",
                                        parse_mode="HTML")
        return
    try:
        delta = int(context.args[0])
    except ValueError:
        await update.message.reply_text("❌ Укажите целое число.")
        return
    field = context.args[1] if len(context.args) > 1 else "word_points"
    if field not in STAT_FIELDS:
        await update.message.reply_text(f"❌ Неизвестное поле. Доступны: {', '.join(STAT_FIELDS)}")
        return
    player = Player.from_user(reply.from_user)
    if not await get_services(context).stats.adjust(update.effective_chat.id, player, field, delta):
        await update.message.reply_text(STORAGE_FAILURE_MSG)
        return
    await update.message.reply_text(f"✅ {player.mention}: {field} {delta:+}", parse_mode="HTML")

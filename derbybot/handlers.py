"""Non-command updates: free text, inline-button presses and game side effects."""

from __future__ import annotations

from typing import List, Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import ContextTypes

from .coinflip import CoinOutcome
from .config import Config, logger
from .duel import DuelOutcome
from .formatting import fmt_elapsed
from .intents import match_intent
from .responder import respond
from .services import BotServices, get_services
from .state import Player, WordGameSession
from .wordgame import CorrectGuess
from .words import DIFFICULTY_LABELS


ANY = "-"


async def _announce(services: BotServices, chat_id: int, text: str, message=None) -> None:
    """Reply to ``message`` when possible, otherwise post to the chat. Never raises."""
    if message is not None:
        try:
            await message.reply_text(text, parse_mode="HTML")
            return
        except Exception as e:
            logger.warning(f"Reply in chat {chat_id} failed: {e}, sending plainly")
    await services.gateway.send_safe(chat_id, text)


async def apply_duel_outcome(services: BotServices, chat_id: int, outcome: DuelOutcome, message=None) -> None:
    if outcome.message:
        await _announce(services, chat_id, outcome.message, message)
    if outcome.finished:
        await services.stats.record_duel(chat_id, outcome.winner, outcome.loser)
        if not outcome.forfeit:
            await services.gateway.restrict(chat_id, outcome.loser.user_id, Config.DUEL_MUTE_SECS)


async def apply_coin_outcome(services: BotServices, chat_id: int, outcome: CoinOutcome, message=None) -> None:
    if outcome.message:
        await _announce(services, chat_id, outcome.message, message)
    if outcome.finished:
        await services.stats.record_coin(chat_id, outcome.winner, outcome.loser)
        await services.gateway.restrict(chat_id, outcome.loser.user_id, Config.COIN_MUTE_SECS)


async def announce_correct_guess(services: BotServices, chat_id: int, guess: CorrectGuess, message=None) -> None:
    session = guess.session
    text = (
        f"🎉 {guess.guesser.mention} угадал слово <b>{session.secret_word}</b> "
        f"за {fmt_elapsed(guess.elapsed)}!\n\n"
        f"+{guess.points} очков ведущему {session.host.mention} и угадавшему."
    )
    await _announce(services, chat_id, text, message)
    await services.stats.record_word_round(chat_id, session.host, "explained", guess.points)
    await services.stats.record_word_round(chat_id, guess.guesser, "guessed", guess.points)


async def handle_game_text(services: BotServices, chat_id: int, player: Player, text: str, message=None) -> bool:
    """Route a message to the mini-games. Returns True when a game consumed it."""
    intent = match_intent(text, services.duels.available_intents(chat_id))
    if intent is not None:
        await apply_duel_outcome(services, chat_id, services.duels.handle(chat_id, player, intent), message)
        return True

    intent = match_intent(text, services.coins.available_intents(chat_id))
    if intent is not None:
        await apply_coin_outcome(services, chat_id, services.coins.handle(chat_id, player, intent), message)
        return True

    guess = services.words.check_guess(chat_id, player, text)
    if guess is not None:
        await announce_correct_guess(services, chat_id, guess, message)
        return True
    return False


def _is_addressed(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    message = update.effective_message
    if update.effective_chat and update.effective_chat.type == "private":
        return True
    bot_username = (context.bot.username or "").lower()
    if bot_username and f"@{bot_username}" in (message.text or "").lower():
        return True
    reply = message.reply_to_message
    return bool(reply and reply.from_user and reply.from_user.id == context.bot.id)


async def on_text(update: Update, context: ContextTypes.DEFAULT_TYPE):
    message = update.effective_message
    if not message or not message.text or message.text.startswith("/") or not update.effective_user:
        return
    services = get_services(context)
    chat_id = update.effective_chat.id
    player = Player.from_user(update.effective_user)

    if update.effective_chat.type != "private":
        await services.stats.record_message(chat_id, player)

    if await handle_game_text(services, chat_id, player, message.text, message):
        return

    reply = await respond(message.text, _is_addressed(update, context), player.name, services.rng)
    if reply:
        try:
            await message.reply_text(reply)
        except Exception as e:
            logger.warning(f"Could not reply in chat {chat_id}: {e}")


# Word game keyboards

def category_keyboard(host_id: int, categories: List[str]) -> InlineKeyboardMarkup:
    rows = [[InlineKeyboardButton(name, callback_data=f"wg:cat:{host_id}:{index}")]
            for index, name in enumerate(categories)]
    rows.append([InlineKeyboardButton("🎲 Любая", callback_data=f"wg:cat:{host_id}:{ANY}")])
    return InlineKeyboardMarkup(rows)


def difficulty_keyboard(host_id: int, category_token: str) -> InlineKeyboardMarkup:
    row = [
        InlineKeyboardButton(f"{label} ({level * 10})", callback_data=f"wg:go:{host_id}:{category_token}:{level}")
        for level, label in DIFFICULTY_LABELS.items()
    ]
    return InlineKeyboardMarkup([row, [InlineKeyboardButton("🎲 Любая", callback_data=f"wg:go:{host_id}:{category_token}:{ANY}")]])


SKIP_KEYBOARD = InlineKeyboardMarkup([[InlineKeyboardButton("⏭ Пропустить", callback_data="wg:skip")]])


def _resolve_category(token: str, categories: List[str]) -> Optional[str]:
    if token == ANY:
        return None
    index = int(token)
    if 0 <= index < len(categories):
        return categories[index]
    raise ValueError(f"unknown category index {token}")


async def start_word_round(services: BotServices, context: ContextTypes.DEFAULT_TYPE, chat_id: int, host: Player,
                           category: Optional[str], difficulty: Optional[int]):
    async def deliver(session: WordGameSession) -> bool:
        await context.bot.send_message(host.user_id, services.words.private_briefing(session), parse_mode="HTML")
        return True

    async def on_timeout(timed_out_chat: int, session: WordGameSession) -> None:
        await services.gateway.send_safe(
            timed_out_chat,
            f"⌛ Время вышло! Никто не угадал слово <b>{session.secret_word}</b>. Очки не начислены.",
        )

    return await services.words.start(chat_id, host, category, difficulty, deliver, on_timeout)


async def on_word_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    services = get_services(context)
    chat_id = query.message.chat.id
    player = Player.from_user(query.from_user)
    parts = (query.data or "").split(":")

    if parts[:2] == ["wg", "skip"]:
        outcome = services.words.skip(chat_id, player)
        await query.answer(None if outcome.ok else outcome.message.split("\n")[0][:190])
        if outcome.ok:
            try:
                await query.edit_message_reply_markup(reply_markup=None)
            except Exception as e:
                logger.warning(f"Could not remove skip button in chat {chat_id}: {e}")
            await services.gateway.send_safe(chat_id, outcome.message)
        return

    if len(parts) < 4:
        await query.answer()
        return

    host_id = int(parts[2])
    if player.user_id != host_id:
        await query.answer("⛔ Выбирает тот, кто начал игру.", show_alert=True)
        return

    categories = await services.storage.word_categories()
    try:
        category = _resolve_category(parts[3], categories)
    except ValueError:
        await query.answer("Категория не найдена.", show_alert=True)
        return

    if parts[1] == "cat":
        await query.answer()
        await query.edit_message_text(
            f"🎲 Категория: <b>{category or 'любая'}</b>\n\nВыберите сложность:",
            parse_mode="HTML",
            reply_markup=difficulty_keyboard(host_id, parts[3]),
        )
        return

    if parts[1] == "go" and len(parts) >= 5:
        difficulty = None if parts[4] == ANY else int(parts[4])
        await query.answer()
        outcome = await start_word_round(services, context, chat_id, player, category, difficulty)
        if outcome.ok:
            await query.edit_message_text(outcome.message, parse_mode="HTML", reply_markup=SKIP_KEYBOARD)
        elif outcome.message:
            await query.edit_message_text(outcome.message, parse_mode="HTML")
        return

    await query.answer()


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error(f"Unhandled error while processing update: {context.error}", exc_info=context.error)

from __future__ import annotations

from telegram import BotCommand
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, MessageHandler, filters
from telegram.request import HTTPXRequest

from .config import Config, logger
from .storage import Storage
from .services import build_services
from .handlers import on_error, on_text, on_word_callback
from .commands import (
    addpoints_cmd,
    cancelcoin_cmd,
    clearderby_cmd,
    clearparticipants_cmd,
    coin_cmd,
    duel_cmd,
    hint_cmd,
    join_cmd,
    leave_cmd,
    participants_cmd,
    ping_cmd,
    rabbit_cmd,
    resets_cmd,
    setderby_cmd,
    skip_cmd,
    start_cmd,
    stats_cmd,
    status_cmd,
    subscribe_cmd,
    top_cmd,
    unsubscribe_cmd,
    word_cmd,
)


BOT_COMMANDS = [
    BotCommand("start", "Подписаться и показать помощь"),
    BotCommand("status", "Текущий статус"),
    BotCommand("rabbit", "Время следующего кролика"),
    BotCommand("resets", "Расписание сбросов"),
    BotCommand("join", "Присоединиться к скачкам"),
    BotCommand("leave", "Покинуть скачки"),
    BotCommand("participants", "Список участников"),
    BotCommand("ping", "Пингануть всех участников"),
    BotCommand("duel", "Вызвать на дуэль"),
    BotCommand("coin", "Поспорить на монетку"),
    BotCommand("word", "Загадать слово"),
    BotCommand("stats", "Ваша статистика"),
    BotCommand("top", "Рейтинг чата"),
    BotCommand("setderby", "Установить время старта дерби"),
]

COMMAND_HANDLERS = [
    ("start", start_cmd),
    ("subscribe", subscribe_cmd),
    ("unsubscribe", unsubscribe_cmd),
    ("status", status_cmd),
    ("rabbit", rabbit_cmd),
    ("resets", resets_cmd),
    ("setderby", setderby_cmd),
    ("clearderby", clearderby_cmd),
    ("join", join_cmd),
    ("leave", leave_cmd),
    ("participants", participants_cmd),
    ("clearparticipants", clearparticipants_cmd),
    ("ping", ping_cmd),
    ("duel", duel_cmd),
    ("coin", coin_cmd),
    ("cancelcoin", cancelcoin_cmd),
    ("word", word_cmd),
    ("hint", hint_cmd),
    ("skip", skip_cmd),
    ("stopword", skip_cmd),
    ("stats", stats_cmd),
    ("top", top_cmd),
    ("addpoints", addpoints_cmd),
]


def build_application(token: str, storage: Storage) -> Application:
    # Configure request with longer timeout to prevent startup failures
    request = HTTPXRequest(
        connection_pool_size=8,
        connect_timeout=30.0,
        read_timeout=30.0,
        write_timeout=30.0,
        pool_timeout=30.0,
    )
    app = Application.builder().token(token).request(request).build()
    app.bot_data["services"] = build_services(app.bot, storage)

    async def post_init(application: Application) -> None:
        services = application.bot_data["services"]
        await storage.load()
        try:
            logger.info("🔧 Setting up bot commands...")
            await application.bot.set_my_commands(BOT_COMMANDS)
            logger.info("✅ Bot commands configured successfully")
        except Exception as e:
            logger.error(f"❌ Failed to set bot commands: {e}")
            logger.warning("⚠️ Bot will continue but commands may not be visible in Telegram")

        services.start_schedules(await storage.get_anchor())

    async def post_shutdown(application: Application) -> None:
        services = application.bot_data["services"]
        await services.stats.flush_messages()
        services.shutdown()
        logger.info("Timers cancelled")

    app.post_init = post_init
    app.post_shutdown = post_shutdown

    for name, callback in COMMAND_HANDLERS:
        app.add_handler(CommandHandler(name, callback))
    app.add_handler(CallbackQueryHandler(on_word_callback, pattern=r"^wg:"))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, on_text))
    app.add_error_handler(on_error)
    return app


def main():
    Config.validate_config()

    storage = Storage(Config.DATA_FILE)
    app = build_application(Config.BOT_TOKEN, storage)
    logger.info("🐰 Hay Day Derby Bot запущен!")
    app.run_polling(drop_pending_updates=True)

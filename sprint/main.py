"""
Главная точка входа бота
"""

import logging

from telegram import Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
)

from sprint.config import config
from sprint.database.connection import close_pool, get_pool
from sprint.database.migrations import run_migrations

# Хендлеры
from sprint.handlers.start import start_handler, main_menu_callback
from sprint.handlers.lessons import (
    program_callback,
    view_lesson_callback,
    start_lesson_callback,
    complete_lesson_callback,
    my_progress_callback,
    restart_program_callback
)
from sprint.handlers.admin import (
    stat_handler,
    programs_handler,
    add_program_handler,
    activate_program_handler,
    lessons_handler,
    add_lesson_handler,
    set_visibility_handler,
    move_lesson_handler,
    upsell_handler,
    health_handler
)


# Настройка логирования
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
)
# httpx логирует каждый запрос polling'а
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE):
    """Необработанные ошибки хендлеров"""
    logger.error(f"Ошибка при обработке {update}: {context.error}", exc_info=context.error)

    if isinstance(update, Update) and update.callback_query:
        try:
            await update.callback_query.answer("Что-то пошло не так, попробуйте ещё раз", show_alert=True)
        except Exception as e:
            logger.warning(f"Не удалось ответить на callback: {e}")


def register_handlers(app: Application):
    """Регистрация всех хендлеров"""

    # Команды пользователей
    app.add_handler(CommandHandler("start", start_handler))

    # Админ-команды
    app.add_handler(CommandHandler("stat", stat_handler))
    app.add_handler(CommandHandler("programs", programs_handler))
    app.add_handler(CommandHandler("add_program", add_program_handler))
    app.add_handler(CommandHandler("activate_program", activate_program_handler))
    app.add_handler(CommandHandler("lessons", lessons_handler))
    app.add_handler(CommandHandler("add_lesson", add_lesson_handler))
    app.add_handler(CommandHandler("set_visibility", set_visibility_handler))
    app.add_handler(CommandHandler("move_lesson", move_lesson_handler))
    app.add_handler(CommandHandler("upsell", upsell_handler))
    app.add_handler(CommandHandler("health", health_handler))

    # Callbacks — меню
    app.add_handler(CallbackQueryHandler(main_menu_callback, pattern="^main_menu$"))

    # Callbacks — уроки
    app.add_handler(CallbackQueryHandler(program_callback, pattern="^program$"))
    app.add_handler(CallbackQueryHandler(view_lesson_callback, pattern="^view_lesson:"))
    app.add_handler(CallbackQueryHandler(start_lesson_callback, pattern="^start_lesson:"))
    app.add_handler(CallbackQueryHandler(complete_lesson_callback, pattern="^complete_lesson:"))
    app.add_handler(CallbackQueryHandler(my_progress_callback, pattern="^my_progress$"))
    app.add_handler(CallbackQueryHandler(restart_program_callback, pattern="^restart_program$"))

    app.add_error_handler(error_handler)


async def post_init(app: Application):
    """Инициализация после запуска"""
    await get_pool()
    await run_migrations()
    logger.info("База данных подключена, миграции выполнены")


async def post_shutdown(app: Application):
    """Очистка при завершении"""
    await close_pool()
    logger.info("Соединение с БД закрыто")


def main():
    """Запуск бота"""

    # Проверка конфигурации
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Ошибка конфигурации: {error}")
        return

    # Создание приложения
    app = (
        Application.builder()
        .token(config.BOT_TOKEN)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    # Регистрация хендлеров
    register_handlers(app)

    logger.info("Бот запущен!")

    # Запуск
    app.run_polling(allowed_updates=["message", "callback_query"])


if __name__ == "__main__":
    main()

"""
Обработчик /start и главного меню
"""

import logging
from telegram import Update
from telegram.ext import ContextTypes

from sprint.keyboards import main_menu_keyboard
from sprint.services import program_service
from sprint.services.membership import check_membership, refresh_paid_status
from sprint.texts import overview_text

logger = logging.getLogger(__name__)


async def start_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Обработка команды /start: регистрация и проверка подписки"""
    tg_user = update.effective_user
    username = tg_user.username or ""
    full_name = tg_user.full_name or ""

    membership = await check_membership(context.bot, tg_user.id)
    user = await program_service.get_or_create_user(
        tg_user.id, username, full_name, membership.is_paid
    )

    payload = await program_service.build_program_payload(user.tg_id, user.is_paid)

    text = overview_text(payload, full_name)
    if membership.reason:
        logger.info(f"Подписка {tg_user.id} не подтверждена: {membership.reason}")

    await update.message.reply_text(
        text,
        reply_markup=main_menu_keyboard(payload.progress_status),
        disable_web_page_preview=True
    )


async def main_menu_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Callback: главное меню"""
    query = update.callback_query
    await query.answer()

    user = await program_service.require_user(query.from_user.id)
    await refresh_paid_status(context.bot, user)
    payload = await program_service.build_program_payload(user.tg_id, user.is_paid)

    await query.edit_message_text(
        overview_text(payload, user.full_name or ""),
        reply_markup=main_menu_keyboard(payload.progress_status),
        disable_web_page_preview=True
    )

"""
Обработчики уроков: список, карточка, старт, завершение, перезапуск
"""

import logging
from telegram import CallbackQuery, Update
from telegram.ext import ContextTypes

from sprint.database.models import User
from sprint.errors import AccessDenied, NotFound, ProgressError
from sprint.keyboards import (
    back_to_menu_keyboard,
    failed_keyboard,
    lesson_keyboard,
    lessons_keyboard,
    main_menu_keyboard,
    upsell_keyboard,
)
from sprint.services import program_service
from sprint.services.membership import ensure_lesson_access
from sprint.services.progression import ProgramPayload, utc_now
from sprint.states import LessonStatus, ProgramStatus, Visibility
from sprint.texts import (
    completed_text,
    failed_text,
    lesson_list_text,
    lesson_text,
    no_program_text,
    overview_text,
    upsell_text,
)

logger = logging.getLogger(__name__)


def _lesson_id(query: CallbackQuery) -> int:
    """view_lesson:5 -> 5"""
    return int(query.data.split(":")[1])


async def _show_program(query: CallbackQuery, payload: ProgramPayload):
    """Список уроков (или экран провала / завершения)"""
    if not payload.program:
        await query.edit_message_text(no_program_text(), reply_markup=back_to_menu_keyboard())
        return

    if payload.progress_status == ProgramStatus.FAILED:
        await query.edit_message_text(failed_text(), reply_markup=failed_keyboard())
        return

    await query.edit_message_text(
        lesson_list_text(payload),
        reply_markup=lessons_keyboard(payload)
    )


async def _show_lesson(query: CallbackQuery, user: User, payload: ProgramPayload, lesson_id: int):
    """Карточка урока"""
    view = payload.find(lesson_id)
    if not view:
        await query.edit_message_text("Урок не найден.", reply_markup=back_to_menu_keyboard())
        return

    show_upsell = not user.is_paid and view.lesson.visibility == Visibility.PAID
    await query.edit_message_text(
        lesson_text(view, payload, user.is_paid, utc_now()),
        reply_markup=lesson_keyboard(view, payload.upsell, show_upsell),
        disable_web_page_preview=True
    )


async def program_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Callback: список уроков активной программы"""
    query = update.callback_query
    await query.answer()

    user = await program_service.require_user(query.from_user.id)
    payload = await program_service.build_program_payload(user.tg_id, user.is_paid)
    await _show_program(query, payload)


async def view_lesson_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Callback: показать конкретный урок"""
    query = update.callback_query
    await query.answer()

    user = await program_service.require_user(query.from_user.id)
    payload = await program_service.build_program_payload(user.tg_id, user.is_paid)
    await _show_lesson(query, user, payload, _lesson_id(query))


async def start_lesson_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Callback: начать урок (запускает таймер дедлайна)"""
    query = update.callback_query
    tg_id = query.from_user.id
    lesson_id = _lesson_id(query)

    try:
        user = await program_service.require_user(tg_id)
        lesson = await program_service.load_lesson(lesson_id)
        await ensure_lesson_access(context.bot, user, lesson)

        # Начать можно только урок, который пользователь видит доступным
        payload = await program_service.build_program_payload(user.tg_id, user.is_paid)
        view = payload.find(lesson.id)
        if not view or view.user_status != LessonStatus.AVAILABLE:
            await query.answer("Урок пока закрыт", show_alert=True)
            return

        await program_service.start_lesson_for_user(user.tg_id, lesson)
    except AccessDenied as e:
        await query.answer()
        payload = await program_service.build_program_payload(tg_id, False)
        await query.edit_message_text(
            upsell_text(payload.upsell, e.message),
            reply_markup=upsell_keyboard(payload.upsell)
        )
        return
    except ProgressError as e:
        await query.answer(e.message, show_alert=True)
        return

    await query.answer("Урок разблокирован, таймер запущен!")
    payload = await program_service.build_program_payload(user.tg_id, user.is_paid)
    await _show_lesson(query, user, payload, lesson.id)


async def complete_lesson_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Callback: отметить урок пройденным"""
    query = update.callback_query
    tg_id = query.from_user.id
    lesson_id = _lesson_id(query)

    try:
        user = await program_service.require_user(tg_id)
        lesson = await program_service.load_lesson(lesson_id)
        await ensure_lesson_access(context.bot, user, lesson)
        await program_service.complete_lesson_for_user(user.tg_id, lesson)
    except AccessDenied as e:
        await query.answer()
        payload = await program_service.build_program_payload(tg_id, False)
        await query.edit_message_text(
            upsell_text(payload.upsell, e.message),
            reply_markup=upsell_keyboard(payload.upsell)
        )
        return
    except ProgressError as e:
        await query.answer(e.message, show_alert=True)
        return

    await query.answer("Урок пройден!")
    payload = await program_service.build_program_payload(user.tg_id, user.is_paid)

    if payload.progress_status == ProgramStatus.COMPLETED:
        await query.edit_message_text(
            completed_text(payload),
            reply_markup=main_menu_keyboard(payload.progress_status)
        )
        return

    await _show_lesson(query, user, payload, lesson.id)


async def my_progress_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Callback: показать прогресс"""
    query = update.callback_query
    await query.answer()

    user = await program_service.require_user(query.from_user.id)
    payload = await program_service.build_program_payload(user.tg_id, user.is_paid)

    if payload.progress_status == ProgramStatus.FAILED:
        await query.edit_message_text(failed_text(), reply_markup=failed_keyboard())
        return

    await query.edit_message_text(
        overview_text(payload),
        reply_markup=main_menu_keyboard(payload.progress_status)
    )


async def restart_program_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Callback: начать спринт заново"""
    query = update.callback_query

    try:
        user = await program_service.require_user(query.from_user.id)
        await program_service.restart_program_for_user(user.tg_id)
    except NotFound as e:
        await query.answer(e.message, show_alert=True)
        return

    await query.answer("Спринт перезапущен")
    payload = await program_service.build_program_payload(user.tg_id, user.is_paid)
    await _show_program(query, payload)

"""
Клавиатуры бота
"""

from typing import Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from sprint.database.models import UpsellSettings
from sprint.services.progression import LessonView, ProgramPayload
from sprint.states import LessonStatus, ProgramStatus
from sprint.texts import lesson_button_text


# ============================================
# Главное меню
# ============================================

def main_menu_keyboard(progress_status: Optional[str] = None) -> InlineKeyboardMarkup:
    """Главное меню; проваленный или пройденный спринт можно начать заново"""
    buttons = [
        [InlineKeyboardButton("📚 Уроки", callback_data="program")],
        [InlineKeyboardButton("📊 Мой прогресс", callback_data="my_progress")]
    ]
    if progress_status in (ProgramStatus.FAILED, ProgramStatus.COMPLETED):
        buttons.append([InlineKeyboardButton("🔄 Начать заново", callback_data="restart_program")])
    return InlineKeyboardMarkup(buttons)


def back_to_menu_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("🏠 Главное меню", callback_data="main_menu")]
    ])


def failed_keyboard() -> InlineKeyboardMarkup:
    """Экран проваленного спринта"""
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("🔄 Начать заново", callback_data="restart_program")],
        [InlineKeyboardButton("🏠 Главное меню", callback_data="main_menu")]
    ])


# ============================================
# Уроки
# ============================================

def lessons_keyboard(payload: ProgramPayload) -> InlineKeyboardMarkup:
    """Список уроков программы со статусами"""
    buttons = [
        [InlineKeyboardButton(lesson_button_text(view), callback_data=f"view_lesson:{view.id}")]
        for view in payload.lessons
    ]
    buttons.append([InlineKeyboardButton("🏠 Главное меню", callback_data="main_menu")])
    return InlineKeyboardMarkup(buttons)


def lesson_keyboard(
    view: LessonView,
    upsell: Optional[UpsellSettings] = None,
    show_upsell: bool = False
) -> InlineKeyboardMarkup:
    """Клавиатура урока: старт без строки прогресса, завершение — с ней"""
    buttons = []

    if view.user_status == LessonStatus.AVAILABLE:
        if view.unlocked_at is None:
            buttons.append([InlineKeyboardButton("▶️ Начать урок", callback_data=f"start_lesson:{view.id}")])
        else:
            buttons.append([InlineKeyboardButton("✅ Отметить урок пройденным", callback_data=f"complete_lesson:{view.id}")])

    if show_upsell and upsell and upsell.button_url:
        buttons.append([InlineKeyboardButton(upsell.button_label or "💎 Платный доступ", url=upsell.button_url)])

    buttons.append([InlineKeyboardButton("⬅️ Назад к программе", callback_data="program")])
    return InlineKeyboardMarkup(buttons)


def upsell_keyboard(upsell: Optional[UpsellSettings]) -> InlineKeyboardMarkup:
    """Кнопка платного доступа + возврат к программе"""
    buttons = []
    if upsell and upsell.button_url:
        buttons.append([InlineKeyboardButton(upsell.button_label or "💎 Платный доступ", url=upsell.button_url)])
    buttons.append([InlineKeyboardButton("⬅️ Назад к программе", callback_data="program")])
    return InlineKeyboardMarkup(buttons)

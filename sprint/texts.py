"""
Тексты сообщений и форматирование времени
"""

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sprint.config import config
from sprint.database.models import UpsellSettings
from sprint.services.progression import LessonView, ProgramPayload
from sprint.states import NOT_STARTED, LessonStatus, ProgramStatus, Visibility


STATUS_LABELS = {
    LessonStatus.LOCKED.value: "Заблокирован",
    LessonStatus.AVAILABLE.value: "Доступен",
    LessonStatus.EXPIRED.value: "Сгорел",
    LessonStatus.DONE.value: "Пройден",
}

STATUS_ICONS = {
    LessonStatus.LOCKED.value: "🔒",
    LessonStatus.AVAILABLE.value: "▶️",
    LessonStatus.EXPIRED.value: "🔥",
    LessonStatus.DONE.value: "✅",
}

PROGRAM_STATUS_LABELS = {
    NOT_STARTED: "не начат",
    ProgramStatus.IN_PROGRESS.value: "в процессе",
    ProgramStatus.COMPLETED.value: "пройден",
    ProgramStatus.FAILED.value: "провален",
}


def format_datetime(value: Optional[datetime]) -> str:
    """ЧЧ:ММ ДД.ММ в часовом поясе бота"""
    if not value:
        return ""
    local = value.astimezone(ZoneInfo(config.TIMEZONE))
    return local.strftime("%H:%M %d.%m")


def time_until(value: Optional[datetime], now: datetime) -> str:
    """Оставшееся время в формате ЧЧ:ММ (00:00, если срок прошёл)"""
    if not value:
        return ""
    seconds = int((value - now).total_seconds())
    if seconds <= 0:
        return "00:00"
    hours, rest = divmod(seconds, 3600)
    return f"{hours:02d}:{rest // 60:02d}"


def progress_percent(payload: ProgramPayload) -> int:
    if not payload.total_lessons:
        return 0
    return round(payload.completed_lessons / payload.total_lessons * 100)


def no_program_text() -> str:
    return (
        "Активная программа пока не создана.\n\n"
        "Попросите куратора включить спринт."
    )


def overview_text(payload: ProgramPayload, full_name: str = "") -> str:
    """Главный экран: программа и общий прогресс"""
    if not payload.program:
        return no_program_text()

    greeting = f"Привет, {full_name}!\n\n" if full_name else ""
    status = PROGRAM_STATUS_LABELS.get(payload.progress_status, payload.progress_status)
    return (
        f"{greeting}{payload.program.name}\n\n"
        f"{payload.program.description}\n\n"
        f"Прогресс: {payload.completed_lessons} из {payload.total_lessons} "
        f"({progress_percent(payload)}%)\n"
        f"Статус спринта: {status}"
    )


def failed_text() -> str:
    return (
        "🔥 Спринт провален — один из уроков сгорел.\n\n"
        "Начните заново, чтобы пройти программу с первого дня."
    )


def completed_text(payload: ProgramPayload) -> str:
    return (
        f"🎉 Спринт пройден!\n\n"
        f"Вы закрыли все {payload.total_lessons} уроков программы «{payload.program.name}»."
    )


def lesson_list_text(payload: ProgramPayload) -> str:
    return (
        f"{payload.program.name}\n\n"
        f"Прогресс: {payload.completed_lessons} из {payload.total_lessons}\n\n"
        "Выберите урок:"
    )


def lesson_button_text(view: LessonView) -> str:
    icon = STATUS_ICONS.get(view.user_status, "")
    return f"{icon} День {view.lesson.order_index}: {view.lesson.title}"


def lesson_text(view: LessonView, payload: ProgramPayload, is_paid: bool, now: datetime) -> str:
    """Карточка урока с учётом статуса, дедлайна и следующего урока"""
    lesson = view.lesson
    text = f"День {lesson.order_index}: {lesson.title}\n"
    text += f"Статус: {STATUS_LABELS.get(view.user_status, view.user_status)}\n\n"

    if not is_paid and lesson.visibility == Visibility.PAID:
        text += "💎 Этот урок только для платных учеников."
        return text

    if view.user_status in (LessonStatus.AVAILABLE, LessonStatus.DONE):
        if lesson.video_url:
            text += f"Видео: {lesson.video_url}\n\n"
        if lesson.description:
            text += f"{lesson.description}\n\n"
        if lesson.homework_text:
            text += f"📝 Домашка:\n{lesson.homework_text}\n\n"

    if view.user_status == LessonStatus.AVAILABLE and view.expires_at:
        text += (
            f"⏳ Этот урок нужно пройти до {format_datetime(view.expires_at)}. "
            f"Осталось {time_until(view.expires_at, now)}.\n"
        )
    elif view.user_status == LessonStatus.LOCKED:
        if view.unlocked_at and view.unlocked_at > now:
            text += f"🔒 Урок откроется через {time_until(view.unlocked_at, now)}.\n"
        else:
            text += "🔒 Урок ещё недоступен. Сначала пройдите предыдущий.\n"
    elif view.user_status == LessonStatus.EXPIRED:
        text += "🔥 Урок сгорел — дедлайн пропущен.\n"
    elif view.user_status == LessonStatus.DONE:
        text += f"✅ Урок пройден {format_datetime(view.completed_at)}.\n"
        next_view = payload.next_after(lesson.id)
        if next_view and next_view.unlocked_at and next_view.user_status == LessonStatus.LOCKED:
            text += f"Следующий урок откроется через {time_until(next_view.unlocked_at, now)}.\n"

    return text


def upsell_text(upsell: Optional[UpsellSettings], reason: str = "") -> str:
    """Предложение платного доступа"""
    prefix = f"{reason}\n\n" if reason else ""
    if not upsell:
        return f"{prefix}Этот урок доступен только участникам платного канала."
    return f"{prefix}💎 {upsell.title}\n\n{upsell.text}"

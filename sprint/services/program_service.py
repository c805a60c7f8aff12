"""
Сервис программы — операции пользователя поверх движка прогресса.

Каждая изменяющая операция — ровно одна транзакция queries.transact.
"""

import logging
from datetime import datetime
from typing import Optional

from sprint.database import queries as db
from sprint.database.models import Lesson, User
from sprint.errors import NotFound
from sprint.services import progression
from sprint.services.progression import ProgramPayload
from sprint.states import Visibility

logger = logging.getLogger(__name__)


async def get_or_create_user(
    tg_id: int,
    username: str,
    full_name: str,
    is_paid: bool
) -> User:
    """Зарегистрировать пользователя или обновить его данные"""
    existing = await db.get_user(tg_id)
    user = await db.create_or_update_user(tg_id, username, full_name, is_paid)
    if not existing:
        logger.info(f"Новый пользователь: {tg_id} (@{username})")
    return user


async def require_user(tg_id: int) -> User:
    user = await db.get_user(tg_id)
    if not user:
        raise NotFound("Пользователь не найден")
    return user


async def load_lesson(lesson_id: int) -> Lesson:
    """Урок по ID; архивные уроки для пользователей не существуют"""
    lesson = await db.get_lesson(lesson_id)
    if not lesson or lesson.visibility == Visibility.ARCHIVED:
        raise NotFound("Урок не найден или архивирован")
    return lesson


async def build_program_payload(
    user_id: int,
    is_paid: bool,
    now: Optional[datetime] = None
) -> ProgramPayload:
    """Состояние активной программы для пользователя (с обновлением по времени)"""
    now = now or progression.utc_now()
    upsell = await db.get_upsell()
    program = await db.get_active_program()
    if not program:
        return progression.empty_payload(upsell)

    return await db.transact(
        user_id,
        program.id,
        lambda snapshot: progression.build_payload(snapshot, program, is_paid, now, upsell)
    )


async def start_lesson_for_user(user_id: int, lesson: Lesson, now: Optional[datetime] = None):
    """Начать урок (доступ уже проверен вызывающей стороной)"""
    now = now or progression.utc_now()
    await db.transact(
        user_id,
        lesson.program_id,
        lambda snapshot: progression.start_lesson(snapshot, lesson, now)
    )


async def complete_lesson_for_user(user_id: int, lesson: Lesson, now: Optional[datetime] = None):
    """
    Завершить урок.

    Сначала применяются переходы по времени: урок, чей дедлайн уже прошёл,
    завершить нельзя, даже если строка ещё числится AVAILABLE.
    """
    now = now or progression.utc_now()

    def complete(snapshot):
        progression.refresh_states(snapshot, now)
        progression.complete_lesson(snapshot, lesson, now)

    await db.transact(user_id, lesson.program_id, complete)
    logger.info(f"Урок {lesson.id} завершён: {user_id}")


async def restart_program_for_user(user_id: int) -> int:
    """Перезапустить активную программу. Возвращает ID программы"""
    program = await db.get_active_program()
    if not program:
        raise NotFound("Активная программа не найдена")

    await db.transact(user_id, program.id, progression.restart_program)
    return program.id

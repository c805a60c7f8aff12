"""
Движок прогресса — состояние уроков и программы для пользователя.

Чистая логика над ProgressSnapshot: без I/O, время передаётся явно.
Жизненный цикл урока:

    LOCKED --(наступил unlocked_at)--> AVAILABLE --(прошёл expires_at)--> EXPIRED
    AVAILABLE --(пользователь завершил)--> DONE

Программа: IN_PROGRESS -> COMPLETED (последний урок DONE)
           IN_PROGRESS -> FAILED (любой урок EXPIRED)
Перезапуск удаляет все строки прогресса программы.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sprint.database.models import (
    Lesson,
    LessonProgress,
    Program,
    ProgramProgress,
    UpsellSettings,
)
from sprint.database.snapshot import ProgressSnapshot
from sprint.errors import NotAvailable, NotFound, NotStarted
from sprint.states import (
    NOT_STARTED,
    TERMINAL_LESSON_STATUSES,
    LessonStatus,
    ProgramStatus,
    Visibility,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def hours(value: int) -> timedelta:
    return timedelta(hours=value)


# ============================================
# Проекция (payload)
# ============================================

@dataclass
class LessonView:
    """Урок глазами конкретного пользователя"""
    lesson: Lesson
    user_status: str
    unlocked_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def id(self) -> int:
        return self.lesson.id

    @property
    def is_paid_locked(self) -> bool:
        return self.lesson.visibility == Visibility.PAID and self.user_status == LessonStatus.LOCKED


@dataclass
class ProgramPayload:
    """Состояние активной программы для пользователя"""
    program: Optional[Program]
    lessons: List[LessonView] = field(default_factory=list)
    progress_status: str = NOT_STARTED
    completed_lessons: int = 0
    total_lessons: int = 0
    upsell: Optional[UpsellSettings] = None

    def find(self, lesson_id: int) -> Optional[LessonView]:
        return next((view for view in self.lessons if view.id == lesson_id), None)

    def next_after(self, lesson_id: int) -> Optional[LessonView]:
        for index, view in enumerate(self.lessons[:-1]):
            if view.id == lesson_id:
                return self.lessons[index + 1]
        return None


def default_status(progress: Optional[LessonProgress], position: int) -> str:
    """
    Статус урока по строке прогресса (или её отсутствию).
    Без строки первый урок цепочки доступен, остальные закрыты.
    """
    if progress is not None:
        return progress.status
    if position == 0:
        return LessonStatus.AVAILABLE.value
    return LessonStatus.LOCKED.value


def mask_status(lesson: Lesson, status: str, is_paid: bool) -> str:
    """Платный урок для неоплаченного пользователя всегда закрыт (только в выдаче)"""
    if lesson.visibility == Visibility.PAID and not is_paid:
        return LessonStatus.LOCKED.value
    return status


def empty_payload(upsell: Optional[UpsellSettings] = None) -> ProgramPayload:
    return ProgramPayload(program=None, upsell=upsell)


def project(
    snapshot: ProgressSnapshot,
    program: Program,
    is_paid: bool,
    upsell: Optional[UpsellSettings] = None
) -> ProgramPayload:
    """Собрать выдачу по снимку без изменения состояния"""
    views = []
    for position, lesson in enumerate(snapshot.chain()):
        progress = snapshot.get_lesson_progress(lesson.id)
        status = mask_status(lesson, default_status(progress, position), is_paid)
        views.append(LessonView(
            lesson=lesson,
            user_status=status,
            unlocked_at=progress.unlocked_at if progress else None,
            expires_at=progress.expires_at if progress else None,
            completed_at=progress.completed_at if progress else None,
        ))

    program_progress = snapshot.get_program_progress()
    return ProgramPayload(
        program=program,
        lessons=views,
        progress_status=program_progress.status if program_progress else NOT_STARTED,
        completed_lessons=sum(1 for view in views if view.user_status == LessonStatus.DONE),
        total_lessons=len(views),
        upsell=upsell,
    )


# ============================================
# Операции
# ============================================

def refresh_states(snapshot: ProgressSnapshot, now: datetime) -> bool:
    """
    Применить переходы по времени: LOCKED -> AVAILABLE, AVAILABLE -> EXPIRED.
    Сгоревший урок проваливает программу. Возвращает True, если что-то изменилось.
    """
    program_lesson_ids = {lesson.id for lesson in snapshot.lessons}
    changed = False
    expired = False

    for lesson_id, progress in list(snapshot.lesson_progress.items()):
        if lesson_id not in program_lesson_ids:
            continue

        touched = False
        if (
            progress.status == LessonStatus.LOCKED
            and progress.unlocked_at is not None
            and progress.unlocked_at <= now
        ):
            progress.status = LessonStatus.AVAILABLE.value
            touched = True

        if (
            progress.status == LessonStatus.AVAILABLE
            and progress.expires_at is not None
            and progress.expires_at < now
        ):
            progress.status = LessonStatus.EXPIRED.value
            touched = True
            expired = True

        if touched:
            progress.updated_at = now
            snapshot.upsert_lesson_progress(progress)
            changed = True

    program_progress = snapshot.get_program_progress()
    if expired and program_progress and program_progress.status == ProgramStatus.IN_PROGRESS:
        program_progress.status = ProgramStatus.FAILED.value
        program_progress.finished_at = None
        program_progress.updated_at = now
        snapshot.upsert_program_progress(program_progress)
        logger.info(
            f"Программа {snapshot.program_id} провалена: user={snapshot.user_id}"
        )
        changed = True

    return changed


def start_lesson(snapshot: ProgressSnapshot, lesson: Lesson, now: datetime) -> LessonProgress:
    """Начать урок: создать строки прогресса программы и урока, если их нет"""
    if lesson.visibility == Visibility.ARCHIVED:
        raise NotFound("Урок не найден или архивирован")

    if snapshot.get_program_progress() is None:
        snapshot.upsert_program_progress(ProgramProgress(
            id=None,
            user_id=snapshot.user_id,
            program_id=lesson.program_id,
            status=ProgramStatus.IN_PROGRESS.value,
            started_at=now,
            finished_at=None,
            last_lesson_id=None,
            updated_at=now,
        ))
        logger.info(f"Старт программы {lesson.program_id}: user={snapshot.user_id}")

    progress = snapshot.get_lesson_progress(lesson.id)
    if progress is None:
        progress = LessonProgress(
            id=None,
            user_id=snapshot.user_id,
            lesson_id=lesson.id,
            status=LessonStatus.AVAILABLE.value,
            unlocked_at=now,
            expires_at=now + hours(lesson.expires_in_hours),
            completed_at=None,
            updated_at=now,
        )
        snapshot.upsert_lesson_progress(progress)
        logger.info(f"Урок {lesson.id} начат: user={snapshot.user_id}")

    return progress


def complete_lesson(snapshot: ProgressSnapshot, lesson: Lesson, now: datetime):
    """Завершить урок и открыть следующий (или закрыть программу)"""
    progress = snapshot.get_lesson_progress(lesson.id)
    if progress is None:
        raise NotStarted()
    if progress.status == LessonStatus.DONE:
        return
    if progress.status != LessonStatus.AVAILABLE:
        raise NotAvailable()

    program_progress = snapshot.get_program_progress()
    if program_progress is None:
        raise NotFound("Прогресс программы не найден")

    progress.status = LessonStatus.DONE.value
    progress.completed_at = now
    progress.updated_at = now
    snapshot.upsert_lesson_progress(progress)

    program_progress.last_lesson_id = lesson.id
    program_progress.updated_at = now

    chain = snapshot.chain()
    if chain and chain[-1].id == lesson.id:
        # COMPLETED/FAILED не перезаписываются до перезапуска
        if program_progress.status == ProgramStatus.IN_PROGRESS:
            program_progress.status = ProgramStatus.COMPLETED.value
            program_progress.finished_at = now
            logger.info(
                f"Программа {lesson.program_id} пройдена: user={snapshot.user_id}"
            )
        snapshot.upsert_program_progress(program_progress)
        return

    snapshot.upsert_program_progress(program_progress)
    # Проваленный спринт остаётся FAILED, следующий урок всё равно планируется
    unlock_next(snapshot, lesson, now)


def unlock_next(
    snapshot: ProgressSnapshot,
    current_lesson: Lesson,
    now: datetime
) -> Optional[LessonProgress]:
    """
    Запланировать открытие следующего урока цепочки.

    unlocked_at = now + задержка, expires_at = unlocked_at + окно.
    Нулевая задержка открывает урок сразу, таймер стартует от now.
    Завершённые и сгоревшие строки не трогаем; открытый урок не закрываем.
    """
    chain = snapshot.chain()
    index = next(
        (i for i, lesson in enumerate(chain) if lesson.id == current_lesson.id),
        None
    )
    if index is None or index == len(chain) - 1:
        return None

    next_lesson = chain[index + 1]
    delay = next_lesson.delay_hours_from_previous
    if delay == 0:
        status = LessonStatus.AVAILABLE.value
        unlocked_at = now
    else:
        status = LessonStatus.LOCKED.value
        unlocked_at = now + hours(delay)
    expires_at = unlocked_at + hours(next_lesson.expires_in_hours)

    progress = snapshot.get_lesson_progress(next_lesson.id)
    if progress is None:
        progress = LessonProgress(
            id=None,
            user_id=snapshot.user_id,
            lesson_id=next_lesson.id,
            status=status,
            unlocked_at=unlocked_at,
            expires_at=expires_at,
            completed_at=None,
            updated_at=now,
        )
    elif progress.status in TERMINAL_LESSON_STATUSES:
        return progress
    elif progress.status == LessonStatus.AVAILABLE and status == LessonStatus.LOCKED:
        return progress
    else:
        progress.status = status
        progress.unlocked_at = unlocked_at
        progress.expires_at = expires_at
        progress.updated_at = now

    snapshot.upsert_lesson_progress(progress)
    logger.info(
        f"Урок {next_lesson.id} -> {status} с {unlocked_at.isoformat()}: user={snapshot.user_id}"
    )
    return progress


def restart_program(snapshot: ProgressSnapshot):
    """Удалить весь прогресс пользователя по программе"""
    snapshot.clear()
    logger.info(f"Программа {snapshot.program_id} перезапущена: user={snapshot.user_id}")


def build_payload(
    snapshot: ProgressSnapshot,
    program: Program,
    is_paid: bool,
    now: datetime,
    upsell: Optional[UpsellSettings] = None
) -> ProgramPayload:
    """Обновить состояния по времени и собрать выдачу для пользователя"""
    refresh_states(snapshot, now)
    return project(snapshot, program, is_paid, upsell)



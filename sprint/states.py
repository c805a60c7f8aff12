"""
Статусы уроков, программ и видимости
"""

from enum import Enum


class Visibility(str, Enum):
    """Видимость урока"""

    FREE = "FREE"          # Доступен всем
    PAID = "PAID"          # Только для участников платного канала
    ARCHIVED = "ARCHIVED"  # Скрыт из всех пользовательских расчётов


class LessonStatus(str, Enum):
    """Статус урока для конкретного пользователя"""

    LOCKED = "LOCKED"        # Ещё не открыт (ждёт задержку)
    AVAILABLE = "AVAILABLE"  # Открыт, идёт таймер
    EXPIRED = "EXPIRED"      # Сгорел — дедлайн пропущен
    DONE = "DONE"            # Пройден


class ProgramStatus(str, Enum):
    """Статус прохождения программы"""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# Программа без строки прогресса (пользователь ещё не начинал)
NOT_STARTED = "NOT_STARTED"

TERMINAL_LESSON_STATUSES = (LessonStatus.DONE, LessonStatus.EXPIRED)

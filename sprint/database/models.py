"""
Модели данных (dataclasses)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Program:
    """Программа (спринт)"""
    id: int
    name: str
    description: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


@dataclass
class Lesson:
    """Урок программы"""
    id: int
    program_id: int
    order_index: int
    title: str
    description: str
    video_url: str
    homework_text: str
    visibility: str  # FREE, PAID, ARCHIVED
    delay_hours_from_previous: int
    expires_in_hours: int
    created_at: datetime
    updated_at: datetime


@dataclass
class User:
    """Пользователь бота"""
    tg_id: int
    username: Optional[str]
    full_name: Optional[str]
    is_paid: bool
    created_at: datetime
    updated_at: datetime


@dataclass
class ProgramProgress:
    """Прогресс пользователя по программе"""
    id: Optional[int]
    user_id: int
    program_id: int
    status: str  # IN_PROGRESS, COMPLETED, FAILED
    started_at: datetime
    finished_at: Optional[datetime]
    last_lesson_id: Optional[int]
    updated_at: datetime


@dataclass
class LessonProgress:
    """Прогресс пользователя по уроку"""
    id: Optional[int]
    user_id: int
    lesson_id: int
    status: str  # LOCKED, AVAILABLE, EXPIRED, DONE
    unlocked_at: Optional[datetime]
    expires_at: Optional[datetime]
    completed_at: Optional[datetime]
    updated_at: datetime


@dataclass
class UpsellSettings:
    """Апселл для неоплаченных пользователей"""
    id: int
    title: str
    text: str
    button_label: str
    button_url: str
    updated_at: datetime

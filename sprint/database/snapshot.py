"""
Снимок прогресса пользователя по одной программе.

Единица работы для движка прогресса: queries.transact загружает снимок,
движок меняет его только через методы ниже, затем queries сохраняет
изменённые строки в той же транзакции.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from sprint.database.models import Lesson, LessonProgress, ProgramProgress
from sprint.states import Visibility


def lesson_chain(lessons: List[Lesson]) -> List[Lesson]:
    """Неархивные уроки, упорядоченные по order_index"""
    return sorted(
        (lesson for lesson in lessons if lesson.visibility != Visibility.ARCHIVED),
        key=lambda lesson: lesson.order_index
    )


@dataclass
class ProgressSnapshot:
    """Строки прогресса пользователя по программе + уроки программы"""
    user_id: int
    program_id: int
    lessons: List[Lesson] = field(default_factory=list)
    program_progress: Optional[ProgramProgress] = None
    lesson_progress: Dict[int, LessonProgress] = field(default_factory=dict)

    # Учёт изменений для сохранения
    restarted: bool = False
    program_dirty: bool = False
    dirty_lessons: Set[int] = field(default_factory=set)

    # --- Чтение ---

    def chain(self) -> List[Lesson]:
        return lesson_chain(self.lessons)

    def get_program_progress(self) -> Optional[ProgramProgress]:
        return self.program_progress

    def get_lesson_progress(self, lesson_id: int) -> Optional[LessonProgress]:
        """Строка прогресса урока или None, если строки ещё нет"""
        return self.lesson_progress.get(lesson_id)

    # --- Запись ---

    def upsert_program_progress(self, record: ProgramProgress):
        self.program_progress = record
        self.program_dirty = True

    def upsert_lesson_progress(self, record: LessonProgress):
        self.lesson_progress[record.lesson_id] = record
        self.dirty_lessons.add(record.lesson_id)

    def clear(self):
        """Удалить весь прогресс пользователя по программе"""
        self.program_progress = None
        self.lesson_progress.clear()
        self.program_dirty = False
        self.dirty_lessons.clear()
        self.restarted = True

    @property
    def changed(self) -> bool:
        return self.restarted or self.program_dirty or bool(self.dirty_lessons)

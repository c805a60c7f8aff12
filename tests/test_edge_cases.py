"""
Тесты граничных условий (Edge Cases)

Проверяем редкие сценарии и потенциальные проблемы.
"""

import pytest

pytestmark = pytest.mark.edge

from datetime import timedelta

from sprint.database.models import LessonProgress, ProgramProgress
from sprint.database.snapshot import ProgressSnapshot
from sprint.services import progression
from sprint.states import NOT_STARTED, LessonStatus, ProgramStatus

USER_ID = 111111111
PROGRAM_ID = 1


def lesson_row(lesson_id, status, unlocked_at, expires_at, completed_at=None):
    return LessonProgress(
        id=None,
        user_id=USER_ID,
        lesson_id=lesson_id,
        status=status,
        unlocked_at=unlocked_at,
        expires_at=expires_at,
        completed_at=completed_at,
        updated_at=unlocked_at,
    )


def program_row(status, started_at):
    return ProgramProgress(
        id=1,
        user_id=USER_ID,
        program_id=PROGRAM_ID,
        status=status,
        started_at=started_at,
        finished_at=None,
        last_lesson_id=None,
        updated_at=started_at,
    )


# ============================================
# Edge Cases: Time Boundaries
# ============================================

def test_edge_expires_exactly_now_is_still_available(sprint_lessons, t0):
    """
    Edge Case: дедлайн ровно сейчас — урок ещё можно пройти
    """
    first = sprint_lessons[0]
    snapshot = ProgressSnapshot(
        user_id=USER_ID,
        program_id=PROGRAM_ID,
        lessons=sprint_lessons,
        program_progress=program_row(ProgramStatus.IN_PROGRESS.value, t0),
        lesson_progress={first.id: lesson_row(first.id, "AVAILABLE", t0, t0 + timedelta(hours=48))},
    )

    deadline = t0 + timedelta(hours=48)
    assert progression.refresh_states(snapshot, deadline) is False
    assert snapshot.get_lesson_progress(first.id).status == LessonStatus.AVAILABLE

    progression.complete_lesson(snapshot, first, deadline)
    assert snapshot.get_lesson_progress(first.id).status == LessonStatus.DONE


def test_edge_one_microsecond_after_deadline_expires(sprint_lessons, t0):
    """
    Edge Case: дедлайн прошёл на 1 микросекунду — урок сгорел
    """
    first = sprint_lessons[0]
    snapshot = ProgressSnapshot(
        user_id=USER_ID,
        program_id=PROGRAM_ID,
        lessons=sprint_lessons,
        program_progress=program_row(ProgramStatus.IN_PROGRESS.value, t0),
        lesson_progress={first.id: lesson_row(first.id, "AVAILABLE", t0, t0 + timedelta(hours=48))},
    )

    now = t0 + timedelta(hours=48, microseconds=1)
    assert progression.refresh_states(snapshot, now) is True
    assert snapshot.get_lesson_progress(first.id).status == LessonStatus.EXPIRED
    assert snapshot.get_program_progress().status == ProgramStatus.FAILED


def test_edge_unlock_time_exactly_now_opens_lesson(sprint_lessons, t0):
    """
    Edge Case: unlocked_at == now — урок открывается
    """
    second = sprint_lessons[1]
    unlock_at = t0 + timedelta(hours=12)
    snapshot = ProgressSnapshot(
        user_id=USER_ID,
        program_id=PROGRAM_ID,
        lessons=sprint_lessons,
        lesson_progress={second.id: lesson_row(second.id, "LOCKED", unlock_at, unlock_at + timedelta(hours=48))},
    )

    progression.refresh_states(snapshot, unlock_at - timedelta(microseconds=1))
    assert snapshot.get_lesson_progress(second.id).status == LessonStatus.LOCKED

    progression.refresh_states(snapshot, unlock_at)
    assert snapshot.get_lesson_progress(second.id).status == LessonStatus.AVAILABLE


def test_edge_zero_hour_window_expires_right_after_unlock(make_lesson, t0):
    """
    Edge Case: окно 0 часов — урок доступен только в момент открытия
    """
    lessons = [make_lesson(1, 1), make_lesson(2, 2, delay=0, expires=0)]
    snapshot = ProgressSnapshot(user_id=USER_ID, program_id=PROGRAM_ID, lessons=lessons)

    progression.start_lesson(snapshot, lessons[0], t0)
    progression.complete_lesson(snapshot, lessons[0], t0)

    row = snapshot.get_lesson_progress(2)
    assert row.unlocked_at == row.expires_at == t0

    progression.refresh_states(snapshot, t0 + timedelta(seconds=1))
    assert row.status == LessonStatus.EXPIRED


def test_edge_timers_run_from_completion_not_from_start(snapshot, sprint_lessons, t0):
    """
    Edge Case: урок 1 завершён поздно — таймер урока 2 считается от завершения
    """
    first = sprint_lessons[0]
    progression.start_lesson(snapshot, first, t0)

    late = t0 + timedelta(hours=47, minutes=59)
    progression.complete_lesson(snapshot, first, late)

    row = snapshot.get_lesson_progress(sprint_lessons[1].id)
    assert row.unlocked_at == late + timedelta(hours=12)
    assert row.expires_at == late + timedelta(hours=60)


# ============================================
# Edge Cases: Existing rows for next lesson
# ============================================

def test_edge_unlock_next_keeps_done_row(snapshot, sprint_lessons, t0):
    """
    Edge Case: следующий урок уже пройден — строку не трогаем
    """
    first, second = sprint_lessons
    done = lesson_row(second.id, "DONE", t0, t0 + timedelta(hours=48), completed_at=t0)
    snapshot.lesson_progress[second.id] = done

    result = progression.unlock_next(snapshot, first, t0 + timedelta(hours=5))

    assert result is done
    assert done.status == LessonStatus.DONE
    assert done.unlocked_at == t0
    assert second.id not in snapshot.dirty_lessons


def test_edge_unlock_next_keeps_expired_row(snapshot, sprint_lessons, t0):
    """
    Edge Case: следующий урок сгорел — повторное открытие не воскрешает его
    """
    first, second = sprint_lessons
    expired = lesson_row(second.id, "EXPIRED", t0, t0 + timedelta(hours=1))
    snapshot.lesson_progress[second.id] = expired

    progression.unlock_next(snapshot, first, t0 + timedelta(hours=5))

    assert expired.status == LessonStatus.EXPIRED
    assert second.id not in snapshot.dirty_lessons


def test_edge_unlock_next_does_not_relock_available_row(snapshot, sprint_lessons, t0):
    """
    Edge Case: следующий урок уже открыт, а у него задержка — не закрываем обратно
    """
    first, second = sprint_lessons
    available = lesson_row(second.id, "AVAILABLE", t0, t0 + timedelta(hours=48))
    snapshot.lesson_progress[second.id] = available

    progression.unlock_next(snapshot, first, t0 + timedelta(hours=5))

    assert available.status == LessonStatus.AVAILABLE
    assert available.unlocked_at == t0
    assert second.id not in snapshot.dirty_lessons


def test_edge_unlock_next_recomputes_locked_row(snapshot, sprint_lessons, t0):
    """
    Edge Case: строка LOCKED осталась от прошлой попытки — расписание пересчитывается
    """
    first, second = sprint_lessons
    stale = lesson_row(second.id, "LOCKED", t0 + timedelta(days=30), t0 + timedelta(days=32))
    snapshot.lesson_progress[second.id] = stale

    now = t0 + timedelta(hours=2)
    progression.unlock_next(snapshot, first, now)

    row = snapshot.get_lesson_progress(second.id)
    assert row.status == LessonStatus.LOCKED
    assert row.unlocked_at == now + timedelta(hours=12)
    assert row.expires_at == now + timedelta(hours=60)
    assert second.id in snapshot.dirty_lessons


def test_edge_unlock_next_zero_delay_refreshes_available_row(chain_snapshot, chain_lessons, t0):
    """
    Edge Case: нулевая задержка и уже открытый урок — таймер стартует заново от now
    """
    first, second = chain_lessons[:2]
    chain_snapshot.lesson_progress[second.id] = lesson_row(second.id, "AVAILABLE", t0, t0 + timedelta(hours=24))

    now = t0 + timedelta(hours=3)
    progression.unlock_next(chain_snapshot, first, now)

    row = chain_snapshot.get_lesson_progress(second.id)
    assert row.status == LessonStatus.AVAILABLE
    assert row.unlocked_at == now
    assert row.expires_at == now + timedelta(hours=24)


# ============================================
# Edge Cases: Program state
# ============================================

def test_edge_failed_program_stays_failed_after_last_lesson(snapshot, sprint_lessons, t0):
    """
    Edge Case: программа уже провалена, но последний урок ещё открыт и пройден
    """
    second = sprint_lessons[1]
    snapshot.program_progress = program_row(ProgramStatus.FAILED.value, t0)
    snapshot.lesson_progress[second.id] = lesson_row(second.id, "AVAILABLE", t0, t0 + timedelta(hours=48))

    progression.complete_lesson(snapshot, second, t0 + timedelta(hours=1))

    assert snapshot.get_lesson_progress(second.id).status == LessonStatus.DONE
    assert snapshot.get_program_progress().status == ProgramStatus.FAILED
    assert snapshot.get_program_progress().finished_at is None


def test_edge_failed_program_still_schedules_next_lesson(chain_snapshot, chain_lessons, t0):
    """
    Edge Case: программа провалена, пройден промежуточный урок —
    статус остаётся FAILED, следующий урок планируется как обычно
    """
    first, second, third = chain_lessons[:3]
    chain_snapshot.program_progress = program_row(ProgramStatus.FAILED.value, t0)
    chain_snapshot.lesson_progress[first.id] = lesson_row(first.id, "EXPIRED", t0, t0 + timedelta(hours=1))
    chain_snapshot.lesson_progress[second.id] = lesson_row(second.id, "AVAILABLE", t0, t0 + timedelta(hours=24))

    now = t0 + timedelta(hours=2)
    progression.complete_lesson(chain_snapshot, second, now)

    assert chain_snapshot.get_lesson_progress(second.id).status == LessonStatus.DONE
    assert chain_snapshot.get_program_progress().status == ProgramStatus.FAILED
    assert chain_snapshot.get_program_progress().last_lesson_id == second.id

    row = chain_snapshot.get_lesson_progress(third.id)
    assert row.status == LessonStatus.LOCKED
    assert row.unlocked_at == now + timedelta(hours=6)
    assert chain_snapshot.get_lesson_progress(first.id).status == LessonStatus.EXPIRED


def test_edge_expired_row_without_program_row(snapshot, sprint_lessons, t0):
    """
    Edge Case: строки программы нет — сгоревший урок не создаёт её
    """
    first = sprint_lessons[0]
    snapshot.lesson_progress[first.id] = lesson_row(first.id, "AVAILABLE", t0, t0 + timedelta(hours=1))

    progression.refresh_states(snapshot, t0 + timedelta(hours=2))

    assert snapshot.get_lesson_progress(first.id).status == LessonStatus.EXPIRED
    assert snapshot.get_program_progress() is None
    assert snapshot.program_dirty is False


def test_edge_refresh_ignores_rows_of_other_programs(snapshot, t0):
    """
    Edge Case: строка прогресса урока чужой программы не обновляется
    """
    foreign = lesson_row(999, "LOCKED", t0, t0 + timedelta(hours=1))
    snapshot.lesson_progress[999] = foreign

    assert progression.refresh_states(snapshot, t0 + timedelta(hours=5)) is False
    assert foreign.status == LessonStatus.LOCKED


def test_edge_program_without_lessons(program, t0):
    """
    Edge Case: у активной программы нет уроков
    """
    snapshot = ProgressSnapshot(user_id=USER_ID, program_id=PROGRAM_ID, lessons=[])

    payload = progression.build_payload(snapshot, program, True, t0)

    assert payload.lessons == []
    assert payload.total_lessons == 0
    assert payload.progress_status == NOT_STARTED


def test_edge_all_lessons_archived(make_lesson, program, t0):
    """
    Edge Case: все уроки в архиве — выдача пустая, но программа есть
    """
    lessons = [make_lesson(1, 1, visibility="ARCHIVED"), make_lesson(2, 2, visibility="ARCHIVED")]
    snapshot = ProgressSnapshot(user_id=USER_ID, program_id=PROGRAM_ID, lessons=lessons)

    payload = progression.build_payload(snapshot, program, True, t0)

    assert payload.program is program
    assert payload.lessons == []


def test_edge_archived_first_lesson_shifts_default_available(make_lesson, program, t0):
    """
    Edge Case: первый урок архивирован — доступным по умолчанию становится следующий
    """
    lessons = [
        make_lesson(1, 1, visibility="ARCHIVED"),
        make_lesson(2, 2),
        make_lesson(3, 3),
    ]
    snapshot = ProgressSnapshot(user_id=USER_ID, program_id=PROGRAM_ID, lessons=lessons)

    payload = progression.build_payload(snapshot, program, True, t0)

    assert [view.id for view in payload.lessons] == [2, 3]
    assert [view.user_status for view in payload.lessons] == [LessonStatus.AVAILABLE, LessonStatus.LOCKED]


def test_edge_unpaid_user_sees_first_paid_lesson_locked(make_lesson, program, t0):
    """
    Edge Case: первый урок платный — неоплаченный видит его закрытым даже без строк
    """
    lessons = [make_lesson(1, 1, visibility="PAID")]
    snapshot = ProgressSnapshot(user_id=USER_ID, program_id=PROGRAM_ID, lessons=lessons)

    payload = progression.build_payload(snapshot, program, False, t0)

    assert payload.lessons[0].user_status == LessonStatus.LOCKED
    assert payload.lessons[0].is_paid_locked is True

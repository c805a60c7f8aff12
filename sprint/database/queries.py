"""
SQL-запросы к базе данных
"""

from typing import Callable, List, Optional, TypeVar, Union

import asyncpg

from sprint.database.connection import get_pool
from sprint.database.models import (
    Lesson,
    LessonProgress,
    Program,
    ProgramProgress,
    UpsellSettings,
    User,
)
from sprint.database.snapshot import ProgressSnapshot
from sprint.errors import NotFound


T = TypeVar("T")


# ============================================
# Users
# ============================================

async def get_user(tg_id: int) -> Optional[User]:
    """Получить пользователя по Telegram ID"""
    pool = await get_pool()
    row = await pool.fetchrow(
        "SELECT * FROM users WHERE tg_id = $1",
        tg_id
    )
    if row:
        return User(**dict(row))
    return None


async def create_or_update_user(
    tg_id: int,
    username: str,
    full_name: str,
    is_paid: bool
) -> User:
    """Создать пользователя или обновить имя и флаг оплаты"""
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        INSERT INTO users (tg_id, username, full_name, is_paid)
        VALUES ($1, $2, $3, $4)
        ON CONFLICT (tg_id)
        DO UPDATE SET username = $2, full_name = $3, is_paid = $4, updated_at = NOW()
        RETURNING *
        """,
        tg_id, username, full_name, is_paid
    )
    return User(**dict(row))


async def update_user_paid_status(tg_id: int, is_paid: bool):
    """Обновить кэшированный флаг оплаты"""
    pool = await get_pool()
    await pool.execute(
        "UPDATE users SET is_paid = $1, updated_at = NOW() WHERE tg_id = $2",
        is_paid, tg_id
    )


# ============================================
# Programs
# ============================================

async def get_active_program() -> Optional[Program]:
    """Получить активную программу"""
    pool = await get_pool()
    row = await pool.fetchrow("SELECT * FROM programs WHERE is_active LIMIT 1")
    if row:
        return Program(**dict(row))
    return None


async def get_all_programs() -> List[dict]:
    """Все программы с количеством уроков"""
    pool = await get_pool()
    rows = await pool.fetch(
        """
        SELECT p.id, p.name, p.is_active, COUNT(l.id) AS lessons_count
        FROM programs p
        LEFT JOIN lessons l ON l.program_id = p.id
        GROUP BY p.id
        ORDER BY p.id
        """
    )
    return [dict(row) for row in rows]


async def create_program(name: str, description: str = "", is_active: bool = False) -> Program:
    """Создать программу (активная программа снимает флаг со всех остальных)"""
    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            if is_active:
                await conn.execute("UPDATE programs SET is_active = FALSE WHERE is_active")
            row = await conn.fetchrow(
                """
                INSERT INTO programs (name, description, is_active)
                VALUES ($1, $2, $3)
                RETURNING *
                """,
                name, description, is_active
            )
    return Program(**dict(row))


async def activate_program(program_id: int) -> Program:
    """Сделать программу активной, остальные — неактивными"""
    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            exists = await conn.fetchval(
                "SELECT EXISTS(SELECT 1 FROM programs WHERE id = $1)",
                program_id
            )
            if not exists:
                raise NotFound("Программа не найдена")
            await conn.execute(
                "UPDATE programs SET is_active = FALSE, updated_at = NOW() WHERE is_active AND id <> $1",
                program_id
            )
            row = await conn.fetchrow(
                "UPDATE programs SET is_active = TRUE, updated_at = NOW() WHERE id = $1 RETURNING *",
                program_id
            )
    return Program(**dict(row))


# ============================================
# Lessons
# ============================================

async def get_lesson(lesson_id: int) -> Optional[Lesson]:
    """Получить урок по ID"""
    pool = await get_pool()
    row = await pool.fetchrow(
        "SELECT * FROM lessons WHERE id = $1",
        lesson_id
    )
    if row:
        return Lesson(**dict(row))
    return None


async def get_program_lessons(program_id: int) -> List[Lesson]:
    """Все уроки программы (включая архивные) по порядку"""
    pool = await get_pool()
    rows = await pool.fetch(
        "SELECT * FROM lessons WHERE program_id = $1 ORDER BY order_index",
        program_id
    )
    return [Lesson(**dict(row)) for row in rows]


async def create_lesson(
    program_id: int,
    title: str,
    visibility: str,
    delay_hours_from_previous: int,
    expires_in_hours: int,
    description: str = "",
    video_url: str = "",
    homework_text: str = ""
) -> Lesson:
    """Добавить урок в конец цепочки программы"""
    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            # Блокируем программу, чтобы два урока не получили один order_index
            exists = await conn.fetchval(
                "SELECT id FROM programs WHERE id = $1 FOR UPDATE",
                program_id
            )
            if not exists:
                raise NotFound("Программа не найдена")
            row = await conn.fetchrow(
                """
                INSERT INTO lessons (
                    program_id, order_index, title, description, video_url, homework_text,
                    visibility, delay_hours_from_previous, expires_in_hours
                )
                VALUES (
                    $1,
                    (SELECT COALESCE(MAX(order_index), 0) + 1 FROM lessons WHERE program_id = $1),
                    $2, $3, $4, $5, $6, $7, $8
                )
                RETURNING *
                """,
                program_id, title, description, video_url, homework_text,
                visibility, delay_hours_from_previous, expires_in_hours
            )
    return Lesson(**dict(row))


async def set_lesson_visibility(lesson_id: int, visibility: str) -> Lesson:
    """Сменить видимость урока (FREE / PAID / ARCHIVED)"""
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        UPDATE lessons SET visibility = $2, updated_at = NOW()
        WHERE id = $1
        RETURNING *
        """,
        lesson_id, visibility
    )
    if not row:
        raise NotFound("Урок не найден")
    return Lesson(**dict(row))


async def move_lesson(lesson_id: int, direction: str) -> bool:
    """
    Поменять урок местами с соседним (direction: up / down).
    Возвращает False, если урок уже крайний.
    """
    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            lesson = await conn.fetchrow(
                "SELECT id, program_id, order_index FROM lessons WHERE id = $1 FOR UPDATE",
                lesson_id
            )
            if not lesson:
                raise NotFound("Урок не найден")

            if direction == "up":
                neighbour = await conn.fetchrow(
                    """
                    SELECT id, order_index FROM lessons
                    WHERE program_id = $1 AND order_index < $2
                    ORDER BY order_index DESC LIMIT 1
                    FOR UPDATE
                    """,
                    lesson["program_id"], lesson["order_index"]
                )
            else:
                neighbour = await conn.fetchrow(
                    """
                    SELECT id, order_index FROM lessons
                    WHERE program_id = $1 AND order_index > $2
                    ORDER BY order_index ASC LIMIT 1
                    FOR UPDATE
                    """,
                    lesson["program_id"], lesson["order_index"]
                )

            if not neighbour:
                return False

            # UNIQUE (program_id, order_index) отложен до COMMIT
            await conn.execute(
                "UPDATE lessons SET order_index = $2, updated_at = NOW() WHERE id = $1",
                lesson["id"], neighbour["order_index"]
            )
            await conn.execute(
                "UPDATE lessons SET order_index = $2, updated_at = NOW() WHERE id = $1",
                neighbour["id"], lesson["order_index"]
            )
    return True


# ============================================
# Upsell
# ============================================

async def get_upsell() -> Optional[UpsellSettings]:
    """Получить настройки апселла"""
    pool = await get_pool()
    row = await pool.fetchrow("SELECT * FROM upsell_settings ORDER BY id LIMIT 1")
    if row:
        return UpsellSettings(**dict(row))
    return None


async def save_upsell(title: str, text: str, button_label: str, button_url: str) -> UpsellSettings:
    """Сохранить апселл (единственная запись)"""
    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            row = await conn.fetchrow(
                """
                UPDATE upsell_settings
                SET title = $1, text = $2, button_label = $3, button_url = $4, updated_at = NOW()
                WHERE id = (SELECT id FROM upsell_settings ORDER BY id LIMIT 1)
                RETURNING *
                """,
                title, text, button_label, button_url
            )
            if not row:
                row = await conn.fetchrow(
                    """
                    INSERT INTO upsell_settings (title, text, button_label, button_url)
                    VALUES ($1, $2, $3, $4)
                    RETURNING *
                    """,
                    title, text, button_label, button_url
                )
    return UpsellSettings(**dict(row))


# ============================================
# Progress snapshot (Store)
# ============================================

async def _load_snapshot(
    conn: Union[asyncpg.Connection, asyncpg.Pool],
    user_id: int,
    program_id: int
) -> ProgressSnapshot:
    """Загрузить уроки программы и все строки прогресса пользователя по ней"""
    lesson_rows = await conn.fetch(
        "SELECT * FROM lessons WHERE program_id = $1 ORDER BY order_index",
        program_id
    )
    program_row = await conn.fetchrow(
        "SELECT * FROM user_program_progress WHERE user_id = $1 AND program_id = $2",
        user_id, program_id
    )
    progress_rows = await conn.fetch(
        """
        SELECT ulp.* FROM user_lesson_progress ulp
        INNER JOIN lessons l ON l.id = ulp.lesson_id
        WHERE ulp.user_id = $1 AND l.program_id = $2
        """,
        user_id, program_id
    )

    return ProgressSnapshot(
        user_id=user_id,
        program_id=program_id,
        lessons=[Lesson(**dict(row)) for row in lesson_rows],
        program_progress=ProgramProgress(**dict(program_row)) if program_row else None,
        lesson_progress={
            row["lesson_id"]: LessonProgress(**dict(row)) for row in progress_rows
        }
    )


async def _save_snapshot(conn: asyncpg.Connection, snapshot: ProgressSnapshot):
    """Записать изменённые строки снимка (вызывается внутри транзакции)"""
    if snapshot.restarted:
        await conn.execute(
            """
            DELETE FROM user_lesson_progress
            WHERE user_id = $1
              AND lesson_id IN (SELECT id FROM lessons WHERE program_id = $2)
            """,
            snapshot.user_id, snapshot.program_id
        )
        await conn.execute(
            "DELETE FROM user_program_progress WHERE user_id = $1 AND program_id = $2",
            snapshot.user_id, snapshot.program_id
        )

    record = snapshot.program_progress
    if snapshot.program_dirty and record:
        record.id = await conn.fetchval(
            """
            INSERT INTO user_program_progress
            (user_id, program_id, status, started_at, finished_at, last_lesson_id, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (user_id, program_id)
            DO UPDATE SET
                status = EXCLUDED.status,
                started_at = EXCLUDED.started_at,
                finished_at = EXCLUDED.finished_at,
                last_lesson_id = EXCLUDED.last_lesson_id,
                updated_at = EXCLUDED.updated_at
            RETURNING id
            """,
            record.user_id, record.program_id, record.status, record.started_at,
            record.finished_at, record.last_lesson_id, record.updated_at
        )

    for lesson_id in sorted(snapshot.dirty_lessons):
        progress = snapshot.lesson_progress[lesson_id]
        progress.id = await conn.fetchval(
            """
            INSERT INTO user_lesson_progress
            (user_id, lesson_id, status, unlocked_at, expires_at, completed_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (user_id, lesson_id)
            DO UPDATE SET
                status = EXCLUDED.status,
                unlocked_at = EXCLUDED.unlocked_at,
                expires_at = EXCLUDED.expires_at,
                completed_at = EXCLUDED.completed_at,
                updated_at = EXCLUDED.updated_at
            RETURNING id
            """,
            progress.user_id, progress.lesson_id, progress.status, progress.unlocked_at,
            progress.expires_at, progress.completed_at, progress.updated_at
        )

    snapshot.restarted = False
    snapshot.program_dirty = False
    snapshot.dirty_lessons.clear()


async def read_snapshot(user_id: int, program_id: int) -> ProgressSnapshot:
    """Снимок прогресса без блокировок (может отставать от идущей транзакции)"""
    pool = await get_pool()
    return await _load_snapshot(pool, user_id, program_id)


async def transact(
    user_id: int,
    program_id: int,
    fn: Callable[[ProgressSnapshot], T]
) -> T:
    """
    Атомарно применить fn к свежему снимку прогресса и сохранить изменения.

    Блокировка строки пользователя сериализует все изменения прогресса
    одного пользователя. Исключение из fn откатывает транзакцию целиком.
    """
    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            locked = await conn.fetchval(
                "SELECT tg_id FROM users WHERE tg_id = $1 FOR UPDATE",
                user_id
            )
            if locked is None:
                raise NotFound("Пользователь не найден")

            snapshot = await _load_snapshot(conn, user_id, program_id)
            result = fn(snapshot)
            if snapshot.changed:
                await _save_snapshot(conn, snapshot)
    return result


# ============================================
# Admin / Stats
# ============================================

async def compute_stats() -> dict:
    """Сводка: пользователи, оплатившие, завершившие и проваленные прохождения"""
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        SELECT
            (SELECT COUNT(*) FROM users) AS users,
            (SELECT COUNT(*) FROM users WHERE is_paid) AS paid,
            (SELECT COUNT(*) FROM user_program_progress WHERE status = 'COMPLETED') AS completed,
            (SELECT COUNT(*) FROM user_program_progress WHERE status = 'FAILED') AS failed
        """
    )
    return dict(row)


async def count_entities() -> dict:
    """Количество программ, уроков и пользователей (для health check)"""
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        SELECT
            (SELECT COUNT(*) FROM programs) AS programs,
            (SELECT COUNT(*) FROM lessons) AS lessons,
            (SELECT COUNT(*) FROM users) AS users
        """
    )
    return dict(row)

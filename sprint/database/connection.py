"""
Пул соединений PostgreSQL
"""

import logging
from typing import Optional

import asyncpg

from sprint.config import config

logger = logging.getLogger(__name__)


# Глобальный пул соединений
_pool: Optional[asyncpg.Pool] = None


async def get_pool(dsn: Optional[str] = None) -> asyncpg.Pool:
    """
    Получить пул соединений (создаёт при первом вызове).
    dsn переопределяет DATABASE_URL — используется тестами и скриптами.
    """
    global _pool

    if _pool is None:
        _pool = await asyncpg.create_pool(
            dsn or config.DATABASE_URL,
            min_size=2,
            max_size=10,
            # Дедлайны уроков храним и сравниваем в UTC
            server_settings={"timezone": "UTC"}
        )
        logger.info("Пул соединений PostgreSQL создан")

    return _pool


async def close_pool():
    """Закрыть пул соединений"""
    global _pool

    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Пул соединений PostgreSQL закрыт")

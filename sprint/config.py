"""
Конфигурация бота — загрузка переменных окружения
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Загружаем .env из корня проекта
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


class Config:
    """Конфигурация приложения"""

    # --- Telegram ---
    BOT_TOKEN: str = os.getenv("BOT_TOKEN", "")
    # Платный канал: участник канала = оплаченный доступ
    PAID_CHANNEL_ID: str = os.getenv("PAID_CHANNEL_ID", "")
    ADMIN_IDS: list[int] = [
        int(id_.strip())
        for id_ in os.getenv("ADMIN_IDS", "").split(",")
        if id_.strip()
    ]

    # --- Database ---
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    # --- Settings ---
    TIMEZONE: str = os.getenv("TIMEZONE", "Asia/Almaty")
    DEFAULT_EXPIRES_IN_HOURS: int = int(os.getenv("DEFAULT_EXPIRES_IN_HOURS", "48"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls) -> list[str]:
        """Проверка обязательных переменных"""
        errors = []

        if not cls.BOT_TOKEN:
            errors.append("BOT_TOKEN не задан")
        if not cls.DATABASE_URL:
            errors.append("DATABASE_URL не задан")
        if not cls.PAID_CHANNEL_ID:
            errors.append("PAID_CHANNEL_ID не задан")
        if not cls.ADMIN_IDS:
            errors.append("ADMIN_IDS не задан")

        return errors


# Синглтон конфигурации
config = Config()

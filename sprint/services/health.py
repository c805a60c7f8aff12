"""
Проверка работоспособности: конфигурация и база данных
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sprint.config import config
from sprint.database import queries as db

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    ok: bool
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthReport:
    status: str  # ok / degraded
    timestamp: datetime
    checks: Dict[str, CheckResult]


def check_env() -> CheckResult:
    errors = config.validate()
    if errors:
        return CheckResult(False, "; ".join(errors))
    return CheckResult(True)


async def check_database() -> CheckResult:
    try:
        counts = await db.count_entities()
    except Exception as e:
        logger.error(f"Health check: база недоступна: {e}")
        return CheckResult(False, "Не удалось прочитать базу данных", {"error": str(e)})
    return CheckResult(True, details=counts)


async def run_health_check() -> HealthReport:
    """Собрать отчёт о состоянии бота"""
    checks = {
        "env": check_env(),
        "database": await check_database(),
    }
    has_failure = any(not check.ok for check in checks.values())
    return HealthReport(
        status="degraded" if has_failure else "ok",
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )

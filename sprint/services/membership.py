"""
Проверка платного доступа — участник платного канала = оплаченный доступ
"""

import logging
from dataclasses import dataclass
from typing import Optional

from telegram import Bot
from telegram.constants import ChatMemberStatus
from telegram.error import TelegramError

from sprint.config import config
from sprint.database import queries as db
from sprint.database.models import Lesson, User
from sprint.errors import AccessDenied
from sprint.states import Visibility

logger = logging.getLogger(__name__)

# Статусы, при которых пользователь не состоит в канале
NOT_MEMBER_STATUSES = (ChatMemberStatus.LEFT, ChatMemberStatus.BANNED)


@dataclass
class MembershipCheckResult:
    """Результат проверки подписки"""
    is_paid: bool
    reason: Optional[str] = None


async def check_membership(bot: Bot, tg_id: int) -> MembershipCheckResult:
    """Проверить, состоит ли пользователь в платном канале (никогда не бросает)"""
    if not config.PAID_CHANNEL_ID:
        return MembershipCheckResult(False, "Отсутствует PAID_CHANNEL_ID")

    try:
        member = await bot.get_chat_member(chat_id=config.PAID_CHANNEL_ID, user_id=tg_id)
    except TelegramError as e:
        logger.warning(f"Не удалось проверить подписку {tg_id}: {e}")
        return MembershipCheckResult(False, "Bot API недоступен")

    return MembershipCheckResult(member.status not in NOT_MEMBER_STATUSES)


async def refresh_paid_status(bot: Bot, user: User) -> MembershipCheckResult:
    """Перепроверить подписку и обновить кэшированный флаг пользователя"""
    membership = await check_membership(bot, user.tg_id)
    if membership.is_paid != user.is_paid:
        await db.update_user_paid_status(user.tg_id, membership.is_paid)
        logger.info(f"Статус оплаты {user.tg_id}: {user.is_paid} -> {membership.is_paid}")
        user.is_paid = membership.is_paid
    return membership


async def ensure_lesson_access(bot: Bot, user: User, lesson: Lesson):
    """
    Проверить доступ к уроку. Бесплатные уроки открыты всем;
    для платных — проверка канала с обновлением флага в обе стороны.
    """
    if lesson.visibility != Visibility.PAID:
        return

    membership = await refresh_paid_status(bot, user)
    if not membership.is_paid:
        raise AccessDenied(membership.reason or AccessDenied.default_message)

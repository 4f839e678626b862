# ============================================================
# ADMIN SERVICE - ПРОВЕРКА ПРАВ И ПАРСИНГ /reset_user
# ============================================================

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import Message

logger = logging.getLogger(__name__)

ADMIN_STATUSES = ("creator", "administrator")


@dataclass
class ResetTarget:
    """
    Цель команды /reset_user.

    Attributes:
        telegram_id: Telegram ID пользователя (строкой, как в users.telegram_id)
        target_type: 'reply' или 'user_id'
    """
    telegram_id: str
    target_type: str


async def is_admin(bot: Bot, chat_id: int, user_id: int, admin_ids: Iterable[int] = ()) -> bool:
    """
    Проверка прав администратора.

    Пользователи из ADMIN_IDS - админы всегда, остальные - если они
    creator/administrator текущего чата.
    """
    if user_id in set(admin_ids):
        return True
    try:
        member = await bot.get_chat_member(chat_id, user_id)
        return member.status in ADMIN_STATUSES
    except TelegramAPIError as e:
        logger.warning(f"⚠️ [ADMIN] Ошибка проверки прав: chat={chat_id}, user={user_id}: {e}")
        return False


def parse_reset_target(message: Message) -> Optional[ResetTarget]:
    """
    Цель сброса: автор сообщения, на которое ответили, либо ID из аргумента.

    Returns:
        ResetTarget или None если цель не указана (нужно показать usage)
    """
    reply = message.reply_to_message
    if reply is not None and reply.from_user is not None:
        return ResetTarget(telegram_id=str(reply.from_user.id), target_type="reply")

    parts = (message.text or "").split()
    if len(parts) < 2:
        return None

    candidate = parts[1].strip()
    if not candidate.isdigit():
        return None
    return ResetTarget(telegram_id=candidate, target_type="user_id")

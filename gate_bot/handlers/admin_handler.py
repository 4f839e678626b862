# ============================================================
# АДМИН-КОМАНДЫ: /stats И /reset_user
# ============================================================
# Использование:
#   /stats                  - статистика капчи
#   /reset_user 123456789   - сброс по ID пользователя
#   /reset_user (реплаем)   - сброс автора сообщения
#
# Доступны админам из ADMIN_IDS и администраторам текущего чата.
# ============================================================

import logging
from typing import Optional

from aiogram import Bot, Router
from aiogram.filters import Command
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from gate_bot.config import ADMIN_IDS
from gate_bot.database.queries import reset_user
from gate_bot.services.admin_service import is_admin, parse_reset_target
from gate_bot.services.captcha import PendingSessionRegistry
from gate_bot.services.stats_service import collect_stats, format_stats
from gate_bot.utils.journal import ChannelJournal


logger = logging.getLogger(__name__)

admin_router = Router(name="admin")

ADMIN_ONLY_TEXT = "⛔ This command is only available to administrators."
RESET_USAGE_TEXT = "Usage: /reset_user <user_id> or reply to a user's message"


@admin_router.message(Command("stats"))
async def stats_command(message: Message, bot: Bot, session: AsyncSession) -> None:
    if message.from_user is None:
        return
    if not await is_admin(bot, message.chat.id, message.from_user.id, ADMIN_IDS):
        await message.answer(ADMIN_ONLY_TEXT)
        return

    stats = await collect_stats(session)
    await message.answer(format_stats(stats), parse_mode="HTML")


@admin_router.message(Command("reset_user"))
async def reset_user_command(
    message: Message,
    bot: Bot,
    session: AsyncSession,
    pending_sessions: PendingSessionRegistry,
    journal: Optional[ChannelJournal] = None,
) -> None:
    if message.from_user is None:
        return
    if not await is_admin(bot, message.chat.id, message.from_user.id, ADMIN_IDS):
        await message.answer(ADMIN_ONLY_TEXT)
        return

    target = parse_reset_target(message)
    if target is None:
        await message.answer(RESET_USAGE_TEXT)
        return

    found = await reset_user(session, target.telegram_id)
    # Активная капча пользователя больше не принимается как ответ
    pending_sessions.discard(int(target.telegram_id))

    if not found:
        await message.answer(f"❓ User {target.telegram_id} was not found.")
        return

    logger.info(
        f"🔄 [RESET_USER] Админ {message.from_user.id} сбросил пользователя "
        f"{target.telegram_id} ({target.target_type})"
    )
    await message.answer(
        f"🔄 User {target.telegram_id} has been reset and will need to complete CAPTCHA again."
    )

    if journal is not None:
        journal.log_user_reset(message.from_user, target.telegram_id)

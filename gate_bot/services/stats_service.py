# ============================================================
# СЕРВИС СТАТИСТИКИ КАПЧИ
# ============================================================
# Данные для команды /stats: пользователи, верифицированные,
# выдачи капчи и заблокированные сообщения за последние сутки.
# ============================================================

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gate_bot.database.models import MessageLog, User, utcnow

logger = logging.getLogger(__name__)

BLOCKED_WINDOW = timedelta(days=1)


@dataclass(frozen=True)
class GateStats:
    total_users: int
    verified_users: int
    total_attempts: int
    blocked_last_24h: int


async def collect_stats(session: AsyncSession, now: Optional[datetime] = None) -> GateStats:
    now = now or utcnow()

    users_row = (
        await session.execute(
            select(
                func.count(User.id),
                func.coalesce(func.sum(case((User.captcha_passed.is_(True), 1), else_=0)), 0),
                func.coalesce(func.sum(User.captcha_attempts), 0),
            ).where(User.is_deleted.is_(False))
        )
    ).one()

    blocked = (
        await session.execute(
            select(func.count(MessageLog.id)).where(
                MessageLog.blocked.is_(True),
                MessageLog.created_at > now - BLOCKED_WINDOW,
            )
        )
    ).scalar_one()

    stats = GateStats(
        total_users=int(users_row[0]),
        verified_users=int(users_row[1]),
        total_attempts=int(users_row[2]),
        blocked_last_24h=int(blocked),
    )
    logger.info(f"📊 [STATS] {stats}")
    return stats


def format_stats(stats: GateStats) -> str:
    return (
        "📊 <b>Bot Statistics</b>\n\n"
        f"👥 Total users: {stats.total_users}\n"
        f"✅ Verified users: {stats.verified_users}\n"
        f"🔄 Total CAPTCHA attempts: {stats.total_attempts}\n"
        f"🚫 Messages blocked (24h): {stats.blocked_last_24h}"
    )

# gate_bot/services/captcha/session_store.py
"""
Хранилище сессий капчи поверх SQLAlchemy.

Каждая операция открывает свою короткую транзакцию из общей фабрики сессий.
Защита от повторного использования сессии держится на условии
verified = false в WHERE у UPDATE: из двух параллельных подтверждений
одной сессии строку обновит только одно.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from gate_bot.database.models import CaptchaSession


class CaptchaSessionStore:
    def __init__(self, sessionmaker: async_sessionmaker, logger: Optional[logging.Logger] = None):
        self._sessionmaker = sessionmaker
        self._logger = logger or logging.getLogger(__name__)

    async def create(
        self,
        session_id: str,
        user_id: str,
        captcha_text: str,
        expires_at: datetime,
    ) -> CaptchaSession:
        record = CaptchaSession(
            id=session_id,
            user_id=user_id,
            captcha_text=captcha_text,
            expires_at=expires_at,
            verified=False,
        )
        async with self._sessionmaker() as session:
            session.add(record)
            await session.commit()

        self._logger.debug(
            f"💾 [CAPTCHA_STORE] Сессия сохранена: id={session_id}, "
            f"user_id={user_id}, expires_at={expires_at.isoformat()}"
        )
        return record

    async def find_active(self, session_id: str, now: datetime) -> Optional[CaptchaSession]:
        """Сессия с этим id, ещё не подтверждённая и не истёкшая, иначе None."""
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(CaptchaSession)
                .where(
                    CaptchaSession.id == session_id,
                    CaptchaSession.verified.is_(False),
                    CaptchaSession.expires_at > now,
                    CaptchaSession.is_deleted.is_(False),
                )
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def mark_verified(self, session_id: str, now: datetime) -> bool:
        """
        Переводит verified false -> true.

        Returns:
            True если именно этот вызов перевёл сессию в verified
        """
        async with self._sessionmaker() as session:
            result = await session.execute(
                update(CaptchaSession)
                .where(
                    CaptchaSession.id == session_id,
                    CaptchaSession.verified.is_(False),
                    CaptchaSession.expires_at > now,
                )
                .values(verified=True, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        flipped = result.rowcount == 1
        if not flipped:
            self._logger.warning(
                f"⚠️ [CAPTCHA_STORE] Сессия {session_id} уже подтверждена или истекла к моменту UPDATE"
            )
        return flipped

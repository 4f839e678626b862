# gate_bot/services/captcha/verification_service.py
"""
Сервис верификации капчи - проверка ответа по живой сессии.

Неверный ответ и истёкшая сессия - обычный результат, а не исключение.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from gate_bot.database.models import utcnow
from gate_bot.services.captcha.session_store import CaptchaSessionStore


REASON_VERIFIED = "verified"
REASON_INVALID_OR_EXPIRED = "invalid or expired"
REASON_INCORRECT = "incorrect answer"


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    reason: str


def normalize_answer(answer: str) -> str:
    return answer.upper()


class CaptchaVerifier:
    def __init__(
        self,
        store: CaptchaSessionStore,
        clock: Callable[[], datetime] = utcnow,
        logger: Optional[logging.Logger] = None,
    ):
        self._store = store
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    async def verify(self, session_id: str, submitted_text: str) -> VerificationResult:
        """
        Проверяет ответ пользователя.

        Args:
            session_id: ID сессии капчи
            submitted_text: Текст, присланный пользователем

        Returns:
            VerificationResult(success, reason)
        """
        now = self._clock()
        self._logger.info(
            f"🔐 [VERIFY_ANSWER] Проверка: session_id={session_id}, длина ввода={len(submitted_text)}"
        )

        session = await self._store.find_active(session_id, now)
        if session is None:
            self._logger.warning(f"⚠️ [VERIFY_ANSWER] Сессия не найдена или истекла: {session_id}")
            return VerificationResult(success=False, reason=REASON_INVALID_OR_EXPIRED)

        if normalize_answer(session.captcha_text) != normalize_answer(submitted_text):
            self._logger.warning(
                f"❌ [VERIFY_ANSWER] Неверный ответ: session_id={session_id}, user_id={session.user_id}"
            )
            return VerificationResult(success=False, reason=REASON_INCORRECT)

        # Параллельный запрос мог подтвердить сессию между SELECT и UPDATE
        if not await self._store.mark_verified(session_id, now):
            return VerificationResult(success=False, reason=REASON_INVALID_OR_EXPIRED)

        self._logger.info(
            f"✅ [VERIFY_ANSWER] Капча решена: session_id={session_id}, user_id={session.user_id}"
        )
        return VerificationResult(success=True, reason=REASON_VERIFIED)

# gate_bot/services/captcha/issuer_service.py
"""
Выдача капчи.

Отвечает за:
- Проверку кулдауна между выдачами (вызывает хендлер до выдачи)
- Создание сессии: ответ, id, срок жизни, запись в хранилище, картинка
"""

import logging
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from gate_bot.database.models import utcnow
from gate_bot.services.captcha.generator_service import (
    DEFAULT_CAPTCHA_LENGTH,
    generate_captcha_text,
    render_captcha_image,
)
from gate_bot.services.captcha.session_store import CaptchaSessionStore


DEFAULT_COOLDOWN_SECONDS = 30
DEFAULT_TTL_SECONDS = 5 * 60
SESSION_ID_BYTES = 16  # 128 бит


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: int = 0


@dataclass(frozen=True)
class IssuedCaptcha:
    session_id: str
    image: bytes
    answer: str
    expires_at: datetime


def check_rate_limit(
    last_attempt_at: Optional[datetime],
    now: datetime,
    cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS,
) -> RateLimitDecision:
    """
    Проверка кулдауна по времени последней выдачи.

    Returns:
        RateLimitDecision; при отказе retry_after_seconds - остаток
        кулдауна, округлённый вверх до секунды
    """
    if last_attempt_at is None:
        return RateLimitDecision(allowed=True)

    elapsed = (now - last_attempt_at).total_seconds()
    if elapsed < cooldown_seconds:
        return RateLimitDecision(
            allowed=False,
            retry_after_seconds=math.ceil(cooldown_seconds - elapsed),
        )
    return RateLimitDecision(allowed=True)


class CaptchaIssuer:
    def __init__(
        self,
        store: CaptchaSessionStore,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        captcha_length: int = DEFAULT_CAPTCHA_LENGTH,
        clock: Callable[[], datetime] = utcnow,
        logger: Optional[logging.Logger] = None,
    ):
        self._store = store
        self._ttl = timedelta(seconds=ttl_seconds)
        self._captcha_length = captcha_length
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    async def issue(self, user_id: str) -> IssuedCaptcha:
        """
        Создаёт новую сессию капчи для пользователя.

        Обновление last_captcha_attempt/captcha_attempts и привязку
        telegram id -> session id выполняет вызывающий код.
        """
        self._logger.info(f"🧩 [CAPTCHA_ISSUE] Создание капчи для user_id={user_id}")

        answer = generate_captcha_text(self._captcha_length)
        session_id = secrets.token_hex(SESSION_ID_BYTES)
        expires_at = self._clock() + self._ttl

        await self._store.create(session_id, user_id, answer, expires_at)

        image = render_captcha_image(answer)

        self._logger.info(
            f"✅ [CAPTCHA_ISSUE] Капча создана: session_id={session_id}, user_id={user_id}, "
            f"image={len(image)} байт, expires_at={expires_at.isoformat()}"
        )
        return IssuedCaptcha(
            session_id=session_id,
            image=image,
            answer=answer,
            expires_at=expires_at,
        )

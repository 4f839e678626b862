# gate_bot/handlers/captcha_handler.py
"""
Хендлеры капчи.

Отвечает за:
- /start: выдачу капчи с учётом кулдауна
- Перехват текстового ответа от пользователя с активной капчей
"""

import logging
from typing import Any, Dict, Optional, Union

from aiogram import Router, F
from aiogram.filters import BaseFilter, CommandStart
from aiogram.types import BufferedInputFile, ForceReply, Message, ReplyKeyboardRemove
from sqlalchemy.ext.asyncio import AsyncSession

from gate_bot.config import CAPTCHA_COOLDOWN_SECONDS
from gate_bot.database.models import utcnow
from gate_bot.database.queries import get_or_create_user, mark_user_verified, record_challenge_issued
from gate_bot.services.captcha import (
    REASON_INCORRECT,
    REASON_INVALID_OR_EXPIRED,
    CaptchaIssuer,
    CaptchaVerifier,
    PendingSessionRegistry,
    check_rate_limit,
)
from gate_bot.services.gate_service import looks_like_command
from gate_bot.utils.journal import ChannelJournal


logger = logging.getLogger(__name__)

captcha_router = Router(name="captcha")

ALREADY_VERIFIED_TEXT = "✅ You have already passed the CAPTCHA. You can send messages freely!"
CAPTCHA_CAPTION = (
    "🔒 Please enter the characters you see in the image to verify you are human.\n\n"
    "The CAPTCHA will expire in {minutes} minutes.\n\n"
    "Type the characters below:"
)
CAPTCHA_PLACEHOLDER = "Enter CAPTCHA code"
VERIFIED_TEXT = "✅ CAPTCHA verified successfully! You can now send messages in the group."
FAILURE_MESSAGES = {
    REASON_INVALID_OR_EXPIRED: "Invalid or expired CAPTCHA session",
    REASON_INCORRECT: "Incorrect CAPTCHA",
}


def format_cooldown_text(seconds: int) -> str:
    return f"⏳ Please wait {seconds} seconds before requesting a new CAPTCHA."


def format_failure_text(reason: str) -> str:
    text = FAILURE_MESSAGES.get(reason, reason)
    return f"❌ {text}\n\nPlease try again or use /start to get a new CAPTCHA."


class PendingCaptchaFilter(BaseFilter):
    """
    Матчит текст от пользователя, у которого есть активная капча.

    Команды не считаются ответом - они уходят в свои хендлеры.
    """

    async def __call__(
        self,
        message: Message,
        pending_sessions: PendingSessionRegistry,
    ) -> Union[bool, Dict[str, Any]]:
        if message.from_user is None or looks_like_command(message.text):
            return False
        session_id = pending_sessions.get(message.from_user.id)
        if session_id is None:
            return False
        return {"captcha_session_id": session_id}


# ═══════════════════════════════════════════════════════════════════════════════
# ВЫДАЧА КАПЧИ
# ═══════════════════════════════════════════════════════════════════════════════

@captcha_router.message(CommandStart())
async def start_command(
    message: Message,
    session: AsyncSession,
    issuer: CaptchaIssuer,
    pending_sessions: PendingSessionRegistry,
    journal: Optional[ChannelJournal] = None,
) -> None:
    if message.from_user is None:
        return

    user = await get_or_create_user(session, message.from_user)

    if user.captcha_passed:
        await message.answer(ALREADY_VERIFIED_TEXT)
        return

    now = utcnow()
    rate_limit = check_rate_limit(user.last_captcha_attempt, now, CAPTCHA_COOLDOWN_SECONDS)
    if not rate_limit.allowed:
        logger.info(
            f"⏳ [CAPTCHA_START] Кулдаун: user={user.telegram_id}, осталось {rate_limit.retry_after_seconds}с"
        )
        await message.answer(format_cooldown_text(rate_limit.retry_after_seconds))
        return

    issued = await issuer.issue(user.id)

    # Привязываем telegram id к сессии, чтобы следующий текст считался ответом
    pending_sessions.set(message.from_user.id, issued.session_id, issued.expires_at)

    await record_challenge_issued(session, user.id, now)

    ttl_minutes = max(1, round((issued.expires_at - now).total_seconds() / 60))
    await message.answer_photo(
        BufferedInputFile(issued.image, filename="captcha.png"),
        caption=CAPTCHA_CAPTION.format(minutes=ttl_minutes),
        reply_markup=ForceReply(input_field_placeholder=CAPTCHA_PLACEHOLDER),
    )

    if journal is not None:
        journal.log_captcha_sent(message.from_user)


# ═══════════════════════════════════════════════════════════════════════════════
# ПРОВЕРКА ОТВЕТА
# ═══════════════════════════════════════════════════════════════════════════════

@captcha_router.message(F.text, PendingCaptchaFilter())
async def captcha_answer_handler(
    message: Message,
    session: AsyncSession,
    verifier: CaptchaVerifier,
    pending_sessions: PendingSessionRegistry,
    captcha_session_id: str,
    journal: Optional[ChannelJournal] = None,
) -> None:
    result = await verifier.verify(captcha_session_id, message.text)

    if not result.success:
        await message.answer(format_failure_text(result.reason))
        if journal is not None:
            journal.log_captcha_failed(message.from_user, result.reason)
        return

    pending_sessions.discard(message.from_user.id)

    user = await get_or_create_user(session, message.from_user)
    await mark_user_verified(session, user.id)
    logger.info(f"✅ [CAPTCHA_ANSWER] Пользователь {user.telegram_id} прошёл капчу")

    await message.answer(VERIFIED_TEXT, reply_markup=ReplyKeyboardRemove())

    if journal is not None:
        journal.log_captcha_solved(message.from_user)

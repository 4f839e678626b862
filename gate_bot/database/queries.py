import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gate_bot.database.models import User, MessageLog, utcnow

logger = logging.getLogger(__name__)

NON_TEXT_PLACEHOLDER = "[non-text message]"


def build_user_id(telegram_id: int) -> str:
    return f"user_{telegram_id}"


async def get_user_by_telegram_id(session: AsyncSession, telegram_id: int) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.telegram_id == str(telegram_id))
    )
    return result.scalar_one_or_none()


# функция добавления или получения пользователя по telegram-пользователю апдейта
async def get_or_create_user(session: AsyncSession, telegram_user) -> User:
    existing_user = await get_user_by_telegram_id(session, telegram_user.id)
    if existing_user:
        return existing_user

    user = User(
        id=build_user_id(telegram_user.id),
        telegram_id=str(telegram_user.id),
        username=telegram_user.username,
        first_name=telegram_user.first_name,
        last_name=telegram_user.last_name,
        captcha_passed=False,
        captcha_attempts=0,
        last_captcha_attempt=None,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        # Параллельный апдейт того же пользователя успел создать запись первым
        await session.rollback()
        logger.info(f"ℹ️ [USERS] Пользователь {telegram_user.id} уже создан параллельно, перечитываем")
        existing_user = await get_user_by_telegram_id(session, telegram_user.id)
        if existing_user is None:
            raise
        return existing_user

    logger.info(f"➕ [USERS] Создан пользователь {user.id} (@{telegram_user.username})")
    return user


async def record_challenge_issued(session: AsyncSession, user_id: str, issued_at: datetime) -> None:
    """Фиксирует выдачу капчи: время последней попытки и инкремент счётчика."""
    await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            last_captcha_attempt=issued_at,
            captcha_attempts=User.captcha_attempts + 1,
        )
    )
    await session.commit()


async def mark_user_verified(session: AsyncSession, user_id: str) -> None:
    await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(captcha_passed=True, updated_at=utcnow())
    )
    await session.commit()


async def reset_user(session: AsyncSession, telegram_id: str) -> bool:
    """
    Административный сброс: Verified -> Unverified, обнуление счётчиков.

    Returns:
        True если пользователь найден и сброшен
    """
    result = await session.execute(
        update(User)
        .where(User.telegram_id == str(telegram_id))
        .values(
            captcha_passed=False,
            captcha_attempts=0,
            last_captcha_attempt=None,
        )
    )
    await session.commit()
    return result.rowcount > 0


async def log_message(
    session: AsyncSession,
    user_id: str,
    message_text: Optional[str],
    blocked: bool,
) -> MessageLog:
    entry = MessageLog(
        user_id=user_id,
        message_text=message_text if message_text is not None else NON_TEXT_PLACEHOLDER,
        blocked=blocked,
    )
    session.add(entry)
    await session.commit()
    return entry

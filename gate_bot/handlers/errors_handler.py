import logging

from aiogram import Router
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import ExceptionTypeFilter
from aiogram.types import ErrorEvent
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

errors_router = Router(name="errors")

GENERIC_FAILURE_TEXT = "⚠️ Something went wrong. Please try again later."


@errors_router.error(ExceptionTypeFilter(SQLAlchemyError))
async def store_error_handler(event: ErrorEvent) -> bool:
    """Ошибка хранилища: пишем в лог и отвечаем пользователю, процесс продолжает работу."""
    logger.error(
        f"❌ [STORE] Ошибка хранилища при обработке update id={event.update.update_id}: {event.exception}",
        exc_info=event.exception,
    )

    message = event.update.message
    if message is not None:
        try:
            await message.answer(GENERIC_FAILURE_TEXT)
        except TelegramAPIError as e:
            logger.warning(f"⚠️ [STORE] Не удалось отправить сообщение об ошибке: {e}")
    return True

# middleware/structured_logging.py
"""
Middleware для структурированного логирования апдейтов от Telegram
"""
import logging
from typing import Callable, Dict, Any, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import Update

from gate_bot.services.gate_service import (
    CallbackQueryUpdate,
    CommandUpdate,
    NonMessageUpdate,
    OtherMessageUpdate,
    TextUpdate,
    classify_update,
)

logger = logging.getLogger(__name__)


def describe_update(event: Update) -> Dict[str, Any]:
    """Собирает поля апдейта для лога (без полного текста сообщения)."""
    inbound = classify_update(event)
    update_data: Dict[str, Any] = {"update_id": event.update_id}

    if isinstance(inbound, CommandUpdate):
        update_data["type"] = "COMMAND"
        update_data["command"] = inbound.command
    elif isinstance(inbound, TextUpdate):
        update_data["type"] = "TEXT"
        update_data["text_length"] = len(inbound.text)
    elif isinstance(inbound, OtherMessageUpdate):
        update_data["type"] = "MESSAGE"
        update_data["content_type"] = inbound.content_type
    elif isinstance(inbound, CallbackQueryUpdate):
        update_data["type"] = "CALLBACK_QUERY"
        update_data["data"] = inbound.data[:50] if inbound.data else None
    elif isinstance(inbound, NonMessageUpdate):
        update_data["type"] = inbound.event_type.upper()

    if event.message is not None:
        msg = event.message
        update_data["from"] = msg.from_user.id if msg.from_user else None
        update_data["chat"] = msg.chat.id
        update_data["message_id"] = msg.message_id
    elif event.callback_query is not None:
        update_data["from"] = event.callback_query.from_user.id

    return update_data


class StructuredLoggingMiddleware(BaseMiddleware):
    """Middleware для структурированного логирования апдейтов"""

    async def __call__(
        self,
        handler: Callable[[Update, Dict[str, Any]], Awaitable[Any]],
        event: Update,
        data: Dict[str, Any]
    ) -> Any:
        update_data = describe_update(event)

        log_parts = [f"📩 === {update_data.get('type', 'UNKNOWN')} ==="]
        for key, value in update_data.items():
            if key != "type" and value is not None:
                log_parts.append(f"   {key}: {value}")
        logger.info("\n".join(log_parts))

        try:
            result = await handler(event, data)
        except Exception as e:
            logger.error(f"❌ Ошибка обработки update id={event.update_id}: {e}")
            raise

        logger.debug(f"✅ Update id={event.update_id} обработан")
        return result

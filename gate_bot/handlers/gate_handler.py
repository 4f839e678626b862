# ============================================================
# GATE HANDLER - ВСЕ ОСТАЛЬНЫЕ СООБЩЕНИЯ
# ============================================================
# Подключается последним: команды и ответы на капчу уже
# разобраны роутерами выше.
# ============================================================

from aiogram import Router
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from gate_bot.services.gate_service import MessageGate


gate_router = Router(name="gate")


@gate_router.message()
async def gate_message_handler(message: Message, session: AsyncSession, gate: MessageGate) -> None:
    await gate.process(session, message)

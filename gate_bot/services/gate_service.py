# ============================================================
# GATE SERVICE - ПРОПУСК СООБЩЕНИЙ ТОЛЬКО ПОСЛЕ КАПЧИ
# ============================================================
# Тип входящего апдейта определяется один раз (classify_*),
# дальше решение принимается по типу варианта.
#
# Состояния пользователя: Unverified -> Verified (после успешной капчи),
# обратно только через админский /reset_user.
# ============================================================

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from aiogram.exceptions import TelegramAPIError
from aiogram.types import Message, Update
from aiogram.types.update import UpdateTypeLookupError
from sqlalchemy.ext.asyncio import AsyncSession

from gate_bot.database.models import User
from gate_bot.database.queries import get_or_create_user, log_message
from gate_bot.utils.journal import ChannelJournal


BLOCKED_REPLY = (
    "⚠️ You need to complete the CAPTCHA before sending messages.\n\n"
    "Please use /start to begin the verification process."
)


# ============================================================
# ТИПЫ ВХОДЯЩИХ АПДЕЙТОВ
# ============================================================

@dataclass(frozen=True)
class CommandUpdate:
    command: str
    args: str = ""


@dataclass(frozen=True)
class TextUpdate:
    text: str


@dataclass(frozen=True)
class OtherMessageUpdate:
    content_type: str


@dataclass(frozen=True)
class CallbackQueryUpdate:
    data: Optional[str]


@dataclass(frozen=True)
class NonMessageUpdate:
    event_type: str


InboundUpdate = Union[CommandUpdate, TextUpdate, OtherMessageUpdate, CallbackQueryUpdate, NonMessageUpdate]


def looks_like_command(text: Optional[str]) -> bool:
    return bool(text) and text.startswith("/")


def classify_message(message: Message) -> InboundUpdate:
    text = message.text
    if looks_like_command(text):
        head, _, args = text.partition(" ")
        # /stats@my_bot -> stats
        command = head[1:].split("@", 1)[0].lower()
        return CommandUpdate(command=command, args=args.strip())
    if text is not None:
        return TextUpdate(text=text)
    content_type = message.content_type
    return OtherMessageUpdate(content_type=str(getattr(content_type, "value", content_type)))


def classify_update(update: Update) -> InboundUpdate:
    if update.message is not None:
        return classify_message(update.message)
    if update.callback_query is not None:
        return CallbackQueryUpdate(data=update.callback_query.data)
    try:
        event_type = update.event_type
    except UpdateTypeLookupError:
        event_type = "unknown"
    return NonMessageUpdate(event_type=event_type)


# ============================================================
# РЕШЕНИЕ ГЕЙТА
# ============================================================

class GateDecision(str, Enum):
    ALLOW = "allow"
    BLOCK = "block"
    BYPASS = "bypass"


def decide(user: User) -> GateDecision:
    return GateDecision.ALLOW if user.captcha_passed else GateDecision.BLOCK


class MessageGate:
    def __init__(self, journal: Optional[ChannelJournal] = None, logger: Optional[logging.Logger] = None):
        self._journal = journal
        self._logger = logger or logging.getLogger(__name__)

    async def process(self, session: AsyncSession, message: Message) -> GateDecision:
        """
        Применяет гейт к входящему сообщению.

        Команды пропускаются без записи в журнал сообщений. Остальное
        либо пропускается с записью blocked=False, либо удаляется
        (если получится) с записью blocked=True и подсказкой про /start.
        """
        inbound = classify_message(message)

        if isinstance(inbound, CommandUpdate) or message.from_user is None:
            return GateDecision.BYPASS
        message_text = inbound.text if isinstance(inbound, TextUpdate) else None

        user = await get_or_create_user(session, message.from_user)
        decision = decide(user)

        if decision is GateDecision.ALLOW:
            await log_message(session, user.id, message_text, blocked=False)
            self._logger.debug(f"✅ [GATE] Сообщение пропущено: user={user.telegram_id}")
            return decision

        try:
            await message.delete()
        except TelegramAPIError as e:
            # Нет прав на удаление или сообщение уже удалено - решение не меняется
            self._logger.warning(
                f"⚠️ [GATE] Не удалось удалить сообщение {message.message_id} "
                f"в чате {message.chat.id}: {e}"
            )

        await log_message(session, user.id, message_text, blocked=True)
        self._logger.info(
            f"🚫 [GATE] Сообщение заблокировано: user={user.telegram_id}, chat={message.chat.id}"
        )

        await message.answer(BLOCKED_REPLY)

        if self._journal is not None:
            self._journal.log_message_blocked(message.from_user, message.chat)
        return decision

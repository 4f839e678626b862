import asyncio
import html
import logging
from typing import Optional, Set

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError

logger = logging.getLogger(__name__)


# ==== ФОРМАТИРОВАННЫЕ ЛОГИ В КАНАЛ ЖУРНАЛА ====

def _user_link(user) -> str:
    name = user.username or user.first_name or f"id{user.id}"
    return f"<a href='tg://user?id={user.id}'>{html.escape(name)}</a> [{user.id}]"


class ChannelJournal:
    """Отправляет события капчи в канал LOG_CHANNEL_ID (если он задан)."""

    def __init__(self, bot: Bot, channel_id: Optional[str]):
        self._bot = bot
        self._channel_id = channel_id
        self._tasks: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self._channel_id)

    async def send(self, text: str) -> None:
        if not self.enabled:
            return
        try:
            await self._bot.send_message(
                self._channel_id,
                text,
                parse_mode="HTML",
                disable_web_page_preview=True,
            )
        except TelegramAPIError as e:
            logger.warning(f"❌ [JOURNAL] Ошибка при отправке лога в канал: {e}")

    def _post(self, text: str) -> None:
        if not self.enabled:
            return
        # Журнал не должен задерживать ответ пользователю
        task = asyncio.create_task(self.send(text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def log_captcha_sent(self, user) -> None:
        self._post(
            f"📢 #КАПЧА_ОТПРАВЛЕНА 🟡\n"
            f"• Кому: {_user_link(user)}\n"
            f"#id{user.id}"
        )

    def log_captcha_solved(self, user) -> None:
        self._post(
            f"✅ #КАПЧА_РЕШЕНА 🟢\n"
            f"• Кто: {_user_link(user)}\n"
            f"#id{user.id}"
        )

    def log_captcha_failed(self, user, reason: str) -> None:
        self._post(
            f"❌ #КАПЧА_НЕ_УДАЛАСЬ 🔴\n"
            f"• Кто: {_user_link(user)}\n"
            f"• Причина: {html.escape(reason)}\n"
            f"#id{user.id}"
        )

    def log_message_blocked(self, user, chat) -> None:
        title = getattr(chat, "title", None) or str(chat.id)
        self._post(
            f"🚫 #СООБЩЕНИЕ_ЗАБЛОКИРОВАНО 🔴\n"
            f"• Кто: {_user_link(user)}\n"
            f"• Чат: {html.escape(title)} [{chat.id}]\n"
            f"#id{user.id}"
        )

    def log_user_reset(self, admin, target_telegram_id: str) -> None:
        self._post(
            f"🔄 #СБРОС_ПОЛЬЗОВАТЕЛЯ 🔵\n"
            f"• Кто сбросил: {_user_link(admin)}\n"
            f"• Кого: [{html.escape(str(target_telegram_id))}]\n"
            f"#id{target_telegram_id}"
        )
